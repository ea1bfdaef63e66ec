"""
Tests for src/services/pattern_validation.py.
Covers: status precedence, validated-pattern retrieval, summary, prompt formatting.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.models.pattern_insight import PatternInsight
from src.schemas.learning import LearningThresholds, ValidationStatus
from src.services.pattern_validation import (
    format_patterns_for_prompt,
    get_fully_validated_patterns,
    get_validation_status,
    get_validation_summary,
    validation_status,
)

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


def _insight(**overrides):
    fields = dict(
        threshold_met=True,
        stability_validated=True,
        pattern_drift_detected=False,
        sample_size=12,
        confidence=72.0,
        time_span_days=21,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _row(pattern_value, pattern_type="edit_type", **overrides):
    fields = dict(
        pattern_type=pattern_type,
        pattern_value=pattern_value,
        frequency=12,
        success_rate=85.0,
        confidence=72.0,
        sample_size=12,
        recommendation="Current approach working well",
        first_occurrence=NOW - timedelta(days=21),
        time_span_days=21,
        threshold_met=True,
        stability_score=0.9,
        pattern_variance=10.0,
        stability_validated=True,
        pattern_drift_detected=False,
        weekly_success_rates=[85.0, 84.0, 86.0],
    )
    fields.update(overrides)
    return PatternInsight(**fields)


# ---------------------------------------------------------------------------
# validation_status (pure)
# ---------------------------------------------------------------------------

class TestValidationStatus:
    def test_all_gates_pass(self):
        assert validation_status(_insight()) == ValidationStatus.FULLY_VALIDATED

    def test_threshold_met_but_unstable(self):
        status = validation_status(_insight(stability_validated=False))
        assert status == ValidationStatus.THRESHOLD_MET_BUT_UNSTABLE

    def test_unstable_outranks_drift(self):
        status = validation_status(_insight(stability_validated=False, pattern_drift_detected=True))
        assert status == ValidationStatus.THRESHOLD_MET_BUT_UNSTABLE

    def test_stable_pattern_with_drift(self):
        status = validation_status(_insight(pattern_drift_detected=True))
        assert status == ValidationStatus.PATTERN_DRIFT_DETECTED

    def test_stable_but_insufficient_data(self):
        status = validation_status(_insight(threshold_met=False, sample_size=3))
        assert status == ValidationStatus.STABLE_BUT_INSUFFICIENT_DATA

    def test_insufficient_confidence(self):
        status = validation_status(_insight(
            threshold_met=False, stability_validated=False, sample_size=6, confidence=60,
        ))
        assert status == ValidationStatus.INSUFFICIENT_CONFIDENCE

    def test_insufficient_time_span(self):
        status = validation_status(_insight(
            threshold_met=False, stability_validated=False, sample_size=8,
            confidence=66, time_span_days=1,
        ))
        assert status == ValidationStatus.INSUFFICIENT_TIME_SPAN

    def test_insufficient_samples(self):
        status = validation_status(_insight(
            threshold_met=False, stability_validated=False, sample_size=2, confidence=54,
        ))
        assert status == ValidationStatus.INSUFFICIENT_SAMPLES

    def test_pending_when_gates_pass_but_flag_not_yet_recomputed(self):
        status = validation_status(_insight(threshold_met=False, stability_validated=False))
        assert status == ValidationStatus.PENDING_VALIDATION

    def test_missing_numbers_count_as_zero(self):
        status = validation_status(_insight(
            threshold_met=None, stability_validated=None, pattern_drift_detected=None,
            sample_size=None, confidence=None, time_span_days=None,
        ))
        assert status == ValidationStatus.INSUFFICIENT_SAMPLES

    def test_thresholds_are_respected(self):
        insight = _insight(threshold_met=False, stability_validated=False, sample_size=6, confidence=60)
        relaxed = LearningThresholds(min_confidence=50)
        assert validation_status(insight, relaxed) == ValidationStatus.PENDING_VALIDATION

    def test_idempotent(self):
        insight = _insight(pattern_drift_detected=True)
        assert validation_status(insight) == validation_status(insight)

    @pytest.mark.parametrize("status", list(ValidationStatus))
    def test_status_values_are_their_names(self, status):
        assert status.value == status.name


# ---------------------------------------------------------------------------
# Persistence-backed queries
# ---------------------------------------------------------------------------

class TestGetValidationStatus:
    async def test_known_pattern(self, db):
        db.add(_row("tone", stability_validated=False))
        await db.commit()

        status = await get_validation_status(db, "edit_type", "tone")
        assert status == ValidationStatus.THRESHOLD_MET_BUT_UNSTABLE

    async def test_unknown_pattern_returns_none(self, db):
        assert await get_validation_status(db, "edit_type", "never-seen") is None


class TestGetFullyValidatedPatterns:
    async def test_returns_only_fully_validated(self, db):
        db.add_all([
            _row("tone"),
            _row("length", stability_validated=False),
            _row("content", pattern_drift_detected=True),
            _row("structure", threshold_met=False, sample_size=3),
        ])
        await db.commit()

        patterns = await get_fully_validated_patterns(db, "edit_type")
        assert [p.pattern_value for p in patterns] == ["tone"]

    async def test_ordering(self, db):
        db.add_all([
            _row("a", stability_score=0.8, confidence=90),
            _row("b", stability_score=0.95, confidence=70),
            _row("c", stability_score=0.8, confidence=90, sample_size=30),
            _row("d", stability_score=0.8, confidence=75),
        ])
        await db.commit()

        patterns = await get_fully_validated_patterns(db, "edit_type")
        assert [p.pattern_value for p in patterns] == ["b", "c", "a", "d"]

    async def test_scoped_to_pattern_type(self, db):
        db.add_all([_row("tone"), _row("casual", pattern_type="tone_preference")])
        await db.commit()

        patterns = await get_fully_validated_patterns(db, "tone_preference")
        assert [p.pattern_value for p in patterns] == ["casual"]

    async def test_empty_when_nothing_qualifies(self, db):
        db.add(_row("tone", threshold_met=False, sample_size=2))
        await db.commit()

        assert await get_fully_validated_patterns(db, "edit_type") == []


class TestValidationSummary:
    async def test_counts_every_status(self, db):
        db.add_all([
            _row("tone"),
            _row("length", stability_validated=False),
            _row("content", pattern_drift_detected=True),
            _row("mixed", threshold_met=False, stability_validated=False, sample_size=1, confidence=50),
        ])
        await db.commit()

        summary = await get_validation_summary(db)

        assert summary["total_insights"] == 4
        assert summary["by_status"]["FULLY_VALIDATED"] == 1
        assert summary["by_status"]["THRESHOLD_MET_BUT_UNSTABLE"] == 1
        assert summary["by_status"]["PATTERN_DRIFT_DETECTED"] == 1
        assert summary["by_status"]["INSUFFICIENT_SAMPLES"] == 1
        assert summary["by_status"]["PENDING_VALIDATION"] == 0
        assert set(summary["by_status"]) == {s.value for s in ValidationStatus}

    async def test_filtered_by_type(self, db):
        db.add_all([_row("tone"), _row("casual", pattern_type="tone_preference")])
        await db.commit()

        summary = await get_validation_summary(db, pattern_type="tone_preference")
        assert summary["total_insights"] == 1

    async def test_empty_store(self, db):
        summary = await get_validation_summary(db)
        assert summary["total_insights"] == 0
        assert all(count == 0 for count in summary["by_status"].values())


class TestFormatPatternsForPrompt:
    async def test_lists_validated_patterns(self, db):
        db.add_all([
            _row("tone", stability_score=0.95),
            _row("length", stability_score=0.85, success_rate=78.0),
            _row("content", stability_validated=False),
        ])
        await db.commit()

        text = await format_patterns_for_prompt(db, "edit_type")

        lines = text.split("\n")
        assert lines[0].startswith("Learned drafting preferences")
        assert lines[1].startswith("1. tone:")
        assert lines[2].startswith("2. length:")
        assert "success: 78%" in lines[2]
        assert "stability: 95%" in lines[1]
        assert "content" not in text

    async def test_respects_limit(self, db):
        db.add_all([_row(f"p{i}", stability_score=0.9 - i / 100) for i in range(5)])
        await db.commit()

        text = await format_patterns_for_prompt(db, "edit_type", limit=2)
        assert len(text.split("\n")) == 3

    async def test_empty_string_when_nothing_validated(self, db):
        assert await format_patterns_for_prompt(db, "edit_type") == ""
