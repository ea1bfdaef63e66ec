"""
Database models - import all models here so Alembic can discover them.
"""
from src.models.edit_event import EditEvent
from src.models.pattern_insight import PatternInsight

__all__ = [
    "EditEvent",
    "PatternInsight",
]
