"""
Learning engine exceptions.

Insufficient data is never an exception; it is reported as a validation
status. Only malformed input and storage failures are raised.
"""


class LearningError(Exception):
    """Base class for learning engine failures."""
    pass


class LearningValidationError(LearningError, ValueError):
    """Raised when an edit event is malformed. Nothing has been written."""
    pass


class LearningStorageError(LearningError):
    """Raised when the edit ledger or an insight row cannot be read or written."""
    pass
