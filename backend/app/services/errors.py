class SchedulingError(Exception):
    """Base error for recurring schedule operations."""


class NotFoundError(SchedulingError):
    """Raised when a referenced template, pattern, or schedule is missing."""


class PersistenceError(SchedulingError):
    """Raised when a write could not be stored."""


class ConcurrencyConflictError(PersistenceError):
    """Raised when another runner changed the schedule first."""


class PatternInUseError(SchedulingError):
    """Raised when deleting a pattern that live schedules still reference."""


class ScheduleStateError(SchedulingError):
    """Raised for lifecycle transitions a schedule does not allow."""


class PatternNameTakenError(SchedulingError):
    """Raised when a firm already has a pattern with the requested name."""
