"""
Custom Exceptions - Application-specific error types
"""


class HabitCoachException(Exception):
    """Base exception for all habit coach errors"""
    pass


class ValidationError(HabitCoachException):
    """Raised when input fails shape or range validation"""
    pass


class NotFoundError(HabitCoachException):
    """Raised when a referenced row does not exist or is not owned by the caller"""
    pass


class HabitNotFoundError(NotFoundError):
    """Raised when a habit cannot be found"""
    pass


class ScheduleItemNotFoundError(NotFoundError):
    """Raised when a task or calendar event cannot be found"""
    pass


class SetbackNotFoundError(NotFoundError):
    """Raised when a setback cannot be found"""
    pass


class UnsupportedOperationError(HabitCoachException):
    """Raised when an operation is not allowed on the target (e.g. moving a read-only item)"""
    pass


class PersistenceError(HabitCoachException):
    """Raised when database operations fail"""
    pass


class ConcurrencyConflictError(HabitCoachException):
    """Raised when a conditional update finds a newer version of the row"""
    pass


class ExternalServiceError(HabitCoachException):
    """Raised when external services (edge functions) fail"""
    pass
