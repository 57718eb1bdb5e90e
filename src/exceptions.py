"""Custom exception classes for the academic records service.

Every business-rule failure raised by the enrollment policy engine is one of
these typed exceptions so that FastAPI exception handlers can convert them
to structured HTTP responses.  Store/driver errors are not wrapped here; they
propagate unchanged.
"""


class EnrollmentError(Exception):
    """Base class for enrollment lifecycle failures.

    Args:
        message: Stable, human-readable description of the violated rule.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message


class InvalidArgumentError(EnrollmentError):
    """Raised when input fails local validation (IDs, date windows, ranges)."""


class NotFoundError(EnrollmentError):
    """Raised when a referenced grade or enrollment does not exist."""


class GradeNotFoundError(NotFoundError):
    """Raised when a grade referenced by an operation does not exist.

    Args:
        grade_id: The integer primary key that was not found.
        message: Optional override for the default message.
    """

    def __init__(self, grade_id: int, message: str = "Grade not found") -> None:
        super().__init__(message)
        self.grade_id: int = grade_id


class EnrollmentNotFoundError(NotFoundError):
    """Raised when no (active) enrollment matches the request."""


class ConflictError(EnrollmentError):
    """Raised when the request is incompatible with the current state."""


class InvalidStateError(ConflictError):
    """Raised when a record is in a state that forbids the operation.

    Args:
        message: Description of the forbidden transition.
        enrollment_id: The record the operation targeted, when known.
    """

    def __init__(self, message: str, enrollment_id: int | None = None) -> None:
        super().__init__(message)
        self.enrollment_id: int | None = enrollment_id
