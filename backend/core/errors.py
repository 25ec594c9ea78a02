"""
errors.py — Grading error taxonomy.

Each error carries the HTTP status and machine code it maps to at the
request boundary (see main.add_error_handlers).
"""


class GradingError(Exception):
    status_code = 500
    code = "GRADING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(GradingError):
    """Malformed or out-of-range input, raised before any store access."""

    status_code = 422
    code = "VALIDATION_ERROR"


class PreconditionFailedError(GradingError):
    """The student has no active enrollment for the course and cycle."""

    status_code = 400
    code = "PRECONDITION_FAILED"


class DuplicateError(GradingError):
    """An active grade already exists for (student, subject, period, cycle)."""

    status_code = 409
    code = "DUPLICATE"


class NotFoundError(GradingError):
    status_code = 404
    code = "NOT_FOUND"


class InactiveError(GradingError):
    """Edit attempted on a soft-deleted grade."""

    status_code = 400
    code = "INACTIVE"
