"""Domain error taxonomy.

Services raise these exceptions; the application installs a handler that
turns each one into a JSON `{"message": ...}` response with the class's
HTTP status code.
"""

from typing import Optional


class ScholarStreamError(Exception):
    status_code: int = 500
    code: str = "INTERNAL"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class Unauthorized(ScholarStreamError):
    """No credential was presented."""
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(ScholarStreamError):
    """A credential was presented but a token, role or ownership check failed."""
    status_code = 403
    code = "FORBIDDEN"


class NotFound(ScholarStreamError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidInput(ScholarStreamError):
    status_code = 400
    code = "INVALID_INPUT"


class PreconditionFailed(ScholarStreamError):
    """A domain rule rejected the operation."""
    status_code = 400
    code = "PRECONDITION_FAILED"


class DuplicateApplication(PreconditionFailed):
    code = "DUPLICATE_APPLICATION"

    def __init__(self, message: str = "Already applied"):
        super().__init__(message)


class InvalidState(ScholarStreamError):
    status_code = 400
    code = "INVALID_STATE"


class Internal(ScholarStreamError):
    status_code = 500
    code = "INTERNAL"
