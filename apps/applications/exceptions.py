"""Failure taxonomy for the application lifecycle.

Views turn these into structured JSON failures; nothing retries them.
"""


class ApplicationError(Exception):
    """Base class. Carries a machine-readable code and an HTTP status."""

    status_code = 400
    default_code = "error"

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def as_dict(self):
        payload = {"success": False, "code": self.code, "message": self.message}
        if self.details:
            payload["errors"] = self.details
        return payload


class ValidationError(ApplicationError):
    """Missing or malformed input, or a trial precondition not met."""

    status_code = 400
    default_code = "invalid_input"


class NotFoundError(ApplicationError):
    status_code = 404
    default_code = "not_found"


class AuthorizationError(ApplicationError):
    """The actor is not the owner, the referrer, or an admin."""

    status_code = 403
    default_code = "forbidden"


class ConflictError(ApplicationError):
    """Duplicate application or cross-region conflict."""

    status_code = 409
    default_code = "conflict"


class StateError(ApplicationError):
    """Illegal withdraw or illegal administrative transition."""

    status_code = 409
    default_code = "invalid_state"
