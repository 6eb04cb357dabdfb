"""Application error taxonomy.

Every error the services raise maps onto one HTTP status and is rendered by the
handlers in ``main.py`` as ``{"success": false, "message": ..., "errors": ...}``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists"


class AlreadyInState(Conflict):
    default_message = "Resource is already in the requested state"


class InvalidTransition(Conflict):
    default_message = "Transition not allowed from the current state"


class InternalError(AppError):
    status_code = 500


class InvalidToken(Exception):
    """Raised by the token service for malformed, tampered or expired tokens."""
