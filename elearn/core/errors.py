"""Error taxonomy shared by services and routers.

Every error carries the HTTP status it maps to; the handler registered in
``elearn.main`` renders it as ``{"success": false, "message": ..., **extra}``.
"""
from typing import Any


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    default_message = "All fields are required!"


class Conflict(AppError):
    status_code = 400
    default_message = "Resource already exists"


class InvalidInput(AppError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Authentication required"


class InvalidToken(Unauthorized):
    default_message = "Invalid token"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Locked(AppError):
    status_code = 423
    default_message = "Account is temporarily locked due to too many failed login attempts."


class ServerError(AppError):
    status_code = 500


class PaymentRejected(AppError):
    status_code = 400
    default_message = "Payment verification failed with eSewa"


class PartialPaymentFailure(ServerError):
    default_message = "Payment verified but failed to update records. Please contact support."


class GatewayUnavailable(Exception):
    """Raised by the gateway client when every transport failed."""
