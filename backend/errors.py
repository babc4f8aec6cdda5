"""Error taxonomy shared by services, repositories and the HTTP layer."""

from __future__ import annotations


class LimitterError(Exception):
    """Base error carrying the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LimitterError):
    """Missing or malformed request input."""

    status_code = 400


class UnauthorizedError(LimitterError):
    """Raised when a bearer token cannot be validated."""

    status_code = 401


class ForbiddenError(LimitterError):
    status_code = 403


class NotFoundError(LimitterError):
    status_code = 404


class PaymentGatewayError(LimitterError):
    """Stripe call failed; `message` is what the client is allowed to see."""

    status_code = 500


class FetchError(LimitterError):
    """Document store read failed."""

    status_code = 500
