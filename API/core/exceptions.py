"""
Application exceptions.

Services raise these; the handlers registered in app.py turn them into the
JSON error envelope {"error": message}.
"""

from http import HTTPStatus
from typing import Dict, Optional


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None,
                 fields: Optional[Dict[str, str]] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.fields = fields or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class ValidationFailed(AppError):
    status_code = HTTPStatus.BAD_REQUEST


class Unauthorized(AppError):
    status_code = HTTPStatus.UNAUTHORIZED


class Forbidden(AppError):
    status_code = HTTPStatus.FORBIDDEN


class NotFound(AppError):
    status_code = HTTPStatus.NOT_FOUND


class StateConflict(AppError):
    """Resource already in a terminal state (already paid, already registered)."""

    status_code = HTTPStatus.BAD_REQUEST


class PaymentProviderError(AppError):
    """Stripe rejected the request (card declined, invalid payment method...)."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str = "Payment failed", code: Optional[str] = None):
        self.code = code
        super().__init__(message or "Payment failed")


class ConfigurationError(AppError):
    """Required server configuration (API keys, secrets) is missing."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
