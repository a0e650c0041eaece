"""
Application Error Types

Every error raised by the services layer derives from OrderDeskError and
carries the HTTP status it maps to plus a message that is safe to show a
client. Storage details never go into ``message``; they are logged where
the failure happens.
"""

from typing import Optional


class OrderDeskError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(OrderDeskError):
    """Malformed or empty input. Nothing was changed."""
    status_code = 400
    default_message = "Invalid request"


class AuthError(OrderDeskError):
    """Missing, invalid or expired token, or bad credentials."""
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(OrderDeskError):
    """The targeted order does not exist."""
    status_code = 404
    default_message = "Order not found"


class InternalError(OrderDeskError):
    """Storage failure. Any open transaction has been rolled back."""
    status_code = 500
