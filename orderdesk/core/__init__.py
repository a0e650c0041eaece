"""
Core module initialization.
Exports configuration, logging and error types.
"""

from orderdesk.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from orderdesk.core.exceptions import (
    OrderDeskError,
    ValidationError,
    AuthError,
    NotFoundError,
    InternalError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "OrderDeskError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "InternalError",
]
