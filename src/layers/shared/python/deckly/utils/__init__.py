"""Utility functions and helpers."""

from deckly.utils.auth import AuthContext, SessionProvider, get_auth_context, require_user_id
from deckly.utils.clock import Clock, SystemClock
from deckly.utils.exceptions import (
    ConflictError,
    DeckAccessDeniedError,
    DecklyError,
    DeckNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from deckly.utils.responses import accepted, error, from_exception, success, validation_error

__all__ = [
    # Response helpers
    "success",
    "accepted",
    "error",
    "from_exception",
    "validation_error",
    # Auth
    "AuthContext",
    "SessionProvider",
    "get_auth_context",
    "require_user_id",
    # Time
    "Clock",
    "SystemClock",
    # Exceptions
    "DecklyError",
    "UnauthorizedError",
    "DeckNotFoundError",
    "DeckAccessDeniedError",
    "ValidationError",
    "ConflictError",
]
