"""Authentication context helpers."""

from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from deckly.models.tier import Tier
from deckly.utils.exceptions import UnauthorizedError

logger = structlog.get_logger()


class SessionProvider(Protocol):
    """Supplies the authenticated owner's user id, if any."""

    def get_user_id(self) -> str | None:
        ...


@dataclass
class AuthContext:
    """Authentication context extracted from an API Gateway event."""

    user_id: str
    tier: Tier = Tier.FREE

    def get_user_id(self) -> str | None:
        """Satisfy SessionProvider so a request's auth can back the service."""
        return self.user_id


class AnonymousSession:
    """SessionProvider with nobody signed in."""

    def get_user_id(self) -> str | None:
        return None


def get_auth_context(event: dict[str, Any]) -> AuthContext:
    """Extract authentication context from an API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        AuthContext with user information.

    Raises:
        UnauthorizedError: If the authorizer supplied no user id.
    """
    request_context = event.get("requestContext", {}) or {}
    authorizer = request_context.get("authorizer", {}) or {}

    # Lambda authorizer payload v2 nests the context one level down
    context = authorizer.get("lambda", authorizer)

    user_id = context.get("userId") or context.get("user_id") or context.get("sub")
    if not user_id:
        logger.warning("No user ID in auth context")
        raise UnauthorizedError()

    raw_tier = context.get("tier")
    if not raw_tier:
        is_pro = str(context.get("isPro", "false")).lower() == "true"
        raw_tier = Tier.PRO.value if is_pro else Tier.FREE.value
    try:
        tier = Tier(str(raw_tier).upper())
    except ValueError:
        logger.warning("Unknown tier in auth context", tier=raw_tier, user_id=user_id)
        tier = Tier.FREE

    return AuthContext(
        user_id=user_id,
        tier=tier,
    )


def require_user_id(user_id: str | None, session: SessionProvider | None = None) -> str:
    """Resolve the owner for a dashboard query or fail fast.

    An explicit ``user_id`` wins; otherwise the session provider is asked.

    Raises:
        UnauthorizedError: If no user id can be resolved.
    """
    resolved = user_id or (session.get_user_id() if session else None)
    if not resolved:
        raise UnauthorizedError()
    return resolved
