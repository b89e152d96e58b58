"""Deck analytics API handler (owner dashboard)."""

import asyncio
from typing import Any

import structlog

from deckly.services.analytics_service import AnalyticsService
from deckly.utils.auth import get_auth_context
from deckly.utils.exceptions import DecklyError
from deckly.utils.responses import error, from_exception, success

logger = structlog.get_logger()

MAX_TOP_DECKS = 20

# Reused across warm invocations so the query cache survives between requests
_service: AnalyticsService | None = None


def get_service() -> AnalyticsService:
    """Get the process-wide analytics service."""
    global _service
    if _service is None:
        _service = AnalyticsService()
    return _service


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle deck analytics API requests.

    Routes:
        GET /analytics/decks/{deck_id}/stats?refresh=true
        GET /analytics/decks/{deck_id}/signals?refresh=true
        GET /analytics/decks/{deck_id}/signal-count
        GET /analytics/totals?deck_id={deck_id}&refresh=true
        GET /analytics/daily?refresh=true
        GET /analytics/top-decks?limit=5&refresh=true
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        query_params = event.get("queryStringParameters", {}) or {}

        auth = get_auth_context(event)

        if http_method != "GET":
            return error("Method not allowed", 405)

        force_refresh = str(query_params.get("refresh", "false")).lower() == "true"
        deck_id = path_params.get("deck_id")
        service = get_service()

        if path.endswith("/stats") and deck_id:
            coro = service.get_deck_stats(deck_id, auth.tier, auth.user_id, force_refresh)
        elif path.endswith("/signals") and deck_id:
            coro = service.get_visitor_signals(deck_id, auth.tier, auth.user_id, force_refresh)
        elif path.endswith("/signal-count") and deck_id:
            coro = _signal_count(service, deck_id, auth, force_refresh)
        elif path.endswith("/analytics/totals"):
            coro = service.get_user_total_stats(
                auth.user_id, query_params.get("deck_id"), force_refresh
            )
        elif path.endswith("/analytics/daily"):
            coro = service.get_daily_metrics(auth.user_id, force_refresh)
        elif path.endswith("/analytics/top-decks"):
            try:
                limit = int(query_params.get("limit", 5))
            except ValueError:
                return error("limit must be an integer", 400, error_code="VALIDATION_ERROR")
            if not 1 <= limit <= MAX_TOP_DECKS:
                return error(
                    f"limit must be between 1 and {MAX_TOP_DECKS}",
                    400,
                    error_code="VALIDATION_ERROR",
                )
            coro = service.get_top_performing_decks(auth.user_id, limit, force_refresh)
        else:
            return error("Not found", 404)

        loop = asyncio.new_event_loop()
        try:
            result = loop.run_until_complete(coro)
        finally:
            loop.close()

        return success(result)

    except DecklyError as e:
        if e.status_code >= 500:
            logger.error("Deck analytics error", error=e.message, error_code=e.error_code)
        return from_exception(e)
    except Exception as e:
        logger.exception("Deck analytics handler error", error=str(e))
        return error("Internal server error", 500)


async def _signal_count(service: AnalyticsService, deck_id: str, auth, force_refresh: bool) -> dict:
    count = await service.get_deck_signal_count(deck_id, auth.tier, auth.user_id, force_refresh)
    return {"deck_id": deck_id, "count": count}
