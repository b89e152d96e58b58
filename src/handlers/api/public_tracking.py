"""Public viewer tracking API handler (no authentication required).

Recording is best-effort telemetry: once the request is valid and the deck
exists, the viewer always gets 202, whatever happens while recording.
"""

import asyncio
import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from deckly.config import AnalyticsSettings
from deckly.models.tracking import TrackDeckViewRequest, TrackPageViewRequest
from deckly.repositories.deck import DeckRepository
from deckly.services.event_capture import EventCaptureClient
from deckly.services.slide_stats_recorder import SlideStatsRecorder
from deckly.utils.exceptions import ValidationError
from deckly.utils.rate_limiter import check_rate_limit, get_client_ip
from deckly.utils.responses import accepted, error, too_many_requests, validation_error

logger = structlog.get_logger()

_settings: AnalyticsSettings | None = None
_recorder: SlideStatsRecorder | None = None


def get_settings() -> AnalyticsSettings:
    global _settings
    if _settings is None:
        _settings = AnalyticsSettings.from_env()
    return _settings


def get_recorder() -> SlideStatsRecorder:
    global _recorder
    if _recorder is None:
        _recorder = SlideStatsRecorder(settings=get_settings())
    return _recorder


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle public tracking requests.

    Routes:
        POST /public/decks/{deck_id}/page-views  - Record a page dwell
        POST /public/decks/{deck_id}/views       - Record a deck open
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        deck_id = (event.get("pathParameters", {}) or {}).get("deck_id")

        if http_method != "POST" or not deck_id:
            return error("Not found", 404)

        settings = get_settings()
        rate_limit = check_rate_limit(
            identifier=get_client_ip(event),
            action="deck_tracking",
            requests_per_minute=settings.track_requests_per_minute,
            requests_per_hour=settings.track_requests_per_hour,
            table_name=settings.table_name,
        )
        if not rate_limit.allowed:
            return too_many_requests(rate_limit.retry_after or 60)

        body = _parse_body(event)

        if path.endswith("/page-views"):
            return track_page_view(deck_id, body, settings)
        if path.endswith("/views"):
            return track_deck_view(deck_id, body, settings)
        return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except Exception as e:
        logger.exception("Public tracking handler error", error=str(e))
        return accepted()


def _parse_body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body", errors=[{"field": "body", "message": "Invalid JSON"}])
    if not isinstance(body, dict):
        raise ValidationError("Body must be a JSON object", errors=[{"field": "body", "message": "Expected object"}])
    return body


def track_page_view(deck_id: str, body: dict, settings: AnalyticsSettings) -> dict:
    """Record one page dwell."""
    try:
        request = TrackPageViewRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)

    deck = DeckRepository(settings.table_name).get_by_id(deck_id)
    if not deck:
        return error("Deck not found", 404, error_code="NOT_FOUND")

    if deck.page_count and request.page_number > deck.page_count:
        return error(
            f"page_number must be between 1 and {deck.page_count}",
            400,
            error_code="VALIDATION_ERROR",
        )

    if request.time_spent <= settings.min_dwell_seconds:
        logger.debug("Dwell below threshold, not recorded", deck_id=deck_id, time_spent=request.time_spent)
        return accepted()

    EventCaptureClient.from_settings(request.visitor_id, settings).track_page_view(
        deck, request.page_number, request.time_spent
    )

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(
            get_recorder().sync_slide_stats(
                deck,
                request.page_number,
                request.time_spent,
                viewer_email=request.viewer_email,
                visitor_id=request.visitor_id,
            )
        )
    finally:
        loop.close()

    return accepted()


def track_deck_view(deck_id: str, body: dict, settings: AnalyticsSettings) -> dict:
    """Capture that a viewer opened a deck."""
    try:
        request = TrackDeckViewRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)

    deck = DeckRepository(settings.table_name).get_by_id(deck_id)
    if not deck:
        return error("Deck not found", 404, error_code="NOT_FOUND")

    EventCaptureClient.from_settings(request.visitor_id, settings).track_deck_view(
        deck, request.metadata
    )
    return accepted()
