"""Fire-and-forget product event capture (PostHog HTTP API).

Every public method swallows its own failures: capture is telemetry and
must never interrupt the viewer. With no API key configured, every call is
a silent no-op.
"""

import json
import urllib.request
from datetime import datetime, timezone
from typing import Any

import structlog

from deckly.config import AnalyticsSettings
from deckly.models.deck import Deck

logger = structlog.get_logger()

EVENT_DECK_VIEWED = "deck_viewed"
EVENT_PAGE_VIEWED = "pdf_page_viewed"
EVENT_DECK_COMPLETED = "deck_completed"


class EventCaptureClient:
    """Sends capture calls for one viewer."""

    def __init__(
        self,
        distinct_id: str,
        api_key: str | None = None,
        host: str = "https://app.posthog.com",
        timeout: float = 2.0,
    ):
        """Initialize capture client.

        Args:
            distinct_id: Visitor (or user) ID events are attributed to.
            api_key: PostHog project key; None disables capture.
            host: PostHog host.
            timeout: HTTP timeout in seconds.
        """
        self.distinct_id = distinct_id
        self.api_key = api_key
        self.host = host.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, distinct_id: str, settings: AnalyticsSettings) -> "EventCaptureClient":
        return cls(
            distinct_id,
            api_key=settings.posthog_key,
            host=settings.posthog_host,
            timeout=settings.capture_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _capture(self, event: str, properties: dict[str, Any]) -> bool:
        """POST one event. Returns True if it was sent."""
        if not self.enabled:
            return False

        payload = {
            "api_key": self.api_key,
            "event": event,
            "distinct_id": self.distinct_id,
            "properties": properties,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            req = urllib.request.Request(
                f"{self.host}/capture/",
                data=json.dumps(payload).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                response.read()
        except Exception as e:
            logger.warning("Event capture failed", event=event, error=str(e))
            return False

        logger.debug("Event captured", event=event, distinct_id=self.distinct_id)
        return True

    def track_deck_view(self, deck: Deck, metadata: dict[str, Any] | None = None) -> bool:
        """Capture that a viewer opened a deck."""
        return self._capture(EVENT_DECK_VIEWED, {**deck.capture_properties(), **(metadata or {})})

    def track_page_view(self, deck: Deck, page_number: int, time_spent: float) -> bool:
        """Capture a dwell on one page."""
        return self._capture(
            EVENT_PAGE_VIEWED,
            {
                **deck.capture_properties(),
                "page_number": page_number,
                "time_spent_seconds": round(time_spent),
            },
        )

    def track_deck_complete(self, deck: Deck, total_pages: int) -> bool:
        """Capture that a viewer reached every page of a deck."""
        return self._capture(
            EVENT_DECK_COMPLETED,
            {**deck.capture_properties(), "total_pages": total_pages},
        )

    def identify_user(self, user_id: str, traits: dict[str, Any] | None = None) -> bool:
        """Attach person properties to a signed-in user."""
        if not self.enabled:
            return False
        self.distinct_id = user_id
        return self._capture("$identify", {"$set": traits or {}})
