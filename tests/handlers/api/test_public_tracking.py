"""Tests for the public tracking API handler (no authentication required)."""

import json
from unittest.mock import patch

import pytest

from deckly.repositories.deck_stats import DeckStatsRepository
from deckly.repositories.page_view import PageViewRepository
from deckly.utils.rate_limiter import RateLimitResult


def _parse_body(response: dict) -> dict:
    """Parse JSON response body."""
    return json.loads(response["body"])


def public_event(path, deck_id="deck-001", body=None, method="POST", source_ip="1.2.3.4"):
    """Build an API Gateway event for the public tracking endpoints."""
    return {
        "httpMethod": method,
        "path": path,
        "pathParameters": {"deck_id": deck_id} if deck_id else {},
        "queryStringParameters": {},
        "body": body if isinstance(body, str) else (json.dumps(body) if body else None),
        "headers": {"Content-Type": "application/json"},
        "requestContext": {"identity": {"sourceIp": source_ip}},
    }


def page_view_event(body, deck_id="deck-001"):
    return public_event(f"/public/decks/{deck_id}/page-views", deck_id, body)


@pytest.fixture(autouse=True)
def fresh_module_state():
    from api import public_tracking

    public_tracking._settings = None
    public_tracking._recorder = None
    yield
    public_tracking._settings = None
    public_tracking._recorder = None


class TestTrackPageView:
    """Tests for POST /public/decks/{deck_id}/page-views."""

    def test_records_dwell(self, seeded_deck):
        from api.public_tracking import handler

        response = handler(
            page_view_event({"visitor_id": "visitor-1", "page_number": 2, "time_spent": 12.5}),
            None,
        )

        assert response["statusCode"] == 202
        stats = DeckStatsRepository("deckly-test").get("deck-001", 2)
        assert (stats.total_views, stats.total_time_seconds) == (1, 12.5)
        (view,) = PageViewRepository("deckly-test").list_by_deck("deck-001")
        assert view.visitor_id == "visitor-1"
        assert view.owner_id == "test-user-123"

    def test_repeat_accumulates(self, seeded_deck):
        from api.public_tracking import handler

        for seconds in (10, 5):
            handler(
                page_view_event({"visitor_id": "visitor-1", "page_number": 1, "time_spent": seconds}),
                None,
            )

        stats = DeckStatsRepository("deckly-test").get("deck-001", 1)
        assert (stats.total_views, stats.total_time_seconds) == (1, 15)

    def test_short_dwell_ignored(self, seeded_deck):
        from api.public_tracking import handler

        response = handler(
            page_view_event({"visitor_id": "visitor-1", "page_number": 1, "time_spent": 0.3}),
            None,
        )

        assert response["statusCode"] == 202
        assert DeckStatsRepository("deckly-test").get("deck-001", 1) is None

    @pytest.mark.parametrize(
        "body",
        [
            {"page_number": 1, "time_spent": 3},
            {"visitor_id": "v", "page_number": 0, "time_spent": 3},
            {"visitor_id": "v", "page_number": 1, "time_spent": -1},
            {"visitor_id": "v", "page_number": 1, "time_spent": 3, "viewer_email": "not-an-email"},
        ],
    )
    def test_invalid_body(self, seeded_deck, body):
        from api.public_tracking import handler

        response = handler(page_view_event(body), None)

        assert response["statusCode"] == 400
        assert _parse_body(response)["error_code"] == "VALIDATION_ERROR"

    def test_malformed_json(self, dynamodb_table):
        from api.public_tracking import handler

        response = handler(page_view_event("{not json"), None)

        assert response["statusCode"] == 400

    def test_page_beyond_deck(self, seeded_deck):
        from api.public_tracking import handler

        response = handler(
            page_view_event({"visitor_id": "v", "page_number": 9, "time_spent": 3}), None
        )

        assert response["statusCode"] == 400

    def test_unknown_deck(self, dynamodb_table):
        from api.public_tracking import handler

        response = handler(
            page_view_event({"visitor_id": "v", "page_number": 1, "time_spent": 3}, deck_id="nope"),
            None,
        )

        assert response["statusCode"] == 404

    def test_rate_limited(self, seeded_deck):
        from api.public_tracking import handler

        with patch(
            "api.public_tracking.check_rate_limit",
            return_value=RateLimitResult(allowed=False, requests_remaining=0, retry_after=42),
        ):
            response = handler(
                page_view_event({"visitor_id": "v", "page_number": 1, "time_spent": 3}), None
            )

        assert response["statusCode"] == 429
        assert response["headers"]["Retry-After"] == "42"

    def test_recording_failure_not_surfaced(self, seeded_deck):
        from api.public_tracking import handler

        with patch.object(
            PageViewRepository, "find_recent", side_effect=ConnectionError("store down")
        ):
            response = handler(
                page_view_event({"visitor_id": "v", "page_number": 1, "time_spent": 3}), None
            )

        assert response["statusCode"] == 202

    @patch("deckly.services.event_capture.urllib.request.urlopen")
    def test_captures_page_view_when_configured(self, mock_urlopen, seeded_deck, monkeypatch):
        from api.public_tracking import handler

        monkeypatch.setenv("POSTHOG_KEY", "phc_test")
        handler(page_view_event({"visitor_id": "v", "page_number": 1, "time_spent": 3}), None)

        payload = json.loads(mock_urlopen.call_args[0][0].data.decode("utf-8"))
        assert payload["event"] == "pdf_page_viewed"
        assert payload["distinct_id"] == "v"


class TestTrackDeckView:
    """Tests for POST /public/decks/{deck_id}/views."""

    def test_accepted(self, seeded_deck):
        from api.public_tracking import handler

        event = public_event("/public/decks/deck-001/views", body={"visitor_id": "v"})
        response = handler(event, None)

        assert response["statusCode"] == 202
        assert _parse_body(response) == {"accepted": True}

    def test_unknown_route(self, dynamodb_table):
        from api.public_tracking import handler

        response = handler(public_event("/public/decks/deck-001/other", body={}), None)

        assert response["statusCode"] == 404

    def test_get_not_supported(self):
        from api.public_tracking import handler

        response = handler(public_event("/public/decks/deck-001/views", method="GET"), None)

        assert response["statusCode"] == 404
