"""Tests for the raw page view repository."""

from datetime import timedelta

import pytest

from deckly.models.page_view import PageView
from deckly.repositories.page_view import PageViewRepository
from deckly.utils.exceptions import ConflictError


def _view(clock, **overrides) -> PageView:
    fields = {
        "deck_id": "deck-001",
        "owner_id": "test-user-123",
        "page_number": 1,
        "visitor_id": "v",
        "viewed_at": clock.now(),
        "time_spent": 4,
    }
    fields.update(overrides)
    return PageView(**fields)


class TestPageViewRepository:
    """Tests for PageViewRepository."""

    def test_find_recent_window_start_is_exclusive(self, dynamodb_table, clock):
        repo = PageViewRepository("deckly-test")
        view = repo.insert(_view(clock))

        assert repo.find_recent("deck-001", 1, "v", view.viewed_at) is None
        found = repo.find_recent("deck-001", 1, "v", view.viewed_at - timedelta(seconds=1))
        assert found.id == view.id

    def test_find_recent_returns_latest(self, dynamodb_table, clock):
        repo = PageViewRepository("deckly-test")
        repo.insert(_view(clock))
        latest = repo.insert(_view(clock, viewed_at=clock.now() + timedelta(hours=2)))

        assert repo.find_recent("deck-001", 1, "v", clock.now() - timedelta(hours=1)).id == latest.id

    def test_find_recent_ignores_other_visitors(self, dynamodb_table, clock):
        repo = PageViewRepository("deckly-test")
        repo.insert(_view(clock, visitor_id="v#2"))

        assert repo.find_recent("deck-001", 1, "v", clock.now() - timedelta(hours=1)) is None

    def test_duplicate_insert_conflicts(self, dynamodb_table, clock):
        repo = PageViewRepository("deckly-test")
        view = repo.insert(_view(clock))

        with pytest.raises(ConflictError) as exc_info:
            repo.insert(view)

        assert exc_info.value.status_code == 409
        assert exc_info.value.pk == "DECK#deck-001"
