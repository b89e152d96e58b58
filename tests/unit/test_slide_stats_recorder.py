"""Tests for the durable slide stats recorder."""

import asyncio
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from deckly.config import AggregateMode
from deckly.repositories.deck_stats import DeckStatsRepository
from deckly.repositories.page_view import PageViewRepository
from deckly.services.slide_stats_recorder import SlideStatsRecorder


@pytest.fixture(params=[AggregateMode.UPSERT, AggregateMode.ATOMIC])
def recorder(request, dynamodb_table, settings, clock):
    return SlideStatsRecorder(
        settings=replace(settings, aggregate_mode=request.param),
        clock=clock,
    )


def _stats(deck_id, page_number):
    return DeckStatsRepository("deckly-test").get(deck_id, page_number)


def _views(deck_id):
    return PageViewRepository("deckly-test").list_by_deck(deck_id)


class TestSlideStatsRecorder:
    """Tests for SlideStatsRecorder in both aggregate modes."""

    @pytest.mark.asyncio
    async def test_revisit_accumulates_time_not_views(self, recorder, sample_deck, clock):
        """V views page 1 for 10s, page 2 for 20s, page 1 again for 5s."""
        first = await recorder.sync_slide_stats(sample_deck, 1, 10, visitor_id="visitor-v")
        clock.advance(10)
        await recorder.sync_slide_stats(sample_deck, 2, 20, visitor_id="visitor-v")
        clock.advance(20)
        repeat = await recorder.sync_slide_stats(sample_deck, 1, 5, visitor_id="visitor-v")

        assert first.unique is True
        assert repeat.unique is False

        page_1 = _stats("deck-001", 1)
        page_2 = _stats("deck-001", 2)
        assert (page_1.total_views, page_1.total_time_seconds) == (1, 15)
        assert (page_2.total_views, page_2.total_time_seconds) == (1, 20)
        assert page_1.user_id == "test-user-123"

        views = _views("deck-001")
        assert len(views) == 2
        page_1_row = next(v for v in views if v.page_number == 1)
        assert page_1_row.time_spent == 15

    @pytest.mark.asyncio
    async def test_distinct_visitors_each_count(self, recorder, sample_deck):
        for visitor in ("a", "b", "c"):
            await recorder.sync_slide_stats(sample_deck, 1, 3, visitor_id=visitor)
        await recorder.sync_slide_stats(sample_deck, 1, 3, visitor_id="a")

        stats = _stats("deck-001", 1)
        assert stats.total_views == 3
        assert stats.total_time_seconds == 12

    @pytest.mark.asyncio
    async def test_view_after_window_is_unique_again(self, recorder, sample_deck, clock):
        await recorder.sync_slide_stats(sample_deck, 1, 4, visitor_id="v")
        clock.advance(hours=25)
        result = await recorder.sync_slide_stats(sample_deck, 1, 6, visitor_id="v")

        assert result.unique is True
        assert len(_views("deck-001")) == 2
        stats = _stats("deck-001", 1)
        assert (stats.total_views, stats.total_time_seconds) == (2, 10)

    @pytest.mark.asyncio
    async def test_view_exactly_one_window_later_is_unique(self, recorder, sample_deck, clock):
        await recorder.sync_slide_stats(sample_deck, 1, 4, visitor_id="v")
        clock.advance(hours=24)
        result = await recorder.sync_slide_stats(sample_deck, 1, 6, visitor_id="v")

        assert result.unique is True
        assert len(_views("deck-001")) == 2

    @pytest.mark.asyncio
    async def test_view_inside_window_is_repeat(self, recorder, sample_deck, clock):
        await recorder.sync_slide_stats(sample_deck, 1, 4, visitor_id="v")
        clock.advance(hours=23, minutes=59)
        result = await recorder.sync_slide_stats(sample_deck, 1, 6, visitor_id="v")

        assert result.unique is False
        assert result.total_views == 1
        assert result.total_time_seconds == 10

    @pytest.mark.asyncio
    async def test_viewer_email_filled_on_repeat(self, recorder, sample_deck, clock):
        await recorder.sync_slide_stats(sample_deck, 1, 4, visitor_id="v")
        clock.advance(60)
        await recorder.sync_slide_stats(
            sample_deck, 1, 2, viewer_email="investor@fund.com", visitor_id="v"
        )

        (row,) = _views("deck-001")
        assert row.viewer_email == "investor@fund.com"

    @pytest.mark.asyncio
    async def test_negative_time_dropped(self, recorder, sample_deck):
        assert await recorder.sync_slide_stats(sample_deck, 1, -3, visitor_id="v") is None
        assert _stats("deck-001", 1) is None

    @pytest.mark.asyncio
    async def test_uses_local_visitor_identity(self, dynamodb_table, settings, clock, sample_deck):
        identity = MagicMock()
        identity.get_visitor_id.return_value = "local-visitor"
        recorder = SlideStatsRecorder(settings=settings, clock=clock, visitor_identity=identity)

        result = await recorder.sync_slide_stats(sample_deck, 2, 8)

        assert result.visitor_id == "local-visitor"


class TestRecorderFailures:
    """Recording is best-effort and never raises."""

    @pytest.mark.asyncio
    async def test_store_failure_swallowed(self, settings, clock, sample_deck):
        page_views = MagicMock()
        page_views.find_recent.side_effect = ConnectionError("store unavailable")
        deck_stats = MagicMock()
        recorder = SlideStatsRecorder(
            page_views=page_views, deck_stats=deck_stats, settings=settings, clock=clock
        )

        result = await recorder.sync_slide_stats(sample_deck, 1, 5, visitor_id="v")

        assert result is None
        page_views.find_recent.assert_called_once()
        deck_stats.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_retry_on_write_path(self, settings, clock, sample_deck):
        page_views = MagicMock()
        page_views.find_recent.return_value = None
        deck_stats = MagicMock()
        deck_stats.get.side_effect = TimeoutError("slow")
        recorder = SlideStatsRecorder(
            page_views=page_views, deck_stats=deck_stats, settings=settings, clock=clock
        )

        assert await recorder.sync_slide_stats(sample_deck, 1, 5, visitor_id="v") is None
        assert deck_stats.get.call_count == 1



class TestAggregateRace:
    """Two recorders working the same page key at once."""

    @pytest.mark.asyncio
    async def test_upsert_mode_accepts_undercount(self, settings, clock, sample_deck):
        """Both writers read the same empty aggregate; the last write wins."""
        page_views = MagicMock()
        page_views.find_recent.return_value = None
        deck_stats = MagicMock()
        deck_stats.get.return_value = None
        recorder = SlideStatsRecorder(
            page_views=page_views, deck_stats=deck_stats, settings=settings, clock=clock
        )

        results = await asyncio.gather(
            recorder.sync_slide_stats(sample_deck, 1, 5, visitor_id="tab-1"),
            recorder.sync_slide_stats(sample_deck, 1, 7, visitor_id="tab-2"),
        )

        assert all(r.unique for r in results)
        written = [c.args[0] for c in deck_stats.upsert.call_args_list]
        assert [s.total_views for s in written] == [1, 1]
        assert sorted(s.total_time_seconds for s in written) == [5, 7]

    @pytest.mark.asyncio
    async def test_atomic_mode_sends_deltas(self, settings, clock, sample_deck):
        page_views = MagicMock()
        page_views.find_recent.side_effect = [None, MagicMock()]
        deck_stats = MagicMock()
        deck_stats.accumulate.return_value = MagicMock(total_views=1, total_time_seconds=5.0)
        recorder = SlideStatsRecorder(
            page_views=page_views,
            deck_stats=deck_stats,
            settings=replace(settings, aggregate_mode=AggregateMode.ATOMIC),
            clock=clock,
        )

        await recorder.sync_slide_stats(sample_deck, 1, 5, visitor_id="v")
        await recorder.sync_slide_stats(sample_deck, 1, 2, visitor_id="v")

        deltas = [c.args[3:5] for c in deck_stats.accumulate.call_args_list]
        assert deltas == [(1, 5), (0, 2)]
        deck_stats.get.assert_not_called()
        deck_stats.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_atomic_mode_builds_on_upserted_totals(self, dynamodb_table, settings, clock, sample_deck):
        """Switching modes keeps the existing counters."""
        upsert = SlideStatsRecorder(settings=settings, clock=clock)
        atomic = SlideStatsRecorder(
            settings=replace(settings, aggregate_mode=AggregateMode.ATOMIC), clock=clock
        )

        await upsert.sync_slide_stats(sample_deck, 1, 5, visitor_id="a")
        result = await atomic.sync_slide_stats(sample_deck, 1, 7, visitor_id="b")

        assert (result.total_views, result.total_time_seconds) == (2, 12)
