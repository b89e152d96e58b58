"""Durable recorder for page dwell events.

Each dwell becomes exactly one of:

* a new unique-view row (no view of this page by this visitor inside the
  dedup window), or
* extra time accumulated onto the existing row.

The page's aggregate is then updated. In ``upsert`` mode the recorder reads
the aggregate, adds to it and writes the totals back keyed by (deck, page).
Two recorders working the same key at once can both read the old totals
and one increment is lost; that undercount is accepted for best-effort
telemetry. ``atomic`` mode moves the arithmetic into a single DynamoDB
``ADD`` and has no such window.

Recording never raises. Failures are logged and the event is dropped
without retry.
"""

import asyncio
from datetime import timedelta

import structlog

from deckly.config import AggregateMode, AnalyticsSettings
from deckly.models.analytics import RecordResult
from deckly.models.deck import Deck
from deckly.models.deck_stats import DeckPageStats
from deckly.models.page_view import PageView
from deckly.repositories.deck_stats import DeckStatsRepository
from deckly.repositories.page_view import PageViewRepository
from deckly.services.visitor_identity import VisitorIdentity
from deckly.utils.clock import Clock, SystemClock

logger = structlog.get_logger()


class SlideStatsRecorder:
    """Records dwell events into raw views and per-page aggregates."""

    def __init__(
        self,
        page_views: PageViewRepository | None = None,
        deck_stats: DeckStatsRepository | None = None,
        visitor_identity: VisitorIdentity | None = None,
        clock: Clock | None = None,
        settings: AnalyticsSettings | None = None,
    ):
        self.settings = settings or AnalyticsSettings.from_env()
        self.page_views = page_views or PageViewRepository(self.settings.table_name)
        self.deck_stats = deck_stats or DeckStatsRepository(self.settings.table_name)
        self.visitor_identity = visitor_identity or VisitorIdentity()
        self.clock = clock or SystemClock()
        self.dedup_window = timedelta(hours=self.settings.dedup_window_hours)
        self.mode = AggregateMode(self.settings.aggregate_mode)

    async def sync_slide_stats(
        self,
        deck: Deck,
        page_number: int,
        time_spent: float,
        viewer_email: str | None = None,
        visitor_id: str | None = None,
    ) -> RecordResult | None:
        """Record one dwell on ``page_number`` of ``deck``.

        Args:
            deck: Deck that was viewed.
            page_number: 1-based page number.
            time_spent: Dwell in seconds.
            viewer_email: Email collected by an access gate, if any.
            visitor_id: Visitor to attribute the view to; the local visitor
                identity when omitted.

        Returns:
            The recorded outcome, or None if the event was dropped.
        """
        if time_spent < 0:
            logger.warning(
                "Negative dwell dropped",
                deck_id=deck.id,
                page_number=page_number,
                time_spent=time_spent,
            )
            return None

        visitor_id = visitor_id or self.visitor_identity.get_visitor_id()
        try:
            return await self._record(deck, page_number, time_spent, viewer_email, visitor_id)
        except Exception:
            logger.exception(
                "Failed to record slide stats",
                deck_id=deck.id,
                page_number=page_number,
                visitor_id=visitor_id,
            )
            return None

    async def _record(
        self,
        deck: Deck,
        page_number: int,
        time_spent: float,
        viewer_email: str | None,
        visitor_id: str,
    ) -> RecordResult:
        now = self.clock.now()

        existing = await asyncio.to_thread(
            self.page_views.find_recent,
            deck.id,
            page_number,
            visitor_id,
            now - self.dedup_window,
        )

        if existing is None:
            view = PageView(
                deck_id=deck.id,
                owner_id=deck.user_id,
                page_number=page_number,
                visitor_id=visitor_id,
                viewed_at=now,
                time_spent=time_spent,
                viewer_email=viewer_email,
            )
            await asyncio.to_thread(self.page_views.insert, view)
            unique = True
        else:
            await asyncio.to_thread(
                self.page_views.add_time_spent, existing, time_spent, viewer_email
            )
            unique = False

        if self.mode == AggregateMode.ATOMIC:
            stats = await asyncio.to_thread(
                self.deck_stats.accumulate,
                deck.id,
                page_number,
                deck.user_id,
                1 if unique else 0,
                time_spent,
                now,
            )
        else:
            stats = await self._upsert_totals(deck, page_number, time_spent, unique)

        logger.info(
            "Recorded slide stats",
            deck_id=deck.id,
            page_number=page_number,
            visitor_id=visitor_id,
            unique=unique,
            total_views=stats.total_views,
            total_time_seconds=stats.total_time_seconds,
        )
        return RecordResult(
            deck_id=deck.id,
            page_number=page_number,
            visitor_id=visitor_id,
            unique=unique,
            total_views=stats.total_views,
            total_time_seconds=stats.total_time_seconds,
        )

    async def _upsert_totals(
        self,
        deck: Deck,
        page_number: int,
        time_spent: float,
        unique: bool,
    ) -> DeckPageStats:
        current = await asyncio.to_thread(self.deck_stats.get, deck.id, page_number)

        stats = DeckPageStats(
            deck_id=deck.id,
            page_number=page_number,
            user_id=deck.user_id,
            total_views=(current.total_views if current else 0) + (1 if unique else 0),
            total_time_seconds=(current.total_time_seconds if current else 0.0) + time_spent,
            updated_at=self.clock.now(),
        )
        if current:
            stats.id = current.id

        await asyncio.to_thread(self.deck_stats.upsert, stats)
        return stats
