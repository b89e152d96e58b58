"""Cached dashboard queries for deck owners.

Every query resolves the owner first (explicit user ID, else the session)
and fails with UnauthorizedError before touching the store. Reads go
through the shared QueryCache, keyed by the query's parameters, so
identical concurrent queries share one fetch.
"""

import asyncio
from datetime import timedelta

import structlog

from deckly.config import AnalyticsSettings
from deckly.models.analytics import DailyMetrics, DeckStatsReport, TopDeck, TotalStats, VisitorSignal
from deckly.models.deck import Deck
from deckly.models.tier import Tier, get_tier_config
from deckly.repositories.deck import DeckRepository
from deckly.repositories.deck_stats import DeckStatsRepository
from deckly.repositories.page_view import PageViewRepository
from deckly.services import metrics
from deckly.services.query_cache import QueryCache, QueryType
from deckly.utils.auth import AnonymousSession, SessionProvider, require_user_id
from deckly.utils.clock import Clock, SystemClock
from deckly.utils.exceptions import DeckAccessDeniedError, DeckNotFoundError

logger = structlog.get_logger()


class AnalyticsService:
    """Owner-facing analytics queries."""

    def __init__(
        self,
        cache: QueryCache | None = None,
        decks: DeckRepository | None = None,
        deck_stats: DeckStatsRepository | None = None,
        page_views: PageViewRepository | None = None,
        session: SessionProvider | None = None,
        clock: Clock | None = None,
        settings: AnalyticsSettings | None = None,
    ):
        settings = settings or AnalyticsSettings.from_env()
        self.clock = clock or SystemClock()
        self.cache = cache or QueryCache(clock=self.clock)
        self.decks = decks or DeckRepository(settings.table_name)
        self.deck_stats = deck_stats or DeckStatsRepository(settings.table_name)
        self.page_views = page_views or PageViewRepository(settings.table_name)
        self.session = session or AnonymousSession()
        self.logger = logger.bind(service="analytics")

    async def _owned_deck(self, user_id: str, deck_id: str) -> Deck:
        deck = await asyncio.to_thread(self.decks.get, user_id, deck_id)
        if deck is not None:
            return deck

        # Distinguish someone else's deck from a missing one
        other = await asyncio.to_thread(self.decks.get_by_id, deck_id)
        if other is not None:
            raise DeckAccessDeniedError(deck_id)
        raise DeckNotFoundError(deck_id)

    async def get_deck_stats(
        self,
        deck_id: str,
        tier: Tier | str = Tier.FREE,
        user_id: str | None = None,
        force_refresh: bool = False,
    ) -> DeckStatsReport:
        """Per-page stats for one deck.

        Raises:
            UnauthorizedError: If no user is resolved.
            DeckAccessDeniedError: If the deck belongs to someone else.
            DeckNotFoundError: If the deck does not exist.
        """
        owner_id = require_user_id(user_id, self.session)
        tier = Tier(tier)

        async def fetch() -> DeckStatsReport:
            await self._owned_deck(owner_id, deck_id)
            pages = await asyncio.to_thread(self.deck_stats.list_by_deck, deck_id)
            return metrics.build_deck_report(deck_id, pages, tier)

        return await self.cache.get_or_fetch(
            f"deck_stats:{owner_id}:{deck_id}:{tier.value}",
            fetch,
            QueryType.PAGE_STATS,
            force_refresh=force_refresh,
        )

    async def get_user_total_stats(
        self,
        user_id: str | None = None,
        deck_id: str | None = None,
        force_refresh: bool = False,
    ) -> TotalStats:
        """Total time and per-deck distinct visitors across the user's decks."""
        owner_id = require_user_id(user_id, self.session)

        async def fetch() -> TotalStats:
            stats, views = await asyncio.gather(
                asyncio.to_thread(self.deck_stats.list_by_user, owner_id, deck_id),
                asyncio.to_thread(self.page_views.list_by_owner, owner_id),
            )
            return metrics.compute_user_totals(stats, views, deck_id)

        return await self.cache.get_or_fetch(
            f"totals:{owner_id}:{deck_id or 'all'}",
            fetch,
            QueryType.TOTALS,
            force_refresh=force_refresh,
        )

    async def get_top_performing_decks(
        self,
        user_id: str | None = None,
        limit: int = metrics.DEFAULT_TOP_DECKS,
        force_refresh: bool = False,
    ) -> list[TopDeck]:
        """The user's decks ranked by distinct visitors."""
        owner_id = require_user_id(user_id, self.session)

        async def fetch() -> list[TopDeck]:
            decks, stats, views = await asyncio.gather(
                asyncio.to_thread(self.decks.list_by_user, owner_id),
                asyncio.to_thread(self.deck_stats.list_by_user, owner_id),
                asyncio.to_thread(self.page_views.list_by_owner, owner_id),
            )
            return metrics.compute_top_decks(decks, stats, views, limit)

        return await self.cache.get_or_fetch(
            f"top_decks:{owner_id}:{limit}",
            fetch,
            QueryType.TOP_DECKS,
            force_refresh=force_refresh,
        )

    async def get_daily_metrics(
        self,
        user_id: str | None = None,
        force_refresh: bool = False,
    ) -> DailyMetrics:
        """Visits and time per day for the last seven days."""
        owner_id = require_user_id(user_id, self.session)

        async def fetch() -> DailyMetrics:
            now = self.clock.now()
            window = metrics.daily_window(now)
            # Midnight UTC at the start of the window
            since = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(
                days=len(window) - 1
            )
            views = await asyncio.to_thread(self.page_views.list_by_owner, owner_id, since)
            return metrics.compute_daily_metrics(views, now)

        return await self.cache.get_or_fetch(
            f"daily:{owner_id}",
            fetch,
            QueryType.DAILY,
            force_refresh=force_refresh,
        )

    async def get_visitor_signals(
        self,
        deck_id: str,
        tier: Tier | str = Tier.FREE,
        user_id: str | None = None,
        force_refresh: bool = False,
    ) -> list[VisitorSignal]:
        """Interest signals for a deck's visitors inside the tier's retention window."""
        owner_id = require_user_id(user_id, self.session)
        tier = Tier(tier)

        async def fetch() -> list[VisitorSignal]:
            await self._owned_deck(owner_id, deck_id)
            since = self.clock.now() - timedelta(days=get_tier_config(tier).days)
            views = await asyncio.to_thread(self.page_views.list_by_deck, deck_id, since)
            return metrics.compute_visitor_signals(views)

        return await self.cache.get_or_fetch(
            f"signals:{owner_id}:{deck_id}:{tier.value}",
            fetch,
            QueryType.SIGNALS,
            force_refresh=force_refresh,
        )

    async def get_deck_signal_count(
        self,
        deck_id: str,
        tier: Tier | str = Tier.FREE,
        user_id: str | None = None,
        force_refresh: bool = False,
    ) -> int:
        """Number of visitors with at least one interest signal (the deck list badge)."""
        return len(await self.get_visitor_signals(deck_id, tier, user_id, force_refresh))

    def invalidate_user(self, user_id: str) -> int:
        """Drop every cached query for a user (e.g. after a manual refresh)."""
        dropped = sum(
            self.cache.invalidate_prefix(f"{prefix}:{user_id}:")
            for prefix in ("deck_stats", "totals", "top_decks", "signals")
        )
        if self.cache.invalidate(f"daily:{user_id}"):
            dropped += 1
        self.logger.info("User analytics cache invalidated", user_id=user_id, dropped=dropped)
        return dropped
