"""Dashboard rollups computed from aggregates and raw view rows.

Pure functions: callers load the rows, these shape them. Visitor counts
are distinct per deck, so a visitor who viewed two decks counts twice.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from deckly.models.analytics import (
    DailyMetrics,
    DeckStatsReport,
    PageDropOff,
    SignalLabel,
    TopDeck,
    TotalStats,
    VisitorSignal,
)
from deckly.models.deck import Deck
from deckly.models.deck_stats import DeckPageStats
from deckly.models.page_view import PageView
from deckly.models.tier import Tier, get_tier_config

DAILY_WINDOW_DAYS = 7
DEFAULT_TOP_DECKS = 5

# Interest signal thresholds
DEEP_SLIDE_SECONDS = 20
MIN_DEEP_SLIDES = 2
MIN_VISITS_FOR_REPEAT = 3
QUICK_RETURN_DAYS = 3
EXTENDED_VIEWING_SECONDS = 60


def distinct_visitors_by_deck(views: Iterable[PageView]) -> dict[str, int]:
    """Number of distinct visitors per deck ID."""
    visitors: dict[str, set[str]] = defaultdict(set)
    for view in views:
        visitors[view.deck_id].add(view.visitor_id)
    return {deck_id: len(ids) for deck_id, ids in visitors.items()}


def compute_user_totals(
    stats: Iterable[DeckPageStats],
    views: Iterable[PageView],
    deck_id: str | None = None,
) -> TotalStats:
    """Total time across page aggregates and total per-deck distinct visitors.

    Args:
        stats: Page aggregates for the user's decks.
        views: Raw view rows for the user's decks.
        deck_id: Restrict both sums to one deck.
    """
    if deck_id:
        stats = [s for s in stats if s.deck_id == deck_id]
        views = [v for v in views if v.deck_id == deck_id]

    total_time = sum(s.total_time_seconds for s in stats)
    total_views = sum(distinct_visitors_by_deck(views).values())
    return TotalStats(total_views=total_views, total_time_seconds=total_time)


def compute_top_decks(
    decks: list[Deck],
    stats: Iterable[DeckPageStats],
    views: Iterable[PageView],
    limit: int = DEFAULT_TOP_DECKS,
) -> list[TopDeck]:
    """Rank decks by distinct visitors, most first.

    Ties keep the order of ``decks``.
    """
    time_by_deck: dict[str, float] = defaultdict(float)
    for s in stats:
        time_by_deck[s.deck_id] += s.total_time_seconds
    visitors = distinct_visitors_by_deck(views)

    rows = [
        TopDeck(
            id=deck.id,
            title=deck.title,
            views=visitors.get(deck.id, 0),
            time=time_by_deck.get(deck.id, 0.0),
        )
        for deck in decks
    ]
    rows.sort(key=lambda row: row.views, reverse=True)
    return rows[:limit]


def daily_window(now: datetime, tz: tzinfo = timezone.utc, days: int = DAILY_WINDOW_DAYS) -> list[date]:
    """Calendar days of the window ending today, oldest first."""
    today = now.astimezone(tz).date()
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def compute_daily_metrics(
    views: Iterable[PageView],
    now: datetime,
    tz: tzinfo = timezone.utc,
    days: int = DAILY_WINDOW_DAYS,
) -> DailyMetrics:
    """Seven day visits and time series, zero-filled.

    Each view is bucketed by its own ``viewed_at``. A day's visit count is
    the number of distinct (visitor, deck) pairs seen that day.
    """
    window = daily_window(now, tz, days)
    index = {day: i for i, day in enumerate(window)}
    pairs: list[set[tuple[str, str]]] = [set() for _ in window]
    time_spent = [0.0 for _ in window]

    for view in views:
        i = index.get(view.viewed_at.astimezone(tz).date())
        if i is None:
            continue
        pairs[i].add((view.visitor_id, view.deck_id))
        time_spent[i] += view.time_spent

    return DailyMetrics(
        labels=[day.strftime("%a") for day in window],
        visits=[len(p) for p in pairs],
        time_spent=time_spent,
    )


def _visitor_signal(visitor_id: str, rows: list[PageView]) -> VisitorSignal:
    viewer_email = next((r.viewer_email for r in rows if r.viewer_email), None)
    distinct_days = len({r.viewed_at.date() for r in rows})
    total_time = sum(r.time_spent for r in rows)
    deep_slides = len({r.page_number for r in rows if r.time_spent >= DEEP_SLIDE_SECONDS})

    timestamps = sorted(r.viewed_at for r in rows)
    days_between = None
    if len(timestamps) >= 2:
        days_between = round((timestamps[-1] - timestamps[0]).total_seconds() / 86400)

    signals = []
    if distinct_days >= 2:
        signals.append(SignalLabel.REVISITED)
    if len(rows) >= MIN_VISITS_FOR_REPEAT:
        signals.append(SignalLabel.VIEWED_MULTIPLE_TIMES)
    if deep_slides >= MIN_DEEP_SLIDES:
        signals.append(SignalLabel.DEEP_READ)
    if days_between is not None and days_between <= QUICK_RETURN_DAYS and distinct_days >= 2:
        signals.append(SignalLabel.RETURNED_QUICKLY)
    if total_time >= EXTENDED_VIEWING_SECONDS:
        signals.append(SignalLabel.EXTENDED_VIEWING)

    return VisitorSignal(
        visitor_id=visitor_id,
        viewer_email=viewer_email,
        total_visits=len(rows),
        total_time=round(total_time),
        distinct_days=distinct_days,
        deep_slides=deep_slides,
        days_between_first_and_last=days_between,
        signals=signals,
    )


def compute_visitor_signals(views: Iterable[PageView]) -> list[VisitorSignal]:
    """Interest signals per visitor of one deck, most signals first.

    Visitors with no signal are left out.
    """
    by_visitor: dict[str, list[PageView]] = defaultdict(list)
    for view in sorted(views, key=lambda v: v.viewed_at):
        by_visitor[view.visitor_id].append(view)

    results = [_visitor_signal(visitor_id, rows) for visitor_id, rows in by_visitor.items()]
    results = [r for r in results if r.signals]
    results.sort(key=lambda r: len(r.signals), reverse=True)
    return results


def compute_drop_off(pages: list[DeckPageStats]) -> list[PageDropOff]:
    """Viewers lost between each page and the next.

    The last page has no next page and no drop-off.
    """
    rows = []
    for i, page in enumerate(pages):
        next_views = pages[i + 1].total_views if i + 1 < len(pages) else page.total_views
        lost = max(0, page.total_views - next_views)
        percent = (lost / page.total_views * 100) if page.total_views else 0.0
        rows.append(
            PageDropOff(
                page_number=page.page_number,
                total_views=page.total_views,
                drop_off_count=lost,
                drop_off_percent=round(percent, 1),
            )
        )
    return rows


def build_deck_report(
    deck_id: str,
    pages: Iterable[DeckPageStats],
    tier: Tier | str = Tier.FREE,
) -> DeckStatsReport:
    """Per-deck stats with totals and drop-off for the deck detail view."""
    tier = Tier(tier)
    ordered = sorted(pages, key=lambda p: p.page_number)
    total_views = sum(p.total_views for p in ordered)
    total_time = sum(p.total_time_seconds for p in ordered)
    drop_off = compute_drop_off(ordered)

    critical = max(drop_off, key=lambda d: d.drop_off_percent, default=None)

    return DeckStatsReport(
        deck_id=deck_id,
        tier=tier.value,
        retention_days=get_tier_config(tier).days,
        pages=ordered,
        total_views=total_views,
        total_time_seconds=total_time,
        avg_time_per_view=(total_time / total_views) if total_views else 0.0,
        drop_off=drop_off,
        critical_page=critical.page_number if critical and critical.drop_off_count > 0 else None,
    )
