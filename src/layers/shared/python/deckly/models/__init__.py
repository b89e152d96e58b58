"""Pydantic models for Deckly analytics entities."""

from deckly.models.analytics import (
    DailyMetrics,
    DeckStatsReport,
    DwellEvent,
    PageDropOff,
    RecordResult,
    SignalLabel,
    TopDeck,
    TotalStats,
    VisitorSignal,
)
from deckly.models.base import BaseModel, generate_ulid, utc_now
from deckly.models.deck import Deck
from deckly.models.deck_stats import DeckPageStats
from deckly.models.page_view import PageView
from deckly.models.tier import TIER_CONFIG, Tier, TierConfig, get_tier_config
from deckly.models.tracking import TrackDeckViewRequest, TrackPageViewRequest

__all__ = [
    "BaseModel",
    "DailyMetrics",
    "Deck",
    "DeckPageStats",
    "DeckStatsReport",
    "DwellEvent",
    "PageDropOff",
    "PageView",
    "RecordResult",
    "SignalLabel",
    "TIER_CONFIG",
    "Tier",
    "TierConfig",
    "TopDeck",
    "TrackDeckViewRequest",
    "TrackPageViewRequest",
    "TotalStats",
    "VisitorSignal",
    "generate_ulid",
    "get_tier_config",
    "utc_now",
]
