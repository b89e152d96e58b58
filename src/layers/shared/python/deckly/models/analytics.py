"""Dashboard response shapes and dwell events."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel as PydanticBaseModel, Field

from deckly.models.deck_stats import DeckPageStats


class DwellEvent(PydanticBaseModel):
    """Time a visitor spent on one page before leaving it."""

    deck_id: str
    page_number: int
    elapsed_seconds: float
    ended_at: datetime


class RecordResult(PydanticBaseModel):
    """Outcome of recording one dwell event."""

    deck_id: str
    page_number: int
    visitor_id: str
    unique: bool
    total_views: int
    total_time_seconds: float


class PageDropOff(PydanticBaseModel):
    """Viewers lost between one page and the next."""

    page_number: int
    total_views: int
    drop_off_count: int
    drop_off_percent: float


class DeckStatsReport(PydanticBaseModel):
    """Per-deck page stats plus summary figures for the deck detail view."""

    deck_id: str
    tier: str
    retention_days: int
    pages: list[DeckPageStats] = Field(default_factory=list)
    total_views: int = 0
    total_time_seconds: float = 0.0
    avg_time_per_view: float = 0.0
    drop_off: list[PageDropOff] = Field(default_factory=list)
    critical_page: int | None = None


class TotalStats(PydanticBaseModel):
    """Owner-wide (or single deck) totals."""

    total_views: int = 0
    total_time_seconds: float = 0.0


class TopDeck(PydanticBaseModel):
    """One row of the top performing decks card."""

    id: str
    title: str
    views: int
    time: float


class DailyMetrics(PydanticBaseModel):
    """Seven day series ending today."""

    labels: list[str]
    visits: list[int]
    time_spent: list[float]


class SignalLabel(str, Enum):
    """Interest signal labels, worded neutrally."""

    REVISITED = "Revisited"
    VIEWED_MULTIPLE_TIMES = "Viewed multiple times"
    DEEP_READ = "Spent time on key slides"
    RETURNED_QUICKLY = "Returned quickly"
    EXTENDED_VIEWING = "Extended viewing"


class VisitorSignal(PydanticBaseModel):
    """Engagement summary for one visitor of one deck."""

    visitor_id: str
    viewer_email: str | None = None
    total_visits: int
    total_time: int
    distinct_days: int
    deep_slides: int
    days_between_first_and_last: int | None = None
    signals: list[SignalLabel] = Field(default_factory=list)
