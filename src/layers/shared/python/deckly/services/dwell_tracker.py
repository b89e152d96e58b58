"""Per-page dwell timing for one deck-view session.

A tracker follows one viewer through one deck. Entering a page starts its
timer; leaving it (navigating away or closing the session) emits a
:class:`DwellEvent` if the visit lasted longer than the minimum dwell.
Very short visits are treated as scroll-through and dropped.

Usage:
    tracker = DwellTracker(deck, on_dwell=record, on_complete=finish)
    with tracker.page_visit(1):
        render_page(1)
    with tracker.page_visit(2):
        render_page(2)
    tracker.close()
"""

from contextlib import contextmanager
from typing import Callable, Iterator

import structlog

from deckly.models.analytics import DwellEvent
from deckly.models.deck import Deck
from deckly.utils.clock import Clock, SystemClock, seconds_between

logger = structlog.get_logger()

MIN_DWELL_SECONDS = 0.5

DwellCallback = Callable[[DwellEvent], None]
CompleteCallback = Callable[[Deck, int], None]


class DwellTracker:
    """Measures wall-clock time on each page and emits one flush per visit."""

    def __init__(
        self,
        deck: Deck,
        on_dwell: DwellCallback,
        on_complete: CompleteCallback | None = None,
        clock: Clock | None = None,
        is_owner: bool = False,
        min_dwell_seconds: float = MIN_DWELL_SECONDS,
    ):
        """Initialize the tracker.

        Args:
            deck: Deck being viewed.
            on_dwell: Called with each qualifying dwell event.
            on_complete: Called once with (deck, page_count) when every page has a dwell.
            clock: Time source.
            is_owner: Owner previewing their own deck; suppresses all emission.
            min_dwell_seconds: Dwells at or below this are discarded.
        """
        self.deck = deck
        self.on_dwell = on_dwell
        self.on_complete = on_complete
        self.clock = clock or SystemClock()
        self.is_owner = is_owner
        self.min_dwell_seconds = min_dwell_seconds

        self.current_page: int | None = None
        self.page_start = None
        self.visited_pages: set[int] = set()
        self.completed = False

    def enter_page(self, page_number: int) -> None:
        """Start timing a page, flushing the page being left first."""
        if self.current_page is not None:
            self.leave_page()
        self.current_page = page_number
        self.page_start = self.clock.now()

    def leave_page(self) -> DwellEvent | None:
        """Stop timing the current page and emit its dwell if long enough.

        Returns:
            The emitted event, or None if nothing was emitted.
        """
        if self.current_page is None or self.page_start is None:
            return None

        page_number = self.current_page
        ended_at = self.clock.now()
        elapsed = seconds_between(self.page_start, ended_at)
        self.current_page = None
        self.page_start = None

        if self.is_owner:
            return None

        if elapsed <= self.min_dwell_seconds:
            logger.debug(
                "Dwell below threshold, discarded",
                deck_id=self.deck.id,
                page_number=page_number,
                elapsed=elapsed,
            )
            return None

        event = DwellEvent(
            deck_id=self.deck.id,
            page_number=page_number,
            elapsed_seconds=elapsed,
            ended_at=ended_at,
        )
        self.on_dwell(event)

        self.visited_pages.add(page_number)
        self._check_complete()
        return event

    def _check_complete(self) -> None:
        if self.completed or not self.deck.page_count:
            return
        if len(self.visited_pages) == self.deck.page_count:
            self.completed = True
            logger.info("Deck completed", deck_id=self.deck.id, total_pages=self.deck.page_count)
            if self.on_complete:
                self.on_complete(self.deck, self.deck.page_count)

    @contextmanager
    def page_visit(self, page_number: int) -> Iterator["DwellTracker"]:
        """Scope a page visit; the dwell is flushed on exit, even on error."""
        self.enter_page(page_number)
        try:
            yield self
        finally:
            if self.current_page == page_number:
                self.leave_page()

    def close(self) -> DwellEvent | None:
        """End the session, flushing the page currently open."""
        return self.leave_page()

    def __enter__(self) -> "DwellTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
