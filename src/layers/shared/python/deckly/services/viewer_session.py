"""One viewer's session on one deck.

Wires a DwellTracker to event capture and to the durable recorder. Navigation
never waits on I/O: capture calls (blocking HTTP) run in worker threads and
recording runs as background tasks on the running loop. Called from plain
synchronous code with no loop running, the same work runs to completion on a
private loop before the navigation call returns.
"""

import asyncio
from typing import Any, Awaitable, Callable

import structlog

from deckly.models.analytics import DwellEvent, RecordResult
from deckly.models.deck import Deck
from deckly.services.dwell_tracker import DwellTracker
from deckly.services.event_capture import EventCaptureClient
from deckly.services.slide_stats_recorder import SlideStatsRecorder
from deckly.services.visitor_identity import VisitorIdentity
from deckly.utils.clock import Clock

logger = structlog.get_logger()


class ViewerSession:
    """Dwell tracking, capture and recording for one deck view."""

    def __init__(
        self,
        deck: Deck,
        recorder: SlideStatsRecorder,
        capture: EventCaptureClient,
        visitor_identity: VisitorIdentity | None = None,
        clock: Clock | None = None,
        is_owner: bool = False,
        viewer_email: str | None = None,
        min_dwell_seconds: float | None = None,
    ):
        self.deck = deck
        self.recorder = recorder
        self.capture = capture
        self.visitor_identity = visitor_identity or recorder.visitor_identity
        self.viewer_email = viewer_email
        self.is_owner = is_owner
        self._captures: list[asyncio.Task] = []
        self._recordings: list[asyncio.Task] = []
        self._settled: list[RecordResult | None] = []

        tracker_kwargs: dict[str, Any] = {}
        if min_dwell_seconds is not None:
            tracker_kwargs["min_dwell_seconds"] = min_dwell_seconds
        self.tracker = DwellTracker(
            deck,
            on_dwell=self._on_dwell,
            on_complete=self._on_complete,
            clock=clock,
            is_owner=is_owner,
            **tracker_kwargs,
        )

    def open(self, first_page: int = 1, metadata: dict[str, Any] | None = None) -> None:
        """Start the session on ``first_page``."""
        if not self.is_owner:
            self._schedule(
                lambda: asyncio.to_thread(self.capture.track_deck_view, self.deck, metadata),
                self._captures,
                label="deck_view",
            )
        self.tracker.enter_page(first_page)

    def go_to(self, page_number: int) -> None:
        """Navigate to another page, flushing the one being left."""
        self.tracker.enter_page(page_number)

    def _on_dwell(self, event: DwellEvent) -> None:
        visitor_id = self.visitor_identity.get_visitor_id()
        self._schedule(
            lambda: asyncio.to_thread(
                self.capture.track_page_view, self.deck, event.page_number, event.elapsed_seconds
            ),
            self._captures,
            label="page_view",
        )
        self._schedule(
            lambda: self.recorder.sync_slide_stats(
                self.deck,
                event.page_number,
                event.elapsed_seconds,
                viewer_email=self.viewer_email,
                visitor_id=visitor_id,
            ),
            self._recordings,
            label="dwell",
            keep_result=True,
        )

    def _on_complete(self, deck: Deck, total_pages: int) -> None:
        self._schedule(
            lambda: asyncio.to_thread(self.capture.track_deck_complete, deck, total_pages),
            self._captures,
            label="deck_complete",
        )

    def _schedule(
        self,
        work: Callable[[], Awaitable[Any]],
        tasks: list[asyncio.Task],
        label: str,
        keep_result: bool = False,
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            tasks.append(loop.create_task(work()))
            return

        private_loop = asyncio.new_event_loop()
        try:
            result = private_loop.run_until_complete(work())
        except Exception:
            logger.exception("Viewer session work failed", deck_id=self.deck.id, work=label)
            result = None
        finally:
            private_loop.close()

        if keep_result:
            self._settled.append(result)

    async def drain(self) -> list[RecordResult | None]:
        """Wait for scheduled capture and recording to settle.

        Returns the recording results since the last drain, in dwell order.
        """
        captures, self._captures = self._captures, []
        recordings, self._recordings = self._recordings, []
        settled, self._settled = self._settled, []

        if captures:
            await asyncio.gather(*captures, return_exceptions=True)
        if recordings:
            settled.extend(await asyncio.gather(*recordings))
        return settled

    async def close(self) -> list[RecordResult | None]:
        """Flush the open page and wait for recording to finish."""
        self.tracker.close()
        return await self.drain()
