"""Business logic services for Deckly analytics."""

from deckly.services.analytics_service import AnalyticsService
from deckly.services.dwell_tracker import DwellTracker
from deckly.services.event_capture import EventCaptureClient
from deckly.services.query_cache import QueryCache, QueryType
from deckly.services.slide_stats_recorder import SlideStatsRecorder
from deckly.services.viewer_session import ViewerSession
from deckly.services.visitor_identity import VisitorIdentity

__all__ = [
    "AnalyticsService",
    "DwellTracker",
    "EventCaptureClient",
    "QueryCache",
    "QueryType",
    "SlideStatsRecorder",
    "ViewerSession",
    "VisitorIdentity",
]
