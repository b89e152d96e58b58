"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from enum import Enum


class AggregateMode(str, Enum):
    """How the recorder updates per-page aggregates."""

    UPSERT = "upsert"  # read, compute new totals, put (last writer wins)
    ATOMIC = "atomic"  # server-side ADD on the aggregate row


@dataclass(frozen=True)
class AnalyticsSettings:
    """Analytics pipeline configuration."""

    table_name: str = "deckly-dev"
    stage: str = "dev"

    # Event capture (PostHog); no key means every capture call is a no-op
    posthog_key: str | None = None
    posthog_host: str = "https://app.posthog.com"
    capture_timeout_seconds: float = 2.0

    # Recording
    dedup_window_hours: int = 24
    min_dwell_seconds: float = 0.5
    aggregate_mode: AggregateMode = AggregateMode.UPSERT

    # Public tracking rate limits, per client IP
    track_requests_per_minute: int = 120
    track_requests_per_hour: int = 2000

    @classmethod
    def from_env(cls) -> "AnalyticsSettings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        mode = os.environ.get("AGGREGATE_MODE", defaults.aggregate_mode.value).lower()
        return cls(
            table_name=os.environ.get("TABLE_NAME", defaults.table_name),
            stage=os.environ.get("STAGE", defaults.stage),
            posthog_key=os.environ.get("POSTHOG_KEY") or None,
            posthog_host=os.environ.get("POSTHOG_HOST", defaults.posthog_host),
            dedup_window_hours=int(
                os.environ.get("DEDUP_WINDOW_HOURS", defaults.dedup_window_hours)
            ),
            min_dwell_seconds=float(
                os.environ.get("MIN_DWELL_SECONDS", defaults.min_dwell_seconds)
            ),
            aggregate_mode=AggregateMode(mode),
            track_requests_per_minute=int(
                os.environ.get("TRACK_REQUESTS_PER_MINUTE", defaults.track_requests_per_minute)
            ),
            track_requests_per_hour=int(
                os.environ.get("TRACK_REQUESTS_PER_HOUR", defaults.track_requests_per_hour)
            ),
        )
