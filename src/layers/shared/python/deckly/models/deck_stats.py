"""Per-page aggregate counters.

``total_views`` counts unique (visitor, deck, page) views; ``total_time_seconds``
sums every recorded dwell, repeats included.

DynamoDB keys:
    PK: DECK#{deck_id}
    SK: STATS#{page_number:05d}
    GSI1PK: OWNER#{user_id}
    GSI1SK: STATS#{deck_id}#{page_number:05d}
"""

from datetime import datetime

from pydantic import Field

from deckly.models.base import BaseModel, page_key, utc_now


class DeckPageStats(BaseModel):
    """Running counters for one page of one deck."""

    deck_id: str
    page_number: int = Field(..., ge=1)
    user_id: str
    total_views: int = Field(default=0, ge=0)
    total_time_seconds: float = Field(default=0.0, ge=0)
    updated_at: datetime = Field(default_factory=utc_now)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"DECK#{self.deck_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"STATS#{page_key(self.page_number)}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Owner index keys."""
        return {
            "GSI1PK": f"OWNER#{self.user_id}",
            "GSI1SK": f"STATS#{self.deck_id}#{page_key(self.page_number)}",
        }

    @property
    def avg_time_per_view(self) -> float:
        """Average seconds per unique view (0 when the page has no views)."""
        if self.total_views <= 0:
            return 0.0
        return self.total_time_seconds / self.total_views
