"""Raw page view model.

One row per unique (deck, page, visitor) view inside the dedup window. Repeat
views inside the window add to ``time_spent`` on the same row instead of
creating a new one.

DynamoDB keys:
    PK: DECK#{deck_id}
    SK: VIEW#{page_number:05d}#{visitor_id}#{viewed_at}
    GSI1PK: OWNER#{owner_id}
    GSI1SK: VIEW#{viewed_at}#{deck_id}
"""

from datetime import datetime

from pydantic import Field

from deckly.models.base import BaseModel, page_key, sortable_timestamp, utc_now


def view_sk_prefix(page_number: int, visitor_id: str) -> str:
    """Sort key prefix shared by every view of one page by one visitor."""
    return f"VIEW#{page_key(page_number)}#{visitor_id}#"


class PageView(BaseModel):
    """A recorded dwell on one page of a deck by one anonymous visitor."""

    deck_id: str
    owner_id: str
    page_number: int = Field(..., ge=1)
    visitor_id: str
    viewed_at: datetime = Field(default_factory=utc_now)
    time_spent: float = Field(default=0.0, ge=0)
    viewer_email: str | None = None

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"DECK#{self.deck_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return view_sk_prefix(self.page_number, self.visitor_id) + sortable_timestamp(
            self.viewed_at
        )

    def get_gsi1_keys(self) -> dict[str, str]:
        """Owner index keys, ordered by view time."""
        return {
            "GSI1PK": f"OWNER#{self.owner_id}",
            "GSI1SK": f"VIEW#{sortable_timestamp(self.viewed_at)}#{self.deck_id}",
        }
