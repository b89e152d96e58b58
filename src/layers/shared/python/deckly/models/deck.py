"""Deck model.

Decks are created and rendered elsewhere; the analytics pipeline only reads
them to attribute events to an owner and to label dashboard rows.

DynamoDB keys:
    PK: USER#{user_id}
    SK: DECK#{id}
    GSI1PK: DECK_ID#{id}
    GSI1SK: DECK
"""

from pydantic import Field

from deckly.models.base import BaseModel


class Deck(BaseModel):
    """A shared slide deck owned by a user."""

    user_id: str
    title: str = ""
    slug: str = ""
    page_count: int = Field(default=0, ge=0)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"USER#{self.user_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"DECK#{self.id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for lookup by deck ID alone."""
        return {"GSI1PK": f"DECK_ID#{self.id}", "GSI1SK": "DECK"}

    def capture_properties(self) -> dict[str, str]:
        """Flat property map sent with every event-capture call."""
        return {
            "deck_id": self.id,
            "deck_slug": self.slug,
            "deck_title": self.title,
            "owner_id": self.user_id,
        }
