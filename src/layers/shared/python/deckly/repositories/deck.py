"""Deck repository (read side used by analytics)."""

from boto3.dynamodb.conditions import Key

from deckly.models.deck import Deck
from deckly.repositories.base import BaseRepository


class DeckRepository(BaseRepository[Deck]):
    """Repository for Deck entities."""

    def __init__(self, table_name: str | None = None):
        super().__init__(Deck, table_name)

    def get(self, user_id: str, deck_id: str) -> Deck | None:
        """Get a deck by owner and ID."""
        return self.get_item(f"USER#{user_id}", f"DECK#{deck_id}")

    def get_by_id(self, deck_id: str) -> Deck | None:
        """Get a deck by ID alone using GSI1.

        Public viewer endpoints only know the deck ID.
        """
        decks = self.query_all(
            Key("GSI1PK").eq(f"DECK_ID#{deck_id}") & Key("GSI1SK").eq("DECK"),
            index_name="GSI1",
        )
        return decks[0] if decks else None

    def list_by_user(self, user_id: str) -> list[Deck]:
        """List every deck a user owns, in ID (creation) order."""
        return self.query_all(
            Key("PK").eq(f"USER#{user_id}") & Key("SK").begins_with("DECK#"),
        )

    def create(self, deck: Deck) -> Deck:
        """Create a new deck.

        Raises:
            ConflictError: If a deck with the same ID already exists.
        """
        return self.put_item(deck, condition_expression="attribute_not_exists(PK)")
