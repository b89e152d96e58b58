"""Per-page aggregate repository.

Two write paths exist. ``upsert`` stores client-computed totals keyed by
(deck, page) and lets the last writer win. ``accumulate`` pushes the
arithmetic to DynamoDB with ``ADD`` so concurrent recorders cannot lose
an increment.
"""

from datetime import datetime
from decimal import Decimal

import structlog
from boto3.dynamodb.conditions import Key

from deckly.models.base import generate_ulid, page_key
from deckly.models.deck_stats import DeckPageStats
from deckly.repositories.base import BaseRepository

logger = structlog.get_logger()


class DeckStatsRepository(BaseRepository[DeckPageStats]):
    """Repository for DeckPageStats rows."""

    def __init__(self, table_name: str | None = None):
        super().__init__(DeckPageStats, table_name)

    def get(self, deck_id: str, page_number: int) -> DeckPageStats | None:
        """Get the aggregate for one page, if any event has been recorded."""
        return self.get_item(f"DECK#{deck_id}", f"STATS#{page_key(page_number)}")

    def upsert(self, stats: DeckPageStats) -> DeckPageStats:
        """Write totals for (deck, page), replacing whatever is stored."""
        return self.put_item(stats)

    def accumulate(
        self,
        deck_id: str,
        page_number: int,
        user_id: str,
        views: int,
        seconds: float,
        updated_at: datetime,
    ) -> DeckPageStats:
        """Atomically add to a page's counters, creating the row if absent.

        Returns:
            The aggregate as stored after the update.
        """
        stats_keys = DeckPageStats(deck_id=deck_id, page_number=page_number, user_id=user_id)
        response = self.table.update_item(
            Key=stats_keys.get_keys(),
            UpdateExpression=(
                "ADD total_views :views, total_time_seconds :seconds "
                "SET #id = if_not_exists(#id, :id), deck_id = :deck_id, "
                "page_number = :page_number, user_id = :user_id, updated_at = :updated_at, "
                "GSI1PK = :gsi1pk, GSI1SK = :gsi1sk"
            ),
            ExpressionAttributeNames={"#id": "id"},
            ExpressionAttributeValues={
                ":views": views,
                ":seconds": Decimal(str(seconds)),
                ":id": generate_ulid(),
                ":deck_id": deck_id,
                ":page_number": page_number,
                ":user_id": user_id,
                ":updated_at": updated_at.isoformat(),
                **{f":{k.lower()}": v for k, v in stats_keys.get_gsi1_keys().items()},
            },
            ReturnValues="ALL_NEW",
        )

        logger.debug(
            "Accumulated page stats",
            deck_id=deck_id,
            page_number=page_number,
            views=views,
            seconds=seconds,
        )
        return DeckPageStats.from_dynamodb(response["Attributes"])

    def list_by_deck(self, deck_id: str) -> list[DeckPageStats]:
        """Aggregates for every page of a deck, ordered by page number."""
        return self.query_all(
            Key("PK").eq(f"DECK#{deck_id}") & Key("SK").begins_with("STATS#"),
        )

    def list_by_user(self, user_id: str, deck_id: str | None = None) -> list[DeckPageStats]:
        """Aggregates across a user's decks via GSI1, optionally for one deck."""
        prefix = f"STATS#{deck_id}#" if deck_id else "STATS#"
        return self.query_all(
            Key("GSI1PK").eq(f"OWNER#{user_id}") & Key("GSI1SK").begins_with(prefix),
            index_name="GSI1",
        )
