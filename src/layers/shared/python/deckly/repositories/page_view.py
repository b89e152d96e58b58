"""Raw page view repository.

Backs the dedup lookup and the raw-event reads used by the dashboard
rollups (distinct visitors, daily series, interest signals).
"""

from datetime import datetime
from decimal import Decimal

import structlog
from boto3.dynamodb.conditions import Attr, Key

from deckly.models.base import sortable_timestamp
from deckly.models.page_view import PageView, view_sk_prefix
from deckly.repositories.base import BaseRepository

logger = structlog.get_logger()

# Sorts after every digit, so "<prefix>~" closes a timestamp range
_RANGE_END = "~"


class PageViewRepository(BaseRepository[PageView]):
    """Repository for PageView rows."""

    def __init__(self, table_name: str | None = None):
        super().__init__(PageView, table_name)

    def find_recent(
        self,
        deck_id: str,
        page_number: int,
        visitor_id: str,
        since: datetime,
    ) -> PageView | None:
        """Latest view of a page by a visitor strictly after ``since``.

        Args:
            deck_id: Deck ID.
            page_number: 1-based page number.
            visitor_id: Anonymous visitor ID.
            since: Start of the dedup window.

        Returns:
            The most recent matching row, or None.
        """
        prefix = view_sk_prefix(page_number, visitor_id)
        views = self.query_all(
            Key("PK").eq(f"DECK#{deck_id}")
            & Key("SK").between(prefix + sortable_timestamp(since), prefix + _RANGE_END),
            FilterExpression=Attr("visitor_id").eq(visitor_id),
            ScanIndexForward=False,
        )
        # The key range includes ``since`` itself; a view exactly at the edge is outside the window
        return next((v for v in views if v.viewed_at > since), None)

    def insert(self, view: PageView) -> PageView:
        """Insert a new unique view row."""
        return self.put_item(view, condition_expression="attribute_not_exists(PK)")

    def add_time_spent(
        self,
        view: PageView,
        seconds: float,
        viewer_email: str | None = None,
    ) -> float:
        """Accumulate dwell time onto an existing row.

        A missing ``viewer_email`` is filled in; an existing one is kept.

        Returns:
            The row's new ``time_spent``.
        """
        update = "ADD time_spent :seconds"
        values: dict = {":seconds": Decimal(str(seconds))}
        if viewer_email:
            update += " SET viewer_email = if_not_exists(viewer_email, :email)"
            values[":email"] = viewer_email

        response = self.table.update_item(
            Key=view.get_keys(),
            UpdateExpression=update,
            ExpressionAttributeValues=values,
            ReturnValues="UPDATED_NEW",
        )
        new_total = float(response["Attributes"]["time_spent"])

        logger.debug(
            "Accumulated time on view",
            deck_id=view.deck_id,
            page_number=view.page_number,
            time_spent=new_total,
        )
        return new_total

    def list_by_deck(self, deck_id: str, since: datetime | None = None) -> list[PageView]:
        """All view rows for a deck, optionally only those viewed at or after ``since``."""
        views = self.query_all(
            Key("PK").eq(f"DECK#{deck_id}") & Key("SK").begins_with("VIEW#"),
        )
        if since is None:
            return views
        return [view for view in views if view.viewed_at >= since]

    def list_by_owner(
        self,
        owner_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[PageView]:
        """All view rows across an owner's decks, ordered by view time.

        Args:
            owner_id: Deck owner's user ID.
            since: Inclusive lower bound on ``viewed_at``.
            until: Inclusive upper bound on ``viewed_at``.
        """
        pk = Key("GSI1PK").eq(f"OWNER#{owner_id}")
        if since is None and until is None:
            condition = pk & Key("GSI1SK").begins_with("VIEW#")
        else:
            lower = "VIEW#" + (sortable_timestamp(since) if since else "")
            upper = "VIEW#" + (sortable_timestamp(until) + "#" + _RANGE_END if until else _RANGE_END)
            condition = pk & Key("GSI1SK").between(lower, upper)

        return self.query_all(condition, index_name="GSI1")
