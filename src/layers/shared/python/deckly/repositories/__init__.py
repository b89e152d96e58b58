"""DynamoDB repositories for Deckly analytics entities."""

from deckly.repositories.base import BaseRepository
from deckly.repositories.deck import DeckRepository
from deckly.repositories.deck_stats import DeckStatsRepository
from deckly.repositories.page_view import PageViewRepository

__all__ = [
    "BaseRepository",
    "DeckRepository",
    "DeckStatsRepository",
    "PageViewRepository",
]
