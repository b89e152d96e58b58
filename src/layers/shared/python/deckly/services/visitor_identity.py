"""Stable anonymous visitor identifier.

The ID is generated once per viewer profile and persisted so repeat visits
are recognised by the deduplicator. Resolving an ID never raises: storage
failures are logged and a fresh ID is returned for this session.
"""

import json
import secrets
import string
import uuid
from pathlib import Path
from typing import Callable, Protocol

import structlog

logger = structlog.get_logger()

VISITOR_ID_KEY = "deckly_visitor_id"

_BASE36 = string.digits + string.ascii_lowercase


class VisitorStore(Protocol):
    """Durable key/value storage on the viewer's side."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryVisitorStore:
    """In-process store; forgets everything when the process exits."""

    def __init__(self):
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class FileVisitorStore:
    """JSON file store that survives restarts."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text())

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._load()
        values[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(values))


def fallback_visitor_id() -> str:
    """Weaker ID used when uuid generation is unavailable."""
    return "v-" + "".join(secrets.choice(_BASE36) for _ in range(13))


class VisitorIdentity:
    """Resolves the current viewer's visitor ID."""

    def __init__(
        self,
        store: VisitorStore | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        """Initialize visitor identity.

        Args:
            store: Durable storage; in-memory when omitted.
            id_factory: ID generator (uuid4 string by default).
        """
        self.store = store or MemoryVisitorStore()
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._cached: str | None = None

    def _generate(self) -> str:
        try:
            return self._id_factory()
        except Exception:
            logger.warning("Visitor ID generation failed, using fallback", exc_info=True)
            return fallback_visitor_id()

    def get_visitor_id(self) -> str:
        """Return the persisted ID, creating and persisting one on first use."""
        if self._cached:
            return self._cached

        try:
            stored = self.store.get(VISITOR_ID_KEY)
        except Exception:
            logger.warning("Visitor store read failed", exc_info=True)
            stored = None

        if stored:
            self._cached = stored
            return stored

        visitor_id = self._generate()
        try:
            self.store.set(VISITOR_ID_KEY, visitor_id)
        except Exception:
            logger.warning("Visitor store write failed", exc_info=True)

        self._cached = visitor_id
        logger.debug("Generated visitor ID", visitor_id=visitor_id)
        return visitor_id
