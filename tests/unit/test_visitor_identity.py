"""Tests for visitor identity."""

import json
import re

from deckly.services.visitor_identity import (
    VISITOR_ID_KEY,
    FileVisitorStore,
    MemoryVisitorStore,
    VisitorIdentity,
    fallback_visitor_id,
)


class BrokenStore:
    def get(self, key):
        raise OSError("storage disabled")

    def set(self, key, value):
        raise OSError("storage disabled")


class TestVisitorIdentity:
    """Tests for VisitorIdentity."""

    def test_generates_and_persists(self):
        store = MemoryVisitorStore()
        visitor_id = VisitorIdentity(store).get_visitor_id()

        assert store.get(VISITOR_ID_KEY) == visitor_id
        assert len(visitor_id) == 36

    def test_stable_across_instances(self, tmp_path):
        path = tmp_path / "visitor.json"

        first = VisitorIdentity(FileVisitorStore(path)).get_visitor_id()
        second = VisitorIdentity(FileVisitorStore(path)).get_visitor_id()

        assert first == second
        assert json.loads(path.read_text()) == {VISITOR_ID_KEY: first}

    def test_reads_existing_value(self):
        store = MemoryVisitorStore()
        store.set(VISITOR_ID_KEY, "existing-visitor")

        assert VisitorIdentity(store).get_visitor_id() == "existing-visitor"

    def test_fallback_when_uuid_fails(self):
        def broken_uuid():
            raise NotImplementedError("no randomness source")

        visitor_id = VisitorIdentity(id_factory=broken_uuid).get_visitor_id()

        assert re.fullmatch(r"v-[0-9a-z]{13}", visitor_id)

    def test_storage_failure_never_raises(self):
        identity = VisitorIdentity(BrokenStore())

        visitor_id = identity.get_visitor_id()

        assert visitor_id
        # Same ID for the rest of the session even though nothing persisted
        assert identity.get_visitor_id() == visitor_id

    def test_fallback_format(self):
        assert re.fullmatch(r"v-[0-9a-z]{13}", fallback_visitor_id())
        assert fallback_visitor_id() != fallback_visitor_id()
