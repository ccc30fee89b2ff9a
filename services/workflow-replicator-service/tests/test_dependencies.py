"""
Dependency resolution over the frozen run ledger.
"""
from __future__ import annotations

import pytest
from conftest import DEST_SCHEMA, TEMPLATE_DB, template_page

from app.core.dependencies import DependencyResolver
from app.core.ledger import ReplicationLedger
from app.core.replicator import template_from_page
from app.models.replication_models import DestinationSchema


def _ledger(store, synonyms, copies):
    """copies: {template_id: new_id}; every template in the store's template db is 'processed'."""
    ledger = ReplicationLedger()
    templates = [template_from_page(store.pages[i], synonyms) for i in store.collections[TEMPLATE_DB]]
    ledger.add_templates(templates)
    for t in templates:
        if t.id in copies:
            ledger.record_copy(t.title, copies[t.id])
    return ledger


class TestDependencyResolver:

    @pytest.mark.asyncio
    async def test_design_review_blocks_launch(self, store, synonyms):
        store.add(template_page("t-dr", "Design Review", blocking=("t-l",)), TEMPLATE_DB)
        store.add(template_page("t-l", "Launch", blocked_by=("t-dr",)), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-dr": "new-dr", "t-l": "new-l"}).freeze()

        report = await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        assert dict(store.updates) == {
            "new-dr": {"Blocking": {"relation": [{"id": "new-l"}]}},
            "new-l": {"Blocked by": {"relation": [{"id": "new-dr"}]}},
        }
        assert report.records_updated == 2
        assert report.edges_resolved == 2
        assert report.edges_dropped == 0

    @pytest.mark.asyncio
    async def test_unresolved_edge_dropped(self, store, synonyms):
        store.add(template_page("t-a", "A", blocking=("t-b", "t-c")), TEMPLATE_DB)
        store.add(template_page("t-b", "B"), TEMPLATE_DB)
        store.add(template_page("t-c", "C"), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-a": "new-a", "t-b": "new-b"}).freeze()

        report = await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        assert store.updates == [("new-a", {"Blocking": {"relation": [{"id": "new-b"}]}})]
        assert report.edges_dropped == 1

    @pytest.mark.asyncio
    async def test_no_update_when_nothing_resolves(self, store, synonyms):
        store.add(template_page("t-a", "A", blocked_by=("t-x",)), TEMPLATE_DB)
        store.add(template_page("t-x", "X"), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-a": "new-a"}).freeze()

        await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        assert store.updates == []

    @pytest.mark.asyncio
    async def test_failed_copy_skipped(self, store, synonyms):
        store.add(template_page("t-a", "A", blocking=("t-b",)), TEMPLATE_DB)
        store.add(template_page("t-b", "B"), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-b": "new-b"}).freeze()

        report = await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        assert store.updates == []
        assert report.records_skipped == 1

    @pytest.mark.asyncio
    async def test_historical_edge_spelling(self, store, synonyms):
        page = template_page("t-a", "A")
        page["properties"].pop("Blocking")
        page["properties"]["Blocks"] = {"type": "relation", "relation": [{"id": "t-b"}]}
        store.add(page, TEMPLATE_DB)
        store.add(template_page("t-b", "B"), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-a": "new-a", "t-b": "new-b"}).freeze()

        await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        # written under the destination's own field name
        assert store.updates == [("new-a", {"Blocking": {"relation": [{"id": "new-b"}]}})]

    @pytest.mark.asyncio
    async def test_per_record_failure_isolated(self, store, synonyms):
        store.add(template_page("t-a", "A", blocking=("t-b",)), TEMPLATE_DB)
        store.add(template_page("t-b", "B", blocking=("t-a",)), TEMPLATE_DB)
        ledger = _ledger(store, synonyms, {"t-a": "new-a", "t-b": "new-b"})
        snapshot = ledger.freeze()
        del store.pages["t-a"]  # original vanished between passes

        report = await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, DestinationSchema(fields=DEST_SCHEMA))

        assert report.records_failed == 1
        assert report.edges_dropped == 1
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_direction_missing_from_destination_not_written(self, store, synonyms):
        store.add(template_page("t-dr", "Design Review", blocking=("t-l",)), TEMPLATE_DB)
        store.add(template_page("t-l", "Launch", blocked_by=("t-dr",)), TEMPLATE_DB)
        snapshot = _ledger(store, synonyms, {"t-dr": "new-dr", "t-l": "new-l"}).freeze()
        schema = DestinationSchema(fields={"Name": "title", "Blocking": "relation"})

        report = await DependencyResolver(store, synonyms=synonyms).resolve(snapshot, schema)

        assert store.updates == [("new-dr", {"Blocking": {"relation": [{"id": "new-l"}]}})]
        assert report.records_updated == 1
        assert report.edges_resolved == 1

    def test_frozen_ledger_rejects_writes(self):
        ledger = ReplicationLedger()
        ledger.freeze()
        with pytest.raises(RuntimeError):
            ledger.record_copy("A", "new-a")
