"""
Run history DAL against a mocked Motor collection.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.db.run_repository import COLLECTION_NAME, RunRepository
from app.models.replication_models import (
    BatchOutcome,
    DependencyReport,
    ReplicationRun,
    RunStatus,
    WorkflowBatch,
)


def _repo():
    col = MagicMock()
    col.insert_one = AsyncMock()
    col.update_one = AsyncMock()
    col.find_one = AsyncMock(return_value=None)
    col.find_one_and_update = AsyncMock(return_value=None)
    db = MagicMock()
    db.__getitem__.return_value = col
    client = MagicMock()
    client.__getitem__.return_value = db
    return RunRepository(client, "replicator"), col, db


class TestRunRepository:

    @pytest.mark.asyncio
    async def test_create_stores_json_document(self):
        repo, col, db = _repo()
        run = ReplicationRun(batches=[WorkflowBatch(workflow_tag="Product", epic_id="e1")])

        await repo.create(run)

        db.__getitem__.assert_called_with(COLLECTION_NAME)
        doc = col.insert_one.await_args.args[0]
        assert doc["run_id"] == run.run_id
        assert doc["batches"][0]["workflowTag"] == "Product"
        assert isinstance(doc["created_at"], str)

    @pytest.mark.asyncio
    async def test_get_strips_mongo_id(self):
        repo, col, _ = _repo()
        run = ReplicationRun(batches=[WorkflowBatch(workflow_tag="Market", epic_id="e1")])
        col.find_one.return_value = {"_id": "oid", **run.model_dump(by_alias=True, mode="json")}

        loaded = await repo.get(run.run_id)

        assert loaded is not None
        assert loaded.run_id == run.run_id
        assert loaded.batches[0].workflow_tag == "Market"

    @pytest.mark.asyncio
    async def test_get_missing(self):
        repo, _, _ = _repo()
        assert await repo.get("nope") is None

    @pytest.mark.asyncio
    async def test_append_outcome_pushes(self):
        repo, col, _ = _repo()

        await repo.append_outcome("r1", BatchOutcome(workflow_tag="Batch", success=True, copied_count=3))

        filt, update = col.update_one.await_args.args
        assert filt == {"run_id": "r1"}
        assert update["$push"]["outcomes"]["copiedCount"] == 3

    @pytest.mark.asyncio
    async def test_mark_completed_sets_report(self):
        repo, col, _ = _repo()

        await repo.mark_completed("r1", outcomes=[], dependency_report=DependencyReport(edges_resolved=4), duration_s=1.5)

        update = col.find_one_and_update.await_args.args[1]["$set"]
        assert update["status"] == RunStatus.COMPLETED.value
        assert update["dependency_report"]["edges_resolved"] == 4
        assert update["duration_s"] == 1.5

    @pytest.mark.asyncio
    async def test_mark_failed_truncates_error(self):
        repo, col, _ = _repo()

        await repo.mark_failed("r1", error="x" * 5000)

        update = col.find_one_and_update.await_args.args[1]["$set"]
        assert update["status"] == RunStatus.FAILED.value
        assert len(update["error"]) == 4003

    @pytest.mark.asyncio
    async def test_ensure_indexes(self):
        repo, col, _ = _repo()
        col.create_index = AsyncMock()

        await repo.ensure_indexes()

        names = [c.kwargs["name"] for c in col.create_index.await_args_list]
        assert names == ["uk_run_id", "ix_status_created", "ix_created"]
        assert col.create_index.await_args_list[0].kwargs["unique"] is True
