# services/workflow-replicator-service/app/db/run_repository.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from app.models.replication_models import (
    BatchOutcome,
    DependencyReport,
    ReplicationRun,
    RunStatus,
)

logger = logging.getLogger("app.db.runs")

COLLECTION_NAME = "replication_runs"


class RunRepository:
    """
    DAL for the 'replication_runs' collection: one document per trigger, holding
    the requested batches, per-batch outcomes and the dependency report.
    """

    def __init__(self, client: AsyncIOMotorClient, db_name: str) -> None:
        self._db = client[db_name]
        self._col: AsyncIOMotorCollection = self._db[COLLECTION_NAME]

    @staticmethod
    def _load(doc: Optional[Dict[str, Any]]) -> Optional[ReplicationRun]:
        if not doc:
            return None
        doc.pop("_id", None)
        return ReplicationRun.model_validate(doc)

    async def ensure_indexes(self) -> None:
        """Run lookup by id, listing newest first, filtering by status."""
        await self._col.create_index([("run_id", ASCENDING)], name="uk_run_id", unique=True)
        await self._col.create_index([("status", ASCENDING), ("created_at", DESCENDING)], name="ix_status_created")
        await self._col.create_index([("created_at", DESCENDING)], name="ix_created")

    # ---------- CRUD ---------- #

    async def create(self, run: ReplicationRun) -> ReplicationRun:
        # JSON mode converts datetimes to ISO 8601
        doc = run.model_dump(by_alias=True, mode="json")
        await self._col.insert_one(doc)
        return run

    async def get(self, run_id: str) -> Optional[ReplicationRun]:
        return self._load(await self._col.find_one({"run_id": run_id}))

    async def list_recent(self, *, limit: int = 20, offset: int = 0) -> List[ReplicationRun]:
        cursor = self._col.find({}).sort("created_at", DESCENDING).skip(offset).limit(limit)
        return [r async for r in _loaded(cursor)]

    # ---------- lifecycle transitions ---------- #

    async def mark_started(self, run_id: str) -> Optional[ReplicationRun]:
        doc = await self._col.find_one_and_update(
            {"run_id": run_id},
            {"$set": {"status": RunStatus.RUNNING.value, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._load(doc)

    async def append_outcome(self, run_id: str, outcome: BatchOutcome) -> None:
        await self._col.update_one(
            {"run_id": run_id},
            {
                "$push": {"outcomes": outcome.model_dump(by_alias=True, mode="json")},
                "$set": {"updated_at": _now()},
            },
        )

    async def mark_completed(
        self,
        run_id: str,
        *,
        outcomes: List[BatchOutcome],
        dependency_report: Optional[DependencyReport] = None,
        duration_s: Optional[float] = None,
    ) -> Optional[ReplicationRun]:
        updates: Dict[str, Any] = {
            "status": RunStatus.COMPLETED.value,
            "outcomes": [o.model_dump(by_alias=True, mode="json") for o in outcomes],
            "updated_at": _now(),
        }
        if dependency_report is not None:
            updates["dependency_report"] = dependency_report.model_dump(mode="json")
        if duration_s is not None:
            updates["duration_s"] = duration_s
        doc = await self._col.find_one_and_update(
            {"run_id": run_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return self._load(doc)

    async def mark_failed(self, run_id: str, *, error: str | None = None) -> Optional[ReplicationRun]:
        set_ops: Dict[str, Any] = {"status": RunStatus.FAILED.value, "updated_at": _now()}
        if error:
            set_ops["error"] = error if len(error) < 4000 else error[:4000] + "..."
        doc = await self._col.find_one_and_update(
            {"run_id": run_id},
            {"$set": set_ops},
            return_document=ReturnDocument.AFTER,
        )
        return self._load(doc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _loaded(cursor):
    async for doc in cursor:
        run = RunRepository._load(doc)
        if run is not None:
            yield run
