# services/workflow-replicator-service/app/api/deps.py
from __future__ import annotations

from typing import Optional

from app.clients.notion_store import NotionStoreClient
from app.config import settings
from app.core.store import RecordStore
from app.db.run_repository import RunRepository


def get_store() -> RecordStore:
    return NotionStoreClient()


def get_runs_repo() -> Optional[RunRepository]:
    if not settings.run_history_enabled:
        return None
    from app.db.mongodb import get_client

    return RunRepository(get_client(), settings.mongo_db)
