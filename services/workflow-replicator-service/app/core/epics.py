# services/workflow-replicator-service/app/core/epics.py
from __future__ import annotations

import logging

from app.core.errors import BatchError
from app.core.properties import date_start, title_of
from app.core.store import RecordStore
from app.models.replication_models import EpicDetails, FieldSynonyms

logger = logging.getLogger("app.core.epics")


async def resolve_epic(store: RecordStore, epic_id: str, synonyms: FieldSynonyms) -> EpicDetails:
    """
    Read the epic's display name and optional target date.
    """
    if not epic_id:
        raise BatchError("No epic id supplied for batch")
    try:
        page = await store.get_record(epic_id)
    except Exception as e:
        raise BatchError(f"Failed to get epic details: {e}") from e

    props = page.get("properties") or {}
    details = EpicDetails(
        id=epic_id,
        name=title_of(props, synonyms.title) or "Unnamed Epic",
        target_date=date_start(props, synonyms.target_date),
    )
    logger.info("Epic resolved: id=%s name=%r target_date=%s", details.id, details.name, details.target_date)
    return details
