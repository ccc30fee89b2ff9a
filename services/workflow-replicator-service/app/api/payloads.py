# services/workflow-replicator-service/app/api/payloads.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.models.replication_models import WorkflowBatch

logger = logging.getLogger("app.api.payloads")

# Dotted paths tried in order; the webhook payload changed shape several times
_EPIC_ID_PATHS = (
    "epicId",
    "epic_id",
    "page.id",
    "data.id",
    "data.page_id",
    "source.page_id",
    "id",
)
_TARGET_DATE_KEYS = ("targetDate", "target_date")
_TAG_KEYS = ("workflowTag", "workflow_tag", "tag", "workflow")


class PayloadError(ValueError):
    pass


def _dig(payload: Any, path: str) -> Any:
    cur = payload
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def _first(d: Dict[str, Any], keys) -> Any:
    for k in keys:
        v = d.get(k)
        if v not in (None, ""):
            return v
    return None


def extract_epic_id(payload: Dict[str, Any]) -> Optional[str]:
    for path in _EPIC_ID_PATHS:
        value = _dig(payload, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_batches(payload: Dict[str, Any], *, default_tags: List[str]) -> List[WorkflowBatch]:
    """
    Turn a trigger payload into workflow batches.

    Explicit `batches` / `workflows` lists win (entries are tag strings or objects);
    otherwise a single `workflowTag`; otherwise one batch per default tag. Entries
    without their own epic id or target date inherit the top-level ones.
    """
    if not isinstance(payload, dict):
        raise PayloadError("Webhook payload must be a JSON object")

    epic_id = extract_epic_id(payload)
    target_date = _first(payload, _TARGET_DATE_KEYS)

    entries = payload.get("batches")
    if entries is None:
        entries = payload.get("workflows")
    if entries is None:
        tag = _first(payload, _TAG_KEYS[:-1])
        entries = [tag] if tag else list(default_tags)
    if not isinstance(entries, list):
        raise PayloadError("'batches' / 'workflows' must be a list")

    batches: List[WorkflowBatch] = []
    for entry in entries:
        if isinstance(entry, str):
            tag, entry_epic, entry_date = entry, None, None
        elif isinstance(entry, dict):
            tag = _first(entry, _TAG_KEYS)
            entry_epic = _first(entry, ("epicId", "epic_id"))
            entry_date = _first(entry, _TARGET_DATE_KEYS)
        else:
            raise PayloadError(f"Unsupported batch entry: {entry!r}")

        if not tag:
            raise PayloadError(f"Batch entry without a workflow tag: {entry!r}")
        batch_epic = entry_epic or epic_id
        try:
            batch = WorkflowBatch(
                workflow_tag=str(tag),
                epic_id=str(batch_epic) if batch_epic else None,
                target_date=entry_date or target_date,
            )
        except PydanticValidationError as e:
            raise PayloadError(f"Invalid batch entry {entry!r}: {e}") from e
        batches.append(batch)

    # a batch without an epic fails on its own in the run; none at all is a bad request
    if batches and not any(b.epic_id for b in batches):
        raise PayloadError("No epic ID provided in webhook")

    logger.info("Parsed %d batch(es) from payload (epic=%s)", len(batches), epic_id)
    return batches
