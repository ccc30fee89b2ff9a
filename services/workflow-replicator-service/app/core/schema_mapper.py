# services/workflow-replicator-service/app/core/schema_mapper.py
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from app.core.properties import title_of, title_value
from app.models.replication_models import DestinationSchema, FieldSynonyms

logger = logging.getLogger("app.core.schema_mapper")

FALLBACK_TITLE = "Workflow Task"

# Computed property types the destination refuses to write
_READ_ONLY_TYPES = {
    "formula",
    "rollup",
    "created_time",
    "created_by",
    "last_edited_time",
    "last_edited_by",
    "unique_id",
    "button",
    "verification",
}


def _reference_ids(items: Any) -> list[Dict[str, str]]:
    if not isinstance(items, list):
        return []
    return [{"id": it["id"]} for it in items if isinstance(it, dict) and it.get("id")]


def _sanitize_value(prop: Any) -> Any:
    """
    Reduce person / relation lists to bare {"id"} entries; other values are untouched.
    """
    if not isinstance(prop, dict):
        return prop
    kind = prop.get("type")
    if kind == "people" or (kind is None and "people" in prop):
        return {"people": _reference_ids(prop.get("people"))}
    if kind == "relation" or (kind is None and "relation" in prop):
        return {"relation": _reference_ids(prop.get("relation"))}
    return prop


def map_properties(
    raw: Dict[str, Any],
    schema: DestinationSchema,
    *,
    epic_name: str,
    synonyms: FieldSynonyms,
    source_name_field: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Clean a template's property bag for creation in the destination collection.

    - unknown fields are dropped, except the title and the alias-source name field
    - the workflow classification field is always dropped
    - computed fields and dependency edge fields are dropped
    - people / relation lists keep only identifiers
    - the destination title becomes "<epic>: <title>" (or "<epic>: Workflow Task")
    """
    props = copy.deepcopy(raw or {})
    allowed = schema.names
    title_field = schema.title_field or (synonyms.title[0] if synonyms.title else "Name")
    name_field = source_name_field or (synonyms.title[0] if synonyms.title else "Name")
    always_dropped = set(synonyms.workflow) | set(synonyms.blocking) | set(synonyms.blocked_by)

    original_title = title_of(props, synonyms.title)

    cleaned: Dict[str, Any] = {}
    for name, prop in props.items():
        if name in always_dropped:
            continue
        if name in (title_field, name_field):
            continue  # rebuilt below
        if name not in allowed:
            logger.debug("Dropping field not in destination schema: %s", name)
            continue
        if isinstance(prop, dict) and prop.get("type") in _READ_ONLY_TYPES:
            continue
        cleaned[name] = _sanitize_value(prop)

    text = f"{epic_name}: {original_title}" if original_title else f"{epic_name}: {FALLBACK_TITLE}"
    cleaned[title_field] = title_value(text)
    return cleaned
