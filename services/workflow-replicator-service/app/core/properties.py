# services/workflow-replicator-service/app/core/properties.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.dates import parse_datetime


def plain_text(prop: Any) -> str:
    """
    Concatenated plain text of a title / rich_text property value.
    """
    if not isinstance(prop, dict):
        return ""
    kind = prop.get("type")
    parts = prop.get(kind) if kind in ("title", "rich_text") else (prop.get("title") or prop.get("rich_text"))
    if not isinstance(parts, list):
        return ""
    out: List[str] = []
    for p in parts:
        if not isinstance(p, dict):
            continue
        txt = p.get("plain_text")
        if txt is None:
            txt = (p.get("text") or {}).get("content")
        if txt:
            out.append(txt)
    return "".join(out).strip()


def title_of(properties: Dict[str, Any], candidates: List[str]) -> str:
    """
    Display title: first candidate with non-empty text, then any title-typed property.
    """
    for name in candidates or []:
        txt = plain_text(properties.get(name))
        if txt:
            return txt
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            txt = plain_text(prop)
            if txt:
                return txt
    return ""


def relation_ids(prop: Any) -> List[str]:
    if not isinstance(prop, dict):
        return []
    items = prop.get("relation")
    if not isinstance(items, list):
        return []
    return [r["id"] for r in items if isinstance(r, dict) and r.get("id")]


def relation_ids_for(properties: Dict[str, Any], candidates: List[str]) -> List[str]:
    """
    Relation ids from the first candidate that carries any; older spellings may
    linger with empty values next to the current one.
    """
    for name in candidates or []:
        ids = relation_ids(properties.get(name))
        if ids:
            return ids
    return []


def date_value(prop: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(prop, dict):
        return None
    value = prop.get("date")
    return value if isinstance(value, dict) else None


def date_start(properties: Dict[str, Any], candidates: List[str]) -> Optional[datetime]:
    for name in candidates or []:
        value = date_value(properties.get(name))
        if value and value.get("start"):
            return parse_datetime(value["start"])
    return None


def title_value(text: str) -> Dict[str, Any]:
    return {"title": [{"type": "text", "text": {"content": text}}]}


def relation_value(ids: List[str]) -> Dict[str, Any]:
    return {"relation": [{"id": i} for i in ids]}


def normalize_id(record_id: str) -> str:
    return (record_id or "").replace("-", "").lower()
