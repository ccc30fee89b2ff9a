"""
Shared fixtures: an in-memory record store speaking Notion's wire shape.
"""
from __future__ import annotations

import itertools
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import pytest

from app.config import Settings
from app.core.errors import NotFound
from app.models.replication_models import FieldSynonyms

TEMPLATE_DB = "tmpl-db"
DEST_DB = "dest-db"

DEST_SCHEMA = {
    "Name": "title",
    "Date": "date",
    "Epic": "relation",
    "Blocking": "relation",
    "Blocked by": "relation",
    "Assignee": "people",
    "Status": "status",
}


def title_prop(text: str) -> Dict[str, Any]:
    return {"id": "title", "type": "title", "title": [{"type": "text", "plain_text": text, "text": {"content": text}}]}


def date_prop(start: Optional[str], end: Optional[str] = None) -> Dict[str, Any]:
    return {"id": "d", "type": "date", "date": {"start": start, "end": end, "time_zone": None} if start else None}


def relation_prop(*ids: str) -> Dict[str, Any]:
    return {"id": "r", "type": "relation", "relation": [{"id": i} for i in ids], "has_more": False}


def template_page(
    page_id: str,
    title: str,
    *,
    date: Optional[str] = None,
    end: Optional[str] = None,
    workflow: str = "Product",
    blocking: tuple = (),
    blocked_by: tuple = (),
    icon: Optional[Dict[str, Any]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    props: Dict[str, Any] = {
        "Name": title_prop(title),
        "Workflow": {"id": "w", "type": "multi_select", "multi_select": [{"name": workflow}]},
        "Blocking": relation_prop(*blocking),
        "Blocked by": relation_prop(*blocked_by),
    }
    if date:
        props["Date"] = date_prop(date, end)
    props.update(extra or {})
    return {"object": "page", "id": page_id, "icon": icon, "properties": props}


def epic_page(page_id: str, name: str, fulfill_by: Optional[str] = None) -> Dict[str, Any]:
    props: Dict[str, Any] = {"Name": title_prop(name)}
    if fulfill_by:
        props["Fulfill By"] = date_prop(fulfill_by)
    return {"object": "page", "id": page_id, "properties": props}


class FakeStore:
    """
    In-memory RecordStore. Pages live in collections; created pages get ids new-1, new-2, ...
    """

    def __init__(self, schema: Optional[Dict[str, str]] = None) -> None:
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.collections: Dict[str, List[str]] = defaultdict(list)
        self.schemas: Dict[str, Dict[str, str]] = {DEST_DB: dict(schema or DEST_SCHEMA)}
        self.blocks: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.created: List[Dict[str, Any]] = []
        self.updates: List[tuple] = []
        self.appends: List[tuple] = []
        self.create_attempts: List[Dict[str, Any]] = []
        self.fail_create: Optional[Callable[[Dict[str, Any]], Optional[Exception]]] = None
        self._ids = itertools.count(1)
        self._block_ids = itertools.count(1)

    # ---------- seeding ---------- #

    def add(self, page: Dict[str, Any], collection: Optional[str] = None) -> Dict[str, Any]:
        self.pages[page["id"]] = page
        if collection:
            self.collections[collection].append(page["id"])
        return page

    def created_titles(self) -> List[str]:
        out = []
        for c in self.created:
            parts = c["properties"]["Name"]["title"]
            out.append("".join(p["text"]["content"] for p in parts))
        return out

    def created_by_title(self, suffix: str) -> Dict[str, Any]:
        for c in self.created:
            text = "".join(p["text"]["content"] for p in c["properties"]["Name"]["title"])
            if text.endswith(suffix):
                return c
        raise KeyError(suffix)

    # ---------- RecordStore ---------- #

    async def get_record(self, record_id: str) -> Dict[str, Any]:
        if record_id not in self.pages:
            raise NotFound(f"page {record_id} not found", status=404)
        return self.pages[record_id]

    async def query_records(self, collection_id, filter=None, sorts=None):
        pages = [self.pages[i] for i in self.collections.get(collection_id, [])]
        if filter:
            prop = filter["property"]
            tag = (filter.get("multi_select") or {}).get("contains") or (filter.get("select") or {}).get("equals")
            pages = [
                p for p in pages
                if tag in [o["name"] for o in (p["properties"].get(prop) or {}).get("multi_select", [])]
            ]
        if sorts:
            key = sorts[0]["property"]

            def _k(p):
                d = ((p["properties"].get(key) or {}).get("date") or {}).get("start")
                return (d is None, d or "")

            pages = sorted(pages, key=_k)
        return pages

    async def create_record(self, collection_id, properties, icon=None):
        attempt = {"collection": collection_id, "properties": properties, "icon": icon}
        self.create_attempts.append(attempt)
        if self.fail_create is not None:
            err = self.fail_create(attempt)
            if err is not None:
                raise err
        new_id = f"new-{next(self._ids)}"
        page = {"object": "page", "id": new_id, "properties": properties, "icon": icon}
        self.pages[new_id] = page
        self.collections[collection_id].append(new_id)
        self.created.append({"id": new_id, **attempt})
        return page

    async def update_record(self, record_id, properties):
        self.updates.append((record_id, properties))
        return {"id": record_id, "properties": properties}

    async def get_schema(self, collection_id):
        if collection_id not in self.schemas:
            raise NotFound(f"database {collection_id} not found", status=404)
        return dict(self.schemas[collection_id])

    async def list_content_blocks(self, record_id):
        return list(self.blocks.get(record_id, []))

    async def append_content_blocks(self, record_id, blocks):
        self.appends.append((record_id, blocks))
        created = []
        for b in blocks:
            nb = {**b, "id": f"blk-{next(self._block_ids)}", "has_children": False}
            self.blocks[record_id].append(nb)
            created.append(nb)
        return created


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def synonyms() -> FieldSynonyms:
    return FieldSynonyms(
        title=["Name", "Title"],
        date=["Date"],
        target_date=["Fulfill By", "Due Date"],
        epic_relation=["Epic"],
        blocking=["Blocking", "Blocks"],
        blocked_by=["Blocked by", "Blocked By"],
        workflow=["Workflow"],
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        notion_api_key="secret",
        template_db_id=TEMPLATE_DB,
        destination_db_id=DEST_DB,
        anchor_template_ids_csv="anchor-1",
        default_workflow_tags_csv="Product",
        title_candidates_csv="Name,Title",
        date_candidates_csv="Date",
        target_date_candidates_csv="Fulfill By,Due Date",
        epic_relation_candidates_csv="Epic",
        blocking_candidates_csv="Blocking,Blocks",
        blocked_by_candidates_csv="Blocked by,Blocked By",
        workflow_property="Workflow",
        workflow_property_type="multi_select",
        template_sort_property="Date",
        mongo_uri="",
    )
