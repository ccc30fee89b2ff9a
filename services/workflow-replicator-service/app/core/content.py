# services/workflow-replicator-service/app/core/content.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.core.store import RecordStore

logger = logging.getLogger("app.core.content")

_META_KEYS = {
    "id",
    "created_time",
    "last_edited_time",
    "created_by",
    "last_edited_by",
    "parent",
    "archived",
    "in_trash",
    "has_children",
    "request_id",
}

# Block types the append endpoint cannot create
_UNCOPYABLE_TYPES = {
    "child_page",
    "child_database",
    "unsupported",
    "link_preview",
    "breadcrumb_unsupported",
    "template",
}

CONTAINER_TYPES = {
    "toggle",
    "bulleted_list_item",
    "numbered_list_item",
    "to_do",
    "quote",
    "callout",
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "column_list",
    "column",
    "synced_block",
    "table",
}


def clean_block(block: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Strip identity/audit metadata so the block can be appended elsewhere.
    Returns None for blocks that cannot be recreated.
    """
    kind = block.get("type")
    if not kind or kind in _UNCOPYABLE_TYPES:
        return None
    out = {k: v for k, v in block.items() if k not in _META_KEYS}
    out.setdefault("object", "block")
    return out


class ContentDuplicator:
    """
    Copies the content blocks of one record under another, recursing into blocks
    with children. Nested structure is matched best-effort: children are appended
    under the destination's last top-level block when that block is a container.
    """

    def __init__(self, store: RecordStore, *, max_depth: int = 8) -> None:
        self.store = store
        self.max_depth = max_depth

    async def duplicate(self, source_id: str, destination_id: str) -> int:
        """
        Returns the number of blocks appended. Never raises.
        """
        try:
            return await self._copy_level(source_id, destination_id, depth=0)
        except Exception:
            logger.exception("Content copy %s -> %s failed", source_id, destination_id)
            return 0

    async def _copy_level(self, source_id: str, destination_id: str, *, depth: int) -> int:
        blocks = await self.store.list_content_blocks(source_id)
        if not blocks:
            return 0

        cleaned: List[Dict[str, Any]] = []
        for b in blocks:
            c = clean_block(b)
            if c is None:
                logger.debug("Skipping uncopyable block type=%s id=%s", b.get("type"), b.get("id"))
                continue
            cleaned.append(c)

        if not cleaned:
            return 0
        await self.store.append_content_blocks(destination_id, cleaned)
        copied = len(cleaned)

        if depth >= self.max_depth:
            return copied

        for b in blocks:
            if not b.get("has_children") or clean_block(b) is None:
                continue
            try:
                current = await self.store.list_content_blocks(destination_id)
                if not current:
                    continue
                last = current[-1]
                if last.get("type") not in CONTAINER_TYPES:
                    logger.debug("Last destination block %s is not a container; children of %s not copied", last.get("id"), b.get("id"))
                    continue
                copied += await self._copy_level(b["id"], last["id"], depth=depth + 1)
            except Exception:
                logger.exception("Nested content copy failed for block %s", b.get("id"))
        return copied
