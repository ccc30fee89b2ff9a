# services/workflow-replicator-service/app/core/store.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class RecordStore(Protocol):
    """
    Operations the replicator needs from the record store. Records and blocks are
    plain dicts in the store's own wire shape.
    """

    async def get_record(self, record_id: str) -> Dict[str, Any]: ...

    async def query_records(
        self,
        collection_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]: ...

    async def create_record(
        self,
        collection_id: str,
        properties: Dict[str, Any],
        icon: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]: ...

    async def update_record(self, record_id: str, properties: Dict[str, Any]) -> Dict[str, Any]: ...

    async def get_schema(self, collection_id: str) -> Dict[str, str]: ...

    async def list_content_blocks(self, record_id: str) -> List[Dict[str, Any]]: ...

    async def append_content_blocks(self, record_id: str, blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...
