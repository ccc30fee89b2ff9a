# services/workflow-replicator-service/app/clients/notion_store.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.clients.http_utils import _raise_for_status, get_http_client, retryable

logger = logging.getLogger("app.clients.notion")

# Notion caps both page_size and children per append at 100
_PAGE_SIZE = 100
_APPEND_LIMIT = 100


class NotionStoreClient:
    """
    Thin async client for the Notion REST API implementing the RecordStore operations.
    Returns plain dicts/lists in Notion's wire shape.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        notion_version: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.notion_api_key
        self.base_url = base_url or settings.notion_base_url
        self.notion_version = notion_version or settings.notion_version
        self.service_name = "notion"
        self._http_client = http_client

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client(self.base_url)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    # --------- Pages --------- #

    @retryable
    async def get_record(self, record_id: str) -> Dict[str, Any]:
        """
        GET /v1/pages/{record_id}
        """
        client = await self._client()
        resp = await client.get(f"/v1/pages/{record_id}", headers=self._headers())
        _raise_for_status(self.service_name, resp)
        return resp.json()

    async def create_record(
        self,
        collection_id: str,
        properties: Dict[str, Any],
        icon: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        POST /v1/pages (not retried: a create is not idempotent)
        """
        client = await self._client()
        body: Dict[str, Any] = {
            "parent": {"database_id": collection_id},
            "properties": properties,
        }
        if icon:
            body["icon"] = icon
        resp = await client.post("/v1/pages", json=body, headers=self._headers())
        _raise_for_status(self.service_name, resp)
        page = resp.json()
        logger.debug("Created page %s in %s", page.get("id"), collection_id)
        return page

    @retryable
    async def update_record(self, record_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """
        PATCH /v1/pages/{record_id}
        """
        client = await self._client()
        resp = await client.patch(
            f"/v1/pages/{record_id}",
            json={"properties": properties},
            headers=self._headers(),
        )
        _raise_for_status(self.service_name, resp)
        return resp.json()

    # --------- Databases --------- #

    @retryable
    async def _query_page(self, collection_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._client()
        resp = await client.post(f"/v1/databases/{collection_id}/query", json=body, headers=self._headers())
        _raise_for_status(self.service_name, resp)
        return resp.json()

    async def query_records(
        self,
        collection_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        POST /v1/databases/{collection_id}/query, following next_cursor until exhausted.
        """
        body: Dict[str, Any] = {"page_size": _PAGE_SIZE}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts

        results: List[Dict[str, Any]] = []
        while True:
            data = await self._query_page(collection_id, body)
            results.extend(data.get("results") or [])
            if not data.get("has_more") or not data.get("next_cursor"):
                break
            body = {**body, "start_cursor": data["next_cursor"]}
        return results

    @retryable
    async def get_schema(self, collection_id: str) -> Dict[str, str]:
        """
        GET /v1/databases/{collection_id} -> {property name: property type}
        """
        client = await self._client()
        resp = await client.get(f"/v1/databases/{collection_id}", headers=self._headers())
        _raise_for_status(self.service_name, resp)
        props = resp.json().get("properties") or {}
        return {name: (spec or {}).get("type", "") for name, spec in props.items()}

    # --------- Blocks --------- #

    @retryable
    async def _children_page(self, record_id: str, cursor: Optional[str]) -> Dict[str, Any]:
        client = await self._client()
        params: Dict[str, Any] = {"page_size": _PAGE_SIZE}
        if cursor:
            params["start_cursor"] = cursor
        resp = await client.get(f"/v1/blocks/{record_id}/children", params=params, headers=self._headers())
        _raise_for_status(self.service_name, resp)
        return resp.json()

    async def list_content_blocks(self, record_id: str) -> List[Dict[str, Any]]:
        """
        GET /v1/blocks/{record_id}/children (all pages)
        """
        blocks: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            data = await self._children_page(record_id, cursor)
            blocks.extend(data.get("results") or [])
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
        return blocks

    async def append_content_blocks(self, record_id: str, blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        PATCH /v1/blocks/{record_id}/children, chunked to the append limit.
        """
        client = await self._client()
        created: List[Dict[str, Any]] = []
        for i in range(0, len(blocks), _APPEND_LIMIT):
            chunk = blocks[i:i + _APPEND_LIMIT]
            resp = await client.patch(
                f"/v1/blocks/{record_id}/children",
                json={"children": chunk},
                headers=self._headers(),
            )
            _raise_for_status(self.service_name, resp)
            created.extend(resp.json().get("results") or [])
        return created
