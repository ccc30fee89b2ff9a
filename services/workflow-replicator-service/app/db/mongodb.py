# services/workflow-replicator-service/app/db/mongodb.py
from __future__ import annotations

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings

# Run history only; never created unless MONGO_URI is set
_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongo_uri)
    return _client


async def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
