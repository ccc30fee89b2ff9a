# services/workflow-replicator-service/app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from app.config import settings
from app.infra.logging import setup_logging
from app.clients.http_utils import close_http_clients
from app.api.routers import health_routes
from app.api.routers import runs_routes
from app.api.routers import webhook_routes

logger = logging.getLogger("app.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    App lifespan:
      - configure logging (+ debug buffer)
      - init Mongo indexes when run history is enabled
      - graceful shutdown: HTTP clients, Mongo client
    """
    setup_logging(settings.service_name, buffer_capacity=settings.debug_log_capacity)
    logger.info("%s starting up", settings.service_name)
    logger.info("Notion API key: %s", "set" if settings.notion_api_key else "missing")

    if settings.run_history_enabled:
        from app.db.mongodb import get_client
        from app.db.run_repository import RunRepository

        try:
            await RunRepository(get_client(), settings.mongo_db).ensure_indexes()
            logger.info("Mongo indexes ensured (db=%s)", settings.mongo_db)
        except Exception:
            logger.warning("Mongo index creation failed; run history may be unavailable", exc_info=True)
    else:
        logger.info("Run history disabled (MONGO_URI not set)")

    try:
        yield
    finally:
        # a) HTTP clients
        try:
            await close_http_clients()
        except Exception:
            logger.warning("Error closing HTTP clients", exc_info=True)

        # b) Mongo client
        if settings.run_history_enabled:
            from app.db.mongodb import close_client as close_mongo_client

            try:
                await close_mongo_client()
                logger.info("Mongo client closed")
            except Exception:
                logger.warning("Error closing Mongo client", exc_info=True)

        logger.info("%s shutdown complete", settings.service_name)


app = FastAPI(
    title="Workflow Replicator Service",
    description="Copies workflow templates into an epic's stories and relinks their dependencies",
    version=settings.service_version,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_routes.router)
app.include_router(webhook_routes.router)
app.include_router(runs_routes.router)
