# services/workflow-replicator-service/app/api/routers/health_routes.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query

from app.config import settings
from app.infra.logging import get_log_buffer

logger = logging.getLogger("app.api.health")

router = APIRouter(tags=["meta"])


@router.get("/", summary="Root metadata")
def root() -> Dict[str, Any]:
    """
    Root landing with links and metadata.
    """
    return {
        "service": settings.service_name,
        "status": "ok",
        "message": "workflow replicator: copies workflow templates into stories",
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
        "version": "/version",
        "webhook": "/webhook/notion",
    }


@router.get("/health", summary="Liveness probe")
def health() -> Dict[str, Any]:
    """
    Liveness probe: process is up and app is constructed.
    """
    return {
        "status": "ok",
        "service": settings.service_name,
        "at": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready", summary="Readiness probe")
def ready() -> Dict[str, Any]:
    """
    Readiness probe: the Notion token and both collection ids must be configured.
    """
    missing = [
        name
        for name, value in (
            ("NOTION_API_KEY", settings.notion_api_key),
            ("PRODUCT_WORKFLOWS_DB_ID", settings.template_db_id),
            ("STORIES_DB_ID", settings.destination_db_id),
        )
        if not value
    ]
    if missing:
        raise HTTPException(status_code=503, detail={"status": "not_ready", "missing": missing})
    return {
        "status": "ready",
        "service": settings.service_name,
        "run_history": settings.run_history_enabled,
        "at": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/version", summary="Service version")
def version() -> Dict[str, Any]:
    return {
        "service": settings.service_name,
        "version": settings.service_version,
    }


@router.get("/debug/logs", summary="Recent log records")
def debug_logs(limit: int = Query(100, ge=0, le=5000)) -> Dict[str, Any]:
    records = get_log_buffer().recent(limit)
    return {"count": len(records), "logs": records}
