# services/workflow-replicator-service/app/api/routers/webhook_routes.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from app.api.deps import get_runs_repo, get_store
from app.api.payloads import PayloadError, parse_batches
from app.config import settings
from app.core.errors import ReplicationInputError
from app.core.store import RecordStore
from app.db.run_repository import RunRepository
from app.models.replication_models import ReplicationRun, RunStatus
from app.services.replication_service import ReplicationService, summarize

router = APIRouter(tags=["webhook"])
logger = logging.getLogger("app.api.webhook")


@router.post("/webhook/notion", summary="Replicate workflow templates for an epic")
async def notion_webhook(
    payload: Dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
    runs_repo: Optional[RunRepository] = Depends(get_runs_repo),
) -> Dict[str, Any]:
    """
    Synchronous trigger used by the Notion button: runs every batch, then resolves
    dependencies, and answers with the per-batch summary.
    """
    logger.info("Received webhook: keys=%s", sorted(payload.keys()))
    try:
        batches = parse_batches(payload, default_tags=settings.default_workflow_tags)
    except PayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    run = ReplicationRun(batches=batches, status=RunStatus.RUNNING)
    if runs_repo is not None:
        try:
            await runs_repo.create(run)
        except Exception:
            logger.warning("[run %s] Non-fatal: run history insert failed", run.run_id, exc_info=True)
            runs_repo = None

    service = ReplicationService(store, runs_repo=runs_repo)
    try:
        state = await service.run(batches, run_id=run.run_id)
    except ReplicationInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("[run %s] Webhook processing error", run.run_id)
        if runs_repo is not None:
            try:
                await runs_repo.mark_failed(run.run_id, error=str(e))
            except Exception:
                logger.warning("[run %s] mark_failed also failed", run.run_id, exc_info=True)
        raise HTTPException(status_code=500, detail={"error": "Internal server error", "details": str(e)})

    summary = summarize(state)
    return {
        "message": "Workflow processing completed",
        "run_id": run.run_id,
        **summary,
    }
