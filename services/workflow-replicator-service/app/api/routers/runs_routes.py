# services/workflow-replicator-service/app/api/routers/runs_routes.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query

from app.api.deps import get_runs_repo, get_store
from app.api.payloads import PayloadError, parse_batches
from app.config import settings
from app.core.store import RecordStore
from app.db.run_repository import RunRepository
from app.models.replication_models import ReplicationRun, RunStatus, WorkflowBatch
from app.services.replication_service import ReplicationService

router = APIRouter(prefix="/runs", tags=["runs"])
logger = logging.getLogger("app.api.runs")


async def _execute_run(
    run: ReplicationRun,
    batches: List[WorkflowBatch],
    store: RecordStore,
    runs_repo: Optional[RunRepository],
) -> None:
    """
    Background task: replicate + resolve, reflecting the result into run history.
    Exceptions end here; they never reach the API caller.
    """
    if runs_repo is not None:
        try:
            await runs_repo.mark_started(run.run_id)
        except Exception:
            logger.exception("[run %s] mark_started failed", run.run_id)

    try:
        state = await ReplicationService(store, runs_repo=runs_repo).run(batches, run_id=run.run_id)
        logger.info("[run %s] finished in %ss", run.run_id, state.get("duration_s"))
    except Exception as e:
        logger.exception("[run %s] Run failed", run.run_id)
        if runs_repo is not None:
            try:
                await runs_repo.mark_failed(run.run_id, error=str(e))
            except Exception:
                logger.warning("[run %s] mark_failed also failed", run.run_id, exc_info=True)


@router.post("/start", status_code=202)
async def start_run(
    background: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
    runs_repo: Optional[RunRepository] = Depends(get_runs_repo),
) -> Dict[str, Any]:
    """
    Fire-and-forget start:
      - Parse batches and create the run record
      - Queue execution as a background task
      - Return immediately with 202 and basic run info
    """
    try:
        batches = parse_batches(payload, default_tags=settings.default_workflow_tags)
    except PayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not batches:
        raise HTTPException(status_code=400, detail="At least one workflow batch is required")

    run = ReplicationRun(batches=batches, status=RunStatus.CREATED)
    if runs_repo is not None:
        await runs_repo.create(run)

    background.add_task(_execute_run, run, batches, store, runs_repo)

    return {
        "run_id": run.run_id,
        "status": RunStatus.CREATED.value,  # effectively "queued"
        "workflows": [b.workflow_tag for b in batches],
        "message": "Run accepted and scheduled.",
    }


def _require_repo(runs_repo: Optional[RunRepository]) -> RunRepository:
    if runs_repo is None:
        raise HTTPException(status_code=503, detail="Run history is disabled (MONGO_URI not set)")
    return runs_repo


@router.get("")
async def list_runs(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    runs_repo: Optional[RunRepository] = Depends(get_runs_repo),
) -> List[Dict[str, Any]]:
    repo = _require_repo(runs_repo)
    runs = await repo.list_recent(limit=limit, offset=offset)
    return [r.model_dump(by_alias=True, mode="json") for r in runs]


@router.get("/{run_id}")
async def get_run(
    run_id: str,
    runs_repo: Optional[RunRepository] = Depends(get_runs_repo),
) -> Dict[str, Any]:
    repo = _require_repo(runs_repo)
    run = await repo.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run.model_dump(by_alias=True, mode="json")
