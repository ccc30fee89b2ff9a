# services/workflow-replicator-service/app/agent/nodes/persist_run.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from app.db.run_repository import RunRepository

logger = logging.getLogger("app.agent.nodes.persist_run")


def persist_run_node(*, runs_repo: Optional[RunRepository] = None):
    """
    Terminal writer: stores outcomes + dependency report on the run document.
    No-op when run history is disabled.
    """

    async def _node(state: Dict[str, Any]) -> Dict[str, Any]:
        started = state.get("t0")
        duration_s = round(time.perf_counter() - started, 3) if started is not None else None
        run_id = state.get("run_id")

        if runs_repo is None or not run_id:
            return {"duration_s": duration_s}

        report = state.get("dependency_report")
        try:
            await runs_repo.mark_completed(
                run_id,
                outcomes=state.get("outcomes") or [],
                dependency_report=report,
                duration_s=duration_s,
            )
        except Exception:
            logger.warning("[run %s] Non-fatal: mark_completed failed", run_id, exc_info=True)
        return {"duration_s": duration_s}

    return _node
