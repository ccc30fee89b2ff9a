# services/workflow-replicator-service/app/agent/nodes/batch_executor.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.core.errors import BatchError
from app.core.ledger import ReplicationLedger
from app.core.replicator import ReplicationOrchestrator
from app.db.run_repository import RunRepository
from app.models.replication_models import BatchOutcome, WorkflowBatch

logger = logging.getLogger("app.agent.nodes.batch_executor")


def batch_executor_node(*, orchestrator: ReplicationOrchestrator, runs_repo: Optional[RunRepository] = None):

    async def _node(state: Dict[str, Any]) -> Dict[str, Any]:
        batches: List[WorkflowBatch] = state["batches"]
        ledger: ReplicationLedger = state["ledger"]
        idx = int(state.get("batch_idx", 0))
        outcomes: List[BatchOutcome] = list(state.get("outcomes") or [])
        logs: List[str] = list(state.get("logs") or [])

        batch = batches[idx]
        logger.info("[batch %d/%d] workflow=%r epic=%s", idx + 1, len(batches), batch.workflow_tag, batch.epic_id)

        try:
            result = await orchestrator.replicate_batch(batch, ledger)
            outcome = result.to_outcome()
        except BatchError as e:
            logger.error("[batch %d/%d] workflow=%r failed: %s", idx + 1, len(batches), batch.workflow_tag, e)
            outcome = BatchOutcome(workflow_tag=batch.workflow_tag, success=False, copied_count=0, error=str(e))
        except Exception as e:
            logger.exception("[batch %d/%d] workflow=%r failed unexpectedly", idx + 1, len(batches), batch.workflow_tag)
            outcome = BatchOutcome(workflow_tag=batch.workflow_tag, success=False, copied_count=0, error=str(e))

        outcomes.append(outcome)
        logs.append(
            f"{batch.workflow_tag}: success={outcome.success} copied={outcome.copied_count}"
            + (f" error={outcome.error}" if outcome.error else "")
        )

        run_id = state.get("run_id")
        if runs_repo is not None and run_id:
            try:
                await runs_repo.append_outcome(run_id, outcome)
            except Exception:
                logger.warning("[run %s] Non-fatal: append_outcome failed", run_id, exc_info=True)

        return {"batch_idx": idx + 1, "outcomes": outcomes, "logs": logs}

    return _node
