# services/workflow-replicator-service/app/services/replication_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app.agent.graph import run_replication
from app.config import Settings, settings as default_settings
from app.core.content import ContentDuplicator
from app.core.dependencies import DependencyResolver
from app.core.errors import ReplicationInputError
from app.core.replicator import ReplicationOrchestrator
from app.core.store import RecordStore
from app.db.run_repository import RunRepository
from app.models.replication_models import BatchOutcome, DependencyReport, WorkflowBatch

logger = logging.getLogger("app.services.replication")


class ReplicationService:
    """
    Batch runner: replicates each batch in order, then resolves dependencies once
    over everything copied in the run.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        config: Optional[Settings] = None,
        runs_repo: Optional[RunRepository] = None,
    ) -> None:
        self.store = store
        self.config = config or default_settings
        self.runs_repo = runs_repo

    def _orchestrator(self) -> ReplicationOrchestrator:
        cfg = self.config
        return ReplicationOrchestrator(
            self.store,
            template_db_id=cfg.template_db_id,
            destination_db_id=cfg.destination_db_id,
            synonyms=cfg.synonyms,
            anchor_template_ids=cfg.anchor_template_ids,
            workflow_property=cfg.workflow_property,
            workflow_property_type=cfg.workflow_property_type,
            sort_property=cfg.template_sort_property or None,
            content=ContentDuplicator(self.store),
        )

    async def run(self, batches: List[WorkflowBatch], *, run_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Full run; returns the final pipeline state (outcomes, dependency_report, logs, duration_s).
        """
        if not batches:
            raise ReplicationInputError("At least one workflow batch is required")

        logger.info("Replication run %s: %d batch(es) %s", run_id or "-", len(batches), [b.workflow_tag for b in batches])
        orchestrator = self._orchestrator()
        resolver = DependencyResolver(self.store, synonyms=self.config.synonyms)
        return await run_replication(
            orchestrator=orchestrator,
            resolver=resolver,
            batches=batches,
            runs_repo=self.runs_repo,
            run_id=run_id,
        )

    async def replicate(self, batches: List[WorkflowBatch]) -> List[BatchOutcome]:
        state = await self.run(batches)
        return list(state.get("outcomes") or [])


def summarize(state: Dict[str, Any]) -> Dict[str, Any]:
    """Caller-facing shape of a finished run."""
    report: Optional[DependencyReport] = state.get("dependency_report")
    return {
        "results": [o.model_dump(by_alias=True, exclude_none=True) for o in state.get("outcomes") or []],
        "dependencies": report.model_dump() if report else None,
        "duration_s": state.get("duration_s"),
    }
