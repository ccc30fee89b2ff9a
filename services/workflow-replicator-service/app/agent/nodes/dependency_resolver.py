# services/workflow-replicator-service/app/agent/nodes/dependency_resolver.py
from __future__ import annotations

import logging
from typing import Any, Dict

from app.core.dependencies import DependencyResolver
from app.core.ledger import ReplicationLedger
from app.core.replicator import ReplicationOrchestrator
from app.models.replication_models import DependencyReport

logger = logging.getLogger("app.agent.nodes.dependency_resolver")


def dependency_resolver_node(*, orchestrator: ReplicationOrchestrator, resolver: DependencyResolver):

    async def _node(state: Dict[str, Any]) -> Dict[str, Any]:
        ledger: ReplicationLedger = state["ledger"]
        # Barrier: nothing writes to the ledger past this point
        snapshot = ledger.freeze()

        if not snapshot.templates:
            logger.info("No templates were processed; skipping dependency resolution")
            return {"dependency_report": DependencyReport()}

        try:
            schema = await orchestrator.destination_schema()
        except Exception:
            logger.exception("Destination schema unavailable; dependency resolution skipped")
            return {"dependency_report": DependencyReport(records_failed=len(snapshot.templates))}

        report = await resolver.resolve(snapshot, schema)
        return {"dependency_report": report}

    return _node
