# services/workflow-replicator-service/app/agent/graph.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph
from langgraph.graph.state import END

from app.core.dependencies import DependencyResolver
from app.core.ledger import ReplicationLedger
from app.core.replicator import ReplicationOrchestrator
from app.db.run_repository import RunRepository
from app.models.replication_models import BatchOutcome, DependencyReport, WorkflowBatch

from app.agent.nodes.batch_executor import batch_executor_node
from app.agent.nodes.dependency_resolver import dependency_resolver_node
from app.agent.nodes.persist_run import persist_run_node


class RunState(TypedDict, total=False):
    run_id: Optional[str]
    batches: List[WorkflowBatch]
    batch_idx: int
    ledger: ReplicationLedger
    outcomes: List[BatchOutcome]
    dependency_report: Optional[DependencyReport]
    logs: list[str]
    t0: float
    duration_s: Optional[float]


@dataclass
class ReplicatorGraph:
    orchestrator: ReplicationOrchestrator
    resolver: DependencyResolver
    runs_repo: Optional[RunRepository] = None

    def build(self):
        graph = StateGraph(RunState)

        graph.add_node(
            "batch_executor",
            batch_executor_node(orchestrator=self.orchestrator, runs_repo=self.runs_repo),
        )
        graph.add_node(
            "dependency_resolver",
            dependency_resolver_node(orchestrator=self.orchestrator, resolver=self.resolver),
        )
        graph.add_node("persist_run", persist_run_node(runs_repo=self.runs_repo))

        graph.set_entry_point("batch_executor")

        def route_from_batch_executor(state: RunState):
            """
            Loop until every batch has been replicated; only then move on to the
            dependency pass, whose edges may point across batches.
            """
            if int(state.get("batch_idx", 0)) < len(state.get("batches") or []):
                return "batch_executor"
            return "dependency_resolver"

        graph.add_conditional_edges("batch_executor", route_from_batch_executor)
        graph.add_edge("dependency_resolver", "persist_run")
        graph.add_edge("persist_run", END)

        return graph.compile()


async def run_replication(
    *,
    orchestrator: ReplicationOrchestrator,
    resolver: DependencyResolver,
    batches: List[WorkflowBatch],
    runs_repo: Optional[RunRepository] = None,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    compiled = ReplicatorGraph(
        orchestrator=orchestrator,
        resolver=resolver,
        runs_repo=runs_repo,
    ).build()

    initial_state: Dict[str, Any] = {
        "run_id": run_id,
        "batches": list(batches),
        "batch_idx": 0,
        "ledger": ReplicationLedger(),
        "outcomes": [],
        "dependency_report": None,
        "logs": [],
        "t0": time.perf_counter(),
        "duration_s": None,
    }

    # one super-step per batch plus the resolver / persist tail
    config = {"recursion_limit": len(batches) + 10}
    final_state: Dict[str, Any] = await compiled.ainvoke(initial_state, config=config)
    return final_state
