# services/workflow-replicator-service/app/models/replication_models.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.dates import parse_datetime


# ─────────────────────────────────────────────────────────────
# Field synonyms (schema drift in the upstream store)
# ─────────────────────────────────────────────────────────────

class FieldSynonyms(BaseModel):
    """
    Ordered candidate property names per logical field; resolution is first-match-wins.
    """
    title: List[str] = Field(default_factory=lambda: ["Name", "Title"])
    date: List[str] = Field(default_factory=lambda: ["Date"])
    target_date: List[str] = Field(default_factory=lambda: ["Fulfill By", "Due Date"])
    epic_relation: List[str] = Field(default_factory=lambda: ["Epic"])
    blocking: List[str] = Field(default_factory=lambda: ["Blocking"])
    blocked_by: List[str] = Field(default_factory=lambda: ["Blocked by"])
    workflow: List[str] = Field(default_factory=lambda: ["Workflow"])


# ─────────────────────────────────────────────────────────────
# Source / destination records
# ─────────────────────────────────────────────────────────────

class TemplateRecord(BaseModel):
    """
    A source-side record used as the pattern for one copy. Read-only within a run.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)
    date: Optional[datetime] = None
    icon: Optional[Dict[str, Any]] = None


class EpicDetails(BaseModel):
    id: str
    name: str = "Unnamed Epic"
    target_date: Optional[datetime] = None


class DestinationSchema(BaseModel):
    """
    Property name -> Notion property type for the destination collection.
    """
    fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def names(self) -> set[str]:
        return set(self.fields)

    @property
    def title_field(self) -> Optional[str]:
        for name, kind in self.fields.items():
            if kind == "title":
                return name
        return None

    def first_present(self, candidates: List[str]) -> Optional[str]:
        for name in candidates:
            if name in self.fields:
                return name
        return None


# ─────────────────────────────────────────────────────────────
# Batches & outcomes
# ─────────────────────────────────────────────────────────────

class WorkflowBatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workflow_tag: str = Field(alias="workflowTag")
    epic_id: Optional[str] = Field(default=None, alias="epicId")
    target_date: Optional[datetime] = Field(default=None, alias="targetDate")

    @field_validator("target_date", mode="before")
    @classmethod
    def _parse_target_date(cls, v: Any) -> Any:
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str):
            if not v.strip():
                return None
            parsed = parse_datetime(v)
            if parsed is None:
                raise ValueError(f"unparseable target date {v!r}")
            return parsed
        return v


class BatchOutcome(BaseModel):
    """
    Per-batch summary returned to the caller. Serialize with by_alias=True.
    """
    model_config = ConfigDict(populate_by_name=True)

    workflow_tag: str = Field(alias="workflowTag")
    success: bool
    copied_count: int = Field(default=0, alias="copiedCount")
    error: Optional[str] = None


class BatchResult(BaseModel):
    """
    Internal result of one replication pass over a batch.
    """
    workflow_tag: str
    epic_id: Optional[str] = None
    created_ids: List[str] = Field(default_factory=list)
    identifier_map: Dict[str, str] = Field(default_factory=dict)
    templates: List[TemplateRecord] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)

    @property
    def copied_count(self) -> int:
        return len(self.created_ids)

    def to_outcome(self) -> BatchOutcome:
        note: Optional[str] = None
        if self.failures:
            note = f"{len(self.failures)} template(s) failed to copy: " + "; ".join(self.failures)
        # nothing copied out of a non-empty template set is a failed batch
        success = not (self.failures and not self.created_ids)
        return BatchOutcome(
            workflow_tag=self.workflow_tag,
            success=success,
            copied_count=self.copied_count,
            error=note,
        )


class DependencyReport(BaseModel):
    records_updated: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    edges_resolved: int = 0
    edges_dropped: int = 0


# ─────────────────────────────────────────────────────────────
# Persisted run doc
# ─────────────────────────────────────────────────────────────

class RunStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ReplicationRun(BaseModel):
    """
    Single collection: replication_runs. One document per trigger.
    """
    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(default_factory=lambda: str(uuid4()))
    status: RunStatus = RunStatus.CREATED
    batches: List[WorkflowBatch] = Field(default_factory=list)
    outcomes: List[BatchOutcome] = Field(default_factory=list)
    dependency_report: Optional[DependencyReport] = None
    error: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_s: Optional[float] = None
