# services/workflow-replicator-service/app/core/dependencies.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from app.core.errors import UnresolvedDependency
from app.core.ledger import LedgerSnapshot
from app.core.properties import relation_ids_for, relation_value, title_of
from app.core.store import RecordStore
from app.models.replication_models import DependencyReport, DestinationSchema, FieldSynonyms

logger = logging.getLogger("app.core.dependencies")

BLOCKING = "blocking"
BLOCKED_BY = "blocked_by"


class DependencyResolver:
    """
    Second pass of a run: rewrites blocking / blocked-by edges on the copies.

    Edges are always read from the original templates and translated through the
    title -> new id map of the whole run, so an edge may cross batches. Must only
    run once every batch has been replicated.
    """

    def __init__(self, store: RecordStore, *, synonyms: FieldSynonyms) -> None:
        self.store = store
        self.synonyms = synonyms
        self._titles: Dict[str, str] = {}

    async def _endpoint_title(self, record_id: str) -> str:
        if record_id not in self._titles:
            page = await self.store.get_record(record_id)
            self._titles[record_id] = title_of(page.get("properties") or {}, self.synonyms.title)
        return self._titles[record_id]

    async def _resolve_edges(
        self,
        template_id: str,
        endpoint_ids: List[str],
        kind: str,
        snapshot: LedgerSnapshot,
        report: DependencyReport,
    ) -> List[str]:
        resolved: List[str] = []
        for endpoint_id in endpoint_ids:
            try:
                title = await self._endpoint_title(endpoint_id)
            except Exception:
                logger.exception("Could not read %s endpoint %s of template %s", kind, endpoint_id, template_id)
                report.edges_dropped += 1
                continue
            new_id = snapshot.new_id_for(title)
            if new_id is None:
                logger.warning("%s (title=%r)", UnresolvedDependency(template_id, endpoint_id, kind), title)
                report.edges_dropped += 1
                continue
            if new_id not in resolved:
                resolved.append(new_id)
        report.edges_resolved += len(resolved)
        return resolved

    def _edge_fields(self, schema: DestinationSchema) -> Tuple[Optional[str], Optional[str]]:
        blocking = schema.first_present(self.synonyms.blocking)
        blocked_by = schema.first_present(self.synonyms.blocked_by)
        for kind, field, candidates in (
            (BLOCKING, blocking, self.synonyms.blocking),
            (BLOCKED_BY, blocked_by, self.synonyms.blocked_by),
        ):
            if field is None:
                logger.warning("Destination has no %s field (tried %s); those edges are not written", kind, candidates)
        return blocking, blocked_by

    async def resolve(self, snapshot: LedgerSnapshot, schema: DestinationSchema) -> DependencyReport:
        report = DependencyReport()
        blocking_field, blocked_by_field = self._edge_fields(schema)
        logger.info(
            "Resolving dependencies for %d template(s) using %d mapped copies",
            len(snapshot.templates), len(snapshot.identifier_map),
        )

        for template in snapshot.templates:
            try:
                updated = await self._resolve_template(
                    template.id, template.title, snapshot, report,
                    blocking_field=blocking_field, blocked_by_field=blocked_by_field,
                )
                if updated:
                    report.records_updated += 1
            except Exception:
                logger.exception("Dependency resolution failed for template %s (%r)", template.id, template.title)
                report.records_failed += 1

        logger.info("Dependency resolution finished: %s", report.model_dump())
        return report

    async def _resolve_template(
        self,
        template_id: str,
        title: str,
        snapshot: LedgerSnapshot,
        report: DependencyReport,
        *,
        blocking_field: Optional[str],
        blocked_by_field: Optional[str],
    ) -> bool:
        original = await self.store.get_record(template_id)
        props: Dict[str, Any] = original.get("properties") or {}
        # a direction the destination cannot store is not resolved at all
        blocking_ids = relation_ids_for(props, self.synonyms.blocking) if blocking_field else []
        blocked_by_ids = relation_ids_for(props, self.synonyms.blocked_by) if blocked_by_field else []

        if not blocking_ids and not blocked_by_ids:
            return False

        title = title or title_of(props, self.synonyms.title)
        new_id = snapshot.new_id_for(title)
        if new_id is None:
            logger.warning("No copy found for template %s (%r); skipping its dependencies", template_id, title)
            report.records_skipped += 1
            return False

        updates: Dict[str, Any] = {}
        blocking = await self._resolve_edges(template_id, blocking_ids, BLOCKING, snapshot, report)
        if blocking:
            updates[blocking_field] = relation_value(blocking)
        blocked_by = await self._resolve_edges(template_id, blocked_by_ids, BLOCKED_BY, snapshot, report)
        if blocked_by:
            updates[blocked_by_field] = relation_value(blocked_by)

        if not updates:
            logger.info("No dependencies resolved for %r; copy %s left unchanged", title, new_id)
            return False

        await self.store.update_record(new_id, updates)
        logger.info(
            "Updated %s (%r): blocking=%d blocked_by=%d",
            new_id, title, len(blocking), len(blocked_by),
        )
        return True
