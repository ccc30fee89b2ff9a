# services/workflow-replicator-service/app/core/replicator.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.core.content import ContentDuplicator
from app.core.dates import compute_offset, translate_date_value
from app.core.epics import resolve_epic
from app.core.errors import BatchError, PartialFailure, is_date_validation_error
from app.core.ledger import ReplicationLedger
from app.core.properties import date_start, normalize_id, relation_value, title_of
from app.core.schema_mapper import map_properties
from app.core.store import RecordStore
from app.models.replication_models import (
    BatchResult,
    DestinationSchema,
    EpicDetails,
    FieldSynonyms,
    TemplateRecord,
    WorkflowBatch,
)

logger = logging.getLogger("app.core.replicator")


def template_from_page(page: Dict[str, Any], synonyms: FieldSynonyms) -> TemplateRecord:
    props = page.get("properties") or {}
    return TemplateRecord(
        id=page["id"],
        title=title_of(props, synonyms.title),
        properties=props,
        date=date_start(props, synonyms.date),
        icon=page.get("icon") or None,
    )


def _source_name_field(props: Dict[str, Any], synonyms: FieldSynonyms) -> Optional[str]:
    for name, prop in props.items():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return name
    for name in synonyms.title:
        if name in props:
            return name
    return None


def _is_date_prop(name: str, prop: Any, schema: DestinationSchema) -> bool:
    if schema.fields.get(name) == "date":
        return True
    return isinstance(prop, dict) and (prop.get("type") == "date" or "date" in prop)


class ReplicationOrchestrator:
    """
    Copies the templates of one workflow batch into the destination collection and
    records every copy in the run ledger. Records are created one at a time, in
    fetch order; a failing record never stops the rest of the batch.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        template_db_id: str,
        destination_db_id: str,
        synonyms: FieldSynonyms,
        anchor_template_ids: Optional[List[str]] = None,
        workflow_property: str = "Workflow",
        workflow_property_type: str = "multi_select",
        sort_property: Optional[str] = "Date",
        content: Optional[ContentDuplicator] = None,
    ) -> None:
        self.store = store
        self.template_db_id = template_db_id
        self.destination_db_id = destination_db_id
        self.synonyms = synonyms
        self.anchor_template_ids = list(anchor_template_ids or [])
        self._anchor_keys = {normalize_id(a) for a in self.anchor_template_ids}
        self.workflow_property = workflow_property
        self.workflow_property_type = workflow_property_type
        self.sort_property = sort_property
        self.content = content or ContentDuplicator(store)
        self._schema: Optional[DestinationSchema] = None

    def is_anchor(self, template_id: str) -> bool:
        return normalize_id(template_id) in self._anchor_keys

    async def destination_schema(self) -> DestinationSchema:
        if self._schema is None:
            fields = await self.store.get_schema(self.destination_db_id)
            self._schema = DestinationSchema(fields=fields)
            logger.info("Destination schema loaded: %d fields, title=%s", len(fields), self._schema.title_field)
        return self._schema

    # ---------- template fetch ---------- #

    def _workflow_filter(self, workflow_tag: str) -> Dict[str, Any]:
        kind = self.workflow_property_type
        if kind == "multi_select":
            return {"property": self.workflow_property, "multi_select": {"contains": workflow_tag}}
        return {"property": self.workflow_property, kind: {"equals": workflow_tag}}

    async def fetch_templates(self, workflow_tag: str) -> List[TemplateRecord]:
        sorts = [{"property": self.sort_property, "direction": "ascending"}] if self.sort_property else None
        pages = await self.store.query_records(
            self.template_db_id,
            filter=self._workflow_filter(workflow_tag),
            sorts=sorts,
        )
        templates = [template_from_page(p, self.synonyms) for p in pages]

        present = {normalize_id(t.id) for t in templates}
        for anchor_id in self.anchor_template_ids:
            if normalize_id(anchor_id) in present:
                continue
            try:
                page = await self.store.get_record(anchor_id)
            except Exception:
                logger.exception("Anchor template %s could not be fetched; continuing without it", anchor_id)
                continue
            templates.append(template_from_page(page, self.synonyms))
            present.add(normalize_id(anchor_id))

        logger.info("Found %d template(s) for workflow %r", len(templates), workflow_tag)
        return templates

    # ---------- batch ---------- #

    async def replicate_batch(self, batch: WorkflowBatch, ledger: ReplicationLedger) -> BatchResult:
        """
        Raises BatchError when the batch cannot start (epic, schema or template
        lookup failed). Per-template failures are collected in the result.
        """
        epic = await resolve_epic(self.store, batch.epic_id or "", self.synonyms)
        ledger.add_epic(epic.id)

        try:
            schema = await self.destination_schema()
            templates = await self.fetch_templates(batch.workflow_tag)
        except Exception as e:
            raise BatchError(f"Failed to load templates for workflow {batch.workflow_tag!r}: {e}") from e

        target_date = epic.target_date or batch.target_date
        offset = compute_offset(templates, target_date)

        result = BatchResult(workflow_tag=batch.workflow_tag, epic_id=epic.id, templates=templates)
        ledger.add_templates(templates)

        for template in templates:
            anchor = self.is_anchor(template.id)
            if anchor and ledger.anchor_copied(template.id):
                logger.info("Anchor template %s already copied in this run; skipping", template.id)
                continue

            try:
                new_id = await self._copy_template(template, schema=schema, epic=epic, offset=offset, ledger=ledger, anchor=anchor)
            except PartialFailure as pf:
                logger.error("Error copying template %s (%r): %s", template.id, template.title, pf.cause)
                result.failures.append(str(pf))
                continue

            result.created_ids.append(new_id)
            if template.title:
                result.identifier_map[template.title] = new_id
            ledger.record_copy(template.title, new_id)
            if anchor:
                ledger.mark_anchor_copied(template.id)

            await self.content.duplicate(template.id, new_id)

        logger.info(
            "Workflow %r: copied %d/%d template(s) for epic %s",
            batch.workflow_tag, result.copied_count, len(templates), epic.id,
        )
        return result

    def build_properties(
        self,
        template: TemplateRecord,
        *,
        schema: DestinationSchema,
        epic: EpicDetails,
        offset: timedelta,
        epic_ids: List[str],
    ) -> Dict[str, Any]:
        props = map_properties(
            template.properties,
            schema,
            epic_name=epic.name,
            synonyms=self.synonyms,
            source_name_field=_source_name_field(template.properties, self.synonyms),
        )

        for name in list(props):
            prop = props[name]
            if not _is_date_prop(name, prop, schema):
                continue
            translated = translate_date_value((prop or {}).get("date"), offset)
            if translated is None:
                logger.warning("Template %s: dropping date field %r without a usable start", template.id, name)
                props.pop(name)
            else:
                props[name] = {"date": translated}

        epic_field = schema.first_present(self.synonyms.epic_relation)
        if epic_field:
            props[epic_field] = relation_value(epic_ids)
        else:
            logger.warning("Destination has no epic relation field among %s", self.synonyms.epic_relation)
        return props

    async def _copy_template(
        self,
        template: TemplateRecord,
        *,
        schema: DestinationSchema,
        epic: EpicDetails,
        offset: timedelta,
        ledger: ReplicationLedger,
        anchor: bool,
    ) -> str:
        """
        Create one copy and return its id; raises PartialFailure on any failure.
        """
        epic_ids = ledger.epic_ids if anchor else [epic.id]
        try:
            props = self.build_properties(template, schema=schema, epic=epic, offset=offset, epic_ids=epic_ids)
        except Exception as e:
            raise PartialFailure(template.id, template.title, e) from e

        try:
            page = await self.store.create_record(self.destination_db_id, props, icon=template.icon)
        except Exception as e:
            if not (anchor and is_date_validation_error(e)):
                raise PartialFailure(template.id, template.title, e) from e

            logger.warning("Anchor template %s rejected on date validation; retrying without dates: %s", template.id, e)
            stripped = {k: v for k, v in props.items() if not _is_date_prop(k, v, schema)}
            try:
                page = await self.store.create_record(self.destination_db_id, stripped, icon=template.icon)
            except Exception as retry_err:
                raise PartialFailure(template.id, template.title, retry_err) from retry_err

        logger.info("Created page %s from template %s (%r)", page.get("id"), template.id, template.title)
        return page["id"]
