# services/workflow-replicator-service/app/core/ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Set, Tuple

from app.core.properties import normalize_id
from app.models.replication_models import TemplateRecord

logger = logging.getLogger("app.core.ledger")


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    Read-only view of a finished replication pass, handed to the dependency resolver.
    """
    identifier_map: Mapping[str, str]
    templates: Tuple[TemplateRecord, ...]
    epic_ids: Tuple[str, ...]

    def new_id_for(self, title: str) -> str | None:
        return self.identifier_map.get(title) if title else None


class ReplicationLedger:
    """
    Run-wide accumulator shared by every batch: title -> new record id, the anchor
    templates already copied, the epics seen so far and every template processed.
    Append-only until freeze().
    """

    def __init__(self) -> None:
        self._identifier_map: Dict[str, str] = {}
        self._anchors_copied: Set[str] = set()
        self._epic_ids: List[str] = []
        self._templates: List[TemplateRecord] = []
        self._seen_templates: Set[str] = set()
        self._frozen = False

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError("Ledger is frozen; replication pass already finished")

    # ---------- writes (replication pass) ---------- #

    def add_epic(self, epic_id: str) -> None:
        self._check_open()
        if epic_id and normalize_id(epic_id) not in {normalize_id(e) for e in self._epic_ids}:
            self._epic_ids.append(epic_id)

    def record_copy(self, title: str, new_id: str) -> None:
        self._check_open()
        if title:
            previous = self._identifier_map.get(title)
            if previous and previous != new_id:
                logger.warning("Title %r copied twice in this run; %s replaces %s for linking", title, new_id, previous)
            self._identifier_map[title] = new_id

    def mark_anchor_copied(self, template_id: str) -> None:
        self._check_open()
        self._anchors_copied.add(normalize_id(template_id))

    def add_templates(self, templates: List[TemplateRecord]) -> None:
        self._check_open()
        for t in templates:
            key = normalize_id(t.id)
            if key in self._seen_templates:
                continue
            self._seen_templates.add(key)
            self._templates.append(t)

    # ---------- reads ---------- #

    def anchor_copied(self, template_id: str) -> bool:
        return normalize_id(template_id) in self._anchors_copied

    @property
    def epic_ids(self) -> List[str]:
        return list(self._epic_ids)

    @property
    def identifier_map(self) -> Dict[str, str]:
        return dict(self._identifier_map)

    def freeze(self) -> LedgerSnapshot:
        self._frozen = True
        return LedgerSnapshot(
            identifier_map=MappingProxyType(dict(self._identifier_map)),
            templates=tuple(self._templates),
            epic_ids=tuple(self._epic_ids),
        )
