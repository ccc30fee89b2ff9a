# services/workflow-replicator-service/app/config.py
from __future__ import annotations
import os
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.replication_models import FieldSynonyms


def _csv(raw: str) -> List[str]:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


class Settings(BaseSettings):
    # Notion
    notion_api_key: str = os.getenv("NOTION_API_KEY", "")
    notion_base_url: str = os.getenv("NOTION_BASE_URL", "https://api.notion.com")
    notion_version: str = os.getenv("NOTION_VERSION", "2022-06-28")

    # Collections
    template_db_id: str = os.getenv("PRODUCT_WORKFLOWS_DB_ID", "263ce8f7317a804dad72cac4e8a5aa60")
    destination_db_id: str = os.getenv("STORIES_DB_ID", "1c1ce8f7317a80dfafc4d95c8cb67c3e")

    # Workflow classification on the template collection
    workflow_property: str = os.getenv("WORKFLOW_PROPERTY", "Workflow")
    workflow_property_type: str = os.getenv("WORKFLOW_PROPERTY_TYPE", "multi_select")  # "multi_select" | "select"
    template_sort_property: str = os.getenv("TEMPLATE_SORT_PROPERTY", "Date")

    # Comma-separated lists (kept as raw strings; see the properties below)
    default_workflow_tags_csv: str = os.getenv("DEFAULT_WORKFLOW_TAGS", "Product")
    anchor_template_ids_csv: str = os.getenv("ANCHOR_TEMPLATE_IDS", "")

    # Synonym candidates per logical field, first match wins
    title_candidates_csv: str = os.getenv("TITLE_CANDIDATES", "Name,Title,Task name,Task")
    date_candidates_csv: str = os.getenv("DATE_CANDIDATES", "Date,Due,Due Date,Dates")
    target_date_candidates_csv: str = os.getenv(
        "TARGET_DATE_CANDIDATES", "Fulfill By,Fulfill by,Due Date,Target Date,Launch Date"
    )
    epic_relation_candidates_csv: str = os.getenv("EPIC_RELATION_CANDIDATES", "Epic,Epics,Parent Epic")
    blocking_candidates_csv: str = os.getenv("BLOCKING_CANDIDATES", "Blocking,Blocks,Is blocking")
    blocked_by_candidates_csv: str = os.getenv("BLOCKED_BY_CANDIDATES", "Blocked by,Blocked By,Is blocked by")

    # HTTP client
    http_client_timeout_seconds: float = float(os.getenv("HTTP_CLIENT_TIMEOUT_SECONDS", "30"))

    # Run history (disabled unless MONGO_URI is set)
    mongo_uri: str = os.getenv("MONGO_URI", "")
    mongo_db: str = os.getenv("MONGO_DB", "workflow_replicator")

    # Identity
    service_name: str = os.getenv("SERVICE_NAME", "workflow-replicator-service")
    service_version: str = os.getenv("SERVICE_VERSION", "0.1.0")

    # Debug log buffer
    debug_log_capacity: int = int(os.getenv("DEBUG_LOG_CAPACITY", "500"))

    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    @property
    def default_workflow_tags(self) -> List[str]:
        return _csv(self.default_workflow_tags_csv)

    @property
    def anchor_template_ids(self) -> List[str]:
        return _csv(self.anchor_template_ids_csv)

    @property
    def run_history_enabled(self) -> bool:
        return bool(self.mongo_uri)

    @property
    def synonyms(self) -> FieldSynonyms:
        return FieldSynonyms(
            title=_csv(self.title_candidates_csv),
            date=_csv(self.date_candidates_csv),
            target_date=_csv(self.target_date_candidates_csv),
            epic_relation=_csv(self.epic_relation_candidates_csv),
            blocking=_csv(self.blocking_candidates_csv),
            blocked_by=_csv(self.blocked_by_candidates_csv),
            workflow=[self.workflow_property],
        )


settings = Settings()
