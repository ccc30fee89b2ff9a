"""
Trigger payload parsing across the webhook shapes seen in the wild.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.api.payloads import PayloadError, extract_epic_id, parse_batches
from app.models.replication_models import WorkflowBatch


class TestExtractEpicId:

    @pytest.mark.parametrize(
        "payload",
        [
            {"epicId": "e1"},
            {"epic_id": "e1"},
            {"page": {"id": "e1"}},
            {"data": {"id": "e1", "object": "page"}},
            {"source": {"type": "automation", "page_id": "e1"}},
        ],
    )
    def test_known_shapes(self, payload):
        assert extract_epic_id(payload) == "e1"

    def test_first_match_wins(self):
        assert extract_epic_id({"epicId": "explicit", "data": {"id": "nested"}}) == "explicit"

    def test_missing(self):
        assert extract_epic_id({"foo": "bar"}) is None


class TestParseBatches:

    def test_default_tags(self):
        batches = parse_batches({"epicId": "e1"}, default_tags=["Product", "Market"])
        assert [(b.workflow_tag, b.epic_id) for b in batches] == [("Product", "e1"), ("Market", "e1")]

    def test_single_tag(self):
        batches = parse_batches({"epicId": "e1", "workflowTag": "Batch", "targetDate": "2024-01-20"}, default_tags=["Product"])
        assert len(batches) == 1
        assert batches[0].workflow_tag == "Batch"
        assert batches[0].target_date == datetime(2024, 1, 20, tzinfo=timezone.utc)

    def test_explicit_list_mixed_entries(self):
        payload = {
            "epicId": "e1",
            "workflows": ["Market", {"workflowTag": "Batch", "epicId": "e2", "targetDate": "2024-02-01"}],
        }
        batches = parse_batches(payload, default_tags=[])
        assert [(b.workflow_tag, b.epic_id) for b in batches] == [("Market", "e1"), ("Batch", "e2")]
        assert batches[0].target_date is None
        assert batches[1].target_date == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_no_epic(self):
        with pytest.raises(PayloadError):
            parse_batches({"workflowTag": "Batch"}, default_tags=[])

    def test_entry_without_epic_kept_for_the_run(self):
        payload = {"batches": [{"workflowTag": "Product", "epicId": "e1"}, {"workflowTag": "Market"}]}
        batches = parse_batches(payload, default_tags=[])
        assert [(b.workflow_tag, b.epic_id) for b in batches] == [("Product", "e1"), ("Market", None)]

    def test_malformed_target_date(self):
        with pytest.raises(PayloadError):
            parse_batches({"epicId": "e1", "workflowTag": "Batch", "targetDate": "2024-13-45"}, default_tags=[])

    def test_bad_entry(self):
        with pytest.raises(PayloadError):
            parse_batches({"epicId": "e1", "batches": [{"epicId": "e1"}]}, default_tags=[])

    def test_empty_list_gives_no_batches(self):
        assert parse_batches({"epicId": "e1", "batches": []}, default_tags=["Product"]) == []


class TestWorkflowBatch:

    def test_unparseable_target_date_rejected(self):
        with pytest.raises(PydanticValidationError):
            WorkflowBatch(workflow_tag="Product", epic_id="e1", target_date="2024-13-45")

    def test_blank_target_date_is_none(self):
        assert WorkflowBatch(workflow_tag="Product", epic_id="e1", target_date="  ").target_date is None
