"""Tests for the pydantic models."""

import pydantic
import pytest
from conftest import SET, parse_op

from flowdiff.models import (
    AddConnectionOperation,
    DiffRequest,
    RemoveNodeOperation,
    RewireConnectionOperation,
    VersionInfo,
    Workflow,
)


class TestDiffOperationParsing:
    """Tests for the discriminated operation union."""

    def test_dispatch_on_type(self):
        op = parse_op({"type": "addConnection", "source": "A", "target": "B", "sourceIndex": 1})

        assert isinstance(op, AddConnectionOperation)
        assert op.source_index == 1
        assert op.source_output is None

    def test_unknown_type_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            parse_op({"type": "explodeWorkflow"})

    def test_missing_required_field(self):
        with pytest.raises(pydantic.ValidationError):
            parse_op({"type": "updateNode", "nodeName": "A"})

    def test_negative_index_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            parse_op({"type": "addConnection", "source": "A", "target": "B", "sourceIndex": -1})

    def test_oversized_index_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            parse_op({"type": "addConnection", "source": "A", "target": "B", "sourceIndex": 10**8})
        with pytest.raises(pydantic.ValidationError):
            parse_op({"type": "rewireConnection", "source": "S", "from": "A", "to": "B", "case": 10**8})

    def test_rewire_aliases(self):
        op = parse_op({"type": "rewireConnection", "source": "IF", "from": "A", "to": "B"})

        assert isinstance(op, RewireConnectionOperation)
        assert op.from_node == "A"
        assert op.to_node == "B"
        assert op.model_dump(by_alias=True)["from"] == "A"

    def test_operations_are_frozen(self):
        op = parse_op({"type": "removeNode", "nodeName": "A"})

        assert isinstance(op, RemoveNodeOperation)
        with pytest.raises(pydantic.ValidationError):
            op.node_name = "B"

    def test_node_ref_prefers_name(self):
        op = parse_op({"type": "removeNode", "nodeName": "A", "nodeId": "id-a"})
        assert op.node_ref == "A"
        assert parse_op({"type": "removeNode", "nodeId": "id-a"}).node_ref == "id-a"

    def test_node_spec_keeps_extras(self):
        op = parse_op(
            {"type": "addNode", "node": {"name": "S", "type": SET, "notes": "hello"}}
        )
        assert op.node.model_dump()["notes"] == "hello"


class TestDiffRequest:
    def test_defaults(self):
        request = DiffRequest.model_validate({"id": "wf-1", "operations": []})

        assert request.workflow_id == "wf-1"
        assert request.validate_only is False
        assert request.continue_on_error is False
        assert request.create_backup is True

    def test_mixed_operations(self):
        request = DiffRequest.model_validate(
            {
                "id": "wf-1",
                "operations": [
                    {"type": "addTag", "tag": "x"},
                    {"type": "updateName", "name": "y"},
                ],
                "continueOnError": True,
            }
        )

        assert [op.type for op in request.operations] == ["addTag", "updateName"]
        assert request.continue_on_error is True


class TestWorkflow:
    """Tests for the workflow graph model."""

    def test_tag_objects_are_normalized(self):
        workflow = Workflow.model_validate(
            {"name": "x", "tags": [{"id": "1", "name": "prod"}, "beta"]}
        )
        assert workflow.tags == ["prod", "beta"]

    def test_snapshot_uses_platform_field_names(self):
        workflow = Workflow.model_validate(
            {
                "id": "wf-1",
                "name": "x",
                "nodes": [
                    {"id": "n1", "name": "Set", "type": SET, "typeVersion": 3.4, "retryOnFail": True}
                ],
                "connections": {"Set": {"main": [[{"node": "Other", "type": "main", "index": 0}]]}},
                "pinData": {},
            }
        )

        snapshot = workflow.to_snapshot()

        assert snapshot["nodes"][0]["typeVersion"] == 3.4
        assert snapshot["nodes"][0]["retryOnFail"] is True
        assert "credentials" not in snapshot["nodes"][0]
        assert snapshot["connections"]["Set"]["main"][0][0]["node"] == "Other"
        assert snapshot["pinData"] == {}
        assert Workflow.model_validate(snapshot) == workflow

    def test_node_names(self):
        workflow = Workflow.model_validate(
            {"name": "x", "nodes": [{"id": "1", "name": "A", "type": SET}]}
        )
        assert workflow.node_names() == {"A"}


class TestVersionInfo:
    def test_serializes_camel_case(self):
        info = VersionInfo(
            id=1,
            workflow_id="wf-1",
            version_number=1,
            workflow_name="x",
            trigger="partial_update",
            size=10,
            created_at="2024-01-01T00:00:00+00:00",
        )
        dumped = info.model_dump(by_alias=True)

        assert dumped["workflowId"] == "wf-1"
        assert dumped["versionNumber"] == 1
