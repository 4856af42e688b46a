"""Tests for batch diff application."""

from conftest import IF, SET, WEBHOOK, diff_request

from flowdiff.services.diff_engine import WorkflowDiffEngine


class TestAtomicMode:
    """Tests for the default all-or-nothing mode."""

    def test_applies_all_operations(self, simple_workflow):
        request = diff_request(
            [
                {"type": "addNode", "node": {"name": "Set", "type": SET}},
                {"type": "addConnection", "source": "HTTP Request", "target": "Set"},
                {"type": "addTag", "tag": "edited"},
            ]
        )
        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.success is True
        assert result.operations_applied == 3
        assert result.applied == [0, 1, 2]
        assert result.failed == []
        assert "Set" in result.workflow.node_names()
        assert result.workflow.tags == ["edited"]

    def test_input_workflow_never_modified(self, simple_workflow):
        before = simple_workflow.model_dump_json()
        request = diff_request([{"type": "updateName", "name": "Changed"}])

        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.workflow.name == "Changed"
        assert simple_workflow.model_dump_json() == before

    def test_failure_returns_original_workflow(self, fan_in_workflow):
        before = fan_in_workflow.model_dump_json()
        request = diff_request(
            [
                {"type": "updateName", "name": "Changed"},
                {"type": "addNode", "node": {"name": "Set2", "type": SET}},
                {"type": "addTag", "tag": "never"},
            ]
        )

        result = WorkflowDiffEngine().apply_diff(fan_in_workflow, request)

        assert result.success is False
        assert result.failed == [1]
        assert result.applied == []
        assert result.errors[0].operation == 1
        assert result.errors[0].error_type == "duplicate_name"
        assert result.workflow.model_dump_json() == before

    def test_operations_apply_in_order(self, simple_workflow):
        # Connecting before the node exists fails: no reordering happens
        request = diff_request(
            [
                {"type": "addConnection", "source": "HTTP Request", "target": "Set"},
                {"type": "addNode", "node": {"name": "Set", "type": SET}},
            ]
        )
        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.success is False
        assert result.failed == [0]
        assert result.errors[0].error_type == "not_found"


class TestBestEffortMode:
    """Tests for continueOnError."""

    def test_records_failures_and_continues(self, fan_in_workflow):
        request = diff_request(
            [
                {"type": "addNode", "node": {"name": "Set2", "type": SET}},
                {"type": "addTag", "tag": "kept"},
                {"type": "removeNode", "nodeName": "Ghost"},
            ],
            continueOnError=True,
        )
        result = WorkflowDiffEngine().apply_diff(fan_in_workflow, request)

        assert result.success is True
        assert result.applied == [1]
        assert result.failed == [0, 2]
        assert [e.operation for e in result.errors] == [0, 2]
        assert result.workflow.tags == ["kept"]
        assert "1 of 3" in result.message

    def test_all_failed(self, simple_workflow):
        request = diff_request(
            [{"type": "removeNode", "nodeName": "Ghost"}], continueOnError=True
        )
        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.success is False
        assert result.failed == [0]


class TestValidateOnly:
    """Tests for dry-run validation."""

    def test_no_workflow_returned(self, simple_workflow):
        request = diff_request([{"type": "updateName", "name": "X"}], validateOnly=True)
        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.success is True
        assert result.workflow is None
        assert result.operations_applied == 1
        assert simple_workflow.name == "Test Workflow"

    def test_invalid_operation_reported(self, simple_workflow):
        request = diff_request([{"type": "removeNode", "nodeName": "Ghost"}], validateOnly=True)
        result = WorkflowDiffEngine().apply_diff(simple_workflow, request)

        assert result.success is False
        assert result.workflow is None


class TestWarningsAndFlags:
    def test_warnings_carry_operation_index(self, workflow_factory):
        workflow = workflow_factory(
            [("Webhook", WEBHOOK), ("Check", IF), ("Yes", SET)], [("Webhook", "Check")]
        )
        request = diff_request(
            [
                {"type": "addTag", "tag": "t"},
                {"type": "addConnection", "source": "Check", "target": "Yes", "sourceIndex": 0},
            ]
        )
        result = WorkflowDiffEngine().apply_diff(workflow, request)

        assert result.success is True
        assert len(result.warnings) == 1
        assert result.warnings[0].operation == 1
        assert 'branch="true"' in result.warnings[0].message

    def test_activation_flag(self, simple_workflow):
        result = WorkflowDiffEngine().apply_diff(
            simple_workflow, diff_request([{"type": "activateWorkflow"}])
        )
        assert result.should_activate is True
        assert result.should_deactivate is False
