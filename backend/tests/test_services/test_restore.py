"""Tests for the restore coordinator."""

import pytest
from conftest import MERGE, build_workflow, diff_request

from flowdiff.db.version_store import VersionStore
from flowdiff.models import RestoreStatus
from flowdiff.services.restore import RestoreCoordinator
from flowdiff.services.workflow_mutation import WorkflowMutationService


@pytest.fixture
def store() -> VersionStore:
    return VersionStore(max_versions=10)


@pytest.fixture
def coordinator(store, platform) -> RestoreCoordinator:
    return RestoreCoordinator(store, platform)


class TestRestoreVersion:
    """Tests for the restore state machine."""

    @pytest.mark.asyncio
    async def test_restore_latest(self, store, platform, coordinator, simple_workflow):
        await store.create_backup("wf-1", simple_workflow)
        changed = simple_workflow.model_copy(update={"name": "Changed"})
        platform.add(changed)

        result = await coordinator.restore_version("wf-1")

        assert result.success is True
        assert result.status == RestoreStatus.RESTORED
        assert result.to_version_number == 1
        assert result.backup_created is True
        assert result.backup_version_number == 2
        assert platform.workflows["wf-1"].name == "Test Workflow"

        safety = await store.get_version(result.backup_version_id)
        assert safety.workflow_name == "Changed"
        assert safety.metadata == {"reason": "Backup before rollback", "restoringToVersion": 1}

    @pytest.mark.asyncio
    async def test_round_trip_after_mutation(self, store, platform, simple_workflow):
        platform.add(simple_workflow)
        service = WorkflowMutationService(store, platform)

        mutated = await service.update_partial(
            diff_request(
                [
                    {"type": "addNode", "node": {"name": "Set", "type": "n8n-nodes-base.set"}},
                    {"type": "addConnection", "source": "HTTP Request", "target": "Set"},
                    {"type": "updateSettings", "settings": {"timezone": "UTC"}},
                ]
            )
        )
        assert mutated.success is True
        assert "Set" in platform.workflows["wf-1"].node_names()

        result = await RestoreCoordinator(store, platform).restore_version(
            "wf-1", version_id=mutated.backup.version_id
        )

        assert result.success is True
        restored = platform.workflows["wf-1"]
        assert restored.nodes == simple_workflow.nodes
        assert restored.connections == simple_workflow.connections
        assert restored.settings == simple_workflow.settings

    @pytest.mark.asyncio
    async def test_no_versions(self, coordinator, platform, simple_workflow):
        platform.add(simple_workflow)
        result = await coordinator.restore_version("wf-1")

        assert result.success is False
        assert result.status == RestoreStatus.NOT_FOUND
        assert platform.updates == []

    @pytest.mark.asyncio
    async def test_version_of_other_workflow_not_found(
        self, store, coordinator, platform, simple_workflow
    ):
        other = await store.create_backup("wf-2", simple_workflow)
        platform.add(simple_workflow)

        result = await coordinator.restore_version("wf-1", version_id=other.version_id)

        assert result.status == RestoreStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalid_snapshot_rejected(self, store, coordinator, platform, simple_workflow):
        broken = build_workflow([("Merge", MERGE)])
        backup = await store.create_backup("wf-1", broken)
        platform.add(simple_workflow)

        result = await coordinator.restore_version("wf-1", version_id=backup.version_id)

        assert result.success is False
        assert result.status == RestoreStatus.REJECTED_BY_VALIDATION
        assert any("Single non-webhook node" in e for e in result.validation_errors)
        assert platform.updates == []
        # No safety backup either: nothing was about to change
        assert len(await store.get_version_history("wf-1")) == 1

    @pytest.mark.asyncio
    async def test_skip_validation(self, store, coordinator, platform, simple_workflow):
        broken = build_workflow([("Merge", MERGE)])
        backup = await store.create_backup("wf-1", broken)
        platform.add(simple_workflow)

        result = await coordinator.restore_version(
            "wf-1", version_id=backup.version_id, validate_before=False
        )

        assert result.status == RestoreStatus.RESTORED
        assert platform.workflows["wf-1"].node_names() == {"Merge"}

    @pytest.mark.asyncio
    async def test_backup_failure_aborts(self, store, coordinator, platform, simple_workflow):
        await store.create_backup("wf-1", simple_workflow)
        platform.add(simple_workflow)
        platform.fail_get = True

        result = await coordinator.restore_version("wf-1")

        assert result.success is False
        assert result.status == RestoreStatus.BACKUP_FAILED
        assert result.backup_created is False
        assert platform.updates == []

    @pytest.mark.asyncio
    async def test_push_failure_reports_backup(self, store, coordinator, platform, simple_workflow):
        await store.create_backup("wf-1", simple_workflow)
        platform.add(simple_workflow)
        platform.fail_update = True

        result = await coordinator.restore_version("wf-1")

        assert result.success is False
        assert result.status == RestoreStatus.FAILED_TO_PUSH
        assert result.backup_created is True
        assert await store.get_version(result.backup_version_id) is not None
