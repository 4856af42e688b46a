"""Pydantic models for workflow version history (backups, restore, stats)."""

from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field as PydanticField

from flowdiff.models.workflow import Workflow


class BackupTrigger(str, Enum):
    """What caused a backup to be taken."""

    PARTIAL_UPDATE = "partial_update"
    FULL_UPDATE = "full_update"
    AUTOFIX = "autofix"


class WorkflowVersion(BaseModel):
    """An immutable full snapshot of a workflow."""

    id: int
    workflow_id: str = PydanticField(alias="workflowId")
    version_number: int = PydanticField(alias="versionNumber")
    workflow_name: str = PydanticField(alias="workflowName")
    workflow_snapshot: Workflow = PydanticField(alias="workflowSnapshot")
    trigger: BackupTrigger
    operations: list[dict[str, Any]] | None = None
    fix_types: list[str] | None = PydanticField(default=None, alias="fixTypes")
    metadata: dict[str, Any] | None = None
    created_at: str = PydanticField(alias="createdAt")

    model_config = {"populate_by_name": True}


class VersionInfo(BaseModel):
    """A version history entry without the snapshot body."""

    id: int
    workflow_id: str = PydanticField(alias="workflowId")
    version_number: int = PydanticField(alias="versionNumber")
    workflow_name: str = PydanticField(alias="workflowName")
    trigger: BackupTrigger
    operation_count: int | None = PydanticField(default=None, alias="operationCount")
    fix_types_applied: list[str] | None = PydanticField(default=None, alias="fixTypesApplied")
    created_at: str = PydanticField(alias="createdAt")
    size: int  # serialized snapshot length

    model_config = {"populate_by_name": True}


class BackupResult(BaseModel):
    version_id: int = PydanticField(alias="versionId")
    version_number: int = PydanticField(alias="versionNumber")
    pruned: int
    message: str

    model_config = {"populate_by_name": True}


class DeleteResult(BaseModel):
    success: bool = True
    deleted: int
    message: str


class PruneResult(BaseModel):
    pruned: int
    remaining: int


class SettingChange(BaseModel):
    before: Any = None
    after: Any = None


class VersionDiff(BaseModel):
    """Structural comparison of two snapshots."""

    version_id1: int = PydanticField(alias="versionId1")
    version_id2: int = PydanticField(alias="versionId2")
    version1_number: int = PydanticField(alias="version1Number")
    version2_number: int = PydanticField(alias="version2Number")
    added_nodes: list[str] = PydanticField(default=[], alias="addedNodes")
    removed_nodes: list[str] = PydanticField(default=[], alias="removedNodes")
    modified_nodes: list[str] = PydanticField(default=[], alias="modifiedNodes")
    connections_changed: bool = PydanticField(default=False, alias="connectionsChanged")
    setting_changes: dict[str, SettingChange] = PydanticField(
        default={}, alias="settingChanges"
    )

    model_config = {"populate_by_name": True}


class WorkflowStorageInfo(BaseModel):
    workflow_id: str = PydanticField(alias="workflowId")
    workflow_name: str = PydanticField(alias="workflowName")
    version_count: int = PydanticField(alias="versionCount")
    total_size: int = PydanticField(alias="totalSize")
    total_size_formatted: str = PydanticField(alias="totalSizeFormatted")
    last_backup: str | None = PydanticField(default=None, alias="lastBackup")

    model_config = {"populate_by_name": True}


class StorageStats(BaseModel):
    total_versions: int = PydanticField(alias="totalVersions")
    total_size: int = PydanticField(alias="totalSize")
    total_size_formatted: str = PydanticField(alias="totalSizeFormatted")
    by_workflow: list[WorkflowStorageInfo] = PydanticField(default=[], alias="byWorkflow")

    model_config = {"populate_by_name": True}


class RestoreStatus(str, Enum):
    """Terminal states of a restore attempt."""

    RESTORED = "restored"
    NOT_FOUND = "not_found"
    REJECTED_BY_VALIDATION = "rejected_by_validation"
    BACKUP_FAILED = "backup_failed"
    FAILED_TO_PUSH = "failed_to_push"


class RestoreResult(BaseModel):
    success: bool
    status: RestoreStatus
    message: str
    workflow_id: str = PydanticField(alias="workflowId")
    to_version_id: int | None = PydanticField(default=None, alias="toVersionId")
    to_version_number: int | None = PydanticField(default=None, alias="toVersionNumber")
    backup_created: bool = PydanticField(default=False, alias="backupCreated")
    backup_version_id: int | None = PydanticField(default=None, alias="backupVersionId")
    backup_version_number: int | None = PydanticField(
        default=None, alias="backupVersionNumber"
    )
    validation_errors: list[str] = PydanticField(default=[], alias="validationErrors")

    model_config = {"populate_by_name": True}
