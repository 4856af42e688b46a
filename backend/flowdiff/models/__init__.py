"""Pydantic models for workflow graphs, diff operations and version history."""

from flowdiff.models.operations import (
    ActivateWorkflowOperation,
    AddConnectionOperation,
    AddNodeOperation,
    AddTagOperation,
    CleanStaleConnectionsOperation,
    DeactivateWorkflowOperation,
    DiffOperation,
    DiffRequest,
    DiffResult,
    DisableNodeOperation,
    EnableNodeOperation,
    MoveNodeOperation,
    MutationResult,
    NodeSpec,
    OperationError,
    OperationType,
    RemoveConnectionOperation,
    RemoveNodeOperation,
    RemoveTagOperation,
    ReplaceConnectionsOperation,
    RewireConnectionOperation,
    UpdateNameOperation,
    UpdateNodeOperation,
    UpdateSettingsOperation,
)
from flowdiff.models.version import (
    BackupResult,
    BackupTrigger,
    DeleteResult,
    PruneResult,
    RestoreResult,
    RestoreStatus,
    SettingChange,
    StorageStats,
    VersionDiff,
    VersionInfo,
    WorkflowStorageInfo,
    WorkflowVersion,
)
from flowdiff.models.workflow import (
    MAIN_OUTPUT,
    ConnectionTarget,
    Connections,
    Node,
    Workflow,
    WorkflowSummary,
)

__all__ = [
    # Graph
    "Workflow",
    "WorkflowSummary",
    "Node",
    "ConnectionTarget",
    "Connections",
    "MAIN_OUTPUT",
    # Operations
    "DiffOperation",
    "OperationType",
    "NodeSpec",
    "AddNodeOperation",
    "RemoveNodeOperation",
    "UpdateNodeOperation",
    "MoveNodeOperation",
    "EnableNodeOperation",
    "DisableNodeOperation",
    "AddConnectionOperation",
    "RemoveConnectionOperation",
    "RewireConnectionOperation",
    "ReplaceConnectionsOperation",
    "CleanStaleConnectionsOperation",
    "UpdateSettingsOperation",
    "UpdateNameOperation",
    "AddTagOperation",
    "RemoveTagOperation",
    "ActivateWorkflowOperation",
    "DeactivateWorkflowOperation",
    "DiffRequest",
    "DiffResult",
    "OperationError",
    "MutationResult",
    # Versions
    "BackupTrigger",
    "WorkflowVersion",
    "VersionInfo",
    "BackupResult",
    "DeleteResult",
    "PruneResult",
    "VersionDiff",
    "StorageStats",
    "WorkflowStorageInfo",
    "RestoreResult",
    "RestoreStatus",
    "SettingChange",
]
