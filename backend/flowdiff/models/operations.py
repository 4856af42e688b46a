"""Diff operation models.

A diff is an ordered list of small, typed operations. Each operation is an
immutable value object tagged by its ``type`` field; the union below is the
closed set the diff engine knows how to apply.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel
from pydantic import Field as PydanticField

from flowdiff.models.version import BackupResult
from flowdiff.models.workflow import Connections, Workflow, WorkflowSummary

_OPERATION_CONFIG = {"populate_by_name": True, "frozen": True}


class OperationType(str, Enum):
    """All supported diff operation kinds."""

    ADD_NODE = "addNode"
    REMOVE_NODE = "removeNode"
    UPDATE_NODE = "updateNode"
    MOVE_NODE = "moveNode"
    ENABLE_NODE = "enableNode"
    DISABLE_NODE = "disableNode"
    ADD_CONNECTION = "addConnection"
    REMOVE_CONNECTION = "removeConnection"
    REPLACE_CONNECTIONS = "replaceConnections"
    REWIRE_CONNECTION = "rewireConnection"
    CLEAN_STALE_CONNECTIONS = "cleanStaleConnections"
    UPDATE_SETTINGS = "updateSettings"
    UPDATE_NAME = "updateName"
    ADD_TAG = "addTag"
    REMOVE_TAG = "removeTag"
    ACTIVATE_WORKFLOW = "activateWorkflow"
    DEACTIVATE_WORKFLOW = "deactivateWorkflow"


# Upper bound for output and input slot indices
MAX_CONNECTION_INDEX = 255


# =============================================================================
# Node operations
# =============================================================================


class NodeSpec(BaseModel):
    """A node as supplied by an addNode operation; id is assigned if omitted."""

    id: str | None = None
    name: str
    type: str
    type_version: float = PydanticField(default=1, alias="typeVersion")
    position: list[float] = PydanticField(default_factory=lambda: [0, 0])
    parameters: dict[str, Any] = PydanticField(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None

    model_config = {"populate_by_name": True, "frozen": True, "extra": "allow"}


class NodeTargetMixin(BaseModel):
    """Shared fields for operations that target an existing node."""

    node_id: str | None = PydanticField(default=None, alias="nodeId")
    node_name: str | None = PydanticField(default=None, alias="nodeName")

    @property
    def node_ref(self) -> str:
        return self.node_name or self.node_id or ""


class AddNodeOperation(BaseModel):
    type: Literal["addNode"] = "addNode"
    description: str | None = None
    node: NodeSpec

    model_config = _OPERATION_CONFIG


class RemoveNodeOperation(NodeTargetMixin):
    type: Literal["removeNode"] = "removeNode"
    description: str | None = None

    model_config = _OPERATION_CONFIG


class UpdateNodeOperation(NodeTargetMixin):
    """Partial update keyed by dotted path, e.g. ``{"parameters.url": "..."}``."""

    type: Literal["updateNode"] = "updateNode"
    description: str | None = None
    updates: dict[str, Any]

    model_config = _OPERATION_CONFIG


class MoveNodeOperation(NodeTargetMixin):
    type: Literal["moveNode"] = "moveNode"
    description: str | None = None
    position: tuple[float, float]

    model_config = _OPERATION_CONFIG


class EnableNodeOperation(NodeTargetMixin):
    type: Literal["enableNode"] = "enableNode"
    description: str | None = None

    model_config = _OPERATION_CONFIG


class DisableNodeOperation(NodeTargetMixin):
    type: Literal["disableNode"] = "disableNode"
    description: str | None = None

    model_config = _OPERATION_CONFIG


# =============================================================================
# Connection operations
# =============================================================================


class AddConnectionOperation(BaseModel):
    """Connect ``source`` to ``target`` (both node names).

    ``branch`` and ``case`` are shorthands for the output index of If and
    Switch nodes; an explicit ``sourceIndex`` always wins.
    """

    type: Literal["addConnection"] = "addConnection"
    description: str | None = None
    source: str
    target: str
    source_output: str | None = PydanticField(default=None, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    source_index: int | None = PydanticField(
        default=None, alias="sourceIndex", ge=0, le=MAX_CONNECTION_INDEX
    )
    target_index: int | None = PydanticField(
        default=None, alias="targetIndex", ge=0, le=MAX_CONNECTION_INDEX
    )
    branch: Literal["true", "false"] | None = None
    case: int | None = PydanticField(default=None, ge=0, le=MAX_CONNECTION_INDEX)

    model_config = _OPERATION_CONFIG


class RemoveConnectionOperation(BaseModel):
    type: Literal["removeConnection"] = "removeConnection"
    description: str | None = None
    source: str
    target: str
    source_output: str | None = PydanticField(default=None, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    ignore_errors: bool = PydanticField(default=False, alias="ignoreErrors")

    model_config = _OPERATION_CONFIG


class RewireConnectionOperation(BaseModel):
    """Move the edge ``source -> from`` so it points at ``to`` instead."""

    type: Literal["rewireConnection"] = "rewireConnection"
    description: str | None = None
    source: str
    from_node: str = PydanticField(alias="from")
    to_node: str = PydanticField(alias="to")
    source_output: str | None = PydanticField(default=None, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    source_index: int | None = PydanticField(
        default=None, alias="sourceIndex", ge=0, le=MAX_CONNECTION_INDEX
    )
    branch: Literal["true", "false"] | None = None
    case: int | None = PydanticField(default=None, ge=0, le=MAX_CONNECTION_INDEX)

    model_config = _OPERATION_CONFIG


class ReplaceConnectionsOperation(BaseModel):
    type: Literal["replaceConnections"] = "replaceConnections"
    description: str | None = None
    connections: Connections

    model_config = _OPERATION_CONFIG


class CleanStaleConnectionsOperation(BaseModel):
    type: Literal["cleanStaleConnections"] = "cleanStaleConnections"
    description: str | None = None
    dry_run: bool = PydanticField(default=False, alias="dryRun")

    model_config = _OPERATION_CONFIG


# =============================================================================
# Metadata operations
# =============================================================================


class UpdateSettingsOperation(BaseModel):
    type: Literal["updateSettings"] = "updateSettings"
    description: str | None = None
    settings: dict[str, Any]

    model_config = _OPERATION_CONFIG


class UpdateNameOperation(BaseModel):
    type: Literal["updateName"] = "updateName"
    description: str | None = None
    name: str = PydanticField(min_length=1)

    model_config = _OPERATION_CONFIG


class AddTagOperation(BaseModel):
    type: Literal["addTag"] = "addTag"
    description: str | None = None
    tag: str = PydanticField(min_length=1)

    model_config = _OPERATION_CONFIG


class RemoveTagOperation(BaseModel):
    type: Literal["removeTag"] = "removeTag"
    description: str | None = None
    tag: str

    model_config = _OPERATION_CONFIG


class ActivateWorkflowOperation(BaseModel):
    type: Literal["activateWorkflow"] = "activateWorkflow"
    description: str | None = None

    model_config = _OPERATION_CONFIG


class DeactivateWorkflowOperation(BaseModel):
    type: Literal["deactivateWorkflow"] = "deactivateWorkflow"
    description: str | None = None

    model_config = _OPERATION_CONFIG


DiffOperation = Annotated[
    AddNodeOperation
    | RemoveNodeOperation
    | UpdateNodeOperation
    | MoveNodeOperation
    | EnableNodeOperation
    | DisableNodeOperation
    | AddConnectionOperation
    | RemoveConnectionOperation
    | RewireConnectionOperation
    | ReplaceConnectionsOperation
    | CleanStaleConnectionsOperation
    | UpdateSettingsOperation
    | UpdateNameOperation
    | AddTagOperation
    | RemoveTagOperation
    | ActivateWorkflowOperation
    | DeactivateWorkflowOperation,
    PydanticField(discriminator="type"),
]


# =============================================================================
# Requests and results
# =============================================================================


class DiffRequest(BaseModel):
    """An ordered batch of operations against one workflow."""

    workflow_id: str = PydanticField(alias="id")
    operations: list[DiffOperation]
    validate_only: bool = PydanticField(default=False, alias="validateOnly")
    continue_on_error: bool = PydanticField(default=False, alias="continueOnError")
    create_backup: bool = PydanticField(default=True, alias="createBackup")
    intent: str | None = None

    model_config = {"populate_by_name": True}


class OperationError(BaseModel):
    """A failure (or warning) attached to one operation by index.

    ``operation`` is -1 when the message is not tied to a single operation.
    """

    operation: int
    message: str
    error_type: str | None = PydanticField(default=None, alias="errorType")

    model_config = {"populate_by_name": True}


class DiffResult(BaseModel):
    """Outcome of applying a DiffRequest to a workflow copy."""

    success: bool
    message: str = ""
    workflow: Workflow | None = None
    operations_applied: int = PydanticField(default=0, alias="operationsApplied")
    applied: list[int] = []
    failed: list[int] = []
    errors: list[OperationError] = []
    warnings: list[OperationError] = []
    should_activate: bool = PydanticField(default=False, alias="shouldActivate")
    should_deactivate: bool = PydanticField(default=False, alias="shouldDeactivate")

    model_config = {"populate_by_name": True}


class MutationResult(BaseModel):
    """Outcome of a fetch, backup, apply, validate and push cycle."""

    success: bool
    message: str
    workflow_id: str = PydanticField(alias="workflowId")
    workflow: WorkflowSummary | None = None
    error_code: str | None = PydanticField(default=None, alias="errorCode")
    intent: str | None = None
    validate_only: bool = PydanticField(default=False, alias="validateOnly")
    operations_applied: int = PydanticField(default=0, alias="operationsApplied")
    applied: list[int] = []
    failed: list[int] = []
    errors: list[OperationError] = []
    warnings: list[OperationError] = []
    validation_errors: list[str] = PydanticField(default=[], alias="validationErrors")
    recovery_guidance: list[str] = PydanticField(default=[], alias="recoveryGuidance")
    backup: BackupResult | None = None
    activated: bool = False
    deactivated: bool = False

    model_config = {"populate_by_name": True}
