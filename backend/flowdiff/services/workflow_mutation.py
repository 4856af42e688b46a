"""WorkflowMutationService - Safe partial and full updates of platform workflows.

Pipeline: fetch the live workflow, back it up, apply the diff, validate the
whole graph, push. Nothing reaches the platform unless the result validates
(or validation is explicitly bypassed through configuration).
"""

import logging
from collections import Counter
from typing import Any

import aiosqlite

from flowdiff import config
from flowdiff.db.version_store import VersionStore
from flowdiff.errors import FlowDiffError, StructuralError
from flowdiff.models.operations import (
    DiffOperation,
    DiffRequest,
    MutationResult,
    OperationError,
    OperationType,
)
from flowdiff.models.version import BackupResult, BackupTrigger
from flowdiff.models.workflow import Workflow, WorkflowSummary
from flowdiff.platform.client import PlatformClient
from flowdiff.services.diff_engine import WorkflowDiffEngine
from flowdiff.services.node_capabilities import NodeCapabilities, default_capabilities
from flowdiff.services.structural_validator import (
    build_recovery_guidance,
    validate_workflow_structure,
)

logger = logging.getLogger(__name__)


def infer_intent(operations: list[DiffOperation]) -> str:
    """Describe a batch of operations in a few words."""
    if not operations:
        return "Partial workflow update"

    if len(operations) == 1:
        op = operations[0]
        op_type = OperationType(op.type)
        if op_type == OperationType.ADD_NODE:
            return f"Add {op.node.type}"
        if op_type == OperationType.REMOVE_NODE:
            return f"Remove node {op.node_ref}".strip()
        if op_type == OperationType.UPDATE_NODE:
            return f"Update node {op.node_ref}".strip()
        if op_type == OperationType.ADD_CONNECTION:
            return f"Connect {op.source} to {op.target}"
        if op_type == OperationType.REMOVE_CONNECTION:
            return f"Disconnect {op.source} from {op.target}"
        if op_type == OperationType.REWIRE_CONNECTION:
            return f"Rewire {op.source} from {op.from_node} to {op.to_node}"
        if op_type == OperationType.UPDATE_NAME:
            return f'Rename workflow to "{op.name}"'
        if op_type == OperationType.ACTIVATE_WORKFLOW:
            return "Activate workflow"
        if op_type == OperationType.DEACTIVATE_WORKFLOW:
            return "Deactivate workflow"
        return f"Workflow {op.type}"

    counts = Counter(op.type for op in operations)
    summary = []
    for op_type, verb in (("addNode", "add"), ("removeNode", "remove"), ("updateNode", "update")):
        if counts[op_type]:
            plural = "s" if counts[op_type] > 1 else ""
            summary.append(f"{verb} {counts[op_type]} node{plural}")
    if counts["addConnection"] or counts["rewireConnection"] or counts["removeConnection"]:
        summary.append("modify connections")
    if counts["updateName"] or counts["updateSettings"]:
        summary.append("update metadata")

    if summary:
        return f"Workflow update: {', '.join(summary)}"
    return f"Workflow update: {len(operations)} operations"


class WorkflowMutationService:
    """Orchestrates updates against the platform with backup and validation."""

    def __init__(
        self,
        store: VersionStore,
        platform: PlatformClient,
        capabilities: NodeCapabilities = default_capabilities,
    ):
        self._store = store
        self._platform = platform
        self._capabilities = capabilities
        self._engine = WorkflowDiffEngine(capabilities)

    async def update_partial(self, request: DiffRequest) -> MutationResult:
        """Apply a diff to a live workflow and push the result."""
        workflow_id = request.workflow_id
        intent = request.intent or infer_intent(request.operations)

        try:
            current = await self._platform.get_workflow(workflow_id)
        except FlowDiffError as e:
            return self._failure(workflow_id, e.message, e.code, intent=intent)

        warnings: list[OperationError] = []
        backup = None
        if request.create_backup and not request.validate_only:
            backup = await self._try_backup(
                workflow_id,
                current,
                BackupTrigger.PARTIAL_UPDATE,
                warnings,
                operations=[
                    op.model_dump(mode="json", by_alias=True, exclude_none=True)
                    for op in request.operations
                ],
                metadata={"intent": intent},
            )

        # Always materialise the result; validate-only is enforced here
        diff = self._engine.apply_diff(
            current, request.model_copy(update={"validate_only": False})
        )
        warnings.extend(diff.warnings)

        if not diff.success:
            logger.info(f"Diff for workflow {workflow_id} rejected ({intent}): {diff.message}")
            return MutationResult(
                success=False,
                message=diff.message,
                workflow_id=workflow_id,
                error_code="operation_failed",
                intent=intent,
                validate_only=request.validate_only,
                applied=diff.applied,
                failed=diff.failed,
                errors=diff.errors,
                warnings=warnings,
                backup=backup,
            )

        updated = diff.workflow
        common = {
            "workflow_id": workflow_id,
            "intent": intent,
            "validate_only": request.validate_only,
            "operations_applied": diff.operations_applied,
            "applied": diff.applied,
            "failed": diff.failed,
            "errors": diff.errors,
            "warnings": warnings,
            "backup": backup,
        }

        structural = self._check_structure(updated, warnings)
        if structural is not None:
            return MutationResult(
                success=False,
                message=structural.message,
                error_code=structural.code,
                validation_errors=structural.errors,
                recovery_guidance=structural.recovery_guidance,
                **common,
            )

        if request.validate_only:
            return MutationResult(
                success=True,
                message=f"Validation successful. {diff.operations_applied} operations are "
                "valid and the resulting workflow passes structural validation",
                **common,
            )

        try:
            pushed = await self._platform.update_workflow(workflow_id, updated)
        except FlowDiffError as e:
            logger.error(f"Failed to push workflow {workflow_id}: {e.message}")
            return MutationResult(
                success=False,
                message=f"Failed to update workflow: {e.message}",
                error_code=e.code,
                **common,
            )

        activated = deactivated = False
        try:
            if diff.should_activate:
                pushed = await self._platform.activate_workflow(workflow_id)
                activated = True
            elif diff.should_deactivate:
                pushed = await self._platform.deactivate_workflow(workflow_id)
                deactivated = True
        except FlowDiffError as e:
            action = "activation" if diff.should_activate else "deactivation"
            logger.error(f"Workflow {workflow_id} updated but {action} failed: {e.message}")
            return MutationResult(
                success=False,
                message=f"Workflow updated successfully but {action} failed: {e.message}",
                error_code=e.code,
                workflow=WorkflowSummary.from_workflow(pushed),
                **common,
            )

        logger.info(
            f"Updated workflow {workflow_id} ({intent}): "
            f"{diff.operations_applied}/{len(request.operations)} operations applied"
        )
        message = f"Workflow updated: {diff.message}"
        if activated:
            message += ". Workflow activated"
        elif deactivated:
            message += ". Workflow deactivated"

        return MutationResult(
            success=True,
            message=message,
            workflow=WorkflowSummary.from_workflow(pushed),
            activated=activated,
            deactivated=deactivated,
            **common,
        )

    async def update_full(
        self,
        workflow_id: str,
        workflow: Workflow,
        create_backup: bool = True,
        intent: str | None = None,
    ) -> MutationResult:
        """Replace a workflow wholesale through the same backup/validate/push path."""
        intent = intent or "Full workflow update"

        try:
            current = await self._platform.get_workflow(workflow_id)
        except FlowDiffError as e:
            return self._failure(workflow_id, e.message, e.code, intent=intent)

        warnings: list[OperationError] = []
        backup = None
        if create_backup:
            backup = await self._try_backup(
                workflow_id,
                current,
                BackupTrigger.FULL_UPDATE,
                warnings,
                metadata={"intent": intent},
            )

        replacement = workflow.model_copy(update={"id": workflow_id})
        structural = self._check_structure(replacement, warnings)
        if structural is not None:
            return MutationResult(
                success=False,
                message=structural.message,
                workflow_id=workflow_id,
                error_code=structural.code,
                intent=intent,
                warnings=warnings,
                validation_errors=structural.errors,
                recovery_guidance=structural.recovery_guidance,
                backup=backup,
            )

        try:
            pushed = await self._platform.update_workflow(workflow_id, replacement)
        except FlowDiffError as e:
            logger.error(f"Failed to push workflow {workflow_id}: {e.message}")
            return self._failure(
                workflow_id, f"Failed to update workflow: {e.message}", e.code,
                intent=intent, warnings=warnings, backup=backup,
            )

        logger.info(f"Replaced workflow {workflow_id} ({intent})")
        return MutationResult(
            success=True,
            message=f'Workflow "{pushed.name}" updated successfully',
            workflow_id=workflow_id,
            workflow=WorkflowSummary.from_workflow(pushed),
            intent=intent,
            warnings=warnings,
            backup=backup,
        )

    # ==================== Helpers ====================

    async def _try_backup(
        self,
        workflow_id: str,
        workflow: Workflow,
        trigger: BackupTrigger,
        warnings: list[OperationError],
        operations: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BackupResult | None:
        """Back up ``workflow``; a failure is reported as a warning, not an error."""
        try:
            return await self._store.create_backup(
                workflow_id, workflow, trigger=trigger, operations=operations, metadata=metadata
            )
        except (FlowDiffError, aiosqlite.Error) as e:
            logger.warning(f"Failed to create backup for workflow {workflow_id}: {e}")
            warnings.append(
                OperationError(operation=-1, message=f"Backup not created: {e}")
            )
            return None

    def _check_structure(
        self, workflow: Workflow, warnings: list[OperationError]
    ) -> StructuralError | None:
        """Return the blocking StructuralError, or None if the push may proceed."""
        errors = validate_workflow_structure(workflow, self._capabilities)
        if not errors:
            return None

        if config.skip_workflow_validation():
            logger.warning(
                f"SKIP_WORKFLOW_VALIDATION is set: pushing workflow {workflow.id} despite "
                f"{len(errors)} structural error(s)"
            )
            warnings.extend(
                OperationError(operation=-1, message=f"Validation bypassed: {error}")
                for error in errors
            )
            return None

        logger.warning(
            f"Workflow {workflow.id} failed structural validation: {len(errors)} error(s)"
        )
        return StructuralError(errors, build_recovery_guidance(errors))

    def _failure(
        self, workflow_id: str, message: str, code: str, **kwargs: Any
    ) -> MutationResult:
        return MutationResult(
            success=False, message=message, workflow_id=workflow_id, error_code=code, **kwargs
        )
