"""WorkflowDiffEngine - Applies an ordered batch of diff operations.

Two modes:
- atomic (default): the first failing operation aborts the batch and the
  caller gets the original workflow back, untouched.
- best-effort (``continueOnError``): failures are recorded per operation and
  the rest of the batch still applies.
"""

import logging

from flowdiff.errors import FlowDiffError
from flowdiff.models.operations import DiffRequest, DiffResult, OperationError
from flowdiff.models.workflow import Workflow
from flowdiff.services.graph_editor import GraphEditor
from flowdiff.services.node_capabilities import NodeCapabilities, default_capabilities

logger = logging.getLogger(__name__)


class WorkflowDiffEngine:
    """Applies DiffRequests to in-memory workflow copies."""

    def __init__(self, capabilities: NodeCapabilities = default_capabilities):
        self._capabilities = capabilities

    def apply_diff(self, workflow: Workflow, request: DiffRequest) -> DiffResult:
        """Apply ``request.operations`` in order to a deep copy of ``workflow``.

        The input workflow is never modified.
        """
        editor = GraphEditor(workflow.model_copy(deep=True), self._capabilities)
        applied: list[int] = []
        failed: list[int] = []
        errors: list[OperationError] = []
        warnings: list[OperationError] = []

        for index, operation in enumerate(request.operations):
            try:
                editor.apply(operation)
            except FlowDiffError as e:
                logger.debug(f"Operation {index} ({operation.type}) failed: {e.message}")
                warnings.extend(
                    OperationError(operation=index, message=w) for w in editor.pop_warnings()
                )
                errors.append(
                    OperationError(operation=index, message=e.message, error_type=e.code)
                )
                if not request.continue_on_error:
                    return DiffResult(
                        success=False,
                        message=f"Operation {index} ({operation.type}) failed: {e.message}",
                        workflow=None if request.validate_only else workflow,
                        applied=[],
                        failed=[index],
                        errors=errors,
                        warnings=warnings,
                    )
                failed.append(index)
                continue

            applied.append(index)
            warnings.extend(
                OperationError(operation=index, message=w) for w in editor.pop_warnings()
            )

        total = len(request.operations)
        success = bool(applied) or total == 0

        if request.continue_on_error and failed:
            message = f"Applied {len(applied)} of {total} operations ({len(failed)} failed)"
        else:
            message = f"Successfully applied {len(applied)} operations"

        if request.validate_only:
            return DiffResult(
                success=success,
                message=(
                    f"Validation successful. {len(applied)} operations are valid"
                    if success and not failed
                    else f"Validation found {len(failed)} invalid operation(s)"
                ),
                workflow=None,
                operations_applied=len(applied),
                applied=applied,
                failed=failed,
                errors=errors,
                warnings=warnings,
            )

        return DiffResult(
            success=success,
            message=message if success else f"All {total} operations failed",
            workflow=editor.workflow,
            operations_applied=len(applied),
            applied=applied,
            failed=failed,
            errors=errors,
            warnings=warnings,
            should_activate=editor.should_activate,
            should_deactivate=editor.should_deactivate,
        )
