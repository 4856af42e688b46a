"""Error taxonomy for workflow mutation and version management."""

from typing import Any


class FlowDiffError(Exception):
    """Base exception for all mutation engine errors."""

    code = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FlowDiffError):
    """An operation's input is malformed or not applicable."""

    code = "validation_error"


class DuplicateNameError(FlowDiffError):
    """A node with the same (normalized) name already exists."""

    code = "duplicate_name"


class NotFoundError(FlowDiffError):
    """A node, connection, version or workflow could not be found."""

    code = "not_found"


class StructuralError(FlowDiffError):
    """The workflow as a whole violates one or more graph invariants."""

    code = "structural_error"

    def __init__(self, errors: list[str], recovery_guidance: list[str] | None = None):
        if len(errors) == 1:
            message = f"Workflow validation failed: {errors[0]}"
        else:
            message = f"Workflow validation failed with {len(errors)} structural issues"
        super().__init__(message, {"errors": errors})
        self.errors = errors
        self.recovery_guidance = recovery_guidance or []


class ConfirmationRequiredError(FlowDiffError):
    """A destructive bulk operation was requested without explicit confirmation."""

    code = "confirmation_required"


class UpstreamError(FlowDiffError):
    """A call to the external workflow platform failed."""

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        if code:
            self.code = code
