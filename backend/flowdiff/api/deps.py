"""Shared helpers for API routes."""

from fastapi import HTTPException

from flowdiff.db import version_store
from flowdiff.platform.client import PlatformClient, get_platform_client
from flowdiff.services import RestoreCoordinator, WorkflowMutationService

# error code -> HTTP status for failed result models
_STATUS_BY_CODE = {
    "not_found": 404,
    "validation_error": 400,
    "duplicate_name": 409,
    "operation_failed": 400,
    "structural_error": 422,
    "confirmation_required": 400,
}


def require_platform() -> PlatformClient:
    platform = get_platform_client()
    if platform is None:
        raise HTTPException(
            status_code=503,
            detail="Workflow platform not configured. Set N8N_API_URL and N8N_API_KEY.",
        )
    return platform


def mutation_service() -> WorkflowMutationService:
    return WorkflowMutationService(version_store, require_platform())


def restore_coordinator() -> RestoreCoordinator:
    return RestoreCoordinator(version_store, require_platform())


def status_for(code: str | None) -> int:
    """Upstream and unknown failures surface as 502."""
    return _STATUS_BY_CODE.get(code or "", 502)
