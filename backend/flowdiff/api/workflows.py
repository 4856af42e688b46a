"""Workflow mutation, backup and restore routes."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from pydantic import Field as PydanticField

from flowdiff import config
from flowdiff.api.deps import mutation_service, require_platform, restore_coordinator, status_for
from flowdiff.db import version_store
from flowdiff.errors import FlowDiffError
from flowdiff.models import (
    BackupResult,
    BackupTrigger,
    DeleteResult,
    DiffOperation,
    DiffRequest,
    MutationResult,
    PruneResult,
    RestoreResult,
    RestoreStatus,
    VersionInfo,
    Workflow,
)

router = APIRouter()


class DiffBody(BaseModel):
    """Request body for a partial update; the workflow id comes from the path."""

    operations: list[DiffOperation]
    validate_only: bool = PydanticField(default=False, alias="validateOnly")
    continue_on_error: bool = PydanticField(default=False, alias="continueOnError")
    create_backup: bool = PydanticField(default=True, alias="createBackup")
    intent: str | None = None

    model_config = {"populate_by_name": True}


class FullUpdateBody(BaseModel):
    workflow: Workflow
    create_backup: bool = PydanticField(default=True, alias="createBackup")
    intent: str | None = None

    model_config = {"populate_by_name": True}


class BackupBody(BaseModel):
    trigger: BackupTrigger = BackupTrigger.PARTIAL_UPDATE
    metadata: dict[str, Any] | None = None


class RestoreBody(BaseModel):
    version_id: int | None = PydanticField(default=None, alias="versionId")
    validate_before: bool = PydanticField(default=True, alias="validateBefore")

    model_config = {"populate_by_name": True}


def _raise_for_mutation(result: MutationResult) -> MutationResult:
    if not result.success:
        raise HTTPException(
            status_code=status_for(result.error_code),
            detail=result.model_dump(mode="json", by_alias=True),
        )
    return result


# ==================== Mutations ====================


@router.post("/workflows/{workflow_id}/diff", response_model=MutationResult)
async def update_partial_workflow(workflow_id: str, body: DiffBody) -> MutationResult:
    """Apply diff operations to a workflow and push the validated result."""
    request = DiffRequest(
        workflow_id=workflow_id,
        operations=body.operations,
        validate_only=body.validate_only,
        continue_on_error=body.continue_on_error,
        create_backup=body.create_backup,
        intent=body.intent,
    )
    result = await mutation_service().update_partial(request)
    return _raise_for_mutation(result)


@router.put("/workflows/{workflow_id}", response_model=MutationResult)
async def update_full_workflow(workflow_id: str, body: FullUpdateBody) -> MutationResult:
    """Replace a workflow wholesale."""
    result = await mutation_service().update_full(
        workflow_id, body.workflow, create_backup=body.create_backup, intent=body.intent
    )
    return _raise_for_mutation(result)


# ==================== Versions ====================


@router.post("/workflows/{workflow_id}/backups", response_model=BackupResult)
async def create_backup(workflow_id: str, body: BackupBody | None = None) -> BackupResult:
    """Back up the workflow's current state on demand."""
    body = body or BackupBody()
    platform = require_platform()
    try:
        current = await platform.get_workflow(workflow_id)
    except FlowDiffError as e:
        raise HTTPException(status_code=status_for(e.code), detail=e.message)
    return await version_store.create_backup(
        workflow_id, current, trigger=body.trigger, metadata=body.metadata
    )


@router.get("/workflows/{workflow_id}/versions", response_model=list[VersionInfo])
async def get_version_history(
    workflow_id: str, limit: int = Query(default=10, ge=1, le=100)
) -> list[VersionInfo]:
    """List a workflow's versions, newest first."""
    return await version_store.get_version_history(workflow_id, limit)


@router.post("/workflows/{workflow_id}/restore", response_model=RestoreResult)
async def restore_version(workflow_id: str, body: RestoreBody | None = None) -> RestoreResult:
    """Roll a workflow back to a stored version (latest if none given)."""
    body = body or RestoreBody()
    result = await restore_coordinator().restore_version(
        workflow_id, version_id=body.version_id, validate_before=body.validate_before
    )
    if not result.success:
        status_code = {
            RestoreStatus.NOT_FOUND: 404,
            RestoreStatus.REJECTED_BY_VALIDATION: 422,
        }.get(result.status, 502)
        raise HTTPException(
            status_code=status_code, detail=result.model_dump(mode="json", by_alias=True)
        )
    return result


@router.delete("/workflows/{workflow_id}/versions", response_model=DeleteResult)
async def delete_all_versions(workflow_id: str) -> DeleteResult:
    return await version_store.delete_all_versions(workflow_id)


@router.post("/workflows/{workflow_id}/versions/prune", response_model=PruneResult)
async def prune_versions(
    workflow_id: str, max_versions: int = Query(default=config.MAX_VERSIONS, ge=1)
) -> PruneResult:
    """Keep only the newest ``max_versions`` versions."""
    return await version_store.prune_versions(workflow_id, max_versions)
