"""Cross-workflow version routes: lookup, comparison, deletion and stats."""

from fastapi import APIRouter, HTTPException, Query

from flowdiff.db import version_store
from flowdiff.errors import ConfirmationRequiredError, NotFoundError
from flowdiff.models import DeleteResult, StorageStats, VersionDiff, WorkflowVersion

router = APIRouter()


# Fixed paths are declared before /versions/{version_id}


@router.get("/versions/stats", response_model=StorageStats)
async def get_storage_stats() -> StorageStats:
    """Storage used by version history, grouped per workflow."""
    return await version_store.get_storage_stats()


@router.get("/versions/compare", response_model=VersionDiff)
async def compare_versions(
    version_id1: int = Query(...), version_id2: int = Query(...)
) -> VersionDiff:
    try:
        return await version_store.compare_versions(version_id1, version_id2)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/versions/{version_id}", response_model=WorkflowVersion)
async def get_version(version_id: int) -> WorkflowVersion:
    version = await version_store.get_version(version_id)
    if not version:
        raise HTTPException(status_code=404, detail="Version not found")
    return version


@router.delete("/versions/{version_id}", response_model=DeleteResult)
async def delete_version(version_id: int) -> DeleteResult:
    result = await version_store.delete_version(version_id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.message)
    return result


@router.delete("/versions", response_model=DeleteResult)
async def truncate_all_versions(confirm: bool = Query(default=False)) -> DeleteResult:
    """Delete ALL versions of ALL workflows. Requires ``confirm=true``."""
    try:
        return await version_store.truncate_all_versions(confirm)
    except ConfirmationRequiredError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": e.message})
