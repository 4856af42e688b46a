"""RestoreCoordinator - Rolls a workflow back to a stored version.

Steps: resolve the version, validate its snapshot, back up the live
workflow, then push the snapshot. A rollback never proceeds without the
safety backup.
"""

import logging

import aiosqlite

from flowdiff.db.version_store import VersionStore
from flowdiff.errors import FlowDiffError
from flowdiff.models.version import BackupTrigger, RestoreResult, RestoreStatus
from flowdiff.platform.client import PlatformClient
from flowdiff.services.node_capabilities import NodeCapabilities, default_capabilities
from flowdiff.services.structural_validator import validate_workflow_structure

logger = logging.getLogger(__name__)


class RestoreCoordinator:
    def __init__(
        self,
        store: VersionStore,
        platform: PlatformClient,
        capabilities: NodeCapabilities = default_capabilities,
    ):
        self._store = store
        self._platform = platform
        self._capabilities = capabilities

    async def restore_version(
        self,
        workflow_id: str,
        version_id: int | None = None,
        validate_before: bool = True,
    ) -> RestoreResult:
        """Restore ``workflow_id`` to ``version_id`` (or its latest version)."""
        if version_id is not None:
            version = await self._store.get_version(version_id)
            if version is not None and version.workflow_id != workflow_id:
                logger.warning(
                    f"Version {version_id} belongs to workflow {version.workflow_id}, "
                    f"not {workflow_id}"
                )
                version = None
        else:
            version = await self._store.get_latest_version(workflow_id)

        if version is None:
            if version_id is None:
                message = f"No backup versions found for workflow {workflow_id}"
            else:
                message = f"Version {version_id} not found for workflow {workflow_id}"
            return RestoreResult(
                success=False,
                status=RestoreStatus.NOT_FOUND,
                message=message,
                workflow_id=workflow_id,
            )

        snapshot = version.workflow_snapshot

        if validate_before:
            errors = validate_workflow_structure(snapshot, self._capabilities)
            if errors:
                logger.warning(
                    f"Refusing to restore workflow {workflow_id} to version "
                    f"{version.version_number}: {len(errors)} validation error(s)"
                )
                return RestoreResult(
                    success=False,
                    status=RestoreStatus.REJECTED_BY_VALIDATION,
                    message=f"Cannot restore - version {version.version_number} has "
                    f"{len(errors)} validation error(s)",
                    workflow_id=workflow_id,
                    to_version_id=version.id,
                    to_version_number=version.version_number,
                    validation_errors=errors,
                )

        try:
            current = await self._platform.get_workflow(workflow_id)
            backup = await self._store.create_backup(
                workflow_id,
                current,
                trigger=BackupTrigger.PARTIAL_UPDATE,
                metadata={
                    "reason": "Backup before rollback",
                    "restoringToVersion": version.version_number,
                },
            )
        except (FlowDiffError, aiosqlite.Error) as e:
            logger.error(f"Safety backup before rollback of {workflow_id} failed: {e}")
            return RestoreResult(
                success=False,
                status=RestoreStatus.BACKUP_FAILED,
                message=f"Restore aborted: could not back up current workflow: {e}",
                workflow_id=workflow_id,
                to_version_id=version.id,
                to_version_number=version.version_number,
            )

        try:
            await self._platform.update_workflow(workflow_id, snapshot)
        except FlowDiffError as e:
            logger.error(
                f"Push of version {version.version_number} to {workflow_id} failed: {e.message}"
            )
            return RestoreResult(
                success=False,
                status=RestoreStatus.FAILED_TO_PUSH,
                message=f"Restore failed: {e.message}. A backup of the current state was "
                f"saved as version {backup.version_number} (id {backup.version_id})",
                workflow_id=workflow_id,
                to_version_id=version.id,
                to_version_number=version.version_number,
                backup_created=True,
                backup_version_id=backup.version_id,
                backup_version_number=backup.version_number,
            )

        logger.info(
            f"Restored workflow {workflow_id} to version {version.version_number} "
            f"(backup of previous state: version {backup.version_number})"
        )
        return RestoreResult(
            success=True,
            status=RestoreStatus.RESTORED,
            message=f"Successfully restored workflow to version {version.version_number}",
            workflow_id=workflow_id,
            to_version_id=version.id,
            to_version_number=version.version_number,
            backup_created=True,
            backup_version_id=backup.version_id,
            backup_version_number=backup.version_number,
        )
