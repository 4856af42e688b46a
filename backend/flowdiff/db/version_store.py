"""VersionStore - Bounded, append-only snapshot history per workflow."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from flowdiff import config
from flowdiff.db.database import get_db
from flowdiff.errors import ConfirmationRequiredError, NotFoundError, ValidationError
from flowdiff.models.version import (
    BackupResult,
    BackupTrigger,
    DeleteResult,
    PruneResult,
    SettingChange,
    StorageStats,
    VersionDiff,
    VersionInfo,
    WorkflowStorageInfo,
    WorkflowVersion,
)
from flowdiff.models.workflow import Workflow

logger = logging.getLogger(__name__)


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _loads(value: str | None) -> Any:
    return json.loads(value) if value else None


def format_bytes(size: int) -> str:
    """Render a byte count as e.g. ``"1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"


class VersionStore:
    """Storage for workflow backups.

    Every backup gets a globally unique id and a per-workflow version number
    that only ever grows. After each backup the oldest versions beyond
    ``max_versions`` are pruned before the call returns.
    """

    def __init__(self, max_versions: int | None = None):
        self.max_versions = max_versions or config.MAX_VERSIONS

    # ==================== Backups ====================

    async def create_backup(
        self,
        workflow_id: str,
        snapshot: Workflow,
        trigger: BackupTrigger = BackupTrigger.PARTIAL_UPDATE,
        operations: list[dict[str, Any]] | None = None,
        fix_types: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BackupResult:
        """Record a full snapshot of a workflow and prune old versions."""
        db = await get_db()

        # The number is allocated in the same statement as the insert so
        # concurrent backups of one workflow never collide
        cursor = await db.execute(
            """
            INSERT INTO workflow_versions (
                workflow_id, version_number, workflow_name, workflow_snapshot,
                trigger, operations, fix_types, metadata, created_at
            )
            SELECT ?, COALESCE(MAX(version_number), 0) + 1, ?, ?, ?, ?, ?, ?, ?
            FROM workflow_versions
            WHERE workflow_id = ?
            """,
            (
                workflow_id,
                snapshot.name,
                json.dumps(snapshot.to_snapshot()),
                BackupTrigger(trigger).value,
                json.dumps(operations) if operations is not None else None,
                json.dumps(fix_types) if fix_types is not None else None,
                json.dumps(metadata) if metadata is not None else None,
                _now(),
                workflow_id,
            ),
        )
        version_id = cursor.lastrowid
        await db.commit()

        cursor = await db.execute(
            "SELECT version_number FROM workflow_versions WHERE id = ?", (version_id,)
        )
        row = await cursor.fetchone()
        version_number = row["version_number"]

        prune = await self.prune_versions(workflow_id, self.max_versions)

        logger.info(
            f"Created backup for workflow {workflow_id}: version {version_number} "
            f"(id {version_id}, trigger {BackupTrigger(trigger).value})"
        )
        if prune.pruned:
            logger.info(f"Pruned {prune.pruned} old version(s) for workflow {workflow_id}")

        message = f"Backup created (version {version_number})"
        if prune.pruned:
            message += f", pruned {prune.pruned} old version(s)"

        return BackupResult(
            version_id=version_id,
            version_number=version_number,
            pruned=prune.pruned,
            message=message,
        )

    # ==================== Reads ====================

    async def get_version_history(self, workflow_id: str, limit: int = 10) -> list[VersionInfo]:
        """List versions newest first, without snapshot bodies."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT id, workflow_id, version_number, workflow_name, trigger,
                   operations, fix_types, created_at, LENGTH(workflow_snapshot) AS size
            FROM workflow_versions
            WHERE workflow_id = ?
            ORDER BY version_number DESC
            LIMIT ?
            """,
            (workflow_id, limit),
        )
        rows = await cursor.fetchall()

        history = []
        for row in rows:
            operations = _loads(row["operations"])
            history.append(
                VersionInfo(
                    id=row["id"],
                    workflow_id=row["workflow_id"],
                    version_number=row["version_number"],
                    workflow_name=row["workflow_name"],
                    trigger=row["trigger"],
                    operation_count=len(operations) if operations is not None else None,
                    fix_types_applied=_loads(row["fix_types"]),
                    created_at=row["created_at"],
                    size=row["size"],
                )
            )
        return history

    async def get_version(self, version_id: int) -> WorkflowVersion | None:
        """Get a version with its full snapshot."""
        db = await get_db()
        cursor = await db.execute("SELECT * FROM workflow_versions WHERE id = ?", (version_id,))
        row = await cursor.fetchone()
        return self._row_to_version(row) if row else None

    async def get_latest_version(self, workflow_id: str) -> WorkflowVersion | None:
        """Get the version with the highest version number for a workflow."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT * FROM workflow_versions
            WHERE workflow_id = ?
            ORDER BY version_number DESC
            LIMIT 1
            """,
            (workflow_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_version(row) if row else None

    async def count_versions(self, workflow_id: str) -> int:
        db = await get_db()
        cursor = await db.execute(
            "SELECT COUNT(*) AS count FROM workflow_versions WHERE workflow_id = ?",
            (workflow_id,),
        )
        row = await cursor.fetchone()
        return row["count"]

    # ==================== Deletes ====================

    async def delete_version(self, version_id: int) -> DeleteResult:
        db = await get_db()
        cursor = await db.execute("DELETE FROM workflow_versions WHERE id = ?", (version_id,))
        await db.commit()

        if cursor.rowcount == 0:
            return DeleteResult(
                success=False, deleted=0, message=f"Version {version_id} not found"
            )
        return DeleteResult(deleted=1, message=f"Deleted version {version_id}")

    async def delete_all_versions(self, workflow_id: str) -> DeleteResult:
        db = await get_db()
        cursor = await db.execute(
            "DELETE FROM workflow_versions WHERE workflow_id = ?", (workflow_id,)
        )
        await db.commit()

        deleted = cursor.rowcount
        logger.info(f"Deleted {deleted} version(s) for workflow {workflow_id}")
        if deleted == 0:
            return DeleteResult(
                deleted=0, message=f"No versions found for workflow {workflow_id}"
            )
        return DeleteResult(
            deleted=deleted, message=f"Deleted {deleted} version(s) for workflow {workflow_id}"
        )

    async def prune_versions(self, workflow_id: str, max_versions: int = 10) -> PruneResult:
        """Keep only the ``max_versions`` newest versions of a workflow."""
        if max_versions < 1:
            raise ValidationError("max_versions must be at least 1")

        db = await get_db()
        cursor = await db.execute(
            """
            DELETE FROM workflow_versions
            WHERE workflow_id = ?
              AND id NOT IN (
                  SELECT id FROM workflow_versions
                  WHERE workflow_id = ?
                  ORDER BY version_number DESC
                  LIMIT ?
              )
            """,
            (workflow_id, workflow_id, max_versions),
        )
        await db.commit()

        return PruneResult(
            pruned=cursor.rowcount, remaining=await self.count_versions(workflow_id)
        )

    async def truncate_all_versions(self, confirm: bool = False) -> DeleteResult:
        """Delete every version of every workflow. Requires ``confirm=True``."""
        if not confirm:
            raise ConfirmationRequiredError(
                "Truncate not confirmed: confirmation required. "
                "Set confirm=true to delete ALL versions of ALL workflows."
            )

        db = await get_db()
        cursor = await db.execute("DELETE FROM workflow_versions")
        await db.commit()

        deleted = cursor.rowcount
        logger.warning(f"Truncated version history: {deleted} version(s) deleted")
        return DeleteResult(deleted=deleted, message=f"Deleted {deleted} version(s)")

    # ==================== Analysis ====================

    async def compare_versions(self, version_id1: int, version_id2: int) -> VersionDiff:
        """Structural diff between two stored snapshots."""
        first = await self.get_version(version_id1)
        second = await self.get_version(version_id2)
        if first is None:
            raise NotFoundError(f"Version {version_id1} not found")
        if second is None:
            raise NotFoundError(f"Version {version_id2} not found")

        before = first.workflow_snapshot
        after = second.workflow_snapshot

        nodes_before = {n.id: n.model_dump(by_alias=True) for n in before.nodes}
        nodes_after = {n.id: n.model_dump(by_alias=True) for n in after.nodes}

        added = [node_id for node_id in nodes_after if node_id not in nodes_before]
        removed = [node_id for node_id in nodes_before if node_id not in nodes_after]
        modified = [
            node_id
            for node_id, node in nodes_after.items()
            if node_id in nodes_before and nodes_before[node_id] != node
        ]

        connections_before = before.model_dump(include={"connections"})
        connections_after = after.model_dump(include={"connections"})

        setting_changes = {}
        for key in dict.fromkeys([*before.settings, *after.settings]):
            old = before.settings.get(key)
            new = after.settings.get(key)
            if old != new:
                setting_changes[key] = SettingChange(before=old, after=new)

        return VersionDiff(
            version_id1=first.id,
            version_id2=second.id,
            version1_number=first.version_number,
            version2_number=second.version_number,
            added_nodes=added,
            removed_nodes=removed,
            modified_nodes=modified,
            connections_changed=connections_before != connections_after,
            setting_changes=setting_changes,
        )

    async def get_storage_stats(self) -> StorageStats:
        """Approximate storage use, grouped by workflow."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT COUNT(*) AS total_versions,
                   COALESCE(SUM(LENGTH(workflow_snapshot)), 0) AS total_size
            FROM workflow_versions
            """
        )
        totals = await cursor.fetchone()

        cursor = await db.execute(
            """
            SELECT workflow_id,
                   MAX(workflow_name) AS workflow_name,
                   COUNT(*) AS version_count,
                   SUM(LENGTH(workflow_snapshot)) AS total_size,
                   MAX(created_at) AS last_backup
            FROM workflow_versions
            GROUP BY workflow_id
            ORDER BY version_count DESC
            """
        )
        rows = await cursor.fetchall()

        return StorageStats(
            total_versions=totals["total_versions"],
            total_size=totals["total_size"],
            total_size_formatted=format_bytes(totals["total_size"]),
            by_workflow=[
                WorkflowStorageInfo(
                    workflow_id=row["workflow_id"],
                    workflow_name=row["workflow_name"],
                    version_count=row["version_count"],
                    total_size=row["total_size"],
                    total_size_formatted=format_bytes(row["total_size"]),
                    last_backup=row["last_backup"],
                )
                for row in rows
            ],
        )

    # ==================== Helpers ====================

    def _row_to_version(self, row: aiosqlite.Row) -> WorkflowVersion:
        return WorkflowVersion(
            id=row["id"],
            workflow_id=row["workflow_id"],
            version_number=row["version_number"],
            workflow_name=row["workflow_name"],
            workflow_snapshot=Workflow.model_validate(json.loads(row["workflow_snapshot"])),
            trigger=row["trigger"],
            operations=_loads(row["operations"]),
            fix_types=_loads(row["fix_types"]),
            metadata=_loads(row["metadata"]),
            created_at=row["created_at"],
        )


# Singleton instance
version_store = VersionStore()
