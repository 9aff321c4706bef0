"""
Batch migration orchestrator.

Moves a list of databases from a source server to a target server one
at a time. Every requested database yields exactly one
:class:`MigrationResult`; an item failure is recorded and the batch
moves on to the next database.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..backup.engine import BackupEngine, BackupOptions, RestoreEngine
from ..config.database_list import normalize_database_names
from ..core.exceptions import (
    BatchMigrationError,
    ConfigurationError,
    DbOpsError,
    MigrationItemError,
)
from ..models.config import MigrationConfig
from ..models.results import MigrationResult, MigrationSummary

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Dict[str, Any]], None]

# pre-migration backups of the target live apart from source dumps of the same name
TARGET_BACKUP_SUBDIR = "target"


class MigrationOrchestrator:
    """
    Sequential database migration between two servers.

    Items run strictly one after another against the source server and
    the local backup directory. The backup directory is not locked:
    running two orchestrators against the same directory at the same
    time is unsupported, since retention pruning in one run can remove
    artifacts the other run is about to restore.
    """

    def __init__(
        self,
        backup_engine: BackupEngine,
        restore_engine: RestoreEngine,
        backup_options: Optional[BackupOptions] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the migration orchestrator.

        Args:
            backup_engine: Produces backup artifacts for source and target databases
            restore_engine: Loads artifacts into the target server
            backup_options: Base backup options, adjusted per item from the migration flags
            clock: Monotonic clock used for durations
        """
        self.backup_engine = backup_engine
        self.restore_engine = restore_engine
        self.backup_options = backup_options or BackupOptions()
        self._clock = clock
        self._progress_callbacks: List[ProgressCallback] = []

    def add_progress_callback(self, callback: ProgressCallback):
        """Add a progress callback function."""
        self._progress_callbacks.append(callback)

    def remove_progress_callback(self, callback: ProgressCallback):
        """Remove a progress callback function."""
        if callback in self._progress_callbacks:
            self._progress_callbacks.remove(callback)

    def _notify_progress(self, event: str, data: Dict[str, Any]):
        for callback in self._progress_callbacks:
            try:
                callback(event, data)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    @staticmethod
    def validate_config(config: MigrationConfig) -> None:
        """Reject configurations that cannot migrate anything.

        Raises:
            ConfigurationError: If neither structure nor data is selected
        """
        if not config.migrate_data and not config.migrate_structure:
            raise ConfigurationError("Nothing to migrate: both structure and data are disabled")

    def migrate_batch(self, config: MigrationConfig, databases: Sequence[str]) -> MigrationSummary:
        """
        Migrate every database in ``databases``, in order.

        Args:
            config: Batch template; each item runs on a per-database copy
            databases: Database names on the source server

        Returns:
            Summary holding one result per requested database

        Raises:
            ConfigurationError: If the list is empty or the configuration is unusable;
                raised before any database is touched
            BatchMigrationError: If at least one item failed, after all items ran
        """
        names = normalize_database_names(databases)
        self.validate_config(config)

        logger.info(
            f"Starting migration of {len(names)} database(s) from "
            f"{config.source.address} to {config.target.address}"
        )
        self._notify_progress("batch_started", {"databases": list(names), "total": len(names)})

        started = self._clock()
        results = tuple(
            self._run_item(config, name, position, len(names))
            for position, name in enumerate(names, 1)
        )
        summary = MigrationSummary(
            databases=tuple(names),
            results=results,
            total_duration=self._clock() - started,
        )

        logger.info(
            f"Migration finished: {summary.success_count} succeeded, "
            f"{summary.error_count} failed in {summary.total_duration:.1f}s"
        )
        self._notify_progress("batch_finished", {"summary": summary})

        if summary.error_count > 0:
            raise BatchMigrationError(
                f"{summary.error_count} of {len(names)} database migration(s) failed",
                summary=summary,
            )
        return summary

    def _run_item(self, config: MigrationConfig, name: str, position: int, total: int) -> MigrationResult:
        self._notify_progress("item_started", {"database": name, "position": position, "total": total})
        result = self.migrate_database(config.for_database(name))
        self._notify_progress("item_finished", {"database": name, "position": position,
                                                "total": total, "result": result})
        return result

    def migrate_database(self, item: MigrationConfig) -> MigrationResult:
        """
        Migrate the single database ``item`` points at.

        Errors raised by the engines are turned into a failed result;
        this method does not raise for item-scoped failures.
        """
        source_db = item.source_database
        target_db = item.target_database or source_db
        if not source_db:
            raise ConfigurationError("Per-item configuration must name a source database")

        started = self._clock()
        warnings: List[str] = []
        progress: Dict[str, Optional[str]] = {"artifact": None, "target_backup": None}

        try:
            self._migrate(item, source_db, target_db, warnings, progress)
        except MigrationItemError as e:
            logger.error(f"Migration of {source_db} failed during {e.step}: {e.message}")
            return MigrationResult(
                source_database=source_db,
                target_database=target_db,
                success=False,
                error=e.message,
                backup_artifact_path=progress["artifact"],
                target_backup_path=progress["target_backup"],
                duration=self._clock() - started,
                warnings=tuple(warnings),
            )

        duration = self._clock() - started
        logger.info(f"Database {source_db} migrated to {target_db} in {duration:.1f}s")
        return MigrationResult(
            source_database=source_db,
            target_database=target_db,
            success=True,
            backup_artifact_path=progress["artifact"],
            target_backup_path=progress["target_backup"],
            duration=duration,
            warnings=tuple(warnings),
        )

    def _migrate(self, item: MigrationConfig, source_db: str, target_db: str,
                 warnings: List[str], progress: Dict[str, Optional[str]]) -> None:
        if item.backup_target:
            progress["target_backup"] = self._backup_target(item, target_db, warnings)

        self._step(source_db, "source_backup")
        options = self.backup_options.with_changes(
            include_data=item.migrate_data,
            include_structure=item.migrate_structure,
            include_users=item.migrate_users,
        )
        try:
            artifact = self.backup_engine.backup(item.source, source_db, options)
        except (DbOpsError, OSError) as e:
            raise MigrationItemError(f"Source backup failed: {e}", database=source_db, step="source_backup")
        progress["artifact"] = artifact

        self._step(source_db, "restore")
        try:
            self.restore_engine.restore(
                item.target,
                target_db,
                artifact,
                verify_checksum=item.verify_data,
                drop_existing=item.drop_target,
                create_database=item.create_target,
            )
        except (DbOpsError, OSError) as e:
            raise MigrationItemError(f"Restore failed: {e}", database=source_db, step="restore")

        if item.migrate_users:
            self._step(source_db, "grants")
            try:
                warnings.extend(self.restore_engine.restore_grants(item.target, artifact, source_db, target_db))
            except (DbOpsError, OSError) as e:
                warnings.append(f"Grants not restored: {e}")
                logger.warning(f"Grants for {source_db} not restored: {e}")

    def _backup_target(self, item: MigrationConfig, target_db: str, warnings: List[str]) -> Optional[str]:
        """Back up the target database before it is overwritten.

        The dump goes to the ``target/`` subdirectory of the backup directory.
        A failure is a warning unless ``strict_target_backup`` is set.
        """
        source_db = item.source_database
        self._step(source_db, "target_backup")
        options = self.backup_options.with_changes(
            output_dir=str(self.backup_options.output_path / TARGET_BACKUP_SUBDIR),
            include_users=False,
        )
        try:
            path = self.backup_engine.backup(item.target, target_db, options)
        except (DbOpsError, OSError) as e:
            if item.strict_target_backup:
                raise MigrationItemError(
                    f"Target backup failed: {e}", database=source_db, step="target_backup"
                )
            message = f"Target backup of {target_db} skipped: {e}"
            logger.warning(message)
            warnings.append(message)
            return None

        logger.info(f"Target database {target_db} backed up to {path}")
        return path

    def _step(self, database: str, step: str) -> None:
        logger.debug(f"{database}: {step}")
        self._notify_progress("step", {"database": database, "step": step})
