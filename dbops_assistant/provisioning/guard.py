"""
Data directory safety checks.

A MariaDB data directory records the server version that last upgraded
it in ``mariadb_upgrade_info``. Starting an older server against it can
corrupt the data, so a downgrade is refused unless the operator agrees
to move the old directory aside and start from an empty one.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from ..core.selector import Selector
from ..core.exceptions import SafetyConflictError
from ..models.provisioning import DataDirVersionRecord
from .services import DataDirInitializer, ServiceManager
from .versions import is_downgrade, parse_major_minor

logger = logging.getLogger(__name__)

MARKER_FILE = "mariadb_upgrade_info"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class DataDirSafetyGuard:
    """Refuses to start a server version older than its data directory."""

    def __init__(
        self,
        service_manager: ServiceManager,
        initializer: DataDirInitializer,
        selector: Selector,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.service_manager = service_manager
        self.initializer = initializer
        self.selector = selector
        self._clock = clock

    @staticmethod
    def read_marker(data_dir: Union[str, Path]) -> Optional[str]:
        """Return the version recorded in the data directory, or None."""
        marker = Path(data_dir) / MARKER_FILE
        if not marker.is_file():
            return None
        try:
            content = marker.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as e:
            logger.warning(f"Cannot read {marker}, assuming no recorded version: {e}")
            return None
        return content or None

    def check_compatibility(self, data_dir: Union[str, Path], target_version: str) -> Tuple[bool, DataDirVersionRecord]:
        """Compare the recorded version with ``target_version``.

        A directory without a marker is never a conflict.

        Returns:
            ``(conflict, record)``
        """
        existing = self.read_marker(data_dir)
        target_parsed = parse_major_minor(target_version)

        if existing is None:
            record = DataDirVersionRecord(
                data_dir=str(data_dir),
                target_version=target_version,
                target_parsed=target_parsed,
            )
            logger.info(f"No version marker in {data_dir}, assuming compatible")
            return False, record

        existing_parsed = parse_major_minor(existing)
        conflict = is_downgrade(existing_parsed, target_parsed)
        record = DataDirVersionRecord(
            data_dir=str(data_dir),
            target_version=target_version,
            existing_version=existing,
            existing_parsed=existing_parsed,
            target_parsed=target_parsed,
            is_downgrade=conflict,
        )
        logger.info(
            f"Data directory {data_dir} holds {existing}, incoming version {target_version}: "
            f"{'downgrade' if conflict else 'compatible'}"
        )
        return conflict, record

    def ensure_compatible(
        self,
        data_dir: Union[str, Path],
        target_version: str,
        auto_confirm: bool = False,
    ) -> Tuple[DataDirVersionRecord, Optional[Path]]:
        """Check the data directory and remediate a conflict when allowed.

        Returns:
            The record and, when remediation ran, where the old directory went

        Raises:
            SafetyConflictError: If a downgrade is detected and remediation is declined
            ExternalToolError: If the new data directory cannot be initialized
        """
        conflict, record = self.check_compatibility(data_dir, target_version)
        if not conflict:
            return record, None

        message = (
            f"Data directory {data_dir} contains a newer version ({record.existing_version}), "
            f"cannot downgrade to {target_version}"
        )
        logger.warning(message)

        approved = auto_confirm or self.selector.confirm(
            "Back up and reinitialize the data directory?", default=False
        )
        if not approved:
            raise SafetyConflictError(message, record=record)

        return record, self.remediate(data_dir)

    def remediate(self, data_dir: Union[str, Path]) -> Path:
        """Stop the server, move the data directory aside and initialize a fresh one.

        Returns:
            The timestamped path the old directory was moved to
        """
        data_dir = Path(data_dir)
        self.service_manager.stop_any()

        backup_path = data_dir.with_name(
            f"{data_dir.name}.backup.{self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)}"
        )
        try:
            shutil.move(str(data_dir), str(backup_path))
        except OSError as e:
            raise SafetyConflictError(f"Failed to move {data_dir} to {backup_path}: {e}")
        logger.info(f"Data directory moved to {backup_path}")

        self.initializer.initialize(data_dir)
        logger.info(f"Data directory conflict resolved, old data kept at {backup_path}")
        return backup_path
