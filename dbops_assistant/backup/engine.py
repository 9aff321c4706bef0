"""
Backup and restore engine interfaces.

The orchestrator only depends on these abstract collaborators; the
default implementations wrap ``mysqldump`` and the ``mysql`` client.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List

from ..models.config import ConnectionProfile
from .artifacts import Compression


@dataclass(frozen=True)
class BackupOptions:
    """Options for a single database dump."""
    output_dir: str = "./backup"
    compression: Compression = Compression.GZIP
    encrypt: bool = True
    include_data: bool = True
    include_structure: bool = True
    include_users: bool = False
    retention_days: int = 30
    checksum: bool = True

    def with_changes(self, **changes) -> "BackupOptions":
        return replace(self, **changes)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


class BackupEngine(ABC):
    """Produces a backup artifact for one database."""

    @abstractmethod
    def backup(self, profile: ConnectionProfile, database: str, options: BackupOptions) -> str:
        """Back up ``database`` and return the artifact path.

        Raises:
            BackupError: If the dump cannot be produced
        """
        pass


class RestoreEngine(ABC):
    """Loads a backup artifact into a database."""

    @abstractmethod
    def restore(
        self,
        profile: ConnectionProfile,
        target_database: str,
        artifact_path: str,
        verify_checksum: bool = True,
        drop_existing: bool = False,
        create_database: bool = True,
    ) -> None:
        """Restore ``artifact_path`` into ``target_database``.

        Raises:
            RestoreError: If verification, decoding or loading fails
        """
        pass

    def restore_grants(self, profile: ConnectionProfile, artifact_path: str,
                       source_database: str, target_database: str) -> List[str]:
        """Replay captured grants; engines without grant support return no warnings."""
        return []
