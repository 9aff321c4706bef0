"""Replication identity models."""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Dialect(str, Enum):
    """Server flavor, resolved once per connection."""
    MYSQL = "mysql"
    MARIADB = "mariadb"

    @classmethod
    def from_version_string(cls, version: Optional[str]) -> "Dialect":
        """Classify a ``SELECT VERSION()`` string."""
        if version and "mariadb" in version.lower():
            return cls.MARIADB
        return cls.MYSQL


class ReplicationIdentity(BaseModel):
    """Read-only snapshot of a server's GTID and binlog state."""
    model_config = ConfigDict(frozen=True)

    dialect: Dialect
    server_version: str = ""
    server_identity: str = ""
    gtid_enabled: bool = False
    executed_set: str = ""
    purged_set: str = ""
    binlog_file: str = ""
    binlog_position: Optional[int] = None
    gtid_position: str = ""
    warnings: Tuple[str, ...] = ()
    captured_at: datetime = Field(default_factory=datetime.now)

    @property
    def has_binlog_coordinates(self) -> bool:
        return bool(self.binlog_file) and self.binlog_position is not None
