"""
Configuration models for the DB Ops Assistant.

This module defines Pydantic models for connection profiles and
migration configuration. Both are immutable once built: a batch creates
one MigrationConfig template and derives a per-database copy from it.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3306
DEFAULT_USER = "root"


class Provenance(str, Enum):
    """Which resolution tier produced a connection profile."""
    CONFIG_FILE = "config_file"
    FLAGS = "flags"
    INTERACTIVE = "interactive"
    DEFAULTS = "defaults"

    @property
    def label(self) -> str:
        return {
            Provenance.CONFIG_FILE: "configuration file",
            Provenance.FLAGS: "command line flags",
            Provenance.INTERACTIVE: "interactively selected configuration",
            Provenance.DEFAULTS: "compiled-in defaults",
        }[self]


class ConnectionProfile(BaseModel):
    """Connection parameters for one MySQL/MariaDB server."""
    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user: str = DEFAULT_USER
    password: str = Field(default="", repr=False)
    database: Optional[str] = None

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not (1 <= v <= 65535):
            raise ValueError('Port must be between 1 and 65535')
        return v

    @field_validator('host', 'user')
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('must not be empty')
        return v.strip()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def display_name(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    def with_database(self, database: Optional[str]) -> "ConnectionProfile":
        """Return a copy of this profile pointing at another database."""
        return self.model_copy(update={"database": database})

    def server_level(self) -> "ConnectionProfile":
        """Return a copy of this profile with no database selected."""
        return self.with_database(None)


class MigrationConfig(BaseModel):
    """Migration configuration shared by every item of a batch."""
    model_config = ConfigDict(frozen=True)

    source: ConnectionProfile
    target: ConnectionProfile
    migrate_users: bool = True
    migrate_data: bool = True
    migrate_structure: bool = True
    verify_data: bool = True
    backup_target: bool = True
    drop_target: bool = True
    create_target: bool = True
    strict_target_backup: bool = False

    @property
    def source_database(self) -> Optional[str]:
        return self.source.database

    @property
    def target_database(self) -> Optional[str]:
        return self.target.database

    def for_database(self, database: str, target_database: Optional[str] = None) -> "MigrationConfig":
        """Derive the per-item configuration for one database.

        Args:
            database: Database name on the source server
            target_database: Name on the target server, defaults to ``database``

        Returns:
            A copy of this configuration with both profiles pointing at the database
        """
        return self.model_copy(update={
            "source": self.source.with_database(database),
            "target": self.target.with_database(target_database or database),
        })

    def enabled_options(self) -> List[str]:
        """Human readable list of the steps this configuration enables."""
        labels = [
            (self.backup_target, "Backup target database (if it exists)"),
            (self.drop_target, "Drop target database"),
            (self.create_target, "Create target database"),
            (self.migrate_structure, "Migrate database structure"),
            (self.migrate_data, "Migrate database data"),
            (self.migrate_users, "Migrate database users and grants"),
            (self.verify_data, "Verify data integrity after migration"),
            (self.strict_target_backup, "Fail an item when its target backup fails"),
        ]
        return [label for enabled, label in labels if enabled]
