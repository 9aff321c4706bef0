"""
Application settings model.

Settings are persisted as YAML and loaded through
``dbops_assistant.config.settings.load_settings``.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from dbops_assistant.backup.artifacts import Compression


class AppSettings(BaseModel):
    """Operational settings shared by all commands."""
    backup_dir: str = "./backup"
    profile_dir: str = str(Path.home() / ".dbops-assistant" / "profiles")
    command_timeout: int = Field(default=3600, ge=1)
    service_timeout: int = Field(default=120, ge=1)
    compression: Compression = Compression.GZIP
    encrypt_backups: bool = True
    retention_days: int = Field(default=30, ge=0)
    mysqldump_args: str = "--single-transaction --routines --triggers --events --quick"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    data_dir: str = "/var/lib/mysql"
    service_names: List[str] = Field(default_factory=lambda: ["mariadb", "mysql", "mysqld"])

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {", ".join(valid_levels)}')
        return v.upper()

    @field_validator('service_names')
    @classmethod
    def validate_service_names(cls, v):
        if not v:
            raise ValueError('at least one service name is required')
        return v
