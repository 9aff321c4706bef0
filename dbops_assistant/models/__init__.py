"""Data models for the DB Ops Assistant."""

from dbops_assistant.models.config import (
    ConnectionProfile,
    MigrationConfig,
    Provenance,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_USER,
)
from dbops_assistant.models.results import MigrationResult, MigrationSummary
from dbops_assistant.models.replication import Dialect, ReplicationIdentity
from dbops_assistant.models.provisioning import DataDirVersionRecord

__all__ = [
    "ConnectionProfile",
    "MigrationConfig",
    "Provenance",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_USER",
    "MigrationResult",
    "MigrationSummary",
    "Dialect",
    "ReplicationIdentity",
    "DataDirVersionRecord",
]
