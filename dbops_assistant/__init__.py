"""
DB Ops Assistant

Lifecycle tooling for MySQL/MariaDB servers: batch database migration
between servers, replication consistency capture and data directory
safety checks during provisioning.
"""

__version__ = "0.1.0"
__author__ = "DB Ops Assistant Team"

from dbops_assistant.models.config import ConnectionProfile, MigrationConfig, Provenance
from dbops_assistant.models.results import MigrationResult, MigrationSummary

__all__ = [
    "ConnectionProfile",
    "MigrationConfig",
    "Provenance",
    "MigrationResult",
    "MigrationSummary",
]
