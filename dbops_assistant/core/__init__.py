"""
Core module for the DB Ops Assistant.

This module contains the exception hierarchy and the operator selection
interface shared by every component.
"""

from dbops_assistant.core.exceptions import (
    DbOpsError,
    ConfigurationError,
    SecurityError,
    DatabaseError,
    CaptureError,
    ExternalToolError,
    BackupError,
    RestoreError,
    MigrationItemError,
    BatchMigrationError,
    SafetyConflictError,
)
from dbops_assistant.core.selector import AutoConfirmSelector, Selector

__all__ = [
    "DbOpsError",
    "ConfigurationError",
    "SecurityError",
    "DatabaseError",
    "CaptureError",
    "ExternalToolError",
    "BackupError",
    "RestoreError",
    "MigrationItemError",
    "BatchMigrationError",
    "SafetyConflictError",
    "Selector",
    "AutoConfirmSelector",
]
