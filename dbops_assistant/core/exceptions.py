"""
Custom exceptions for the DB Ops Assistant.

This module defines the exception hierarchy used throughout the
application. Batch-scoped errors abort before any work starts, while
item-scoped errors are collected into the migration summary.
"""

from typing import Any, Dict, List, Optional, Sequence


class DbOpsError(Exception):
    """Base exception class for DB Ops Assistant errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(DbOpsError):
    """Raised when connection parameters or the database list are invalid."""
    pass


class SecurityError(DbOpsError):
    """Raised when encryption or decryption fails."""
    pass


class DatabaseError(DbOpsError):
    """Raised when database operations fail."""
    pass


class CaptureError(DatabaseError):
    """Raised when a replication identity sub-query fails."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class ExternalToolError(DbOpsError):
    """Raised when an external command exits non-zero or times out."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.command = list(command or [])
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out

    def __str__(self) -> str:
        output = self.stderr.strip() or self.stdout.strip()
        if output:
            return f"{self.message}: {output}"
        return self.message


class BackupError(DbOpsError):
    """Raised when backup operations fail."""
    pass


class RestoreError(DbOpsError):
    """Raised when restore operations fail."""
    pass


class MigrationItemError(DbOpsError):
    """Raised for a failure scoped to one database within a batch."""

    def __init__(self, message: str, database: str, step: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.database = database
        self.step = step


class BatchMigrationError(DbOpsError):
    """Raised after a batch completes with one or more failed items."""

    def __init__(self, message: str, summary: Any, **kwargs):
        super().__init__(message, **kwargs)
        self.summary = summary

    @property
    def errors(self) -> List[str]:
        return list(self.summary.per_item_errors)


class SafetyConflictError(DbOpsError):
    """Raised when a data directory holds a newer server version than the one being started."""

    def __init__(self, message: str, record: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.record = record
