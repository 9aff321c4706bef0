"""Backup artifacts and the engines that produce and consume them."""

from .artifacts import (
    BACKUP_SUFFIXES,
    Compression,
    build_artifact_name,
    extract_database_name,
    find_artifacts,
    is_artifact_of,
    split_backup_suffix,
)
from .engine import BackupEngine, BackupOptions, RestoreEngine

__all__ = [
    "BACKUP_SUFFIXES",
    "Compression",
    "build_artifact_name",
    "extract_database_name",
    "find_artifacts",
    "is_artifact_of",
    "split_backup_suffix",
    "BackupEngine",
    "BackupOptions",
    "RestoreEngine",
]
