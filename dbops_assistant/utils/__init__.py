"""Utility helpers for the DB Ops Assistant."""

from .helpers import calculate_file_checksum, format_duration, split_args
from .logging import setup_logging, StructuredFormatter

__all__ = [
    "calculate_file_checksum",
    "format_duration",
    "split_args",
    "setup_logging",
    "StructuredFormatter",
]
