"""
Helper utilities for the DB Ops Assistant.

This module contains small utility functions used throughout
the application for common operations.
"""

import hashlib
import shlex
from pathlib import Path
from typing import List, Union


def calculate_file_checksum(file_path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Calculate checksum for a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (md5, sha1, sha256, sha512)

    Returns:
        Hexadecimal checksum string
    """
    hash_obj = hashlib.new(algorithm)

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hash_obj.update(chunk)

    return hash_obj.hexdigest()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def split_args(args: str) -> List[str]:
    """Split a shell-style argument string into a list."""
    return shlex.split(args) if args else []
