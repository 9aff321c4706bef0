"""Provisioning safety checks and service control."""

from .guard import MARKER_FILE, DataDirSafetyGuard
from .services import DataDirInitializer, ServiceManager
from .versions import is_downgrade, parse_major_minor

__all__ = [
    "MARKER_FILE",
    "DataDirSafetyGuard",
    "DataDirInitializer",
    "ServiceManager",
    "is_downgrade",
    "parse_major_minor",
]
