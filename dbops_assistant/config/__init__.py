"""Settings, database lists and connection resolution."""

from .database_list import normalize_database_names, parse_database_list, read_database_list
from .resolver import ConfigResolver, ConnectionFlags
from .settings import load_settings, save_settings

__all__ = [
    "ConfigResolver",
    "ConnectionFlags",
    "load_settings",
    "save_settings",
    "normalize_database_names",
    "parse_database_list",
    "read_database_list",
]
