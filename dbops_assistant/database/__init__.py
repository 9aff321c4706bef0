"""Database access: connections, inventory and replication capture."""

from .connection import open_connection, build_connection_args, quote_identifier
from .inventory import list_databases, SYSTEM_SCHEMAS
from .replication import ConsistencyCapture, DIALECT_QUERIES, DialectQueries, ensure_read_only

__all__ = [
    "open_connection",
    "build_connection_args",
    "quote_identifier",
    "list_databases",
    "SYSTEM_SCHEMAS",
    "ConsistencyCapture",
    "DIALECT_QUERIES",
    "DialectQueries",
    "ensure_read_only",
]
