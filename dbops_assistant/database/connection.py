"""MySQL/MariaDB connections using mysql-connector-python.

Connections are opened per logical operation and closed as soon as the
operation ends; nothing is pooled across orchestration steps so no
server-side lock outlives the step that took it.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import mysql.connector
from mysql.connector import Error as MySQLError

from ..core.exceptions import DatabaseError
from ..models.config import ConnectionProfile

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10


def build_connection_args(profile: ConnectionProfile,
                          connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> Dict[str, Any]:
    """Create the keyword arguments for ``mysql.connector.connect``.

    The profile's database is only selected when it is set; server-level
    sessions leave it out entirely.
    """
    conn_config = {
        'host': profile.host,
        'port': profile.port,
        'user': profile.user,
        'password': profile.password,
        'charset': 'utf8mb4',
        'use_unicode': True,
        'autocommit': True,
        'connection_timeout': connect_timeout,
    }
    if profile.database:
        conn_config['database'] = profile.database
    return conn_config


@contextmanager
def open_connection(profile: ConnectionProfile,
                    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> Iterator[Any]:
    """Open a connection for the duration of a ``with`` block.

    Raises:
        DatabaseError: If the server cannot be reached or rejects the login
    """
    try:
        conn = mysql.connector.connect(**build_connection_args(profile, connect_timeout))
    except MySQLError as e:
        raise DatabaseError(
            f"Failed to connect to {profile.address}: {e}",
            details={'host': profile.host, 'port': profile.port, 'user': profile.user},
        )

    logger.debug(f"Connected to {profile.display_name}")
    try:
        yield conn
    finally:
        try:
            conn.close()
        except MySQLError as e:
            logger.debug(f"Error closing connection to {profile.address}: {e}")


def quote_identifier(name: str) -> str:
    """Quote a schema or table identifier with backticks."""
    return "`" + name.replace("`", "``") + "`"
