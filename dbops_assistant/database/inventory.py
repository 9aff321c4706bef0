"""Database inventory queries."""

import logging
from typing import List

from mysql.connector import Error as MySQLError

from ..core.exceptions import DatabaseError
from ..models.config import ConnectionProfile
from .connection import open_connection

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = frozenset({"information_schema", "performance_schema", "mysql", "sys"})


def list_databases(profile: ConnectionProfile, include_system: bool = False) -> List[str]:
    """List database names on a server, sorted, system schemas excluded by default."""
    with open_connection(profile.server_level()) as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("SHOW DATABASES")
            names = [row[0] for row in cursor.fetchall()]
        except MySQLError as e:
            raise DatabaseError(f"Failed to list databases on {profile.address}: {e}")
        finally:
            cursor.close()

    if not include_system:
        names = [name for name in names if name.lower() not in SYSTEM_SCHEMAS]

    logger.debug(f"Found {len(names)} databases on {profile.address}")
    return sorted(names)
