"""
Replication consistency capture.

Reads a server's GTID state and binlog coordinates without changing
anything on the server. The dialect is resolved once from ``VERSION()``
and selects a fixed set of queries; every sub-query is best-effort, so a
failing field is left empty and reported as a warning.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from mysql.connector import Error as MySQLError

from ..core.exceptions import CaptureError
from ..models.config import ConnectionProfile
from ..models.replication import Dialect, ReplicationIdentity
from .connection import open_connection

logger = logging.getLogger(__name__)

READ_ONLY_PREFIXES = ("SELECT", "SHOW")

VERSION_QUERY = "SELECT VERSION()"


@dataclass(frozen=True)
class DialectQueries:
    """Statements one server flavor uses for the replication identity fields."""
    server_identity: str
    executed_set: str
    purged_set: str
    binlog_status: Tuple[str, ...]
    gtid_mode: Optional[str] = None
    gtid_checks: Tuple[str, ...] = ()
    binlog_gtid_pos: Optional[str] = None


DIALECT_QUERIES = {
    Dialect.MYSQL: DialectQueries(
        server_identity="SELECT @@GLOBAL.server_uuid",
        executed_set="SELECT @@GLOBAL.gtid_executed",
        purged_set="SELECT @@GLOBAL.gtid_purged",
        # 8.4 removed SHOW MASTER STATUS in favour of SHOW BINARY LOG STATUS
        binlog_status=("SHOW BINARY LOG STATUS", "SHOW MASTER STATUS"),
        gtid_mode="SHOW VARIABLES LIKE 'gtid_mode'",
    ),
    Dialect.MARIADB: DialectQueries(
        server_identity="SELECT @@GLOBAL.server_id",
        executed_set="SELECT @@GLOBAL.gtid_current_pos",
        purged_set="SELECT @@GLOBAL.gtid_binlog_pos",
        binlog_status=("SHOW MASTER STATUS",),
        gtid_checks=("SELECT @@GLOBAL.gtid_domain_id", "SELECT @@GLOBAL.gtid_current_pos"),
        binlog_gtid_pos="SELECT BINLOG_GTID_POS(%s, %s)",
    ),
}


def ensure_read_only(statement: str) -> str:
    """Reject any statement that is not a plain SELECT or SHOW."""
    head = statement.lstrip().split(None, 1)[0].upper() if statement.strip() else ""
    if head not in READ_ONLY_PREFIXES:
        raise CaptureError(f"Refusing to run non read-only statement during capture: {statement!r}")
    return statement


class _Session:
    """Thin query helper over one server-level connection."""

    def __init__(self, conn: Any):
        self._conn = conn

    def fetch_all(self, statement: str, params: Optional[Sequence[Any]] = None) -> List[Tuple]:
        cursor = self._conn.cursor(buffered=True)
        try:
            if params:
                cursor.execute(ensure_read_only(statement), tuple(params))
            else:
                cursor.execute(ensure_read_only(statement))
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def fetch_scalar(self, statement: str, params: Optional[Sequence[Any]] = None) -> Any:
        rows = self.fetch_all(statement, params)
        if not rows or not rows[0]:
            return None
        return rows[0][0]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


class ConsistencyCapture:
    """Captures the replication identity of a live server."""

    def __init__(self, connection_factory: Callable = open_connection):
        self._connect = connection_factory

    def get_replication_identity(self, profile: ConnectionProfile) -> ReplicationIdentity:
        """Capture GTID state and binlog coordinates.

        Connects without selecting a database. Individual field failures
        never abort the capture.

        Raises:
            DatabaseError: If the server cannot be reached at all
        """
        with self._connect(profile.server_level()) as conn:
            return self._capture(_Session(conn), profile)

    def _capture(self, session: _Session, profile: ConnectionProfile) -> ReplicationIdentity:
        warnings: List[str] = []

        def best_effort(field: str, read: Callable[[], Any], default: Any = None) -> Any:
            try:
                return read()
            except (MySQLError, CaptureError) as e:
                message = f"{field}: {e}"
                logger.warning(f"Replication capture on {profile.address} could not read {message}")
                warnings.append(message)
                return default

        version = _as_text(best_effort("server version", lambda: session.fetch_scalar(VERSION_QUERY), ""))
        dialect = Dialect.from_version_string(version)
        queries = DIALECT_QUERIES[dialect]

        identity = _as_text(best_effort(
            "server identity", lambda: session.fetch_scalar(queries.server_identity), ""
        ))

        gtid_enabled = best_effort(
            "GTID mode", lambda: self._gtid_enabled(session, queries), False
        )

        executed_set = purged_set = ""
        if gtid_enabled:
            executed_set = _as_text(best_effort(
                "executed GTID set", lambda: session.fetch_scalar(queries.executed_set), ""
            ))
            purged_set = _as_text(best_effort(
                "purged GTID set", lambda: session.fetch_scalar(queries.purged_set), ""
            ))

        binlog_file, binlog_position = best_effort(
            "binlog position", lambda: self._binlog_status(session, queries), ("", None)
        )

        gtid_position = ""
        if queries.binlog_gtid_pos and binlog_file and binlog_position is not None:
            gtid_position = _as_text(best_effort(
                "binlog GTID position",
                lambda: session.fetch_scalar(queries.binlog_gtid_pos, (binlog_file, binlog_position)),
                "",
            ))

        result = ReplicationIdentity(
            dialect=dialect,
            server_version=version,
            server_identity=identity,
            gtid_enabled=bool(gtid_enabled),
            executed_set=executed_set,
            purged_set=purged_set,
            binlog_file=binlog_file,
            binlog_position=binlog_position,
            gtid_position=gtid_position,
            warnings=tuple(warnings),
        )

        logger.info(
            f"Replication identity captured from {profile.address}: dialect={dialect.value} "
            f"gtid={result.gtid_enabled} binlog={binlog_file or '-'}:{binlog_position if binlog_position is not None else '-'}"
        )
        return result

    @staticmethod
    def _gtid_enabled(session: _Session, queries: DialectQueries) -> bool:
        if queries.gtid_mode:
            rows = session.fetch_all(queries.gtid_mode)
            # no gtid_mode variable at all means an older server without GTID
            if not rows:
                return False
            return _as_text(rows[0][1]).strip().upper() == "ON"

        for check in queries.gtid_checks:
            try:
                session.fetch_scalar(check)
            except MySQLError as e:
                logger.debug(f"GTID check failed ({check}): {e}")
                return False
        return True

    @staticmethod
    def _binlog_status(session: _Session, queries: DialectQueries) -> Tuple[str, Optional[int]]:
        last_error: Optional[MySQLError] = None
        for statement in queries.binlog_status:
            try:
                rows = session.fetch_all(statement)
            except MySQLError as e:
                last_error = e
                continue

            if not rows:
                raise CaptureError("no binlog status available (binary logging disabled?)", field="binlog")

            # 2-column (older servers) or 4+ column result; only file and offset matter
            row = rows[0]
            if len(row) < 2:
                raise CaptureError(f"unexpected binlog status shape: {len(row)} column(s)", field="binlog")
            return _as_text(row[0]), int(row[1])

        raise last_error
