"""
Pytest configuration and fixtures for the DB Ops Assistant tests.

No live server is needed: connections are replaced by scripted fakes and
the backup/restore engines by in-memory doubles.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pytest
from mysql.connector import Error as MySQLError

from dbops_assistant.backup.engine import BackupEngine, BackupOptions, RestoreEngine
from dbops_assistant.core.exceptions import BackupError, RestoreError
from dbops_assistant.models.config import ConnectionProfile, MigrationConfig


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers installed by CLI invocations so caplog keeps working."""
    yield
    package_logger = logging.getLogger("dbops_assistant")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def source_profile() -> ConnectionProfile:
    return ConnectionProfile(host="src.example.com", port=3306, user="admin", password="srcpass")


@pytest.fixture
def target_profile() -> ConnectionProfile:
    return ConnectionProfile(host="dst.example.com", port=3307, user="admin", password="dstpass")


@pytest.fixture
def migration_config(source_profile, target_profile) -> MigrationConfig:
    return MigrationConfig(source=source_profile, target=target_profile)


class FakeCursor:
    def __init__(self, server: "FakeServer"):
        self.server = server
        self._rows: List[tuple] = []

    def execute(self, statement: str, params: Optional[tuple] = None):
        self.server.executed.append((statement, params))
        response = self.server.responses.get(statement)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise MySQLError(f"Unknown statement: {statement}")
        self._rows = list(response)

    def fetchall(self):
        return self._rows

    def close(self):
        pass


class FakeServer:
    """Scripted server: maps exact statements to rows or to an exception."""

    def __init__(self, responses: Dict[str, Any]):
        self.responses = dict(responses)
        self.executed: List[tuple] = []
        self.profiles: List[ConnectionProfile] = []

    def cursor(self, buffered: bool = False):
        return FakeCursor(self)

    @property
    def statements(self) -> List[str]:
        return [statement for statement, _ in self.executed]

    def connection_factory(self):
        @contextmanager
        def connect(profile):
            self.profiles.append(profile)
            yield self
        return connect


@pytest.fixture
def make_server():
    return FakeServer


class RecordingBackupEngine(BackupEngine):
    """Backup double that fails for chosen (host, database) pairs."""

    def __init__(self, failing: Optional[set] = None):
        self.failing = failing or set()
        self.calls: List[tuple] = []

    def backup(self, profile: ConnectionProfile, database: str, options: BackupOptions) -> str:
        self.calls.append((profile.host, database, options))
        if (profile.host, database) in self.failing:
            raise BackupError(f"mysqldump failed for {database}")
        return f"/backups/{profile.host}/{database}.sql.gz.enc"


class RecordingRestoreEngine(RestoreEngine):
    def __init__(self, failing: Optional[set] = None, grant_warnings: Optional[List[str]] = None):
        self.failing = failing or set()
        self.grant_warnings = grant_warnings or []
        self.calls: List[dict] = []
        self.grant_calls: List[tuple] = []

    def restore(self, profile, target_database, artifact_path, verify_checksum=True,
                drop_existing=False, create_database=True):
        self.calls.append({
            "host": profile.host,
            "database": target_database,
            "artifact": artifact_path,
            "verify_checksum": verify_checksum,
            "drop_existing": drop_existing,
            "create_database": create_database,
        })
        if target_database in self.failing:
            raise RestoreError(f"mysql client failed for {target_database}")

    def restore_grants(self, profile, artifact_path, source_database, target_database):
        self.grant_calls.append((artifact_path, source_database, target_database))
        return list(self.grant_warnings)


@pytest.fixture
def backup_engine():
    return RecordingBackupEngine()


@pytest.fixture
def restore_engine():
    return RecordingRestoreEngine()
