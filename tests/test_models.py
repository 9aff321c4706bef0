"""Tests for the data models."""

import pytest
from pydantic import ValidationError

from dbops_assistant.models.config import ConnectionProfile, MigrationConfig, Provenance
from dbops_assistant.models.replication import Dialect
from dbops_assistant.models.results import MigrationResult, MigrationSummary


class TestConnectionProfile:
    def test_defaults(self):
        profile = ConnectionProfile()
        assert profile.address == "localhost:3306"
        assert profile.user == "root"
        assert profile.password == ""
        assert profile.database is None

    def test_immutable(self):
        profile = ConnectionProfile()
        with pytest.raises(ValidationError):
            profile.host = "elsewhere"

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_range(self, port):
        with pytest.raises(ValidationError):
            ConnectionProfile(port=port)

    def test_password_hidden_from_repr(self):
        assert "hunter2" not in repr(ConnectionProfile(password="hunter2"))

    def test_server_level(self):
        profile = ConnectionProfile(database="shop")
        assert profile.server_level().database is None
        assert profile.database == "shop"


class TestMigrationConfig:
    def test_for_database(self, migration_config):
        item = migration_config.for_database("shop")

        assert item.source_database == "shop"
        assert item.target_database == "shop"
        assert item.source.host == migration_config.source.host
        assert migration_config.source_database is None

    def test_enabled_options(self, source_profile, target_profile):
        config = MigrationConfig(source=source_profile, target=target_profile,
                                 migrate_users=False, backup_target=False)
        options = config.enabled_options()
        assert "Migrate database users and grants" not in options
        assert "Migrate database data" in options

    def test_provenance_labels(self):
        assert Provenance.CONFIG_FILE.label == "configuration file"
        assert Provenance.DEFAULTS.label == "compiled-in defaults"


class TestResults:
    def test_failed_result_needs_error(self):
        with pytest.raises(ValidationError):
            MigrationResult(source_database="a", target_database="a", success=False)

    def test_summary_must_match_databases(self):
        ok = MigrationResult(source_database="a", target_database="a", success=True)
        with pytest.raises(ValidationError):
            MigrationSummary(databases=("a", "b"), results=(ok,))
        with pytest.raises(ValidationError):
            MigrationSummary(databases=("a", "a"), results=(ok,))

    def test_summary_counts(self):
        results = (
            MigrationResult(source_database="a", target_database="a", success=True),
            MigrationResult(source_database="b", target_database="b", success=False, error="boom"),
        )
        summary = MigrationSummary(databases=("a", "b"), results=results, total_duration=2.5)

        assert summary.success_count == 1
        assert summary.error_count == 1
        assert summary.per_item_errors == ["Database b: boom"]
        assert summary.model_dump()["error_count"] == 1


class TestDialect:
    @pytest.mark.parametrize("version,dialect", [
        ("10.6.23-MariaDB-log", Dialect.MARIADB),
        ("5.5.5-10.11.8-mariadb", Dialect.MARIADB),
        ("8.0.36", Dialect.MYSQL),
        ("", Dialect.MYSQL),
        (None, Dialect.MYSQL),
    ])
    def test_from_version_string(self, version, dialect):
        assert Dialect.from_version_string(version) == dialect
