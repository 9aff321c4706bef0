"""
Tests for the mysqldump backup engine and the mysql restore engine.

External tools are replaced by FakeRunner, which plays the part of
mysqldump, zstd and mysql on local files.
"""

import gzip
import json
import os
import shutil
from datetime import datetime
from pathlib import Path

import pytest

from dbops_assistant.backup.artifacts import Compression, checksum_path, grants_path, metadata_path
from dbops_assistant.backup.engine import BackupOptions
from dbops_assistant.backup.mysqldump import GRANTEES_QUERY, MysqldumpBackupEngine
from dbops_assistant.backup.restore import MysqlRestoreEngine
from dbops_assistant.core.exceptions import BackupError, ExternalToolError, RestoreError
from dbops_assistant.utils.helpers import calculate_file_checksum

DUMP = b"CREATE TABLE `orders` (`id` int);\nINSERT INTO `orders` VALUES (1);\n"
STAMP = datetime(2025, 8, 4, 10, 15, 0)


class FakeRunner:
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.loaded = None

    def run(self, command, timeout=None, env=None, stdin=None, stdout=None, check=True):
        self.calls.append({"command": list(command), "env": env, "timeout": timeout})
        program = command[0]
        if program in self.fail:
            raise ExternalToolError(f"{program} exited with status 2", command=command, returncode=2,
                                    stderr="Access denied")
        if program == "mysqldump":
            stdout.write(DUMP)
        elif program == "zstd":
            source = command[-3]
            destination = command[-1]
            shutil.copyfile(source, destination)
        elif program == "mysql":
            self.loaded = stdin.read()

    def commands(self, program):
        return [call for call in self.calls if call["command"][0] == program]


def make_backup_engine(runner, passphrase="pw", connection_factory=None):
    kwargs = {}
    if connection_factory is not None:
        kwargs["connection_factory"] = connection_factory
    return MysqldumpBackupEngine(runner=runner, passphrase=passphrase, timeout=60,
                                 clock=lambda: STAMP, **kwargs)


class TestMysqldumpBackupEngine:
    def test_gzip_encrypted_artifact(self, tmp_path, source_profile):
        runner = FakeRunner()
        engine = make_backup_engine(runner)
        options = BackupOptions(output_dir=str(tmp_path), compression=Compression.GZIP, encrypt=True)

        artifact = Path(engine.backup(source_profile, "shop", options))

        assert artifact.name == "shop_20250804_101500.sql.gz.enc"
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "shop_20250804_101500.sql.gz.enc",
            "shop_20250804_101500.sql.gz.enc.meta.json",
            "shop_20250804_101500.sql.gz.enc.sha256",
        ]
        assert checksum_path(artifact).read_text().split() == [calculate_file_checksum(artifact), artifact.name]

        metadata = json.loads(metadata_path(artifact).read_text())
        assert metadata["database_name"] == "shop"
        assert metadata["compression_type"] == "gzip"
        assert metadata["encrypted"] is True
        assert metadata["host"] == "src.example.com"

    def test_password_never_on_command_line(self, tmp_path, source_profile):
        runner = FakeRunner()
        engine = make_backup_engine(runner)

        engine.backup(source_profile, "shop", BackupOptions(output_dir=str(tmp_path), encrypt=False))

        dump_call, = runner.commands("mysqldump")
        assert dump_call["env"] == {"MYSQL_PWD": "srcpass"}
        assert not any("srcpass" in arg for arg in dump_call["command"])
        assert "--host=src.example.com" in dump_call["command"]
        assert dump_call["command"][-1] == "shop"
        assert dump_call["timeout"] == 60

    def test_structure_only_and_data_only(self, source_profile):
        engine = make_backup_engine(FakeRunner())

        structure = engine.build_command(source_profile, "shop", BackupOptions(include_data=False))
        data = engine.build_command(source_profile, "shop", BackupOptions(include_structure=False))

        assert "--no-data" in structure
        assert "--no-create-info" in data
        assert "--no-data" not in data

    def test_nothing_selected(self, tmp_path, source_profile):
        engine = make_backup_engine(FakeRunner())
        options = BackupOptions(output_dir=str(tmp_path), include_data=False, include_structure=False)
        with pytest.raises(BackupError):
            engine.backup(source_profile, "shop", options)

    def test_encryption_requires_passphrase(self, tmp_path, source_profile):
        engine = make_backup_engine(FakeRunner(), passphrase=None)
        with pytest.raises(BackupError, match="passphrase"):
            engine.backup(source_profile, "shop", BackupOptions(output_dir=str(tmp_path)))

    def test_failed_dump_leaves_nothing(self, tmp_path, source_profile):
        engine = make_backup_engine(FakeRunner(fail={"mysqldump"}))

        with pytest.raises(BackupError, match="Access denied"):
            engine.backup(source_profile, "shop", BackupOptions(output_dir=str(tmp_path)))

        assert list(tmp_path.iterdir()) == []

    def test_plain_gzip_content(self, tmp_path, source_profile):
        engine = make_backup_engine(FakeRunner())
        options = BackupOptions(output_dir=str(tmp_path), encrypt=False, checksum=False)

        artifact = engine.backup(source_profile, "shop", options)

        with gzip.open(artifact, "rb") as f:
            assert f.read() == DUMP
        assert not checksum_path(artifact).exists()

    def test_zstd_uses_external_tool(self, tmp_path, source_profile):
        runner = FakeRunner()
        engine = make_backup_engine(runner)
        options = BackupOptions(output_dir=str(tmp_path), compression=Compression.ZSTD, encrypt=False)

        artifact = engine.backup(source_profile, "shop", options)

        assert artifact.endswith(".sql.zst")
        assert len(runner.commands("zstd")) == 1
        assert not (tmp_path / "shop_20250804_101500.sql").exists()

    def test_grants_captured(self, tmp_path, source_profile, make_server):
        server = make_server({
            GRANTEES_QUERY: [("'app'@'%'",)],
            "SHOW GRANTS FOR 'app'@'%'": [("GRANT SELECT, INSERT ON `shop`.* TO `app`@`%`",)],
        })
        engine = make_backup_engine(FakeRunner(), connection_factory=server.connection_factory())
        options = BackupOptions(output_dir=str(tmp_path), encrypt=False, include_users=True)

        artifact = engine.backup(source_profile, "shop", options)

        assert grants_path(artifact).read_text() == "GRANT SELECT, INSERT ON `shop`.* TO `app`@`%`;\n"
        assert server.profiles[0].database is None
        assert json.loads(metadata_path(artifact).read_text())["includes_grants"] is True

    def test_prune_removes_expired_artifacts(self, tmp_path, source_profile):
        old = tmp_path / "shop_20240101_000000.sql.gz"
        old.write_bytes(b"old")
        checksum_path(old).write_text("x")
        other = tmp_path / "blog_20240101_000000.sql.gz"
        other.write_bytes(b"old")
        expired = datetime(2024, 1, 1).timestamp()
        for path in (old, other):
            os.utime(path, (expired, expired))

        engine = make_backup_engine(FakeRunner())
        options = BackupOptions(output_dir=str(tmp_path), encrypt=False, retention_days=30)
        artifact = Path(engine.backup(source_profile, "shop", options))

        assert artifact.exists()
        assert not old.exists()
        assert not checksum_path(old).exists()
        assert other.exists()

    def test_prune_only_matches_exact_database_name(self, tmp_path):
        mine = tmp_path / "shop_20200101_000000.sql"
        sibling = tmp_path / "shop_2024_20200101_000000.sql"
        expired = datetime(2020, 1, 1).timestamp()
        for path in (mine, sibling):
            path.write_bytes(b"old")
            os.utime(path, (expired, expired))
        engine = make_backup_engine(FakeRunner())

        assert engine.prune(tmp_path, "shop", 30) == [mine]
        assert sibling.exists()
        assert engine.prune(tmp_path, "shop_2024", 30) == [sibling]

    def test_second_backup_in_same_second_is_refused(self, tmp_path, source_profile):
        engine = make_backup_engine(FakeRunner())
        options = BackupOptions(output_dir=str(tmp_path), encrypt=False)
        first = Path(engine.backup(source_profile, "shop", options))
        content = first.read_bytes()

        with pytest.raises(BackupError, match="Refusing to overwrite"):
            engine.backup(source_profile, "shop", options)

        assert first.read_bytes() == content
        assert checksum_path(first).read_text().split()[0] == calculate_file_checksum(first)

    def test_leftover_plain_dump_is_not_overwritten(self, tmp_path, source_profile):
        leftover = tmp_path / "shop_20250804_101500.sql"
        leftover.write_bytes(b"-- earlier dump\n")
        engine = make_backup_engine(FakeRunner())

        with pytest.raises(BackupError, match="Refusing to overwrite"):
            engine.backup(source_profile, "shop", BackupOptions(output_dir=str(tmp_path), encrypt=False))

        assert leftover.read_bytes() == b"-- earlier dump\n"
        assert [p.name for p in tmp_path.iterdir()] == [leftover.name]


class TestMysqlRestoreEngine:
    def backup(self, tmp_path, profile, **changes):
        options = BackupOptions(output_dir=str(tmp_path), **changes)
        return make_backup_engine(FakeRunner()).backup(profile, "shop", options)

    def test_restore_encrypted_gzip(self, tmp_path, source_profile, target_profile, make_server):
        artifact = self.backup(tmp_path, source_profile)
        server = make_server({
            "DROP DATABASE IF EXISTS `shop`": [],
            "CREATE DATABASE IF NOT EXISTS `shop` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci": [],
        })
        runner = FakeRunner()
        engine = MysqlRestoreEngine(runner=runner, passphrase="pw", timeout=60,
                                    connection_factory=server.connection_factory())

        engine.restore(target_profile, "shop", artifact, verify_checksum=True, drop_existing=True)

        assert runner.loaded == DUMP
        mysql_call, = runner.commands("mysql")
        assert mysql_call["env"] == {"MYSQL_PWD": "dstpass"}
        assert mysql_call["command"][-1] == "shop"
        assert server.statements[0].startswith("DROP DATABASE")
        assert server.statements[1].startswith("CREATE DATABASE")

    def test_checksum_mismatch(self, tmp_path, source_profile, target_profile):
        artifact = self.backup(tmp_path, source_profile, encrypt=False)
        with open(artifact, "ab") as f:
            f.write(b"tampered")
        engine = MysqlRestoreEngine(runner=FakeRunner())

        with pytest.raises(RestoreError, match="Checksum mismatch"):
            engine.restore(target_profile, "shop", artifact)

    def test_missing_checksum_sidecar(self, tmp_path, source_profile, target_profile):
        artifact = self.backup(tmp_path, source_profile, encrypt=False, checksum=False)
        engine = MysqlRestoreEngine(runner=FakeRunner())

        with pytest.raises(RestoreError, match="Checksum file missing"):
            engine.restore(target_profile, "shop", artifact)

    def test_skip_verification_and_schema_changes(self, tmp_path, source_profile, target_profile):
        artifact = self.backup(tmp_path, source_profile, encrypt=False, checksum=False,
                               compression=Compression.NONE)
        runner = FakeRunner()
        engine = MysqlRestoreEngine(runner=runner)

        engine.restore(target_profile, "shop", artifact, verify_checksum=False,
                       drop_existing=False, create_database=False)

        assert runner.loaded == DUMP

    def test_wrong_passphrase(self, tmp_path, source_profile, target_profile):
        artifact = self.backup(tmp_path, source_profile)
        engine = MysqlRestoreEngine(runner=FakeRunner(), passphrase="wrong")

        with pytest.raises(RestoreError, match="Failed to decode"):
            engine.restore(target_profile, "shop", artifact, create_database=False)

    def test_mysql_failure(self, tmp_path, source_profile, target_profile):
        artifact = self.backup(tmp_path, source_profile, encrypt=False)
        engine = MysqlRestoreEngine(runner=FakeRunner(fail={"mysql"}))

        with pytest.raises(RestoreError, match="Failed to load"):
            engine.restore(target_profile, "shop", artifact, create_database=False)

    def test_missing_artifact(self, tmp_path, target_profile):
        engine = MysqlRestoreEngine(runner=FakeRunner())
        with pytest.raises(RestoreError, match="not found"):
            engine.restore(target_profile, "shop", str(tmp_path / "shop.sql"))

    def test_restore_grants_into_renamed_database(self, tmp_path, target_profile, make_server):
        artifact = tmp_path / "shop_20250804_101500.sql.gz"
        artifact.write_bytes(b"")
        grants_path(artifact).write_text(
            "GRANT SELECT ON `shop`.* TO `app`@`%`;\nGRANT ALL ON `shop`.* TO `gone`@`%`;\n"
        )
        server = make_server({"GRANT SELECT ON `shop_copy`.* TO `app`@`%`": []})
        engine = MysqlRestoreEngine(runner=FakeRunner(), connection_factory=server.connection_factory())

        warnings = engine.restore_grants(target_profile, str(artifact), "shop", "shop_copy")

        assert server.statements[0] == "GRANT SELECT ON `shop_copy`.* TO `app`@`%`"
        assert len(warnings) == 1
        assert "gone" in warnings[0]

    def test_no_grants_sidecar(self, tmp_path, target_profile):
        engine = MysqlRestoreEngine(runner=FakeRunner())
        assert engine.restore_grants(target_profile, str(tmp_path / "shop.sql"), "shop", "shop") == []

    def test_undecodable_grants_file_becomes_warning(self, tmp_path, target_profile, make_server):
        artifact = tmp_path / "shop_20250804_101500.sql"
        artifact.write_bytes(b"")
        grants_path(artifact).write_bytes(b"GRANT \xff\xfe;")
        server = make_server({})
        engine = MysqlRestoreEngine(runner=FakeRunner(), connection_factory=server.connection_factory())

        warnings = engine.restore_grants(target_profile, str(artifact), "shop", "shop")

        assert len(warnings) == 1
        assert "unreadable" in warnings[0]
        assert server.executed == []
