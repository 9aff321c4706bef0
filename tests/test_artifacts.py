"""Tests for backup artifact naming."""

import os
from datetime import datetime

import pytest

from dbops_assistant.backup.artifacts import (
    Compression,
    build_artifact_name,
    checksum_path,
    describe_artifact,
    extract_database_name,
    find_artifacts,
    is_artifact_of,
    is_backup_file,
    split_backup_suffix,
)


class TestSuffixes:
    @pytest.mark.parametrize("filename,stem,suffix", [
        ("shop.sql.gz.enc", "shop", ".sql.gz.enc"),
        ("shop.sql.zst", "shop", ".sql.zst"),
        ("shop.sql", "shop", ".sql"),
        ("shop.dump.enc", "shop", ".dump.enc"),
        ("notes.txt", "notes.txt", ""),
        (".sql", ".sql", ""),
    ])
    def test_longest_suffix_first(self, filename, stem, suffix):
        assert split_backup_suffix(filename) == (stem, suffix)

    def test_sidecars_are_not_backups(self):
        assert is_backup_file("shop_20250804_101500.sql.gz")
        assert not is_backup_file("shop_20250804_101500.sql.gz.sha256")
        assert not is_backup_file("shop_20250804_101500.sql.gz.meta.json")

    def test_describe(self):
        info = describe_artifact("/backups/shop_20250804_101500.sql.zst.enc")
        assert info.compression == Compression.ZSTD
        assert info.encrypted
        assert info.base == ".sql"
        assert describe_artifact("readme.md") is None


class TestNames:
    def test_build_name(self):
        stamp = datetime(2025, 8, 4, 10, 15, 0)
        assert build_artifact_name("shop", Compression.GZIP, True, stamp) == "shop_20250804_101500.sql.gz.enc"
        assert build_artifact_name("shop", Compression.NONE, False, stamp) == "shop_20250804_101500.sql"

    @pytest.mark.parametrize("filename,expected", [
        ("shop_20250804_101500.sql.gz.enc", "shop"),
        ("my_shop_20250804_101500.sql.zst", "my_shop"),
        ("shop.sql", "shop"),
        ("shop_v2.sql.gz", "shop_v2"),
        ("shop_2024_20250804_101500.sql", "shop_2024"),
        ("shop_20250804.sql", "shop_20250804"),
    ])
    def test_extract_database_name(self, filename, expected):
        assert extract_database_name(filename) == expected

    @pytest.mark.parametrize("filename,database,expected", [
        ("shop_20250804_101500.sql.gz.enc", "shop", True),
        ("shop_2024_20250804_101500.sql", "shop", False),
        ("shop_2024_20250804_101500.sql", "shop_2024", True),
        ("shop.sql", "shop", False),
        ("shop_20250804_101500.sql.sha256", "shop", False),
        ("shop.v1_20250804_101500.sql", "shop.v1", True),
        ("shopxv1_20250804_101500.sql", "shop.v1", False),
    ])
    def test_is_artifact_of(self, filename, database, expected):
        assert is_artifact_of(filename, database) is expected

    def test_checksum_path(self):
        assert str(checksum_path("/b/shop.sql.gz")) == "/b/shop.sql.gz.sha256"


class TestFindArtifacts:
    def test_newest_first_filtered_by_database(self, tmp_path):
        old = tmp_path / "shop_20250101_000000.sql.gz"
        new = tmp_path / "shop_20250201_000000.sql.gz"
        other = tmp_path / "blog_20250201_000000.sql.gz"
        for path in (old, new, other):
            path.write_bytes(b"x")
        checksum_path(new).write_text("abc")
        os.utime(old, (1_700_000_000, 1_700_000_000))
        os.utime(new, (1_700_100_000, 1_700_100_000))

        assert find_artifacts(tmp_path, "shop") == [new, old]
        assert len(find_artifacts(tmp_path)) == 3
        assert find_artifacts(tmp_path / "missing") == []

    def test_names_with_digit_parts_are_kept_apart(self, tmp_path):
        shop = tmp_path / "shop_20250101_000000.sql"
        shop_2024 = tmp_path / "shop_2024_20250101_000000.sql"
        for path in (shop, shop_2024):
            path.write_bytes(b"x")

        assert find_artifacts(tmp_path, "shop") == [shop]
        assert find_artifacts(tmp_path, "shop_2024") == [shop_2024]
