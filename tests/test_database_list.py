"""Tests for database list parsing."""

import pytest

from dbops_assistant.config.database_list import (
    normalize_database_names,
    parse_database_list,
    read_database_list,
)
from dbops_assistant.core.exceptions import ConfigurationError


class TestParseDatabaseList:
    def test_blank_lines_dropped_order_kept(self):
        assert parse_database_list("db1\n\ndb2\n  \ndb3\n") == ["db1", "db2", "db3"]

    def test_comments_and_whitespace(self):
        content = "# production schemas\n  shop  \n\t\nblog\r\n#legacy\n"
        assert parse_database_list(content) == ["shop", "blog"]

    def test_empty(self):
        assert parse_database_list("") == []


class TestReadDatabaseList:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "dbs.txt"
        path.write_text("shop\nblog\n", encoding="utf-8")
        assert read_database_list(path) == ["shop", "blog"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            read_database_list(tmp_path / "absent.txt")

    def test_file_without_names(self, tmp_path):
        path = tmp_path / "dbs.txt"
        path.write_text("\n# nothing here\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="no database names"):
            read_database_list(path)


class TestNormalizeDatabaseNames:
    def test_deduplicates_keeping_first(self):
        assert normalize_database_names(["b", "a", "b", " a "]) == ["b", "a"]

    def test_empty_raises(self):
        with pytest.raises(ConfigurationError):
            normalize_database_names([])
