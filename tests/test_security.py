"""
Tests for encryption and the encrypted profile store.
"""

import io
import os
import stat

import pytest

from dbops_assistant.core.exceptions import ConfigurationError, SecurityError
from dbops_assistant.models.config import ConnectionProfile
from dbops_assistant.security.config_store import EncryptedConfigStore
from dbops_assistant.security.encryption import (
    NONCE_SIZE,
    STREAM_MAGIC,
    EncryptionManager,
    passphrase_from_env,
)


class TestEncryptionManager:
    def setup_method(self):
        self.manager = EncryptionManager("s3cret")

    def test_data_layout_and_roundtrip(self):
        encrypted = self.manager.encrypt_data("hello")
        assert len(encrypted) == NONCE_SIZE + len("hello") + 16
        assert self.manager.decrypt_data(encrypted) == b"hello"

    def test_wrong_passphrase(self):
        encrypted = self.manager.encrypt_data(b"payload")
        with pytest.raises(SecurityError):
            EncryptionManager("other").decrypt_data(encrypted)

    def test_empty_passphrase_rejected(self):
        with pytest.raises(SecurityError):
            EncryptionManager("")

    def test_stream_multiple_chunks(self):
        payload = os.urandom(10_000)
        sealed = io.BytesIO()
        self.manager.encrypt_stream(io.BytesIO(payload), sealed, chunk_size=4096)
        assert sealed.getvalue().startswith(STREAM_MAGIC)

        sealed.seek(0)
        opened = io.BytesIO()
        self.manager.decrypt_stream(sealed, opened)
        assert opened.getvalue() == payload

    def test_truncated_stream_detected(self):
        sealed = io.BytesIO()
        self.manager.encrypt_stream(io.BytesIO(b"x" * 9000), sealed, chunk_size=4096)
        data = sealed.getvalue()
        # drop the final chunk entirely
        first_chunk_end = len(STREAM_MAGIC) + 5 + NONCE_SIZE + 4096 + 16
        with pytest.raises(SecurityError):
            self.manager.decrypt_stream(io.BytesIO(data[:first_chunk_end]), io.BytesIO())

    def test_not_a_stream(self):
        with pytest.raises(SecurityError):
            self.manager.decrypt_stream(io.BytesIO(b"plain text"), io.BytesIO())

    def test_passphrase_from_env(self, monkeypatch):
        monkeypatch.setenv("DBOPS_ENCRYPTION_PASSWORD", "  fromenv ")
        assert passphrase_from_env() == "fromenv"
        monkeypatch.setenv("DBOPS_ENCRYPTION_PASSWORD", "   ")
        assert passphrase_from_env() is None


class TestEncryptedConfigStore:
    def setup_method(self):
        self.store = EncryptedConfigStore()

    def test_save_and_load(self, tmp_path):
        profile = ConnectionProfile(host="db.internal", port=3307, user="ops", password="pw")

        path = self.store.save(tmp_path / "prod", profile, "pass")

        assert path.name == "prod.cnf.enc"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert self.store.load(path, "pass") == profile

    def test_wrong_password(self, tmp_path):
        path = self.store.save(tmp_path / "prod", ConnectionProfile(), "pass")
        with pytest.raises(ConfigurationError, match="Incorrect encryption password"):
            self.store.load(path, "nope")

    def test_corrupted_content(self, tmp_path):
        path = tmp_path / "broken.cnf.enc"
        path.write_bytes(EncryptionManager("pass").encrypt_data(b"not json"))
        with pytest.raises(ConfigurationError, match="Corrupted configuration file"):
            self.store.load(path, "pass")

    def test_wrong_suffix(self, tmp_path):
        path = tmp_path / "prod.cnf"
        path.write_bytes(b"")
        with pytest.raises(ConfigurationError, match=".cnf.enc"):
            self.store.load(path, "pass")

    def test_discover_sorted(self, tmp_path):
        for name in ("b", "a"):
            self.store.save(tmp_path / name, ConnectionProfile(), "pass")
        (tmp_path / "notes.txt").write_text("x")

        found = self.store.discover(tmp_path)

        assert [p.name for p in found] == ["a.cnf.enc", "b.cnf.enc"]
        assert self.store.profile_name(found[0]) == "a"
        assert self.store.discover(tmp_path / "missing") == []
