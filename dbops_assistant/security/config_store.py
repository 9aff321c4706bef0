"""Encrypted connection profile store (``*.cnf.enc`` files)."""

import json
import logging
import os
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ConfigurationError, SecurityError
from ..models.config import ConnectionProfile
from .encryption import EncryptionManager

logger = logging.getLogger(__name__)

PROFILE_SUFFIX = ".cnf.enc"


class EncryptedConfigStore:
    """Loads and saves connection profiles encrypted with a passphrase.

    A profile file holds ``{"host", "port", "user", "password"}`` as JSON,
    encrypted with :class:`EncryptionManager`.
    """

    def load(self, path: Union[str, Path], passphrase: str) -> ConnectionProfile:
        """Decrypt and parse a profile file.

        Raises:
            ConfigurationError: If the file is missing, unreadable, cannot be
                decrypted with ``passphrase`` or does not hold a valid profile
        """
        path = Path(path)
        self.validate_path(path)

        try:
            encrypted = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}")

        try:
            decrypted = EncryptionManager(passphrase).decrypt_data(encrypted)
        except SecurityError as e:
            raise ConfigurationError(
                f"Incorrect encryption password for {path}",
                details={"path": str(path), "reason": e.message},
            )

        try:
            data = json.loads(decrypted.decode("utf-8"))
            profile = ConnectionProfile(
                host=data.get("host") or "localhost",
                port=data.get("port") or 3306,
                user=data.get("user") or "root",
                password=data.get("password") or "",
            )
        except (UnicodeDecodeError, json.JSONDecodeError, AttributeError, PydanticValidationError) as e:
            raise ConfigurationError(
                f"Corrupted configuration file {path}",
                details={"path": str(path), "reason": str(e)},
            )

        logger.debug(f"Loaded encrypted profile {path.name} ({profile.display_name})")
        return profile

    def save(self, path: Union[str, Path], profile: ConnectionProfile, passphrase: str) -> Path:
        """Encrypt a profile and write it with owner-only permissions."""
        path = Path(path)
        if not path.name.endswith(PROFILE_SUFFIX):
            path = path.with_name(path.name + PROFILE_SUFFIX)
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = json.dumps({
            "host": profile.host,
            "port": profile.port,
            "user": profile.user,
            "password": profile.password,
        })
        encrypted = EncryptionManager(passphrase).encrypt_data(payload)

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(encrypted)

        logger.info(f"Saved encrypted profile to {path}")
        return path

    def discover(self, directory: Union[str, Path]) -> List[Path]:
        """List profile files in ``directory`` sorted by name."""
        root = Path(directory).expanduser()
        if not root.is_dir():
            return []
        return sorted(
            (entry for entry in root.iterdir() if entry.is_file() and entry.name.endswith(PROFILE_SUFFIX)),
            key=lambda p: p.name,
        )

    @staticmethod
    def validate_path(path: Path) -> None:
        if not path.exists():
            raise ConfigurationError(f"Configuration file does not exist: {path}")
        if not path.name.endswith(PROFILE_SUFFIX):
            raise ConfigurationError(f"File must be an encrypted config file ({PROFILE_SUFFIX}): {path}")

    @staticmethod
    def profile_name(path: Union[str, Path]) -> str:
        name = Path(path).name
        return name[:-len(PROFILE_SUFFIX)] if name.endswith(PROFILE_SUFFIX) else name
