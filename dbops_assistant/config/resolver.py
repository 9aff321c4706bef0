"""
Connection resolution.

A connection profile comes from the first tier that applies:

1. an explicit encrypted configuration file
2. explicit connection flags (host, port, user, password)
3. a profile chosen from the discovered encrypted profiles
4. compiled-in defaults

Once a tier applies there is no fallthrough: a configuration file that
cannot be decrypted fails the resolution instead of silently moving on.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from ..core.selector import Selector
from ..core.exceptions import ConfigurationError
from ..models.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_USER,
    ConnectionProfile,
    Provenance,
)
from ..security.config_store import EncryptedConfigStore

logger = logging.getLogger(__name__)

PassphraseProvider = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ConnectionFlags:
    """Connection inputs for one side (source or target) of an operation."""
    config: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None

    @property
    def has_connection_flags(self) -> bool:
        return any(value is not None for value in (self.host, self.port, self.user, self.password))


class ConfigResolver:
    """Resolves connection profiles from layered sources."""

    def __init__(
        self,
        store: EncryptedConfigStore,
        selector: Selector,
        profile_dir: Union[str, Path],
        passphrase_provider: PassphraseProvider,
    ):
        """
        Args:
            store: Loads encrypted profile files
            selector: Picks among discovered profiles
            profile_dir: Directory searched for ``*.cnf.enc`` profiles
            passphrase_provider: Called with the profile path, returns the passphrase
        """
        self.store = store
        self.selector = selector
        self.profile_dir = Path(profile_dir).expanduser()
        self.passphrase_provider = passphrase_provider

    def resolve(self, flags: ConnectionFlags, role: str = "source") -> Tuple[ConnectionProfile, Provenance]:
        """Resolve the connection for ``role``.

        Returns:
            The profile and the tier that produced it

        Raises:
            ConfigurationError: If an explicitly referenced or selected
                profile cannot be loaded, or the flags are invalid
        """
        if flags.config:
            profile = self._load(Path(flags.config).expanduser(), role)
            return self._resolved(profile, Provenance.CONFIG_FILE, role)

        if flags.has_connection_flags:
            try:
                profile = ConnectionProfile(
                    host=flags.host or DEFAULT_HOST,
                    port=flags.port if flags.port is not None else DEFAULT_PORT,
                    user=flags.user or DEFAULT_USER,
                    password=flags.password or "",
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid {role} connection flags: {e}")
            return self._resolved(profile, Provenance.FLAGS, role)

        candidates = self.store.discover(self.profile_dir)
        if candidates:
            labels = [self.store.profile_name(path) for path in candidates]
            index = self.selector.select_one(f"Select {role} configuration", labels)
            profile = self._load(candidates[index], role)
            return self._resolved(profile, Provenance.INTERACTIVE, role)

        return self._resolved(ConnectionProfile(), Provenance.DEFAULTS, role)

    def _load(self, path: Path, role: str) -> ConnectionProfile:
        passphrase = self.passphrase_provider(str(path))
        if not passphrase:
            raise ConfigurationError(f"No encryption password available for {role} configuration {path}")
        return self.store.load(path, passphrase)

    @staticmethod
    def _resolved(profile: ConnectionProfile, provenance: Provenance, role: str) -> Tuple[ConnectionProfile, Provenance]:
        logger.info(f"Using {role} connection {profile.display_name} from {provenance.label}")
        return profile, provenance
