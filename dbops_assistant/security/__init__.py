"""Security utilities: encryption and the encrypted profile store."""

from .encryption import EncryptionManager, ENV_ENCRYPTION_PASSWORD, passphrase_from_env
from .config_store import EncryptedConfigStore, PROFILE_SUFFIX

__all__ = [
    "EncryptionManager",
    "ENV_ENCRYPTION_PASSWORD",
    "passphrase_from_env",
    "EncryptedConfigStore",
    "PROFILE_SUFFIX",
]
