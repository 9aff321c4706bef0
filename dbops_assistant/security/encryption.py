"""Encryption utilities for profiles and backup artifacts.

Keys are derived from a passphrase with PBKDF2-HMAC-SHA512 and data is
sealed with AES-256-GCM. Small payloads use a single ``nonce + ciphertext``
blob; files are streamed in authenticated chunks so large dumps never
have to fit in memory.
"""

import logging
import os
import struct
from pathlib import Path
from typing import BinaryIO, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import SecurityError

logger = logging.getLogger(__name__)

ENV_ENCRYPTION_PASSWORD = "DBOPS_ENCRYPTION_PASSWORD"

KEY_SALT = b"dbops_encryption_salt_v3"
KEY_ITERATIONS = 10000
KEY_LENGTH = 32
NONCE_SIZE = 12

STREAM_MAGIC = b"DBOPSENC1"
STREAM_CHUNK_SIZE = 1024 * 1024
_CHUNK_HEADER = struct.Struct(">IB")


class EncryptionManager:
    """Manages passphrase based encryption and decryption."""

    def __init__(self, passphrase: str):
        """Initialize encryption manager.

        Args:
            passphrase: Passphrase the AES key is derived from
        """
        if not passphrase:
            raise SecurityError("Encryption passphrase cannot be empty")
        self._key = self.derive_key(passphrase)

    @staticmethod
    def derive_key(passphrase: str, salt: bytes = KEY_SALT) -> bytes:
        """Derive a 256-bit key from a passphrase using PBKDF2.

        Args:
            passphrase: Passphrase to derive the key from
            salt: Salt for key derivation

        Returns:
            Raw key bytes
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=KEY_ITERATIONS,
        )
        return kdf.derive(passphrase.encode("utf-8"))

    def encrypt_data(self, data: Union[str, bytes]) -> bytes:
        """Encrypt data; the result is ``nonce + ciphertext + tag``."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self._key).encrypt(nonce, data, None)

    def decrypt_data(self, encrypted_data: bytes) -> bytes:
        """Decrypt data produced by :meth:`encrypt_data`.

        Raises:
            SecurityError: If the passphrase is wrong or the data was altered
        """
        if len(encrypted_data) < NONCE_SIZE:
            raise SecurityError("Ciphertext too short")

        nonce, ciphertext = encrypted_data[:NONCE_SIZE], encrypted_data[NONCE_SIZE:]
        try:
            return AESGCM(self._key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise SecurityError(
                "Message authentication failed: incorrect encryption password or corrupted data"
            )

    def encrypt_stream(self, source: BinaryIO, destination: BinaryIO,
                       chunk_size: int = STREAM_CHUNK_SIZE) -> None:
        """Encrypt ``source`` into ``destination`` chunk by chunk.

        Each chunk is sealed with its index and a final-chunk flag as
        associated data, so reordered or truncated streams fail to decrypt.
        """
        aesgcm = AESGCM(self._key)
        destination.write(STREAM_MAGIC)

        index = 0
        chunk = source.read(chunk_size)
        while True:
            following = source.read(chunk_size)
            final = not following
            nonce = os.urandom(NONCE_SIZE)
            sealed = aesgcm.encrypt(nonce, chunk, self._chunk_aad(index, final))
            destination.write(_CHUNK_HEADER.pack(len(sealed), int(final)))
            destination.write(nonce)
            destination.write(sealed)
            if final:
                break
            chunk = following
            index += 1

    def decrypt_stream(self, source: BinaryIO, destination: BinaryIO) -> None:
        """Decrypt a stream produced by :meth:`encrypt_stream`."""
        if source.read(len(STREAM_MAGIC)) != STREAM_MAGIC:
            raise SecurityError("Not an encrypted backup stream")

        aesgcm = AESGCM(self._key)
        index = 0
        while True:
            header = source.read(_CHUNK_HEADER.size)
            if len(header) < _CHUNK_HEADER.size:
                raise SecurityError("Encrypted stream is truncated")
            length, final = _CHUNK_HEADER.unpack(header)
            nonce = source.read(NONCE_SIZE)
            sealed = source.read(length)
            if len(nonce) < NONCE_SIZE or len(sealed) < length:
                raise SecurityError("Encrypted stream is truncated")
            try:
                destination.write(aesgcm.decrypt(nonce, sealed, self._chunk_aad(index, bool(final))))
            except InvalidTag:
                raise SecurityError(
                    "Message authentication failed: incorrect encryption password or corrupted data"
                )
            if final:
                break
            index += 1

    def encrypt_file(self, source_path: Union[str, Path], destination_path: Union[str, Path]) -> Path:
        destination_path = Path(destination_path)
        with open(source_path, "rb") as src, open(destination_path, "wb") as dst:
            self.encrypt_stream(src, dst)
        logger.debug(f"Encrypted {source_path} -> {destination_path}")
        return destination_path

    def decrypt_file(self, source_path: Union[str, Path], destination_path: Union[str, Path]) -> Path:
        destination_path = Path(destination_path)
        with open(source_path, "rb") as src, open(destination_path, "wb") as dst:
            self.decrypt_stream(src, dst)
        logger.debug(f"Decrypted {source_path} -> {destination_path}")
        return destination_path

    @staticmethod
    def _chunk_aad(index: int, final: bool) -> bytes:
        return struct.pack(">QB", index, int(final))


def passphrase_from_env(env_var: str = ENV_ENCRYPTION_PASSWORD) -> Optional[str]:
    """Return the passphrase from the environment, if set and non-blank."""
    value = os.environ.get(env_var, "").strip()
    return value or None
