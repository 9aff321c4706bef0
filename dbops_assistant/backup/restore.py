"""
Restore engine built on the ``mysql`` client.

Runs the backup pipeline in reverse: verify the checksum sidecar,
decrypt, decompress into a scratch directory, prepare the target schema
and pipe the SQL into ``mysql``.
"""

import gzip
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from mysql.connector import Error as MySQLError

from ..core.exceptions import DatabaseError, ExternalToolError, RestoreError, SecurityError
from ..database.connection import open_connection, quote_identifier
from ..models.config import ConnectionProfile
from ..security.encryption import EncryptionManager
from ..system.commands import CommandRunner
from ..utils.helpers import calculate_file_checksum
from .artifacts import Compression, checksum_path, describe_artifact, grants_path
from .engine import RestoreEngine

logger = logging.getLogger(__name__)


class MysqlRestoreEngine(RestoreEngine):
    """Loads mysqldump artifacts with the mysql command line client."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        passphrase: Optional[str] = None,
        timeout: Optional[int] = None,
        connection_factory: Callable = open_connection,
    ):
        self.runner = runner or CommandRunner()
        self.passphrase = passphrase
        self.timeout = timeout
        self._connect = connection_factory

    def restore(
        self,
        profile: ConnectionProfile,
        target_database: str,
        artifact_path: str,
        verify_checksum: bool = True,
        drop_existing: bool = False,
        create_database: bool = True,
    ) -> None:
        artifact = Path(artifact_path)
        if not artifact.is_file():
            raise RestoreError(f"Backup artifact not found: {artifact}")

        info = describe_artifact(artifact)
        if info is None:
            raise RestoreError(f"Not a recognised backup artifact: {artifact.name}")

        if verify_checksum:
            self.verify_checksum(artifact)

        logger.info(f"Restoring {artifact.name} into {target_database} on {profile.address}")
        with tempfile.TemporaryDirectory(prefix="dbops-restore-") as scratch:
            try:
                sql_file = self._decode(artifact, info.encrypted, info.compression, Path(scratch))
            except (SecurityError, ExternalToolError, OSError) as e:
                raise RestoreError(f"Failed to decode {artifact.name}: {e}")

            self._prepare_database(profile, target_database, drop_existing, create_database)

            with open(sql_file, "rb") as sql:
                try:
                    self.runner.run(
                        self.build_command(profile, target_database),
                        timeout=self.timeout,
                        env={"MYSQL_PWD": profile.password},
                        stdin=sql,
                    )
                except ExternalToolError as e:
                    raise RestoreError(f"Failed to load {artifact.name} into {target_database}: {e}")

        logger.info(f"Restore of {target_database} completed")

    @staticmethod
    def build_command(profile: ConnectionProfile, database: str) -> List[str]:
        return [
            "mysql",
            f"--host={profile.host}",
            f"--port={profile.port}",
            f"--user={profile.user}",
            database,
        ]

    @staticmethod
    def verify_checksum(artifact: Path) -> None:
        """Compare the artifact against its ``.sha256`` sidecar.

        Raises:
            RestoreError: If the sidecar is missing or the digest differs
        """
        sidecar = checksum_path(artifact)
        if not sidecar.exists():
            raise RestoreError(f"Checksum file missing for {artifact.name}")

        recorded = sidecar.read_text(encoding="utf-8").split()
        if not recorded:
            raise RestoreError(f"Checksum file for {artifact.name} is empty")

        actual = calculate_file_checksum(artifact)
        if actual != recorded[0].lower():
            raise RestoreError(
                f"Checksum mismatch for {artifact.name}",
                details={"expected": recorded[0], "actual": actual},
            )
        logger.debug(f"Checksum verified for {artifact.name}")

    def _decode(self, artifact: Path, encrypted: bool, compression: Compression, scratch: Path) -> Path:
        current = artifact
        if encrypted:
            if not self.passphrase:
                raise SecurityError(f"{artifact.name} is encrypted but no passphrase is configured")
            decrypted = scratch / "decrypted"
            EncryptionManager(self.passphrase).decrypt_file(current, decrypted)
            current = decrypted

        if compression == Compression.GZIP:
            plain = scratch / "dump.sql"
            with gzip.open(current, "rb") as src, open(plain, "wb") as dst:
                shutil.copyfileobj(src, dst)
            current = plain
        elif compression == Compression.ZSTD:
            plain = scratch / "dump.sql"
            self.runner.run(["zstd", "-d", "-q", "-f", str(current), "-o", str(plain)], timeout=self.timeout)
            current = plain

        return current

    def _prepare_database(self, profile: ConnectionProfile, database: str,
                          drop_existing: bool, create_database: bool) -> None:
        if not drop_existing and not create_database:
            return
        try:
            with self._connect(profile.server_level()) as conn:
                cursor = conn.cursor()
                try:
                    if drop_existing:
                        logger.info(f"Dropping existing database {database}")
                        cursor.execute(f"DROP DATABASE IF EXISTS {quote_identifier(database)}")
                    if create_database:
                        cursor.execute(
                            f"CREATE DATABASE IF NOT EXISTS {quote_identifier(database)} "
                            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                        )
                finally:
                    cursor.close()
        except (DatabaseError, MySQLError) as e:
            raise RestoreError(f"Failed to prepare database {database}: {e}")

    def restore_grants(self, profile: ConnectionProfile, artifact_path: str,
                       source_database: str, target_database: str) -> List[str]:
        """Replay the grants sidecar, retargeted at ``target_database``.

        Returns warnings for statements that could not be applied.
        """
        sidecar = grants_path(artifact_path)
        if not sidecar.exists():
            return []

        payload = sidecar.read_bytes()
        info = describe_artifact(artifact_path)
        if info is not None and info.encrypted:
            if not self.passphrase:
                return [f"Grants for {source_database} are encrypted but no passphrase is configured"]
            try:
                payload = EncryptionManager(self.passphrase).decrypt_data(payload)
            except SecurityError as e:
                return [f"Could not decrypt grants for {source_database}: {e}"]

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            message = f"Grants file for {source_database} is unreadable: {e}"
            logger.warning(message)
            return [message]

        source_ref = f"ON {quote_identifier(source_database)}."
        target_ref = f"ON {quote_identifier(target_database)}."
        statements = [
            line.rstrip(";").replace(source_ref, target_ref)
            for line in text.splitlines()
            if line.strip()
        ]

        warnings = []
        try:
            with self._connect(profile.server_level()) as conn:
                cursor = conn.cursor()
                try:
                    for statement in statements:
                        try:
                            cursor.execute(statement)
                        except MySQLError as e:
                            warnings.append(f"Grant not applied ({statement[:60]}): {e}")
                finally:
                    cursor.close()
        except DatabaseError as e:
            warnings.append(f"Could not replay grants for {target_database}: {e}")

        for warning in warnings:
            logger.warning(warning)
        logger.info(f"Replayed {len(statements) - len(warnings)} grant statement(s) on {target_database}")
        return warnings
