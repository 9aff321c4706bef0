"""
Backup engine built on ``mysqldump``.

A dump runs through fixed stages, each producing the next file and
removing the previous one:

    <db>_<stamp>.sql -> .sql.gz | .sql.zst -> .sql.gz.enc

followed by the checksum and metadata sidecars.
"""

import gzip
import json
import logging
import shutil
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from mysql.connector import Error as MySQLError

from ..core.exceptions import BackupError, DatabaseError, ExternalToolError, SecurityError
from ..database.connection import open_connection
from ..models.config import ConnectionProfile
from ..security.encryption import EncryptionManager
from ..system.commands import CommandRunner
from ..utils.helpers import calculate_file_checksum, split_args
from .artifacts import (
    Compression,
    ENCRYPTED_SUFFIX,
    build_artifact_name,
    checksum_path,
    find_artifacts,
    grants_path,
    metadata_path,
)
from .engine import BackupEngine, BackupOptions

logger = logging.getLogger(__name__)

DEFAULT_MYSQLDUMP_ARGS = "--single-transaction --routines --triggers --events --quick"
DATA_ONLY_FLAGS = ("--no-create-info",)
STRUCTURE_ONLY_FLAGS = ("--no-data",)

GRANTEES_QUERY = (
    "SELECT DISTINCT GRANTEE FROM information_schema.SCHEMA_PRIVILEGES "
    "WHERE TABLE_SCHEMA = %s"
)


class MysqldumpBackupEngine(BackupEngine):
    """Dumps a database with mysqldump, then compresses, encrypts and checksums it."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        passphrase: Optional[str] = None,
        mysqldump_args: str = DEFAULT_MYSQLDUMP_ARGS,
        timeout: Optional[int] = None,
        connection_factory: Callable = open_connection,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            runner: Command runner used for mysqldump and zstd
            passphrase: Passphrase for artifact encryption, required when encrypting
            mysqldump_args: Extra mysqldump arguments
            timeout: Wall-clock limit per external command
            connection_factory: Opens per-operation connections (grants capture)
            clock: Source of the artifact timestamp
        """
        self.runner = runner or CommandRunner()
        self.passphrase = passphrase
        self.mysqldump_args = mysqldump_args
        self.timeout = timeout
        self._connect = connection_factory
        self._clock = clock

    def backup(self, profile: ConnectionProfile, database: str, options: BackupOptions) -> str:
        if not options.include_data and not options.include_structure:
            raise BackupError("Nothing to back up: both data and structure are excluded")
        if options.encrypt and not self.passphrase:
            raise BackupError("Encryption requested but no passphrase is configured")

        output_dir = options.output_path
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(f"Cannot create backup directory {output_dir}: {e}")

        started = time.monotonic()
        timestamp = self._clock()
        final_name = build_artifact_name(database, options.compression, options.encrypt, timestamp)
        plain_path = output_dir / build_artifact_name(database, Compression.NONE, False, timestamp)

        existing = [path for path in self.stage_paths(output_dir, database, options, timestamp) if path.exists()]
        if existing:
            raise BackupError(
                f"Refusing to overwrite existing backup {existing[0]}",
                details={"database": database, "path": str(existing[0])},
            )

        logger.info(f"Backing up {database} from {profile.address} to {output_dir}")
        stages: List[Path] = [plain_path]
        try:
            self._dump(profile, database, options, plain_path)

            current = plain_path
            if options.compression != Compression.NONE:
                current = self._compress(current, options.compression)
                stages.append(current)
            if options.encrypt:
                current = self._encrypt(current)
                stages.append(current)
        except FileExistsError as e:
            raise BackupError(f"Refusing to overwrite existing backup {e.filename}", details={"database": database})
        except (ExternalToolError, SecurityError, OSError) as e:
            for stage in stages:
                stage.unlink(missing_ok=True)
            raise BackupError(f"Failed to back up {database}: {e}", details={"database": database})

        artifact = output_dir / final_name

        checksum = None
        if options.checksum:
            checksum = calculate_file_checksum(artifact)
            checksum_path(artifact).write_text(f"{checksum}  {artifact.name}\n", encoding="utf-8")

        if options.include_users:
            self._capture_grants(profile, database, artifact, options.encrypt)

        duration = time.monotonic() - started
        self._write_metadata(artifact, profile, database, options, checksum, duration, timestamp)

        if options.retention_days > 0:
            self.prune(output_dir, database, options.retention_days, keep=artifact)

        logger.info(f"Backup of {database} completed: {artifact} ({duration:.1f}s)")
        return str(artifact)

    def build_command(self, profile: ConnectionProfile, database: str, options: BackupOptions) -> List[str]:
        """Build the mysqldump command line; the password travels via MYSQL_PWD."""
        args = [
            "mysqldump",
            f"--host={profile.host}",
            f"--port={profile.port}",
            f"--user={profile.user}",
        ]
        args.extend(split_args(self.mysqldump_args))
        if not options.include_data:
            args.extend(STRUCTURE_ONLY_FLAGS)
        elif not options.include_structure:
            args.extend(DATA_ONLY_FLAGS)
        args.append(database)
        return args

    @staticmethod
    def stage_paths(output_dir: Path, database: str, options: BackupOptions, timestamp: datetime) -> List[Path]:
        """Every file a backup run writes, from the plain dump to the final artifact."""
        names = [build_artifact_name(database, Compression.NONE, False, timestamp)]
        if options.compression != Compression.NONE:
            names.append(build_artifact_name(database, options.compression, False, timestamp))
        if options.encrypt:
            names.append(build_artifact_name(database, options.compression, True, timestamp))
        paths = [output_dir / name for name in names]
        final = paths[-1]
        return paths + [checksum_path(final), metadata_path(final), grants_path(final)]

    def _dump(self, profile: ConnectionProfile, database: str, options: BackupOptions, output: Path) -> None:
        command = self.build_command(profile, database, options)
        with open(output, "xb") as out:
            self.runner.run(
                command,
                timeout=self.timeout,
                env={"MYSQL_PWD": profile.password},
                stdout=out,
            )

    def _compress(self, source: Path, compression: Compression) -> Path:
        destination = Path(f"{source}{compression.suffix}")
        if compression == Compression.GZIP:
            with open(source, "rb") as src, gzip.open(destination, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            self.runner.run(
                ["zstd", "-q", "-f", str(source), "-o", str(destination)],
                timeout=self.timeout,
            )
        source.unlink()
        return destination

    def _encrypt(self, source: Path) -> Path:
        destination = Path(f"{source}{ENCRYPTED_SUFFIX}")
        EncryptionManager(self.passphrase).encrypt_file(source, destination)
        source.unlink()
        return destination

    def _capture_grants(self, profile: ConnectionProfile, database: str, artifact: Path, encrypt: bool) -> None:
        """Write SHOW GRANTS output for accounts with privileges on ``database``."""
        try:
            statements = self.collect_grants(profile, database)
        except DatabaseError as e:
            logger.warning(f"Could not capture grants for {database}: {e}")
            return

        if not statements:
            logger.info(f"No database-level grants found for {database}")
            return

        payload = "".join(f"{statement};\n" for statement in statements).encode("utf-8")
        if encrypt:
            payload = EncryptionManager(self.passphrase).encrypt_data(payload)
        grants_path(artifact).write_bytes(payload)
        logger.info(f"Captured {len(statements)} grant statement(s) for {database}")

    def collect_grants(self, profile: ConnectionProfile, database: str) -> List[str]:
        statements: List[str] = []
        with self._connect(profile.server_level()) as conn:
            cursor = conn.cursor(buffered=True)
            try:
                cursor.execute(GRANTEES_QUERY, (database,))
                grantees = [row[0] for row in cursor.fetchall()]
                for grantee in grantees:
                    cursor.execute(f"SHOW GRANTS FOR {grantee}")
                    statements.extend(row[0] for row in cursor.fetchall())
            except MySQLError as e:
                raise DatabaseError(f"Failed to read grants for {database}: {e}")
            finally:
                cursor.close()
        return statements

    def _write_metadata(
        self,
        artifact: Path,
        profile: ConnectionProfile,
        database: str,
        options: BackupOptions,
        checksum: Optional[str],
        duration: float,
        timestamp: datetime,
    ) -> None:
        metadata = {
            "database_name": database,
            "backup_date": timestamp.isoformat(),
            "output_file": artifact.name,
            "file_size": artifact.stat().st_size,
            "compressed": options.compression != Compression.NONE,
            "compression_type": options.compression.value,
            "encrypted": options.encrypt,
            "includes_data": options.include_data,
            "includes_structure": options.include_structure,
            "includes_grants": grants_path(artifact).exists(),
            "duration_seconds": round(duration, 3),
            "checksum": checksum,
            "host": profile.host,
            "port": profile.port,
            "user": profile.user,
        }
        metadata_path(artifact).write_text(json.dumps(metadata, indent=2), encoding="utf-8")

    def prune(self, directory: Path, database: str, retention_days: int, keep: Optional[Path] = None) -> List[Path]:
        """Delete artifacts of ``database`` older than ``retention_days`` with their sidecars."""
        cutoff = (self._clock() - timedelta(days=retention_days)).timestamp()
        removed = []
        for artifact in find_artifacts(directory, database):
            if keep is not None and artifact == keep:
                continue
            if artifact.stat().st_mtime >= cutoff:
                continue
            for path in (artifact, checksum_path(artifact), metadata_path(artifact), grants_path(artifact)):
                path.unlink(missing_ok=True)
            removed.append(artifact)
            logger.info(f"Removed expired backup {artifact.name}")
        return removed
