"""
Backup artifact naming.

Artifact names encode the pipeline stages as compound dotted suffixes:
a base (``.sql``), then optional compression (``.gz``/``.zst``), then
optional encryption (``.enc``). Anything that infers a database name or
content type from a filename strips the longest matching suffix first.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

BASE_SUFFIXES = (".sql", ".dump", ".backup")
ENCRYPTED_SUFFIX = ".enc"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
STAMP_PATTERN = r"_\d{8}_\d{6}"
STAMPED_STEM = re.compile(r"(.+)" + STAMP_PATTERN)

CHECKSUM_SIDECAR = ".sha256"
METADATA_SIDECAR = ".meta.json"
GRANTS_SIDECAR = ".grants"


class Compression(str, Enum):
    """Compression applied to a dump."""
    NONE = "none"
    GZIP = "gzip"
    ZSTD = "zstd"

    @property
    def suffix(self) -> str:
        return {Compression.NONE: "", Compression.GZIP: ".gz", Compression.ZSTD: ".zst"}[self]


def _build_suffixes() -> List[str]:
    suffixes = []
    for base in BASE_SUFFIXES:
        for compression in Compression:
            for encrypted in ("", ENCRYPTED_SUFFIX):
                suffixes.append(f"{base}{compression.suffix}{encrypted}")
    # longest first so ".sql.gz.enc" wins over ".enc"-less variants
    return sorted(suffixes, key=len, reverse=True)


BACKUP_SUFFIXES: Tuple[str, ...] = tuple(_build_suffixes())


@dataclass(frozen=True)
class ArtifactInfo:
    """What a filename says about the artifact it names."""
    stem: str
    suffix: str
    base: str
    compression: Compression
    encrypted: bool


def split_backup_suffix(filename: str) -> Tuple[str, str]:
    """Split a filename into its stem and longest known backup suffix.

    Returns ``(filename, "")`` when no backup suffix matches.
    """
    lowered = filename.lower()
    for suffix in BACKUP_SUFFIXES:
        if lowered.endswith(suffix) and len(filename) > len(suffix):
            return filename[:-len(suffix)], filename[-len(suffix):]
    return filename, ""


def is_backup_file(filename: str) -> bool:
    return bool(split_backup_suffix(filename)[1])


def describe_artifact(path: Union[str, Path]) -> Optional[ArtifactInfo]:
    """Describe the pipeline stages encoded in an artifact name."""
    name = Path(path).name
    stem, suffix = split_backup_suffix(name)
    if not suffix:
        return None

    remainder = suffix.lower()
    encrypted = remainder.endswith(ENCRYPTED_SUFFIX)
    if encrypted:
        remainder = remainder[:-len(ENCRYPTED_SUFFIX)]

    compression = Compression.NONE
    for member in (Compression.GZIP, Compression.ZSTD):
        if remainder.endswith(member.suffix):
            compression = member
            remainder = remainder[:-len(member.suffix)]
            break

    return ArtifactInfo(
        stem=stem,
        suffix=suffix,
        base=remainder,
        compression=compression,
        encrypted=encrypted,
    )


def extract_database_name(filename: str) -> str:
    """Infer the database name from an artifact filename.

    Only a trailing ``_YYYYmmdd_HHMMSS`` stamp is removed, so digit parts
    that belong to the name survive:

    ``shop_20250804_101500.sql.gz.enc`` -> ``shop``
    ``shop_2024_20250804_101500.sql`` -> ``shop_2024``
    ``shop.sql`` -> ``shop``
    """
    stem, _ = split_backup_suffix(Path(filename).name)
    match = STAMPED_STEM.fullmatch(stem)
    return match.group(1) if match else stem


def is_artifact_of(filename: str, database: str) -> bool:
    """True if ``filename`` is a stamped dump of exactly ``database``."""
    stem, suffix = split_backup_suffix(Path(filename).name)
    if not suffix:
        return False
    return re.fullmatch(re.escape(database) + STAMP_PATTERN, stem) is not None


def build_artifact_name(
    database: str,
    compression: Compression = Compression.NONE,
    encrypted: bool = False,
    timestamp: Optional[datetime] = None,
) -> str:
    """Build the filename for a new dump of ``database``."""
    stamp = (timestamp or datetime.now()).strftime(TIMESTAMP_FORMAT)
    suffix = f".sql{compression.suffix}{ENCRYPTED_SUFFIX if encrypted else ''}"
    return f"{database}_{stamp}{suffix}"


def checksum_path(artifact: Union[str, Path]) -> Path:
    return Path(f"{artifact}{CHECKSUM_SIDECAR}")


def metadata_path(artifact: Union[str, Path]) -> Path:
    return Path(f"{artifact}{METADATA_SIDECAR}")


def grants_path(artifact: Union[str, Path]) -> Path:
    return Path(f"{artifact}{GRANTS_SIDECAR}")


def find_artifacts(directory: Union[str, Path], database: Optional[str] = None) -> List[Path]:
    """List backup artifacts in ``directory``, newest first.

    Sidecar files are never returned. When ``database`` is given only
    stamped dumps of exactly that database are listed.
    """
    root = Path(directory)
    if not root.is_dir():
        return []

    artifacts = []
    for entry in root.iterdir():
        if not entry.is_file() or not is_backup_file(entry.name):
            continue
        if database is not None and not is_artifact_of(entry.name, database):
            continue
        artifacts.append(entry)

    return sorted(artifacts, key=lambda p: p.stat().st_mtime, reverse=True)
