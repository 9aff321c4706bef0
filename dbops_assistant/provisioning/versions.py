"""Server version parsing for data directory compatibility checks."""

from typing import Optional, Tuple


def _as_int(part: str) -> int:
    digits = ""
    for char in part.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else 0


def parse_major_minor(version: Optional[str]) -> Tuple[int, int]:
    """Parse ``"10.6.23-MariaDB-log"`` into ``(10, 6)``.

    Anything after the first ``-`` is ignored; missing or non-numeric
    components count as 0.
    """
    if not version:
        return 0, 0
    parts = version.strip().split("-", 1)[0].split(".")
    major = _as_int(parts[0]) if len(parts) > 0 else 0
    minor = _as_int(parts[1]) if len(parts) > 1 else 0
    return major, minor


def is_downgrade(existing: Tuple[int, int], target: Tuple[int, int]) -> bool:
    """True when the data written by ``existing`` is newer than ``target`` can run."""
    existing_major, existing_minor = existing
    target_major, target_minor = target
    if existing_major != target_major:
        return existing_major > target_major
    return existing_minor > target_minor
