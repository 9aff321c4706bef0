"""Database name lists: one name per line, in migration order."""

import logging
from pathlib import Path
from typing import Iterable, List, Union

from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"


def parse_database_list(content: str) -> List[str]:
    """Parse list file content.

    Lines are stripped; blank lines and ``#`` comments are skipped and
    the remaining order is kept.
    """
    names = []
    for line in content.splitlines():
        name = line.strip()
        if not name or name.startswith(COMMENT_PREFIX):
            continue
        names.append(name)
    return names


def read_database_list(path: Union[str, Path]) -> List[str]:
    """Read a UTF-8 database list file.

    Raises:
        ConfigurationError: If the file cannot be read or names no databases
    """
    path = Path(path)
    try:
        content = path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise ConfigurationError(f"Database list file not found: {path}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read database list file {path}: {e}")

    names = parse_database_list(content)
    if not names:
        raise ConfigurationError(f"Database list file {path} contains no database names")

    logger.info(f"Read {len(names)} database name(s) from {path}")
    return names


def normalize_database_names(names: Iterable[str]) -> List[str]:
    """Strip names, drop blanks and repeated names, keeping first occurrences in order.

    Raises:
        ConfigurationError: If no names remain
    """
    seen = set()
    result = []
    for raw in names:
        name = raw.strip()
        if not name:
            continue
        if name in seen:
            logger.warning(f"Database {name} listed more than once, migrating it once")
            continue
        seen.add(name)
        result.append(name)

    if not result:
        raise ConfigurationError("No databases specified for migration")
    return result
