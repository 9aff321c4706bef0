"""
Logging setup for the DB Ops Assistant.

Console output goes through Rich, file output through a rotating
handler, optionally as one JSON object per line.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "dbops_assistant"

_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message',
})


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a JSON object."""
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in entry:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    console: Optional[Console] = None,
    max_log_size: int = 50 * 1024 * 1024,  # 50MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Set up logging for the DB Ops Assistant.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        rich_console: Whether to use Rich console handler for CLI
        structured_logging: Whether to write JSON lines to the log file
        console: Rich console to attach the handler to (stderr by default)
        max_log_size: Maximum log file size before rotation
        backup_count: Number of backup log files to keep

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    if rich_console:
        console_handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_log_size,
            backupCount=backup_count
        )
        if structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
        logger.addHandler(file_handler)

    return logger
