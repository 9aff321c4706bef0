"""
External command execution with a bounded wall-clock timeout.

Every shell-out (mysqldump, mysql, systemctl, mysql_install_db, zstd)
goes through :class:`CommandRunner`. A command that exits non-zero or
exceeds its timeout raises :class:`ExternalToolError` with the captured
output attached.
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Dict, IO, List, Optional, Sequence

from ..core.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3600


@dataclass
class CommandResult:
    """Outcome of a finished command."""
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def _decode(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class CommandRunner:
    """Runs external commands synchronously."""

    def __init__(self, default_timeout: int = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout

    def run(
        self,
        command: Sequence[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        stdin: Optional[IO] = None,
        stdout: Optional[IO] = None,
        check: bool = True,
    ) -> CommandResult:
        """Run a command and wait for it.

        Args:
            command: Program and arguments
            timeout: Seconds before the command is killed (default_timeout if None)
            env: Extra environment variables merged over the current environment
            stdin: Optional file object fed to the command
            stdout: Optional file object receiving stdout instead of capturing it
            check: Raise on non-zero exit

        Returns:
            CommandResult with captured output

        Raises:
            ExternalToolError: If the command is missing, times out, or fails with check=True
        """
        command = [str(part) for part in command]
        timeout = timeout if timeout is not None else self.default_timeout
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        logger.debug(f"Running command: {command[0]} (timeout {timeout}s)")
        started = time.monotonic()
        try:
            completed = subprocess.run(
                command,
                stdin=stdin,
                stdout=stdout if stdout is not None else subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=full_env,
                timeout=timeout,
            )
        except FileNotFoundError:
            raise ExternalToolError(f"Command not found: {command[0]}", command=command)
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(
                f"{command[0]} timed out after {timeout}s",
                command=command,
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                timed_out=True,
            )

        result = CommandResult(
            command=command,
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            duration=time.monotonic() - started,
        )

        if check and not result.succeeded:
            raise ExternalToolError(
                f"{command[0]} exited with status {result.returncode}",
                command=command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result
