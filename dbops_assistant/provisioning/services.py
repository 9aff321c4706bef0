"""Service control and data directory initialization through external tools."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.exceptions import ExternalToolError
from ..system.commands import CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAMES = ("mariadb", "mysql", "mysqld")


class ServiceManager:
    """Stops the database server through systemctl."""

    def __init__(self, runner: CommandRunner, service_names: Sequence[str] = DEFAULT_SERVICE_NAMES,
                 timeout: Optional[int] = 120):
        self.runner = runner
        self.service_names = list(service_names)
        self.timeout = timeout

    def stop(self, name: str) -> None:
        self.runner.run(["systemctl", "stop", name], timeout=self.timeout)

    def stop_any(self) -> List[str]:
        """Stop every known service alias, ignoring ones that are missing or not running.

        Returns:
            Names that stopped cleanly
        """
        stopped = []
        for name in self.service_names:
            try:
                self.stop(name)
            except ExternalToolError as e:
                logger.warning(f"Could not stop service {name} (ignored): {e}")
                continue
            logger.info(f"Stopped service {name}")
            stopped.append(name)
        return stopped


class DataDirInitializer:
    """Creates an empty data directory with ``mysql_install_db``."""

    def __init__(self, runner: CommandRunner, timeout: Optional[int] = None,
                 os_user: str = "mysql", basedir: str = "/usr"):
        self.runner = runner
        self.timeout = timeout
        self.os_user = os_user
        self.basedir = basedir

    def build_command(self, data_dir: Union[str, Path]) -> List[str]:
        return [
            "mysql_install_db",
            f"--user={self.os_user}",
            f"--basedir={self.basedir}",
            f"--datadir={data_dir}",
        ]

    def initialize(self, data_dir: Union[str, Path]) -> None:
        """Raises ExternalToolError if the tool fails or times out."""
        logger.info(f"Initializing data directory {data_dir}")
        self.runner.run(self.build_command(data_dir), timeout=self.timeout)
