"""System integration: external command execution."""

from .commands import CommandRunner, CommandResult, DEFAULT_TIMEOUT

__all__ = ["CommandRunner", "CommandResult", "DEFAULT_TIMEOUT"]
