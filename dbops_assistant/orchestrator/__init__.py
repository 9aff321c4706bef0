"""Batch migration orchestration."""

from .orchestrator import MigrationOrchestrator

__all__ = ["MigrationOrchestrator"]
