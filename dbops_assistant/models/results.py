"""
Result models for batch migrations.

A MigrationResult is created once per requested database and never
changed afterwards. MigrationSummary is derived from the ordered list
of results, so its counters cannot drift from the results themselves.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, computed_field, model_validator


class MigrationResult(BaseModel):
    """Outcome of migrating a single database."""
    model_config = ConfigDict(frozen=True)

    source_database: str
    target_database: str
    success: bool
    error: Optional[str] = None
    backup_artifact_path: Optional[str] = None
    target_backup_path: Optional[str] = None
    duration: float = 0.0
    warnings: Tuple[str, ...] = ()

    @model_validator(mode='after')
    def check_error_matches_status(self):
        if not self.success and not self.error:
            raise ValueError('failed results must carry an error message')
        return self

    def describe_error(self) -> str:
        return f"Database {self.source_database}: {self.error}"


class MigrationSummary(BaseModel):
    """Aggregated outcome of a batch migration."""
    model_config = ConfigDict(frozen=True)

    databases: Tuple[str, ...]
    results: Tuple[MigrationResult, ...]
    total_duration: float = 0.0

    @model_validator(mode='after')
    def check_one_result_per_database(self):
        names = tuple(result.source_database for result in self.results)
        if names != self.databases:
            raise ValueError('summary must hold exactly one result per requested database, in order')
        return self

    @computed_field
    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @computed_field
    @property
    def error_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @computed_field
    @property
    def per_item_errors(self) -> List[str]:
        return [result.describe_error() for result in self.results if not result.success]

    @property
    def successful_databases(self) -> List[str]:
        return [result.source_database for result in self.results if result.success]

    @property
    def failed_databases(self) -> List[str]:
        return [result.source_database for result in self.results if not result.success]

    @property
    def is_successful(self) -> bool:
        return self.error_count == 0
