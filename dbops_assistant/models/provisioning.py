"""Provisioning models."""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class DataDirVersionRecord(BaseModel):
    """Comparison between an on-disk data directory and the incoming server version.

    Derived on every provisioning run, never persisted.
    """
    model_config = ConfigDict(frozen=True)

    data_dir: str
    target_version: str
    existing_version: Optional[str] = None
    existing_parsed: Tuple[int, int] = (0, 0)
    target_parsed: Tuple[int, int] = (0, 0)
    is_downgrade: bool = False

    @property
    def marker_present(self) -> bool:
        return self.existing_version is not None
