"""
Settings file loading.

Settings live in a YAML file. The path is taken from an explicit
argument, then the ``DBOPS_SETTINGS`` environment variable, then
``~/.dbops-assistant/config.yaml``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ConfigurationError
from ..models.settings import AppSettings

logger = logging.getLogger(__name__)

ENV_SETTINGS = "DBOPS_SETTINGS"
DEFAULT_SETTINGS_PATH = Path.home() / ".dbops-assistant" / "config.yaml"


def settings_path(explicit: Optional[Union[str, Path]] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    from_env = os.environ.get(ENV_SETTINGS)
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_SETTINGS_PATH


def load_settings(path: Optional[Union[str, Path]] = None) -> AppSettings:
    """Load application settings.

    A missing file at the default location yields default settings; a
    missing file that was asked for explicitly is an error.

    Raises:
        ConfigurationError: If the file is missing (explicit path), not valid
            YAML, or holds invalid values
    """
    explicit = bool(path) or bool(os.environ.get(ENV_SETTINGS))
    target = settings_path(path)

    if not target.exists():
        if explicit:
            raise ConfigurationError(f"Settings file not found: {target}")
        logger.debug(f"No settings file at {target}, using defaults")
        return AppSettings()

    try:
        with open(target, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in settings file {target}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read settings file {target}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {target} must contain a mapping")

    try:
        settings = AppSettings(**data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings in {target}: {e}")

    logger.debug(f"Loaded settings from {target}")
    return settings


def save_settings(settings: AppSettings, path: Union[str, Path]) -> Path:
    """Write settings as YAML, creating parent directories."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = settings.model_dump(mode='json')
    with open(target, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return target
