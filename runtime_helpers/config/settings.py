"""
Settings for the runtime helpers with environment variable and file support.

Values resolve in this order: HelperDefaults, then an optional YAML/JSON
settings file, then RUNTIME_HELPERS_* environment variables.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .defaults import HelperDefaults
from ..exceptions import ConfigurationError


ENV_PREFIX = "RUNTIME_HELPERS_"
VALID_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

logger = logging.getLogger(__name__)


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "y", "on"):
        return True
    if text in ("false", "0", "no", "n", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {value!r}")


@dataclass
class HelperSettings:
    """Runtime settings shared by the helper components."""
    log_level: str = HelperDefaults.LOG_LEVEL
    xml_recover: bool = HelperDefaults.XML_RECOVER
    xml_huge_tree: bool = HelperDefaults.XML_HUGE_TREE
    xml_indent: bool = HelperDefaults.XML_INDENT
    add_missing_columns: bool = HelperDefaults.ADD_MISSING_COLUMNS
    basic_value_column: str = HelperDefaults.BASIC_VALUE_COLUMN

    def __post_init__(self):
        """Validate and normalize settings."""
        self.log_level = str(self.log_level).strip().upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level '{self.log_level}', expected one of {', '.join(VALID_LOG_LEVELS)}")
        for setting in fields(self):
            if setting.type is bool or setting.type == "bool":
                setattr(self, setting.name, _parse_bool(setting.name, getattr(self, setting.name)))
        if not str(self.basic_value_column).strip():
            raise ConfigurationError("basic_value_column cannot be empty")

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    @classmethod
    def _overrides_from_environment(cls) -> Dict[str, Any]:
        overrides = {}
        for setting in fields(cls):
            env_name = f"{ENV_PREFIX}{setting.name.upper()}"
            if env_name in os.environ:
                overrides[setting.name] = os.environ[env_name]
        return overrides

    @classmethod
    def from_environment(cls) -> 'HelperSettings':
        """Create settings from RUNTIME_HELPERS_* environment variables."""
        return cls(**cls._overrides_from_environment())

    @classmethod
    def from_file(cls, path: Union[str, Path], apply_environment: bool = True) -> 'HelperSettings':
        """
        Load settings from a YAML or JSON file.

        Args:
            path: Settings file (.yaml, .yml or .json)
            apply_environment: Overlay RUNTIME_HELPERS_* environment variables on the file values

        Raises:
            ConfigurationError: If the file is missing, unreadable or holds unknown keys
        """
        full_path = Path(path)
        if not full_path.exists():
            raise ConfigurationError(f"Settings file not found: {full_path}")

        try:
            with open(full_path, 'r', encoding='utf-8') as file:
                if full_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(file)
                elif full_path.suffix.lower() == '.json':
                    data = json.load(file)
                else:
                    raise ConfigurationError(f"Unsupported file format: {full_path.suffix}")
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to parse settings file {full_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read settings file {full_path}: {e}")

        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {full_path} must contain a mapping")

        known = {setting.name for setting in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings in {full_path}: {', '.join(unknown)}")

        if apply_environment:
            data.update(cls._overrides_from_environment())

        logger.info(f"Loaded settings from {full_path}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_settings: Optional[HelperSettings] = None


def get_settings() -> HelperSettings:
    """
    Get the global settings instance, built from the environment on first use.

    Returns:
        Global HelperSettings instance
    """
    global _global_settings

    if _global_settings is None:
        _global_settings = HelperSettings.from_environment()

    return _global_settings


def configure(settings: HelperSettings) -> HelperSettings:
    """Replace the global settings instance."""
    global _global_settings
    _global_settings = settings
    return settings


def reset_settings() -> None:
    """Reset the global settings instance."""
    global _global_settings
    _global_settings = None
