"""Configuration loader for YAML/JSON files and command-line overrides."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from .schema import SyncConfig
from ..utils.logging import get_logger


class ConfigurationError(Exception):
    """Raised when configuration loading fails."""
    pass


class ConfigLoader:
    """Loads and validates sync configuration from files and overrides."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Read a JSON or YAML mapping.

        Raises:
            ConfigurationError: If the file is missing, malformed or not a mapping
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {file_path}")
        return data

    def load_sync_config(
        self,
        file_path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> SyncConfig:
        """Build a validated SyncConfig.

        Args:
            file_path: Optional JSON/YAML file with defaults
            overrides: Values from the command line; ``None`` values and empty
                lists leave the file's value in place

        Returns:
            Validated SyncConfig object
        """
        data: Dict[str, Any] = self.load_file(file_path) if file_path else {}

        for key, value in (overrides or {}).items():
            if value is None or value == []:
                continue
            data[key] = value

        try:
            config = SyncConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sync configuration: {e}") from e

        self.logger.debug(
            "Sync configuration loaded",
            bucket=config.bucket,
            directory=str(config.directory),
            acl=config.acl.value,
            encrypted=config.encrypted,
            purge=config.purge
        )
        return config
