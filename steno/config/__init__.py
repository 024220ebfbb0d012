"""Simple YAML configuration loader for Steno."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "language": "en-US",
        "continuous": True,
        "interim_results": True,
    },
    "recognition": {
        "restart_delay_seconds": 0.25,
        "restart_backoff": 2.0,
        "max_restart_failures": 2,
    },
    "permissions": {
        "request_on_open": True,
    },
    "audio": {
        "sample_rate": 16000,
        "channels": 1,
        "chunk_size": 1024,
    },
    "logging": {
        "level": "INFO",
        "file_path": None,
        "console_output": True,
    },
    "sessions": {
        "output_directory": "transcripts",
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class StenoConfig:
    """Steno configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not self.config_file.exists():
            raise ConfigError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigError("Configuration file must contain a mapping")
        for section in DEFAULT_CONFIG:
            if section in config and not isinstance(config[section], dict):
                raise ConfigError(f"Configuration section '{section}' must be a mapping")

        config = _merge(DEFAULT_CONFIG, config)
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

        output_dir = config['sessions'].get('output_directory')
        if output_dir and not os.path.isabs(output_dir):
            config['sessions']['output_directory'] = str(config_dir / output_dir)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'engine.language').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'engine.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_restart_policy(self) -> Dict[str, Any]:
        """Get the auto-restart settings, validated."""
        delay = float(self.get('recognition.restart_delay_seconds'))
        backoff = float(self.get('recognition.restart_backoff'))
        max_failures = int(self.get('recognition.max_restart_failures'))

        if delay < 0:
            raise ConfigError("recognition.restart_delay_seconds must not be negative")
        if backoff < 1.0:
            raise ConfigError("recognition.restart_backoff must be at least 1.0")
        if max_failures < 1:
            raise ConfigError("recognition.max_restart_failures must be at least 1")

        return {
            "restart_delay": delay,
            "restart_backoff": backoff,
            "max_restart_failures": max_failures,
        }

    def get_output_directory(self) -> str:
        """Get transcript export directory path."""
        output_dir = self.get('sessions.output_directory', 'transcripts')
        return str(Path(output_dir).absolute())
