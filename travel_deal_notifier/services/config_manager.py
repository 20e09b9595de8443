"""
Configuration management for the travel deal notifier.
"""

import json
import os
from dataclasses import fields
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from ..models.config import (
    ClusteringConfig,
    Configuration,
    LoggingConfig,
    NotificationConfig,
    ScoringConfig,
    StoreConfig,
)
from ..utils.error_handling import ErrorCategory, ErrorSeverity, with_error_handling
from ..utils.logging import get_logger

logger = get_logger("config")

SectionT = TypeVar("SectionT")

SECTIONS = {
    "scoring": ScoringConfig,
    "clustering": ClusteringConfig,
    "notifications": NotificationConfig,
    "store": StoreConfig,
    "logging": LoggingConfig,
}


class ConfigurationManager:
    """Manages loading, validation, and reloading of system configuration."""

    DEFAULT_PATHS = [
        "config/config.yaml",
        "config/config.yml",
        "config/config.json",
        "config.yaml",
        "config.yml",
        "config.json",
    ]

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, the standard
                locations are searched and defaults are used when none exists.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None

    def _find_config_file(self) -> Optional[str]:
        """Find the configuration file in standard locations."""
        for path in self.DEFAULT_PATHS:
            if os.path.exists(path):
                return path
        return None

    def load_config(self) -> Configuration:
        """
        Load configuration from file.

        Returns:
            Validated configuration; the documented defaults when no file
            was given or found.

        Raises:
            ValueError: If configuration is invalid or file cannot be read.
            FileNotFoundError: If an explicitly given file doesn't exist.
        """
        if self.config_path is None:
            logger.info("No configuration file found, using defaults")
            self._config = Configuration.default()
            return self._config

        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        raw_config = self._read_file(self.config_path)
        config = self._parse_config(self._expand_env_vars(raw_config))
        config.validate()

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)
        logger.info("Configuration loaded", extra={"path": self.config_path})
        return config

    @staticmethod
    def _read_file(path: str) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    raw_config = json.load(f)
                else:
                    raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ValueError("Configuration file must contain a mapping")
        return raw_config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand environment variables in configuration."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            # Expand ${VAR_NAME} patterns
            if obj.startswith("${") and obj.endswith("}"):
                var_name = obj[2:-1]
                env_value = os.getenv(var_name)
                if env_value is None:
                    raise ValueError(f"Environment variable '{var_name}' not found")
                return env_value
            return obj
        else:
            return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        unknown = set(raw_config) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        return Configuration(
            **{
                name: self._parse_section(name, section_type, raw_config.get(name))
                for name, section_type in SECTIONS.items()
            }
        )

    @staticmethod
    def _parse_section(
        name: str, section_type: Type[SectionT], data: Optional[Dict[str, Any]]
    ) -> SectionT:
        if data is None:
            return section_type()
        if not isinstance(data, dict):
            raise ValueError(f"Configuration section '{name}' must be a mapping")

        known = {f.name for f in fields(section_type)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown keys in '{name}': {sorted(unknown)}")

        section = section_type(**data)
        if name == "scoring" and "weights" in data:
            # Partial weight overrides keep the remaining defaults.
            section.weights = {**ScoringConfig().weights, **data["weights"]}
        return section

    def get_config(self) -> Configuration:
        """
        Get current configuration, loading if necessary.

        Returns:
            Current configuration object.
        """
        if self._config is None:
            return self.load_config()
        return self._config

    @with_error_handling(
        component="config",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.MEDIUM,
        handled=(ValueError, OSError),
        fallback_value=False,
        suppress_exceptions=True,
    )
    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        A failed reload keeps the current configuration.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if self.config_path is None or not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)
        if self._last_modified is None or current_modified > self._last_modified:
            self.load_config()
            return True

        return False

    def validate_config_file(self, config_path: str) -> bool:
        """
        Validate a configuration file without loading it.

        Raises:
            ValueError: If configuration is invalid with detailed error message.
        """
        if not os.path.exists(config_path):
            raise ValueError(f"Configuration file not found: {config_path}")

        raw_config = self._read_file(config_path)
        try:
            raw_config = self._expand_env_vars(raw_config)
        except ValueError:
            # Unset variables are not a validation failure.
            pass

        try:
            self._parse_config(raw_config).validate()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Configuration validation failed: {e}")
        return True

    def get_config_template(self) -> Dict[str, Any]:
        """
        Get a template configuration dictionary.

        Returns:
            Dictionary with example configuration structure.
        """
        return {
            "scoring": {
                "weights": {
                    "budget_alignment": 0.30,
                    "location_relevance": 0.25,
                    "category_fit": 0.20,
                    "time_relevance": 0.15,
                    "user_preference": 0.10,
                },
                "significance_threshold": 60,
                "location_half_score_km": 2.0,
            },
            "clustering": {"cell_size_deg": 0.01},
            "notifications": {
                "default_max_daily": 10,
                "default_frequency": "immediate",
                "default_timezone": "Asia/Jakarta",
                "currency": "IDR",
            },
            "store": {
                "backend": "redis",
                "redis_url": "${REDIS_URL}",
                "key_prefix": "travel:",
            },
            "logging": {"level": "INFO", "log_dir": "logs"},
        }
