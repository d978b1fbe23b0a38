"""Configuration manager for loading and validating .reprise.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from reprise.domain.config import AppConfig, RetryPolicy
from reprise.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".reprise.yml"

# Environment variable -> policy field
ENV_POLICY_OVERRIDES = {
    "REPRISE_REPEATS": "repeats",
    "REPRISE_MIN_SUCCESSES": "min_successes",
    "REPRISE_SUSPEND_MS": "suspend_ms",
}


class ConfigManager:
    """Manages configuration from .reprise.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .reprise.yml file (searched from current directory)
    3. Environment variables (REPRISE_*)
    4. Marker arguments on the test (handled by the policy resolver)
    """

    DEFAULT_CONFIG = {
        "enabled": True,
        "policy": {
            "repeats": 1,
            "min_successes": 1,
            "suspend_ms": 0,
        },
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .reprise.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            raise ConfigurationError.from_validation_error("Configuration validation failed", e) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .reprise.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")
            else:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        f"Configuration in {self.config_path} must be a mapping, "
                        f"got {type(file_config).__name__}"
                    )
                config_dict = self._merge_config(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)

        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with env overrides applied
        """
        if os.getenv("REPRISE_ENABLED"):
            config["enabled"] = os.getenv("REPRISE_ENABLED")

        for env_name, field in ENV_POLICY_OVERRIDES.items():
            if os.getenv(env_name):
                config.setdefault("policy", {})[field] = os.getenv(env_name)

        return config

    def get_policy_defaults(self) -> RetryPolicy:
        """Get project-wide retry policy defaults

        Returns:
            Retry policy model
        """
        return self.config.policy

    def is_enabled(self) -> bool:
        """Check if marked tests should be repeated

        Returns:
            True if repetition is enabled
        """
        return self.config.enabled

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "policy.repeats" or "policy")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
