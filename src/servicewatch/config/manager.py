"""Configuration Manager.

Loads servicewatch configuration once per run from:
1. Code defaults declared in the registry
2. A TOML file (default: config/default.toml)
3. Environment variables (optionally seeded from a .env file)

Precedence: code defaults < TOML file < environment variables.
"""

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
import structlog

from .registry import (
    REGISTRY,
    get_config_key,
    validate_config_value,
    get_default_values,
)

logger = structlog.get_logger()

ENV_PREFIX = "SERVICEWATCH_"


class ConfigManager:
    """Loads and validates servicewatch configuration.

    Attributes:
        config: Loaded configuration (empty until load() is called)
        config_file: TOML file path
        env_file: .env file path
    """

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file (default: config/default.toml)
            env_file: Path to .env file (default: .env in working directory)
        """
        self.config: dict[str, Any] = {}

        if config_file is None:
            config_file = Path("config/default.toml")
        if env_file is None:
            env_file = Path(".env")

        self.config_file = config_file
        self.env_file = env_file

    def load(self) -> dict[str, Any]:
        """Load configuration from defaults, TOML and environment variables.

        Returns:
            Dictionary of configuration key-value pairs

        Raises:
            ValueError: If the TOML file is malformed, an env var cannot be
                parsed, or any value fails validation

        Note:
            A missing config file is not an error; defaults are used with a warning.
        """
        logger.info("loading_config", config_file=str(self.config_file))

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info("env_file_loaded", env_file=str(self.env_file))

        # Step 1: Code defaults
        config = get_default_values()

        # Step 2: TOML file
        if self.config_file.exists():
            try:
                with open(self.config_file, "rb") as f:
                    toml_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                logger.error("config_file_invalid", config_file=str(self.config_file), error=str(e))
                raise ValueError(f"Invalid TOML in {self.config_file}: {e}") from e

            flattened = self._flatten_toml(toml_data)
            for key in REGISTRY:
                if key in flattened:
                    config[key] = flattened[key]

            unknown = sorted(set(flattened) - set(REGISTRY))
            if unknown:
                logger.warning("config_unknown_keys_ignored", keys=unknown)

            logger.info("toml_config_loaded", keys_count=len(flattened))
        else:
            logger.warning("config_file_not_found",
                          config_file=str(self.config_file),
                          using_defaults=True)

        # Step 3: Environment overrides
        # Example: SERVICEWATCH_STATE_FILE_PATH overrides state.file_path
        for key in REGISTRY:
            env_key = ENV_PREFIX + key.replace(".", "_").upper()
            env_value = os.getenv(env_key)
            if env_value is not None:
                config_key_def = get_config_key(key)
                try:
                    config[key] = self._parse_env_value(env_value, config_key_def.value_type)
                    logger.info("env_override_applied", key=key, env_key=env_key)
                except ValueError as e:
                    logger.error("env_parse_error", key=key, env_key=env_key, error=str(e))
                    raise ValueError(f"Failed to parse env var {env_key}: {e}")

        # Step 4: Validate
        for key, value in config.items():
            is_valid, error_msg = validate_config_value(key, value)
            if not is_valid:
                logger.error("config_validation_failed", key=key, error=error_msg)
                raise ValueError(f"Config validation failed for '{key}': {error_msg}")

        self.config = config
        logger.info("config_loaded", keys_count=len(config))
        return config

    def get(self, key: str) -> Any:
        """Get configuration value, falling back to the registry default.

        Raises:
            KeyError: If key not found in registry
        """
        config_key_def = get_config_key(key)
        return self.config.get(key, config_key_def.default)

    def _flatten_toml(self, data: dict) -> dict[str, Any]:
        """Flatten nested TOML structure to dotted keys.

        Example: {"state": {"file_path": "..."}} -> {"state.file_path": "..."}
        """
        result = {}

        def _flatten(d: dict, prefix: str = ""):
            for key, value in d.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    _flatten(value, full_key)
                else:
                    result[full_key] = value

        _flatten(data)
        return result

    def _parse_env_value(self, value: str, target_type: type) -> Any:
        """Parse environment variable string to target type.

        Raises:
            ValueError: If parsing fails
        """
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        elif target_type == int:
            return int(value)
        elif target_type == float:
            return float(value)
        elif target_type == list:
            # Comma-separated; empty string means an empty list
            return [item.strip() for item in value.split(",") if item.strip()]
        elif target_type == str:
            return value
        else:
            raise ValueError(f"Unsupported type for env parsing: {target_type}")
