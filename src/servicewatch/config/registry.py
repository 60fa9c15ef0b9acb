"""Configuration Registry - Defines all configuration keys with validation rules.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available in servicewatch. Every run reads the
configuration once at startup; there is no hot reload.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation.

    Attributes:
        value_type: Expected Python type (str, int, float, bool, list)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        validator: Custom validation function (optional)
    """
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    validator: Optional[Callable[[Any], bool]] = None


# Configuration Registry
# =======================
# All configuration keys must be registered here.

REGISTRY: dict[str, ConfigKey] = {
    # ===== STATE =====
    "state.file_path": ConfigKey(
        value_type=str,
        default="logs/service_state.json",
        validator=lambda v: bool(v.strip()),
    ),

    # ===== LOGGING =====
    "logging.file_path": ConfigKey(
        value_type=str,
        default="logs/servicewatch.log",
    ),
    "logging.level": ConfigKey(
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),

    # ===== MONITOR =====
    "monitor.target_services": ConfigKey(
        value_type=list,
        default=[],
        validator=lambda v: all(isinstance(item, str) and item for item in v),
    ),
    "monitor.verbose": ConfigKey(
        value_type=bool,
        default=False,
    ),
    "monitor.slow_run_threshold_ms": ConfigKey(
        value_type=int,
        default=30000,
        min_value=100,
        max_value=600000,
    ),

    # ===== PROBE =====
    "probe.command_timeout_seconds": ConfigKey(
        value_type=int,
        default=15,
        min_value=1,
        max_value=120,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "state.file_path")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # bool is an int subclass; keep numeric keys strict
    if isinstance(value, bool) and config_key.value_type is not bool:
        return False, f"Expected type {config_key.value_type.__name__}, got bool"

    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys.

    Returns:
        Dictionary of key -> default_value (lists are copied)
    """
    return {
        key: list(config_key.default) if isinstance(config_key.default, list) else config_key.default
        for key, config_key in REGISTRY.items()
    }
