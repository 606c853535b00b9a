"""
Configuration System

Configuration for the context distribution components. Features:
- Single-file YAML loading with environment resolution
- Optional ``.env`` loading from the working directory
- Pre-computed ``context`` settings with validated defaults
- Singleton default config plus per-path cache for explicit files

A missing config file is not an error: every setting has a built-in default,
so a store and loader can be constructed in a bare process (tests, notebooks,
subprocess agents).
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from baton.base.errors import ConfigurationError

# Use standard logging (not get_logger) to avoid circular imports with logger.py
# The short name 'CONFIG' enables easy filtering
logger = logging.getLogger("CONFIG")

COST_UNITS = ("tokens", "bytes")
SUMMARY_OVERFLOW_POLICIES = ("truncate", "reject")

DEFAULT_CONTEXT_SETTINGS: dict[str, Any] = {
    "default_ceiling": 4000,
    "cost_unit": "tokens",
    "chars_to_tokens": 0.25,
    "max_summary_length": 2000,
    "summary_overflow": "truncate",
    "enable_cache": True,
    "cache_ttl_seconds": 300,
    "max_workers": 4,
    "lookup_timeout_seconds": 10.0,
}


class ConfigBuilder:
    """
    Configuration builder.

    Features:
    - Single-file YAML loading with validation and error handling
    - Environment variable resolution
    - Pre-computed ``context`` settings for the loader and store
    - Explicit fail-fast behavior for invalid values
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize configuration builder.

        Args:
            config_path: Path to the config.yml file. If None, looks in current directory
                and falls back to built-in defaults when no file is present.

        Raises:
            FileNotFoundError: If an explicit config_path does not exist.
            ConfigurationError: If the file is not valid YAML or has invalid values.
        """
        dotenv_path = Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)  # Don't override existing env vars
            logger.debug(f"Loaded .env file from {dotenv_path}")

        if config_path is None:
            cwd_config = Path.cwd() / "config.yml"
            if cwd_config.exists():
                config_path = cwd_config
        elif not Path(config_path).exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        self.config_path = Path(config_path) if config_path is not None else None
        self.raw_config, self._unexpanded_config = self._load_config()

        # Pre-compute nested structures for efficient runtime access
        self.context_settings = self._build_context_settings()

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load and validate a YAML configuration file."""
        try:
            with open(file_path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            error_msg = f"Error parsing YAML configuration: {e}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg) from e

        if config is None:
            logger.warning(f"Configuration file is empty: {file_path}")
            return {}

        if not isinstance(config, dict):
            error_msg = f"Configuration file must contain a dictionary/mapping: {file_path}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        logger.debug(f"Loaded configuration from {file_path}")
        return config

    def _resolve_env_vars(self, data: Any) -> Any:
        """Recursively resolve environment variables in configuration data.

        Supports both simple and bash-style default value syntax:
        - ${VAR_NAME} - simple substitution
        - ${VAR_NAME:-default_value} - with default value
        - $VAR_NAME - simple substitution without braces
        """
        if isinstance(data, dict):
            return {key: self._resolve_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._resolve_env_vars(item) for item in data]
        elif isinstance(data, str):

            def replace_env_var(match):
                if match.group(1):  # ${VAR_NAME:-default} or ${VAR_NAME}
                    var_name = match.group(1)
                    default_value = match.group(2)
                else:  # $VAR_NAME
                    var_name = match.group(3)
                    default_value = None

                env_value = os.environ.get(var_name)
                if env_value is None:
                    if default_value is not None:
                        return default_value
                    logger.info(f"Environment variable '{var_name}' not found, keeping original value")
                    return match.group(0)
                return env_value

            pattern = r"\$\{([^}:]+)(?::-(.*?))?\}|\$([A-Za-z_][A-Za-z0-9_]*)"
            return re.sub(pattern, replace_env_var, data)
        else:
            return data

    def _load_config(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Load configuration from single file.

        Returns:
            Tuple of (expanded_config, unexpanded_config)
        """
        if self.config_path is None:
            logger.warning("No config.yml found, using built-in context defaults")
            return {}, {}

        config = self._load_yaml_file(self.config_path)
        unexpanded_config = copy.deepcopy(config)
        expanded_config = self._resolve_env_vars(config)

        logger.info(f"Loaded configuration from {self.config_path}")
        return expanded_config, unexpanded_config

    def get_unexpanded_config(self) -> dict[str, Any]:
        """Get configuration with environment variable placeholders preserved."""
        return copy.deepcopy(self._unexpanded_config)

    def _build_context_settings(self) -> dict[str, Any]:
        """Merge the ``context`` section over defaults and validate it."""
        section = self.get("context", {}) or {}
        if not isinstance(section, dict):
            raise ConfigurationError("'context' section must be a mapping")

        unknown = set(section) - set(DEFAULT_CONTEXT_SETTINGS)
        if unknown:
            logger.warning(f"Ignoring unknown context settings: {sorted(unknown)}")

        settings = dict(DEFAULT_CONTEXT_SETTINGS)
        settings.update({k: v for k, v in section.items() if k in DEFAULT_CONTEXT_SETTINGS})

        if settings["cost_unit"] not in COST_UNITS:
            raise ConfigurationError(
                f"context.cost_unit must be one of {COST_UNITS}, got '{settings['cost_unit']}'"
            )
        if settings["summary_overflow"] not in SUMMARY_OVERFLOW_POLICIES:
            raise ConfigurationError(
                f"context.summary_overflow must be one of {SUMMARY_OVERFLOW_POLICIES}, "
                f"got '{settings['summary_overflow']}'"
            )

        for key in ("default_ceiling", "max_summary_length", "max_workers"):
            try:
                settings[key] = int(settings[key])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"context.{key} must be an integer") from e
            if settings[key] < 0 or (key == "max_workers" and settings[key] == 0):
                raise ConfigurationError(f"context.{key} must be positive, got {settings[key]}")

        for key in ("chars_to_tokens", "cache_ttl_seconds", "lookup_timeout_seconds"):
            try:
                settings[key] = float(settings[key])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"context.{key} must be a number") from e

        settings["enable_cache"] = bool(settings["enable_cache"])
        return settings

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path."""
        keys = path.split(".")
        value = self.raw_config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default


# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

_default_config: ConfigBuilder | None = None

# Per-path config cache for explicit config paths
_config_cache: dict[str, ConfigBuilder] = {}


def _get_config(config_path: str | Path | None = None, set_as_default: bool = False) -> ConfigBuilder:
    """Get configuration instance (singleton pattern with optional explicit path).

    Args:
        config_path: Optional explicit path to configuration file.
        set_as_default: If True and config_path is provided, also set this config as the
                       default singleton so future calls without config_path use it.

    Returns:
        ConfigBuilder instance for the specified or default configuration
    """
    global _default_config

    if config_path is None:
        if _default_config is None:
            config_file = os.environ.get("CONFIG_FILE")
            _default_config = ConfigBuilder(config_file) if config_file else ConfigBuilder()
            logger.debug("Initialized default configuration system")
        return _default_config

    resolved_path = str(Path(config_path).resolve())

    if resolved_path not in _config_cache:
        logger.info(f"Loading configuration from explicit path: {resolved_path}")
        _config_cache[resolved_path] = ConfigBuilder(resolved_path)

    if set_as_default:
        _default_config = _config_cache[resolved_path]
        logger.debug(f"Set explicit config as default: {resolved_path}")

    return _config_cache[resolved_path]


def reset_config() -> None:
    """Drop the default singleton and per-path cache.

    Useful for testing or when the config file changed on disk.
    """
    global _default_config
    _default_config = None
    _config_cache.clear()


# =============================================================================
# PUBLIC CONFIGURATION ACCESS
# =============================================================================


def get_config_builder(
    config_path: str | Path | None = None, set_as_default: bool = False
) -> ConfigBuilder:
    """Get configuration builder instance for full config access.

    Examples:
        >>> config = get_config_builder()
        >>> ttl = config.get("context.cache_ttl_seconds", 300)

        >>> config = get_config_builder("/path/to/config.yml", set_as_default=True)
    """
    return _get_config(config_path, set_as_default)


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load raw configuration dictionary with environment variables resolved."""
    return _get_config(config_path).raw_config


def get_config_value(path: str, default: Any = None, config_path: str | Path | None = None) -> Any:
    """
    Get a specific configuration value by dot-separated path.

    Args:
        path: Dot-separated configuration path (e.g., "context.max_workers")
        default: Default value to return if path is not found
        config_path: Optional explicit path to configuration file

    Returns:
        The configuration value at the specified path, or default if not found

    Raises:
        ValueError: If path is empty
    """
    if not path:
        raise ValueError("Configuration path cannot be empty")

    return _get_config(config_path).get(path, default)


def get_context_settings(config_path: str | Path | None = None) -> dict[str, Any]:
    """Validated ``context`` settings merged over built-in defaults.

    Returns a copy so callers can adjust values without touching the cache.
    """
    return dict(_get_config(config_path).context_settings)
