"""
Hierarchical configuration management.

Loads configuration from multiple sources with this precedence (highest wins):
    1. Environment variables (TALLY_SECTION__KEY)
    2. Config file (YAML or JSON)
    3. Built-in defaults

Usage:
    config = Config(config_file="tally.yaml")

    config.get("portfolio.base_currency")     # dot-notation access
    config.validated().quotes.timeout_seconds  # typed, validated view
"""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from tally.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from tally.core.config_schema import TallyConfig

_DEFAULT_ENV_PREFIX = "TALLY_"
_DEFAULT_DATA_DIR_NAME = ".tally-data"


class Config:
    """
    Central configuration manager.

    Env vars use double-underscore to denote nesting:
    TALLY_PORTFOLIO__BASE_CURRENCY=USD -> config["portfolio"]["base_currency"] = "USD"
    """

    def __init__(
        self,
        config_file: str | None = None,
        env_prefix: str = _DEFAULT_ENV_PREFIX,
        data_dir: str | None = None,
        defaults: dict[str, Any] | None = None,
    ):
        """
        Args:
            config_file: Path to YAML or JSON configuration file.
            env_prefix: Prefix for environment variable overrides.
            data_dir: Base directory for data storage. Defaults to ~/.tally-data.
            defaults: Additional default values to merge.
        """
        self.config_file = config_file
        self.env_prefix = env_prefix or ""
        self._data_dir = data_dir or os.path.join("~", _DEFAULT_DATA_DIR_NAME)
        self._extra_defaults = defaults or {}
        self.config_data: dict[str, Any] = {}

        self._load_config()

    def _load_config(self) -> None:
        self.config_data = self._get_default_config()

        if self._extra_defaults:
            self._update_dict(self.config_data, self._extra_defaults)

        if self.config_file and os.path.exists(self.config_file):
            self._update_dict(self.config_data, self._load_file(self.config_file))

        self._load_from_env()

    def _get_default_config(self) -> dict[str, Any]:
        data_dir = os.path.expanduser(self._data_dir)
        return {
            "paths": {
                "data_dir": data_dir,
                "store_file": os.path.join(data_dir, "store.json"),
                "log_dir": os.path.join(data_dir, "logs"),
            },
            "portfolio": {
                "base_currency": "ILS",
                "fx_cache_ttl_seconds": 3600,
                "fallback_fx_rate": 3.65,
                "value_cache_ttl_seconds": 5 * 3600,
                "asset_update_threshold_seconds": 5 * 3600,
            },
            "quotes": {
                "timeout_seconds": 10.0,
                "sparkline_days": 7,
                "fixtures_file": "",
            },
            "backfill": {
                "initial_months": 6,
                "max_concurrent": 4,
            },
        }

    @staticmethod
    def _load_file(path: str) -> dict[str, Any]:
        ext = os.path.splitext(path)[1].lower()
        try:
            with open(path) as f:
                if ext in (".yaml", ".yml"):
                    return yaml.safe_load(f) or {}
                if ext == ".json":
                    return json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e
        return {}

    def _update_dict(self, target: dict, source: dict) -> None:
        """Recursively merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _load_from_env(self) -> None:
        if not self.env_prefix:
            return
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue
            key_parts = env_key[len(self.env_prefix) :].lower().split("__")

            current = self.config_data
            for part in key_parts[:-1]:
                current = current.setdefault(part, {})
            current[key_parts[-1]] = env_value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a config value by dot-notation path.

        Args:
            key_path: e.g. "paths.store_file", "quotes.timeout_seconds"
            default: Returned when key is not found.
        """
        current = self.config_data
        for part in key_path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def set(self, key_path: str, value: Any) -> None:
        """Set a config value by dot-notation path, creating intermediate dicts."""
        parts = key_path.split(".")
        current = self.config_data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

    def validated(self) -> TallyConfig:
        """Return a typed view of the config. Raises ConfigurationError if invalid."""
        from tally.core.config_schema import TallyConfig

        try:
            return TallyConfig.model_validate(self.config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def ensure_directories(self) -> None:
        """Create the data and log directories if they don't exist."""
        for key in ("data_dir", "log_dir"):
            path_value = self.get(f"paths.{key}")
            if isinstance(path_value, str) and path_value:
                os.makedirs(os.path.expanduser(path_value), exist_ok=True)


_config_instance: Config | None = None


def get_config(
    config_file: str | None = None,
    env_prefix: str = _DEFAULT_ENV_PREFIX,
    data_dir: str | None = None,
) -> Config:
    """Get or create the global Config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_file=config_file, env_prefix=env_prefix, data_dir=data_dir)
    return _config_instance


def reset_config() -> None:
    """Reset the global Config singleton (useful for testing)."""
    global _config_instance
    _config_instance = None
