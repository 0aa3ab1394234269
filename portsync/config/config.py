"""Configuration management for portsync.

Provides centralized configuration with TOML support, validation and
hierarchical loading from defaults → config file → environment. The CLI
only picks the file (``--config``) and may lower the log level (``-v``).
"""

from __future__ import annotations

import ipaddress
import logging
import os
from pathlib import Path
from typing import Any

import toml

from portsync.models import Config, LogLevel
from portsync.utils.exceptions import ConfigurationError
from portsync.utils.logging_config import setup_logging

GATEWAY_ENV = "NATPMP_GATEWAY"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    GATEWAY_ENV: "gateway.address",
    "PORTSYNC_LEASE_LIFETIME": "gateway.lease_lifetime",
    "PORTSYNC_DELUGE_URL": "sink.url",
    "PORTSYNC_DELUGE_PASSWORD": "sink.password",
    "PORTSYNC_NOOP_LOG_INTERVAL": "sink.noop_log_interval",
    "PORTSYNC_MIN_TIMEOUT": "schedule.min_timeout",
    "PORTSYNC_MAX_TIMEOUT": "schedule.max_timeout",
    "PORTSYNC_LOG_LEVEL": "observability.log_level",
    "PORTSYNC_LOG_FILE": "observability.log_file",
    "PORTSYNC_STRUCTURED_LOGGING": "observability.structured_logging",
}

# Values passed through untouched, never coerced to numbers or booleans
_STRING_PATHS = {
    "gateway.address",
    "sink.url",
    "sink.password",
    "observability.log_level",
    "observability.log_file",
}
_BOOL_PATHS = {"observability.structured_logging"}


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for portsync.toml

        Raises:
            ConfigurationError: If the merged configuration does not validate

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / "portsync.toml",
            Path.home() / ".config" / "portsync" / "portsync.toml",
            Path.home() / ".portsync.toml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e

        env_config = self._get_env_config()
        config_data = self._merge_config(config_data, env_config)

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
            if path in _STRING_PATHS:
                return raw.strip()
            if path in _BOOL_PATHS:
                low = raw.lower()
                if low in {"true", "1", "yes", "on"}:
                    return True
                if low in {"false", "0", "no", "off"}:
                    return False
                return raw
            try:
                if "." in raw:
                    return float(raw)
                return int(raw)
            except ValueError:
                return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def require_gateway(self) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
        """Return the configured gateway address.

        Raises:
            ConfigurationError: If no gateway address was configured

        """
        address = self.config.gateway.address
        if address is None:
            msg = f"You must specify {GATEWAY_ENV} as an environment variable."
            raise ConfigurationError(msg)
        return address

    def setup_logging(self, log_level: LogLevel | None = None, **kwargs: Any) -> None:
        """Set up logging, optionally overriding the configured level."""
        observability = self.config.observability
        if log_level is not None:
            observability = observability.model_copy(update={"log_level": log_level})
        setup_logging(observability, **kwargs)
        logging.getLogger(__name__).debug(
            "Loaded configuration from %s", self.config_file or "defaults/environment"
        )


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """Load configuration from ``config_file`` or the standard locations."""
    return ConfigManager(config_file)
