"""Configuration management for nestblue-sync using YAML files."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml

from nestblue_sync.backends.http import DEFAULT_API_URL
from nestblue_sync.notifications import DEFAULT_WS_URL

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".nestblue"

# Environment variables that take precedence over config file values.
ENV_OVERRIDES = {
    "api.url": "NESTBLUE_API_URL",
    "ws.url": "NESTBLUE_WS_URL",
    "auth.token": "NESTBLUE_TOKEN",
    "storage.dir": "NESTBLUE_STORAGE_DIR",
}


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in .nestblue/config.yaml in the current directory and
    global config in ~/.nestblue/config.yaml. Reads check local config first,
    then global config.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._config: dict[str, Any] = self._load(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_config_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_config_file.exists() and global_config_file != self.config_file:
                try:
                    self._global_config = self._load(global_config_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    def _load(self, config_file: Path) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Raises:
            ValueError: If the file exists but cannot be parsed
        """
        if not config_file.exists():
            logger.debug("Config file does not exist, initializing empty config", config_file=str(config_file))
            return {}

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", config_file=str(config_file), error=str(e))
            raise ValueError(f"Failed to load config from {config_file}: {e}") from e
        if not isinstance(config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")
        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        """Save configuration to the YAML file."""
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            logger.debug("Config saved successfully")
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value, falling back to global config for local configs."""
        if key in self._config:
            logger.debug("Getting config value from local", key=key)
            return self._config[key]

        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]

        logger.debug("Config value not found", key=key)
        return default

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, str]:
        """List all settings; local values take precedence over global ones."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


@dataclass
class ClientSettings:
    """Resolved connection settings for the API and notification socket."""

    api_url: str = DEFAULT_API_URL
    ws_url: str = DEFAULT_WS_URL
    token: str | None = None
    storage_dir: Path | None = None


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance."""
    return Config(use_global=use_global)


def resolve_settings(config: Config, environ: dict[str, str] | None = None) -> ClientSettings:
    """Resolve settings from environment variables, then config, then defaults."""
    environ = os.environ if environ is None else environ

    def lookup(key: str) -> str | None:
        value = environ.get(ENV_OVERRIDES[key])
        if value:
            return value
        return config.get(key)

    storage_dir = lookup("storage.dir")
    settings = ClientSettings(
        api_url=lookup("api.url") or DEFAULT_API_URL,
        ws_url=lookup("ws.url") or DEFAULT_WS_URL,
        token=lookup("auth.token"),
        storage_dir=Path(storage_dir) if storage_dir else config.config_dir / "storage",
    )
    logger.debug("Resolved client settings", api_url=settings.api_url, ws_url=settings.ws_url)
    return settings
