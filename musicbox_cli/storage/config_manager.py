"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from musicbox_cli.exceptions import ConfigurationError
from musicbox_cli.models.config import ClientConfig

log = logging.getLogger(__name__)

API_URL_ENV = "MUSICBOX_API_URL"


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientConfig:
        """
        Loads configuration from the INI file, applies overrides, and validates it.

        A missing file is not an error: defaults are written out on first use.
        The ``MUSICBOX_API_URL`` environment variable overrides the file, and CLI
        options override both.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        if not self.config_file_path.is_file():
            log.debug(f"No config at '{self.config_file_path}', creating defaults.")
            self.save_new_config({})

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        config_from_file = self._get_config_as_dict()

        if env_url := os.getenv(API_URL_ENV):
            config_from_file["api_url"] = env_url

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return ClientConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = ClientConfig.model_construct()
        for key in sorted(ClientConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the current file without validation, for display purposes."""
        if not self._parser.defaults() and self.config_file_path.is_file():
            self._parser.read(self.config_file_path, encoding="utf-8")
        return self._get_config_as_dict()

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = ClientConfig.model_construct()
        try:
            return {
                "api_url": section.get("api_url", defaults.api_url),
                "request_timeout": section.getint(
                    "request_timeout", defaults.request_timeout
                ),
                "default_volume": section.getfloat(
                    "default_volume", defaults.default_volume
                ),
                "chunk_size": section.getint("chunk_size", defaults.chunk_size),
                "mpv_path": section.get("mpv_path", defaults.mpv_path),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ClientConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(ClientConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
