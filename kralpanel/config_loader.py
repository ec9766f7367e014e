# kralpanel/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Settings are resolved with the following precedence, lowest first:
1. Pydantic model defaults
2. Environment variables (KRALPANEL_*, nested with "__")
3. YAML configuration file
4. Command-line overrides
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from kralpanel.config_models import AppSettings
from kralpanel.errors import ConfigurationError

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = (
    Path("/etc/kralpanel/install.yaml"),
    Path("config.yaml"),
)


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively merges overrides into source in place. Nested dicts are
    merged; any other value, lists included, replaces the existing one.
    None values in overrides are ignored.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
    return source


def load_yaml_config(
    config_file_path: Path,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Reads a YAML mapping from config_file_path.

    Raises:
        ConfigurationError: The file cannot be read, is not valid YAML, or
            does not contain a mapping.
    """
    logger_to_use = current_logger if current_logger else module_logger
    try:
        with open(config_file_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse YAML config file '{config_file_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read config file '{config_file_path}': {e}"
        ) from e

    if yaml_data is None:
        logger_to_use.warning(f"Config file '{config_file_path}' is empty.")
        return {}
    if not isinstance(yaml_data, dict):
        raise ConfigurationError(
            f"Config file '{config_file_path}' does not contain a YAML mapping."
        )
    logger_to_use.info(f"Loaded configuration from {config_file_path}")
    return yaml_data


def load_app_settings(
    config_file_path: Optional[Union[str, Path]] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Builds the installer settings.

    Args:
        config_file_path: YAML file to load. It must exist when given
            explicitly; otherwise the first existing DEFAULT_CONFIG_PATHS
            entry is used, if any.
        cli_overrides: Nested dict of values from the command line, e.g.
            {"artifact": {"strategy": "prebuilt"}}.
        current_logger: Optional logger to use instead of the module logger.

    Raises:
        ConfigurationError: The file is unreadable or the merged settings
            fail validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        current_values: Dict[str, Any] = AppSettings().model_dump(mode="json")
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid KRALPANEL_* environment settings: {e}"
        ) from e

    yaml_path: Optional[Path] = None
    if config_file_path is not None:
        yaml_path = Path(config_file_path)
        if not yaml_path.is_file():
            raise ConfigurationError(f"Config file '{yaml_path}' not found.")
    else:
        yaml_path = next(
            (p for p in DEFAULT_CONFIG_PATHS if p.is_file()), None
        )

    if yaml_path is not None:
        current_values = _deep_update(
            current_values, load_yaml_config(yaml_path, logger_to_use)
        )
    else:
        logger_to_use.debug(
            "No configuration file found. Using defaults and environment variables."
        )

    if cli_overrides:
        current_values = _deep_update(current_values, cli_overrides)

    try:
        final_settings = AppSettings(**current_values)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e

    logger_to_use.debug("Loaded and validated installer settings")
    return final_settings
