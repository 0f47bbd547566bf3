# fleet_compliance/config/loader.py
"""
Configuration Loading Logic.

Bridges the YAML configuration file on disk and the typed Pydantic models in
`config_models.py`:

    1.  File I/O: Locating and reading the configuration file.
    2.  Parsing: Converting YAML text into Python dictionaries.
    3.  Validation: Instantiating `ComplianceAppConfig` to enforce types.
    4.  Error Handling: Logging low-level I/O or parsing errors with context
        before re-raising.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from fleet_compliance.config.config_models import ComplianceAppConfig

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Path = Path('config/compliance_config.yaml')


def load_config(config_path: Path | str | None = None) -> ComplianceAppConfig:
    """Load and validate compliance configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file (relative or absolute).
                    If None, defaults to 'config/compliance_config.yaml'
                    relative to the current working directory.

    Returns:
        Validated ComplianceAppConfig instance.

    Raises:
        FileNotFoundError: If config file does not exist at the specified path.
        yaml.YAMLError: If YAML file is malformed or cannot be parsed.
        ValueError: If configuration fails Pydantic validation or the file
            does not contain a mapping.

    Example:
        >>> config = load_config('config/compliance_config.yaml')
        >>> config.compliance.fleet_type
        'trucks'
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        logger.debug('No config path provided, using default: %s', config_path)
    else:
        config_path = Path(config_path)

    logger.info('Loading compliance configuration from: %s', config_path)

    if not config_path.exists():
        error_message: str = f'Configuration file not found: {config_path}'
        logger.error(error_message)
        raise FileNotFoundError(error_message)

    try:
        with Path.open(config_path, encoding='utf-8') as config_file:
            raw_config_data: Any = yaml.safe_load(config_file)
    except yaml.YAMLError as error:
        error_message = f'Failed to parse YAML configuration: {error}'
        logger.error(error_message)
        raise yaml.YAMLError(error_message) from error

    if not isinstance(raw_config_data, dict):
        error_message = (
            f'Configuration root must be a mapping, got {type(raw_config_data).__name__}'
        )
        logger.error(error_message)
        raise ValueError(error_message)

    # pydantic.ValidationError subclasses ValueError
    try:
        validated_config = ComplianceAppConfig(**raw_config_data)
    except ValueError as error:
        error_message = f'Configuration validation failed: {error}'
        logger.error(error_message)
        raise ValueError(error_message) from error

    logger.info(
        'Configuration loaded: fleet_type=%s, timezone=%s',
        validated_config.compliance.fleet_type,
        validated_config.compliance.timezone,
    )
    return validated_config
