# fleet_compliance/common/logger.py
"""
Logging configuration for the fleet_compliance package.

Configures the package-level logger once so that every module logger created
with `logging.getLogger(__name__)` inherits the same handlers and format.
"""

import logging
import sys
from pathlib import Path

from fleet_compliance.config import LoggingConfig

__all__: list[str] = ['PACKAGE_LOGGER_NAME', 'setup_logger']

PACKAGE_LOGGER_NAME: str = 'fleet_compliance'


def setup_logger(
    logging_level: int | None = None,
    config: LoggingConfig | None = None,
) -> logging.Logger:
    """
    Set up logging for the fleet_compliance package.

    Idempotent: existing handlers on the package logger are removed and
    rebuilt from the arguments on every call.

    Args:
        logging_level: Console level to use when no config is provided.
            Defaults to logging.INFO.
        config: Validated logging configuration. When provided, console
            level comes from config.console_level and a file handler is
            added if config.file_path is set; logging_level is ignored.

    Returns:
        The package-level logger ('fleet_compliance').

    Example:
        >>> setup_logger(logging_level=logging.DEBUG)
        >>> setup_logger(config=load_config().logging)
    """
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    # Clear existing handlers so repeated calls do not duplicate output
    package_logger.handlers.clear()

    log_format: logging.Formatter = logging.Formatter(
        fmt='%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    # --- 1. Console handler ---
    if logging_level is None:
        logging_level = logging.INFO
    if config:
        console_level: int = config.get_console_level_int()
    else:
        console_level = logging_level

    console_handler: logging.Handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_format)
    console_handler.setLevel(console_level)
    package_logger.addHandler(console_handler)

    # --- 2. File handler (config only) ---
    file_level: int | None = None

    if config and config.file_path and config.get_file_level_int():
        log_file_path: Path = config.file_path
        file_level = config.get_file_level_int()

        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler: logging.FileHandler = logging.FileHandler(
            filename=str(log_file_path),
            mode='a',
            encoding='utf-8',
        )
        file_handler.setFormatter(log_format)
        if file_level is not None:
            file_handler.setLevel(file_level)

        package_logger.addHandler(file_handler)

        if console_level <= logging.INFO:
            print(f'Logging to file: {log_file_path}', file=sys.stderr)

    # --- 3. Package logger level ---
    # Must be the most verbose of all handler levels or records never reach them
    effective_level: int = console_level
    if file_level is not None:
        effective_level = min(console_level, file_level)

    package_logger.setLevel(effective_level)

    return package_logger
