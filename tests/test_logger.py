"""
Tests for fleet_compliance.common.logger module.

Tests handler setup from explicit levels and from LoggingConfig, file
logging, and idempotency of repeated calls.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from fleet_compliance.common.logger import PACKAGE_LOGGER_NAME, setup_logger
from fleet_compliance.config import ComplianceAppConfig, LoggingConfig


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Close and drop handlers added by a test."""
    yield
    package_logger: logging.Logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


class TestSetupLogger:
    """Test setup_logger()."""

    def test_default_console_only(self) -> None:
        package_logger: logging.Logger = setup_logger()

        assert package_logger.name == PACKAGE_LOGGER_NAME
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.INFO
        assert package_logger.handlers[0].level == logging.INFO

    def test_explicit_level(self) -> None:
        package_logger: logging.Logger = setup_logger(logging_level=logging.WARNING)

        assert package_logger.level == logging.WARNING

    def test_repeated_calls_do_not_duplicate_handlers(self) -> None:
        setup_logger()
        package_logger: logging.Logger = setup_logger()

        assert len(package_logger.handlers) == 1

    def test_config_adds_file_handler(
        self, logging_config: LoggingConfig, temp_log_file: Path
    ) -> None:
        package_logger: logging.Logger = setup_logger(config=logging_config)

        file_handlers: list[logging.FileHandler] = [
            handler
            for handler in package_logger.handlers
            if isinstance(handler, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        # Package level follows the most verbose handler
        assert package_logger.level == logging.DEBUG

        logging.getLogger('fleet_compliance.engine.segments').debug('segmented')
        file_handlers[0].flush()
        assert 'segmented' in temp_log_file.read_text(encoding='utf-8')

    def test_config_without_file(self) -> None:
        package_logger: logging.Logger = setup_logger(
            config=LoggingConfig(console_level='ERROR')
        )

        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.ERROR

    def test_config_overrides_explicit_level(self, app_config: ComplianceAppConfig) -> None:
        package_logger: logging.Logger = setup_logger(
            logging_level=logging.CRITICAL, config=app_config.logging
        )

        console_handler: logging.Handler = package_logger.handlers[0]
        assert console_handler.level == logging.INFO
