"""
Shared pytest fixtures for fleet_compliance tests.

GPS tracks are built with `make_track`, which produces evenly spaced points
with a constant reported speed. Points are ~111 m apart in latitude so every
step counts toward distance.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import httpx
import pandas as pd
import pytest

from fleet_compliance.config import (
    BackendConfig,
    ComplianceAppConfig,
    ComplianceSettings,
    LoggingConfig,
    PipelineConfig,
    SpeedPolicy,
    StorageConfig,
)
from fleet_compliance.rules import FleetRules, get_fleet_rules
from fleet_compliance.schema import enforce_gps_schema

TrackFactory = Callable[..., list[dict[str, Any]]]

# Moving well above the 5 km/h threshold (72 km/h)
DRIVING_SPEED_MS: float = 20.0
LATITUDE_STEP_DEG: float = 0.001

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Temporary directory, cleaned up by pytest."""
    return tmp_path


@pytest.fixture
def temp_parquet_file(temp_dir: Path) -> Path:
    """Path to a Parquet file in the temp directory (not created)."""
    return temp_dir / 'test_report.parquet'


@pytest.fixture
def temp_log_file(temp_dir: Path) -> Path:
    """Path to a log file in the temp directory (not created)."""
    return temp_dir / 'test.log'


@pytest.fixture
def storage_config(temp_parquet_file: Path) -> StorageConfig:
    return StorageConfig(
        parquet_path=temp_parquet_file,
        parquet_compression='snappy',
    )


@pytest.fixture
def logging_config(temp_log_file: Path) -> LoggingConfig:
    return LoggingConfig(
        file_path=temp_log_file,
        console_level='INFO',
        file_level='DEBUG',
    )


@pytest.fixture
def backend_config() -> BackendConfig:
    """Backend settings pointing at a fake project."""
    return BackendConfig(
        base_url='https://project.example.com',
        api_key='test_service_key',  # pyright: ignore[reportArgumentType]
        request_timeout=(10, 30),
        page_size=2,
    )


@pytest.fixture
def compliance_settings() -> ComplianceSettings:
    """Default engine settings on UTC days."""
    return ComplianceSettings(fleet_type='trucks', timezone='UTC')


@pytest.fixture
def speed_policy() -> SpeedPolicy:
    return SpeedPolicy()


@pytest.fixture
def truck_rules() -> FleetRules:
    return get_fleet_rules('trucks')


@pytest.fixture
def app_config(
    backend_config: BackendConfig,
    compliance_settings: ComplianceSettings,
    storage_config: StorageConfig,
    logging_config: LoggingConfig,
) -> ComplianceAppConfig:
    """Complete configuration with all sections populated."""
    return ComplianceAppConfig(
        backend=backend_config,
        compliance=compliance_settings,
        speed=SpeedPolicy(),
        pipeline=PipelineConfig(lookback_days=14),
        storage=storage_config,
        logging=logging_config,
    )


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def eval_now() -> datetime:
    """
    Fixed evaluation time: Friday 2025-12-05 18:00 UTC.

    The ISO week started Monday 2025-12-01.
    """
    return datetime(2025, 12, 5, 18, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_track() -> TrackFactory:
    """
    Factory for GPS point dictionaries.

    Args (of the returned callable):
        start: Timestamp of the first point.
        count: Number of points.
        interval_minutes: Spacing between points.
        speed_ms: Reported speed of every point, m/s.
        driver_id: Driver of the points.
        latitude: Latitude of the first point.
        battery_level: Reported battery of every point.
    """

    def _make_track(  # noqa: PLR0913
        start: datetime,
        count: int,
        interval_minutes: float = 1.0,
        speed_ms: float = DRIVING_SPEED_MS,
        driver_id: str = 'driver_001',
        latitude: float = 45.0,
        battery_level: float | None = 80.0,
    ) -> list[dict[str, Any]]:
        return [
            {
                'driver_id': driver_id,
                'device_id': f'device_{driver_id}',
                'timestamp': start + timedelta(minutes=index * interval_minutes),
                'latitude': latitude + index * LATITUDE_STEP_DEG,
                'longitude': 9.0,
                'speed': speed_ms,
                'battery_level': battery_level,
            }
            for index in range(count)
        ]

    return _make_track


@pytest.fixture
def to_frame() -> Callable[[list[dict[str, Any]]], pd.DataFrame]:
    """Turn point dictionaries into a schema-enforced GPS frame."""

    def _to_frame(points: list[dict[str, Any]]) -> pd.DataFrame:
        return enforce_gps_schema(pd.DataFrame(points))

    return _to_frame


# =============================================================================
# HTTP Mock Fixtures
# =============================================================================


@pytest.fixture
def make_response() -> Callable[..., Mock]:
    """Factory for mock httpx.Response objects carrying a JSON body."""

    def _make_response(
        json_body: Any = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        text: str = '',
    ) -> Mock:
        response = Mock(spec=httpx.Response)
        response.status_code = status_code
        response.is_success = 200 <= status_code < 300  # noqa: PLR2004
        response.headers = headers or {}
        response.json.return_value = json_body
        response.text = text or ('' if json_body is None else repr(json_body))
        response.content = b'' if json_body is None else response.text.encode()
        return response

    return _make_response
