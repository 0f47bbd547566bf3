# fleet_compliance/schema.py
"""
Canonical column definitions for GPS point and speed violation frames.

The compliance engine works on pandas DataFrames whose columns mirror the
backend's `gps_tracking` and `speed_violations` tables. Every frame entering
the engine passes through the enforce_* functions here so that downstream
code can rely on dtypes: UTC timestamps, float64 coordinates and speeds,
string identifiers.

Missing optional columns are added as nulls. Rows whose timestamp or
coordinates cannot be parsed are dropped with a warning, since a point
without a position or time cannot contribute to distance or driving time.
"""

import logging
from typing import Final

import numpy as np
import pandas as pd

logger: logging.Logger = logging.getLogger(__name__)

__all__: list[str] = [
    'GPS_COLUMNS',
    'GPS_REQUIRED_COLUMNS',
    'VIOLATION_COLUMNS',
    'VIOLATION_REQUIRED_COLUMNS',
    'empty_gps_frame',
    'enforce_gps_schema',
    'enforce_violation_schema',
]

# =============================================================================
# Schema Constants
# =============================================================================

GPS_COLUMNS: Final[list[str]] = [
    'driver_id',  # Driver identifier
    'device_id',  # Tracking device identifier
    'timestamp',  # Fix time (UTC, timezone-aware)
    'latitude',  # Decimal degrees, WGS84
    'longitude',  # Decimal degrees, WGS84
    'speed',  # Metres per second as reported by the device
    'heading',  # Compass heading (0-360, 0=North)
    'accuracy',  # Horizontal accuracy in metres
    'altitude',  # Metres above sea level
    'battery_level',  # Device battery percentage
    'is_moving',  # Device-side movement flag (speed > 1 m/s)
]

GPS_REQUIRED_COLUMNS: Final[list[str]] = [
    'driver_id',
    'timestamp',
    'latitude',
    'longitude',
]

_GPS_NUMERIC_COLUMNS: Final[list[str]] = [
    'latitude',
    'longitude',
    'speed',
    'heading',
    'accuracy',
    'altitude',
    'battery_level',
]

VIOLATION_COLUMNS: Final[list[str]] = [
    'driver_id',
    'timestamp',
    'recorded_speed_kmh',
    'speed_limit_kmh',
    'excess_speed_kmh',
    'severity',  # 'minor', 'major' or 'critical'
    'is_acknowledged',
    'violation_lat',
    'violation_lng',
]

VIOLATION_REQUIRED_COLUMNS: Final[list[str]] = ['driver_id', 'timestamp']

_VIOLATION_NUMERIC_COLUMNS: Final[list[str]] = [
    'recorded_speed_kmh',
    'speed_limit_kmh',
    'excess_speed_kmh',
    'violation_lat',
    'violation_lng',
]


# =============================================================================
# Helpers
# =============================================================================


def _check_required(dataframe: pd.DataFrame, required: list[str]) -> None:
    missing_columns: set[str] = set(required) - set(dataframe.columns)
    if missing_columns:
        raise ValueError(
            f'DataFrame missing required columns: {sorted(missing_columns)}'
        )


def _as_string(series: pd.Series) -> pd.Series:
    """Convert non-null values to str, leaving nulls as None."""
    result: pd.Series = series.astype(object)
    valid_mask: pd.Series = result.notna()
    result.loc[valid_mask] = result.loc[valid_mask].astype(str)
    result.loc[~valid_mask] = None
    return result


def _as_bool(series: pd.Series) -> pd.Series:
    """Nullable boolean; strings 'true'/'false' are accepted."""
    mapped: pd.Series = series.map(
        lambda value: (
            value.strip().lower() == 'true' if isinstance(value, str) else value
        )
    )
    return mapped.astype('boolean')


# =============================================================================
# Schema Functions
# =============================================================================


def empty_gps_frame() -> pd.DataFrame:
    """An empty frame with the GPS schema applied."""
    return enforce_gps_schema(pd.DataFrame(columns=GPS_COLUMNS))


def enforce_gps_schema(dataframe: pd.DataFrame) -> pd.DataFrame:
    """
    Enforce column types on a GPS point frame.

    Idempotent: applying it twice gives the same result.

    Args:
        dataframe: Raw frame, e.g. built from backend rows.

    Returns:
        New DataFrame with GPS_COLUMNS in order:
            - timestamp: datetime64[ns, UTC]
            - numeric columns: float64 (NaN for missing)
            - is_moving: nullable boolean
            - identifiers: str or None
        Rows with an unparseable timestamp, latitude or longitude are removed.

    Raises:
        ValueError: If a required column is missing.
    """
    _check_required(dataframe, GPS_REQUIRED_COLUMNS)

    result: pd.DataFrame = dataframe.copy()

    for column_name in GPS_COLUMNS:
        if column_name not in result.columns:
            result[column_name] = None

    result['timestamp'] = pd.to_datetime(
        result['timestamp'], utc=True, errors='coerce', format='ISO8601'
    )

    for column_name in _GPS_NUMERIC_COLUMNS:
        result[column_name] = pd.to_numeric(
            result[column_name], errors='coerce'
        ).astype(np.float64)

    result['is_moving'] = _as_bool(result['is_moving'])

    for column_name in ('driver_id', 'device_id'):
        result[column_name] = _as_string(result[column_name])

    result = result[GPS_COLUMNS]

    invalid_mask: pd.Series = (
        result['timestamp'].isna()
        | result['latitude'].isna()
        | result['longitude'].isna()
    )
    invalid_count: int = int(invalid_mask.sum())
    if invalid_count > 0:
        logger.warning(
            'Dropping %d GPS rows with missing timestamp or coordinates',
            invalid_count,
        )
        result = result.loc[~invalid_mask]

    return result.reset_index(drop=True)


def enforce_violation_schema(dataframe: pd.DataFrame) -> pd.DataFrame:
    """
    Enforce column types on a speed violation frame.

    Args:
        dataframe: Raw frame, e.g. built from backend rows.

    Returns:
        New DataFrame with VIOLATION_COLUMNS in order. Rows without a
        parseable timestamp are removed.

    Raises:
        ValueError: If a required column is missing.
    """
    _check_required(dataframe, VIOLATION_REQUIRED_COLUMNS)

    result: pd.DataFrame = dataframe.copy()

    for column_name in VIOLATION_COLUMNS:
        if column_name not in result.columns:
            result[column_name] = None

    result['timestamp'] = pd.to_datetime(
        result['timestamp'], utc=True, errors='coerce', format='ISO8601'
    )

    for column_name in _VIOLATION_NUMERIC_COLUMNS:
        result[column_name] = pd.to_numeric(
            result[column_name], errors='coerce'
        ).astype(np.float64)

    result['is_acknowledged'] = _as_bool(result['is_acknowledged'])
    result['driver_id'] = _as_string(result['driver_id'])
    result['severity'] = _as_string(result['severity'])

    result = result[VIOLATION_COLUMNS]

    invalid_mask: pd.Series = result['timestamp'].isna()
    if invalid_mask.any():
        logger.warning(
            'Dropping %d speed violation rows with missing timestamp',
            int(invalid_mask.sum()),
        )
        result = result.loc[~invalid_mask]

    return result.reset_index(drop=True)
