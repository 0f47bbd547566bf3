# fleet_compliance/models/records.py
"""
Row models for the backend tables the engine reads.

Rows come back from the table API as JSON objects. Validating them into these
models before building DataFrames catches schema drift on the backend side
(renamed columns, wrong types) at the edge instead of deep inside the engine.
Unknown columns are ignored because the tables carry bookkeeping fields
(organization_id, created_at) the engine does not need.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = [
    'DriverAlertRecord',
    'DriverDeviceRecord',
    'GPSPointRecord',
    'SpeedViolationRecord',
]


class GPSPointRecord(BaseModel):
    """One row of `gps_tracking`. Speed is metres per second."""

    model_config = ConfigDict(extra='ignore', frozen=True)

    driver_id: str
    device_id: str | None = None
    timestamp: datetime
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    speed: float | None = None
    heading: float | None = None
    accuracy: float | None = None
    altitude: float | None = None
    battery_level: float | None = None
    is_moving: bool | None = None


class SpeedViolationRecord(BaseModel):
    """One row of `speed_violations`."""

    model_config = ConfigDict(extra='ignore', frozen=True)

    id: str | int | None = None
    driver_id: str
    timestamp: datetime
    recorded_speed_kmh: float
    speed_limit_kmh: float
    excess_speed_kmh: float
    severity: str
    is_acknowledged: bool = False
    violation_lat: float | None = None
    violation_lng: float | None = None


class DriverDeviceRecord(BaseModel):
    """One row of `driver_devices`."""

    model_config = ConfigDict(extra='ignore', frozen=True)

    id: str | int | None = None
    driver_id: str
    device_id: str
    device_name: str | None = None
    is_active: bool = False
    last_seen: datetime | None = None


class DriverAlertRecord(BaseModel):
    """One row of `driver_alerts`, as read back for deduplication."""

    model_config = ConfigDict(extra='ignore', frozen=True)

    id: str | int | None = None
    driver_id: str
    alert_type: str
    title: str
    message: str | None = None
    severity: str
    is_read: bool = False
    created_at: datetime | None = None
