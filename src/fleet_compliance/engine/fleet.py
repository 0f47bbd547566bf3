# fleet_compliance/engine/fleet.py
"""
Fleet-wide overview figures for the manager dashboard.

Works on a GPS frame holding many drivers. A driver is "active" when their
newest point falls inside the active window; an active driver counts as an
alert when that newest point is too fast or reports a low device battery.
"""

import logging
from datetime import datetime
from enum import Enum

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import ComplianceSettings, SpeedPolicy
from fleet_compliance.engine.driver_stats import DriverStats
from fleet_compliance.engine.periods import resolve_now
from fleet_compliance.geo import speeds_to_kmh
from fleet_compliance.models import AlertSeverity, ComplianceAlert

__all__: list[str] = [
    'DriverMapStatus',
    'FleetSummary',
    'active_drivers',
    'driver_map_status',
    'fleet_summary',
    'latest_positions',
]

logger: logging.Logger = logging.getLogger(__name__)


class DriverMapStatus(str, Enum):
    """Marker state of a driver on the fleet map."""

    DRIVING = 'driving'
    RESTING = 'resting'
    ALERT = 'alert'
    OFFLINE = 'offline'


class FleetSummary(BaseModel):
    """
    Headline counters of the fleet dashboard.

    Attributes:
        total_vehicles: Devices currently marked active.
        active_drivers: Drivers with a point inside the active window.
        active_alerts: Active drivers over the alert speed or low on battery.
        alert_driver_ids: Which drivers make up `active_alerts`.
        evaluated_at: Evaluation time (UTC).
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    total_vehicles: int
    active_drivers: int
    active_alerts: int
    alert_driver_ids: list[str]
    evaluated_at: datetime


def latest_positions(positions: pd.DataFrame) -> pd.DataFrame:
    """Newest point of every driver, one row per driver, ordered by driver_id."""
    if positions.empty:
        return positions.iloc[0:0].reset_index(drop=True)

    ordered: pd.DataFrame = positions.sort_values(
        ['driver_id', 'timestamp'], kind='mergesort'
    )
    return ordered.groupby('driver_id', sort=True).tail(1).reset_index(drop=True)


def active_drivers(
    positions: pd.DataFrame,
    now: datetime | None = None,
    window_minutes: float = 60.0,
) -> list[str]:
    """
    Drivers whose newest point is within `window_minutes` of `now`.

    Args:
        positions: Schema-enforced GPS frame, any number of drivers.
        now: Evaluation time (timezone-aware). Defaults to the current time.
        window_minutes: Size of the active window.

    Returns:
        Sorted driver ids.
    """
    now_ts: pd.Timestamp = resolve_now(now)
    latest: pd.DataFrame = latest_positions(positions)
    if latest.empty:
        return []

    window_start: pd.Timestamp = now_ts - pd.Timedelta(minutes=window_minutes)
    recent = (latest['timestamp'] >= window_start) & (latest['timestamp'] <= now_ts)
    return sorted(str(driver_id) for driver_id in latest.loc[recent, 'driver_id'])


def fleet_summary(
    positions: pd.DataFrame,
    devices: pd.DataFrame | None = None,
    now: datetime | None = None,
    settings: ComplianceSettings | None = None,
    policy: SpeedPolicy | None = None,
) -> FleetSummary:
    """
    Compute the fleet dashboard counters.

    Args:
        positions: Schema-enforced GPS frame covering at least the active
            window for every driver.
        devices: `driver_devices` frame with an `is_active` column. None
            counts zero vehicles.
        now: Evaluation time (timezone-aware). Defaults to the current time.
        settings: Engine settings (active window size).
        policy: Alert triggers (speed, battery).

    Returns:
        FleetSummary at `now`.
    """
    settings = settings or ComplianceSettings()
    policy = policy or SpeedPolicy()
    now_ts: pd.Timestamp = resolve_now(now)

    total_vehicles: int = 0
    if devices is not None and not devices.empty:
        total_vehicles = int(devices['is_active'].eq(True).sum())

    active: list[str] = active_drivers(
        positions, now_ts, settings.active_driver_window_minutes
    )

    alert_ids: list[str] = []
    if active:
        latest: pd.DataFrame = latest_positions(positions)
        latest = latest.loc[latest['driver_id'].astype(str).isin(active)]
        speeds_kmh = speeds_to_kmh(latest['speed'].to_numpy(dtype=np.float64))
        battery = latest['battery_level'].to_numpy(dtype=np.float64)
        # NaN battery compares False, so unknown battery never alerts
        is_alert = (speeds_kmh > policy.fleet_alert_speed_kmh) | (
            battery < policy.low_battery_percent
        )
        alert_ids = sorted(str(driver_id) for driver_id in latest.loc[is_alert, 'driver_id'])

    summary = FleetSummary(
        total_vehicles=total_vehicles,
        active_drivers=len(active),
        active_alerts=len(alert_ids),
        alert_driver_ids=alert_ids,
        evaluated_at=now_ts.to_pydatetime(),
    )
    logger.info(
        'Fleet summary: %d vehicles, %d active drivers, %d alerts',
        summary.total_vehicles,
        summary.active_drivers,
        summary.active_alerts,
    )
    return summary


def driver_map_status(
    stats: DriverStats,
    alerts: list[ComplianceAlert] | None = None,
    latest_speed_kmh: float = 0.0,
    settings: ComplianceSettings | None = None,
    policy: SpeedPolicy | None = None,
) -> DriverMapStatus:
    """
    Map marker state for one driver.

    Checked in order: off shift is `offline`; a critical alert or a latest
    speed above the fleet alert speed is `alert`; moving above the moving
    threshold is `driving`; anything else is `resting`.
    """
    settings = settings or ComplianceSettings()
    policy = policy or SpeedPolicy()

    if not stats.is_on_shift:
        return DriverMapStatus.OFFLINE
    if latest_speed_kmh > policy.fleet_alert_speed_kmh or any(
        alert.severity is AlertSeverity.CRITICAL for alert in alerts or []
    ):
        return DriverMapStatus.ALERT
    if latest_speed_kmh > settings.moving_speed_kmh:
        return DriverMapStatus.DRIVING
    return DriverMapStatus.RESTING
