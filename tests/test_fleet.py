"""
Tests for fleet_compliance.engine.fleet module.

Tests latest positions, active drivers, dashboard counters and map status.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pandas as pd
import pytest

from fleet_compliance.config import ComplianceSettings, SpeedPolicy
from fleet_compliance.engine.driver_stats import DriverStats
from fleet_compliance.engine.fleet import (
    DriverMapStatus,
    FleetSummary,
    active_drivers,
    driver_map_status,
    fleet_summary,
    latest_positions,
)
from fleet_compliance.models import AlertSeverity, AlertType, ComplianceAlert

FrameBuilder = Callable[[list[dict[str, Any]]], pd.DataFrame]


@pytest.fixture
def fleet_positions(
    make_track: Any, to_frame: FrameBuilder, eval_now: datetime
) -> pd.DataFrame:
    """
    Five drivers, two points each, ending at different times before 18:00.

    driver_a: 10 min ago, 72 km/h, battery 80   (active)
    driver_b: 30 min ago, 111.6 km/h            (active, too fast)
    driver_c: 15 min ago, battery 15            (active, low battery)
    driver_d: 90 min ago, 144 km/h              (inactive)
    driver_e: 20 min ago, battery unknown       (active)
    """

    def ending(minutes_ago: int, driver_id: str, **kwargs: Any) -> list[dict[str, Any]]:
        last: datetime = eval_now - timedelta(minutes=minutes_ago)
        return make_track(last - timedelta(minutes=1), 2, driver_id=driver_id, **kwargs)

    points = (
        ending(10, 'driver_a')
        + ending(30, 'driver_b', speed_ms=31.0)
        + ending(15, 'driver_c', battery_level=15.0)
        + ending(90, 'driver_d', speed_ms=40.0)
        + ending(20, 'driver_e', battery_level=None)
    )
    return to_frame(points)


@pytest.fixture
def devices() -> pd.DataFrame:
    return pd.DataFrame(
        {
            'driver_id': ['driver_a', 'driver_b', 'driver_c', 'driver_x'],
            'device_id': ['dev_a', 'dev_b', 'dev_c', 'dev_x'],
            'is_active': [True, True, False, True],
        }
    )


def _stats(is_on_shift: bool = True) -> DriverStats:
    return DriverStats(
        distance_today_km=120.0,
        driving_time_today=200,
        remaining_driving_time=340,
        speed_violations_today=0,
        current_shift_start=datetime(2025, 12, 5, 8, 0, tzinfo=UTC),
        is_on_shift=is_on_shift,
        continuous_driving_minutes=60.0,
    )


def _alert(severity: AlertSeverity) -> ComplianceAlert:
    return ComplianceAlert(
        driver_id='driver_001',
        alert_type=AlertType.DAILY_LIMIT,
        severity=severity,
        title='Daily driving limit',
        message='',
        triggered_at=datetime(2025, 12, 5, 18, 0, tzinfo=UTC),
    )


class TestLatestPositions:
    """Test newest point per driver."""

    def test_one_row_per_driver(self, fleet_positions: pd.DataFrame) -> None:
        latest: pd.DataFrame = latest_positions(fleet_positions)

        assert latest['driver_id'].tolist() == [
            'driver_a',
            'driver_b',
            'driver_c',
            'driver_d',
            'driver_e',
        ]
        assert latest['latitude'].tolist() == pytest.approx([45.001] * 5)

    def test_input_order_does_not_matter(self, fleet_positions: pd.DataFrame) -> None:
        shuffled: pd.DataFrame = fleet_positions.iloc[::-1]

        pd.testing.assert_frame_equal(
            latest_positions(shuffled), latest_positions(fleet_positions)
        )

    def test_empty(self) -> None:
        assert latest_positions(pd.DataFrame()).empty


class TestActiveDrivers:
    """Test the active window."""

    def test_default_window(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        assert active_drivers(fleet_positions, eval_now) == [
            'driver_a',
            'driver_b',
            'driver_c',
            'driver_e',
        ]

    def test_narrow_window(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        assert active_drivers(fleet_positions, eval_now, window_minutes=15) == [
            'driver_a',
            'driver_c',
        ]

    def test_points_after_now_are_not_active(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        earlier: datetime = eval_now - timedelta(hours=2)

        assert active_drivers(fleet_positions, earlier) == []


class TestFleetSummary:
    """Test the dashboard counters."""

    def test_counters(
        self,
        fleet_positions: pd.DataFrame,
        devices: pd.DataFrame,
        eval_now: datetime,
        compliance_settings: ComplianceSettings,
        speed_policy: SpeedPolicy,
    ) -> None:
        summary: FleetSummary = fleet_summary(
            fleet_positions, devices, eval_now, compliance_settings, speed_policy
        )

        assert summary.total_vehicles == 3  # noqa: PLR2004
        assert summary.active_drivers == 4  # noqa: PLR2004
        assert summary.active_alerts == 2  # noqa: PLR2004
        assert summary.alert_driver_ids == ['driver_b', 'driver_c']
        assert summary.evaluated_at == eval_now

    def test_inactive_driver_never_alerts(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        """driver_d is at 144 km/h but its last point is 90 minutes old."""
        summary: FleetSummary = fleet_summary(fleet_positions, now=eval_now)

        assert 'driver_d' not in summary.alert_driver_ids

    def test_policy_controls_alerts(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        policy = SpeedPolicy(fleet_alert_speed_kmh=70.0, low_battery_percent=10.0)

        summary: FleetSummary = fleet_summary(fleet_positions, now=eval_now, policy=policy)

        assert summary.alert_driver_ids == [
            'driver_a',
            'driver_b',
            'driver_c',
            'driver_e',
        ]

    def test_no_devices_counts_zero_vehicles(
        self, fleet_positions: pd.DataFrame, eval_now: datetime
    ) -> None:
        assert fleet_summary(fleet_positions, None, eval_now).total_vehicles == 0

    def test_empty_positions(self, devices: pd.DataFrame, eval_now: datetime) -> None:
        summary: FleetSummary = fleet_summary(pd.DataFrame(), devices, eval_now)

        assert summary.active_drivers == 0
        assert summary.active_alerts == 0
        assert summary.alert_driver_ids == []


class TestDriverMapStatus:
    """Test map marker state."""

    def test_off_shift_is_offline(self) -> None:
        status: DriverMapStatus = driver_map_status(
            _stats(is_on_shift=False),
            [_alert(AlertSeverity.CRITICAL)],
            latest_speed_kmh=130.0,
        )

        assert status is DriverMapStatus.OFFLINE

    def test_critical_alert(self) -> None:
        assert (
            driver_map_status(_stats(), [_alert(AlertSeverity.CRITICAL)])
            is DriverMapStatus.ALERT
        )

    def test_too_fast(self) -> None:
        assert driver_map_status(_stats(), latest_speed_kmh=110.0) is DriverMapStatus.ALERT

    def test_driving(self) -> None:
        status: DriverMapStatus = driver_map_status(
            _stats(), [_alert(AlertSeverity.WARNING)], latest_speed_kmh=80.0
        )

        assert status is DriverMapStatus.DRIVING

    def test_resting(self) -> None:
        assert driver_map_status(_stats(), latest_speed_kmh=3.0) is DriverMapStatus.RESTING
