"""
Tests for fleet_compliance.engine.evaluation module.

Tests the single-driver evaluation entry point and its report row.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pandas as pd
import pytest

from fleet_compliance.config import ComplianceSettings
from fleet_compliance.engine.driver_stats import DrivingStatus
from fleet_compliance.engine.evaluation import DriverEvaluation, evaluate_driver
from fleet_compliance.engine.speed import ViolationSeverity
from fleet_compliance.models import AlertSeverity, AlertType
from fleet_compliance.rules import FleetRules
from fleet_compliance.schema import empty_gps_frame, enforce_violation_schema

FrameBuilder = Callable[[list[dict[str, Any]]], pd.DataFrame]

SHIFT_START: datetime = datetime(2025, 12, 5, 8, 0, tzinfo=UTC)
NOW: datetime = datetime(2025, 12, 5, 12, 45, tzinfo=UTC)

REPORT_ROW_KEYS: list[str] = [
    'driver_id',
    'report_date',
    'evaluated_at',
    'fleet_type',
    'status',
    'is_on_shift',
    'distance_today_km',
    'driving_time_today',
    'remaining_driving_time',
    'continuous_driving_minutes',
    'speed_violations_today',
    'weekly_driving_minutes',
    'biweekly_driving_minutes',
    'break_level',
    'daily_level',
    'weekly_level',
    'biweekly_level',
    'daily_rest_minutes',
    'daily_rest_satisfied',
    'weekly_rest_minutes',
    'weekly_rest_satisfied',
    'alert_count',
    'worst_severity',
]


@pytest.fixture
def long_stint(make_track: Any, to_frame: FrameBuilder) -> pd.DataFrame:
    """280 min of driving from 08:00 with two fixes at 108 km/h around 09:40."""
    points = make_track(SHIFT_START, 281)
    points[100]['speed'] = 30.0
    points[101]['speed'] = 30.0
    return to_frame(points)


class TestEvaluateDriver:
    """Test the combined evaluation."""

    def test_break_required_with_detected_speeding(
        self,
        long_stint: pd.DataFrame,
        truck_rules: FleetRules,
        compliance_settings: ComplianceSettings,
    ) -> None:
        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001',
            long_stint,
            rules=truck_rules,
            settings=compliance_settings,
            now=NOW,
            speed_limit_kmh=90.0,
        )

        assert evaluation.report_date == date(2025, 12, 5)
        assert evaluation.status is DrivingStatus.BREAK_REQUIRED
        assert evaluation.stats.driving_time_today == 280  # noqa: PLR2004
        assert evaluation.stats.speed_violations_today == 1

        assert len(evaluation.detected_violations) == 1
        violation = evaluation.detected_violations[0]
        assert violation.severity is ViolationSeverity.MAJOR
        assert violation.timestamp == SHIFT_START + timedelta(minutes=100)

        assert [alert.alert_type for alert in evaluation.alerts] == [
            AlertType.BREAK_REQUIRED,
            AlertType.SPEED_VIOLATION,
        ]
        assert all(alert.severity is AlertSeverity.WARNING for alert in evaluation.alerts)

    def test_status_agrees_with_break_alert_just_under_the_limit(
        self,
        make_track: Any,
        to_frame: FrameBuilder,
        truck_rules: FleetRules,
        compliance_settings: ComplianceSettings,
    ) -> None:
        """269.96 min of a 270 min allowance is a break due soon, not required."""
        points = make_track(SHIFT_START, 270)
        last_fix: datetime = SHIFT_START + timedelta(minutes=269, seconds=57.6)
        points.append({**points[-1], 'timestamp': last_fix, 'latitude': 45.27})

        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001',
            to_frame(points),
            rules=truck_rules,
            settings=compliance_settings,
            now=last_fix + timedelta(minutes=1),
        )

        assert evaluation.thresholds.break_required is False
        assert evaluation.status is DrivingStatus.ON_DUTY
        assert [alert.title for alert in evaluation.alerts] == ['Break due soon']
        assert evaluation.alerts[0].severity is AlertSeverity.INFO

    def test_recorded_violations_are_counted_without_detection(
        self,
        long_stint: pd.DataFrame,
        compliance_settings: ComplianceSettings,
    ) -> None:
        recorded: pd.DataFrame = enforce_violation_schema(
            pd.DataFrame(
                {
                    'driver_id': ['driver_001', 'driver_001'],
                    'timestamp': [
                        '2025-12-05T09:10:00+00:00',
                        '2025-12-04T09:10:00+00:00',
                    ],
                    'severity': ['minor', 'major'],
                }
            )
        )

        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001', long_stint, recorded, settings=compliance_settings, now=NOW
        )

        assert evaluation.stats.speed_violations_today == 1
        assert evaluation.detected_violations == []
        assert AlertType.SPEED_VIOLATION not in [
            alert.alert_type for alert in evaluation.alerts
        ]

    def test_points_after_now_are_ignored(
        self,
        long_stint: pd.DataFrame,
        compliance_settings: ComplianceSettings,
    ) -> None:
        earlier: datetime = SHIFT_START + timedelta(hours=1)

        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001', long_stint, settings=compliance_settings, now=earlier
        )

        assert evaluation.stats.driving_time_today == 60  # noqa: PLR2004
        assert evaluation.status is DrivingStatus.ON_DUTY
        assert evaluation.alerts == []

    def test_no_positions(self, compliance_settings: ComplianceSettings) -> None:
        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001', empty_gps_frame(), settings=compliance_settings, now=NOW
        )

        assert evaluation.status is DrivingStatus.OFF_SHIFT
        assert evaluation.stats.driving_time_today == 0
        assert evaluation.stats.remaining_driving_time == 540  # noqa: PLR2004
        assert evaluation.alerts == []

    def test_local_report_date(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        """23:30 UTC on 5 Dec is already 6 Dec in Rome."""
        late: datetime = datetime(2025, 12, 5, 23, 30, tzinfo=UTC)
        settings = ComplianceSettings(timezone='Europe/Rome')

        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001',
            to_frame(make_track(late - timedelta(minutes=10), 11)),
            settings=settings,
            now=late,
        )

        assert evaluation.report_date == date(2025, 12, 6)
        assert evaluation.stats.driving_time_today == 10  # noqa: PLR2004


class TestReportRow:
    """Test the flat report row."""

    def test_row_columns_and_values(
        self,
        long_stint: pd.DataFrame,
        compliance_settings: ComplianceSettings,
    ) -> None:
        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001',
            long_stint,
            settings=compliance_settings,
            now=NOW,
            speed_limit_kmh=90.0,
        )

        row: dict[str, Any] = evaluation.to_report_row()

        assert list(row) == REPORT_ROW_KEYS
        assert row['report_date'] == '2025-12-05'
        assert row['fleet_type'] == 'trucks'
        assert row['status'] == 'break_required'
        assert row['break_level'] == 'exceeded'
        assert row['daily_level'] == 'ok'
        assert row['weekly_driving_minutes'] == pytest.approx(280.0)
        assert row['daily_rest_satisfied'] is None
        assert row['alert_count'] == 2  # noqa: PLR2004
        assert row['worst_severity'] == 'warning'

    def test_row_without_alerts(self, compliance_settings: ComplianceSettings) -> None:
        evaluation: DriverEvaluation = evaluate_driver(
            'driver_001', empty_gps_frame(), settings=compliance_settings, now=NOW
        )

        row: dict[str, Any] = evaluation.to_report_row()

        assert row['alert_count'] == 0
        assert row['worst_severity'] is None
        assert row['status'] == 'off_shift'
