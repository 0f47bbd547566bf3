"""
Tests for fleet_compliance.engine.speed module.

Tests severity banding, run-based violation detection and violation alerts.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pandas as pd
import pytest

from fleet_compliance.config import SpeedPolicy
from fleet_compliance.engine.speed import (
    SpeedViolation,
    ViolationSeverity,
    classify_speed_violation,
    detect_speed_violations,
    speed_violation_alert,
    violations_to_frame,
)
from fleet_compliance.models import AlertSeverity, AlertType, ComplianceAlert
from fleet_compliance.schema import VIOLATION_COLUMNS

FrameBuilder = Callable[[list[dict[str, Any]]], pd.DataFrame]

START: datetime = datetime(2025, 12, 5, 9, 0, tzinfo=UTC)


def _with_speeds(points: list[dict[str, Any]], speeds_ms: list[float]) -> list[dict[str, Any]]:
    for point, speed in zip(points, speeds_ms, strict=True):
        point['speed'] = speed
    return points


class TestClassifySpeedViolation:
    """Test severity bands with the default policy (10/40 km/h)."""

    @pytest.mark.parametrize(
        ('recorded', 'expected'),
        [
            (50.0, None),
            (49.0, None),
            (51.0, ViolationSeverity.MINOR),
            (60.0, ViolationSeverity.MINOR),
            (61.0, ViolationSeverity.MAJOR),
            (90.0, ViolationSeverity.MAJOR),
            (91.0, ViolationSeverity.CRITICAL),
        ],
    )
    def test_bands(self, recorded: float, expected: ViolationSeverity | None) -> None:
        assert classify_speed_violation(recorded, 50.0) is expected

    def test_tolerance_absorbs_small_excess(self) -> None:
        policy = SpeedPolicy(tolerance_kmh=3.0)

        assert classify_speed_violation(53.0, 50.0, policy) is None
        assert classify_speed_violation(54.0, 50.0, policy) is ViolationSeverity.MINOR

    def test_custom_bands(self) -> None:
        policy = SpeedPolicy(major_excess_kmh=5.0, critical_excess_kmh=20.0)

        assert classify_speed_violation(56.0, 50.0, policy) is ViolationSeverity.MAJOR
        assert classify_speed_violation(71.0, 50.0, policy) is ViolationSeverity.CRITICAL

    def test_non_positive_limit_raises(self) -> None:
        with pytest.raises(ValueError, match='must be positive'):
            classify_speed_violation(50.0, 0.0)


class TestDetectSpeedViolations:
    """Test detection over GPS frames."""

    def test_one_violation_per_run_at_peak(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        """36, 54, 72, 54, 36 km/h against 50: one run, peak 72 km/h."""
        points = _with_speeds(make_track(START, 5), [10.0, 15.0, 20.0, 15.0, 10.0])

        violations: list[SpeedViolation] = detect_speed_violations(to_frame(points), 50.0)

        assert len(violations) == 1
        violation: SpeedViolation = violations[0]
        assert violation.recorded_speed_kmh == pytest.approx(72.0)
        assert violation.excess_speed_kmh == pytest.approx(22.0)
        assert violation.severity is ViolationSeverity.MAJOR
        assert violation.timestamp == START + timedelta(minutes=2)
        assert violation.violation_lat == pytest.approx(45.002)
        assert violation.violation_lng == pytest.approx(9.0)
        assert violation.is_acknowledged is False

    def test_separate_runs_give_separate_violations(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        points = _with_speeds(
            make_track(START, 6), [15.0, 10.0, 10.0, 30.0, 10.0, 15.0]
        )

        violations: list[SpeedViolation] = detect_speed_violations(to_frame(points), 50.0)

        assert [violation.severity for violation in violations] == [
            ViolationSeverity.MINOR,
            ViolationSeverity.CRITICAL,
            ViolationSeverity.MINOR,
        ]
        assert [violation.timestamp for violation in violations] == [
            START,
            START + timedelta(minutes=3),
            START + timedelta(minutes=5),
        ]

    def test_drivers_are_detected_separately(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        """Back-to-back fast points of two drivers do not merge into one run."""
        points = _with_speeds(
            make_track(START, 2, driver_id='driver_b'), [20.0, 10.0]
        ) + _with_speeds(make_track(START, 2, driver_id='driver_a'), [10.0, 20.0])

        violations: list[SpeedViolation] = detect_speed_violations(to_frame(points), 50.0)

        assert [violation.driver_id for violation in violations] == ['driver_a', 'driver_b']

    def test_within_limit_gives_nothing(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        assert detect_speed_violations(to_frame(make_track(START, 5)), 90.0) == []

    def test_missing_speed_never_violates(
        self, make_track: Any, to_frame: FrameBuilder
    ) -> None:
        points = make_track(START, 3)
        for point in points:
            point['speed'] = None

        assert detect_speed_violations(to_frame(points), 1.0) == []

    def test_empty_frame(self) -> None:
        assert detect_speed_violations(pd.DataFrame(), 50.0) == []

    def test_non_positive_limit_raises(self, make_track: Any, to_frame: FrameBuilder) -> None:
        with pytest.raises(ValueError, match='must be positive'):
            detect_speed_violations(to_frame(make_track(START, 2)), -5.0)


class TestViolationOutputs:
    """Test frames, records and alerts built from violations."""

    @pytest.fixture
    def violation(self) -> SpeedViolation:
        return SpeedViolation(
            driver_id='driver_001',
            timestamp=START,
            recorded_speed_kmh=95.0,
            speed_limit_kmh=50.0,
            excess_speed_kmh=45.0,
            severity=ViolationSeverity.CRITICAL,
            violation_lat=45.0,
            violation_lng=9.0,
        )

    def test_to_record_is_json_ready(self, violation: SpeedViolation) -> None:
        record: dict[str, Any] = violation.to_record()

        assert record['severity'] == 'critical'
        assert isinstance(record['timestamp'], str)
        assert record['timestamp'].startswith('2025-12-05T09:00:00')

    def test_violations_to_frame(self, violation: SpeedViolation) -> None:
        frame: pd.DataFrame = violations_to_frame([violation])

        assert list(frame.columns) == VIOLATION_COLUMNS
        assert frame['severity'].iloc[0] == 'critical'
        assert frame['timestamp'].iloc[0] == pd.Timestamp(START)

    def test_empty_violations_frame(self) -> None:
        frame: pd.DataFrame = violations_to_frame([])

        assert frame.empty
        assert list(frame.columns) == VIOLATION_COLUMNS

    def test_alert_follows_violation_severity(self, violation: SpeedViolation) -> None:
        alert: ComplianceAlert = speed_violation_alert(violation)

        assert alert.alert_type is AlertType.SPEED_VIOLATION
        assert alert.severity is AlertSeverity.CRITICAL
        assert alert.title == 'Speed violation at 09:00 UTC'
        assert '95 km/h in a 50 km/h zone' in alert.message
        assert alert.triggered_at == START

    def test_alert_trigger_time_override(self, violation: SpeedViolation) -> None:
        later: datetime = START + timedelta(hours=1)

        assert speed_violation_alert(violation, later).triggered_at == later

    @pytest.mark.parametrize(
        ('severity', 'expected'),
        [
            (ViolationSeverity.MINOR, AlertSeverity.INFO),
            (ViolationSeverity.MAJOR, AlertSeverity.WARNING),
        ],
    )
    def test_lower_severities(
        self,
        violation: SpeedViolation,
        severity: ViolationSeverity,
        expected: AlertSeverity,
    ) -> None:
        lowered: SpeedViolation = violation.model_copy(update={'severity': severity})

        assert speed_violation_alert(lowered).severity is expected
