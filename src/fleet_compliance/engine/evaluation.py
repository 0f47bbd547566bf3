# fleet_compliance/engine/evaluation.py
"""
Single-driver evaluation: stats, thresholds, speed checks and alerts in one call.

This is the backend-free entry point used by the pipeline. It takes frames
already fetched (or built by hand) and returns everything the dashboards and
the report need.
"""

import logging
from datetime import date, datetime
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import ComplianceSettings, SpeedPolicy
from fleet_compliance.engine.driver_stats import (
    DriverStats,
    DrivingStatus,
    compute_driver_stats,
    driving_status,
)
from fleet_compliance.engine.periods import resolve_now, start_of_day
from fleet_compliance.engine.segments import segment_positions, sort_positions
from fleet_compliance.engine.speed import (
    SpeedViolation,
    detect_speed_violations,
    speed_violation_alert,
    violations_to_frame,
)
from fleet_compliance.engine.thresholds import (
    ThresholdReport,
    build_alerts,
    evaluate_thresholds,
)
from fleet_compliance.models import ComplianceAlert, worst_severity
from fleet_compliance.rules import FleetRules, get_fleet_rules

__all__: list[str] = ['DriverEvaluation', 'evaluate_driver']

logger: logging.Logger = logging.getLogger(__name__)


class DriverEvaluation(BaseModel):
    """Complete compliance picture of one driver at one instant."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    driver_id: str
    report_date: date
    stats: DriverStats
    status: DrivingStatus
    thresholds: ThresholdReport
    detected_violations: list[SpeedViolation]
    alerts: list[ComplianceAlert]

    def to_report_row(self) -> dict[str, Any]:
        """Flat row for the Parquet compliance report."""
        states = self.thresholds.thresholds
        severity = worst_severity(self.alerts)
        return {
            'driver_id': self.driver_id,
            'report_date': self.report_date.isoformat(),
            'evaluated_at': self.thresholds.evaluated_at,
            'fleet_type': self.thresholds.fleet_type,
            'status': self.status.value,
            'is_on_shift': self.stats.is_on_shift,
            'distance_today_km': self.stats.distance_today_km,
            'driving_time_today': self.stats.driving_time_today,
            'remaining_driving_time': self.stats.remaining_driving_time,
            'continuous_driving_minutes': self.stats.continuous_driving_minutes,
            'speed_violations_today': self.stats.speed_violations_today,
            'weekly_driving_minutes': states['weekly'].used_minutes,
            'biweekly_driving_minutes': states['biweekly'].used_minutes,
            'break_level': states['break'].level.value,
            'daily_level': states['daily'].level.value,
            'weekly_level': states['weekly'].level.value,
            'biweekly_level': states['biweekly'].level.value,
            'daily_rest_minutes': self.thresholds.daily_rest.rest_minutes,
            'daily_rest_satisfied': self.thresholds.daily_rest.satisfied,
            'weekly_rest_minutes': self.thresholds.weekly_rest.rest_minutes,
            'weekly_rest_satisfied': self.thresholds.weekly_rest.satisfied,
            'alert_count': len(self.alerts),
            'worst_severity': severity.value if severity is not None else None,
        }


def evaluate_driver(  # noqa: PLR0913
    driver_id: str,
    positions: pd.DataFrame,
    violations: pd.DataFrame | None = None,
    rules: FleetRules | None = None,
    settings: ComplianceSettings | None = None,
    policy: SpeedPolicy | None = None,
    now: datetime | None = None,
    speed_limit_kmh: float | None = None,
) -> DriverEvaluation:
    """
    Evaluate one driver's compliance.

    Args:
        driver_id: Driver being evaluated.
        positions: Schema-enforced GPS frame for this driver, ideally
            covering the current and previous week.
        violations: Recorded speed violations for this driver.
        rules: Rule set; defaults to the settings' fleet type.
        settings: Engine settings; defaults apply when None.
        policy: Speed severity bands; defaults apply when None.
        now: Evaluation time (timezone-aware). Defaults to the current time.
        speed_limit_kmh: When given, today's points are also checked against
            this limit and detected violations become alerts. When
            `violations` is None, detected ones stand in for it.

    Returns:
        DriverEvaluation with alerts sorted most urgent first.
    """
    settings = settings or ComplianceSettings()
    rules = rules or get_fleet_rules(settings.fleet_type, settings.rule_overrides)
    now_ts: pd.Timestamp = resolve_now(now)

    history: pd.DataFrame = sort_positions(
        positions.loc[positions['timestamp'] <= now_ts]
    )
    segments = segment_positions(history, settings)

    detected: list[SpeedViolation] = []
    if speed_limit_kmh is not None:
        day_start: pd.Timestamp = start_of_day(now_ts, settings.timezone)
        detected = detect_speed_violations(
            history.loc[history['timestamp'] >= day_start], speed_limit_kmh, policy
        )
        if violations is None:
            violations = violations_to_frame(detected)

    stats: DriverStats = compute_driver_stats(
        history, violations, rules, settings, now_ts, segments=segments
    )
    report: ThresholdReport = evaluate_thresholds(
        history, rules, settings, now_ts, segments=segments
    )

    alerts: list[ComplianceAlert] = build_alerts(report, driver_id, now_ts)
    alerts.extend(speed_violation_alert(violation) for violation in detected)
    alerts.sort(key=lambda alert: alert.severity.rank, reverse=True)

    evaluation = DriverEvaluation(
        driver_id=driver_id,
        report_date=now_ts.tz_convert(settings.timezone).date(),
        stats=stats,
        status=driving_status(
            stats, rules, settings, break_required=report.break_required
        ),
        thresholds=report,
        detected_violations=detected,
        alerts=alerts,
    )
    logger.info(
        'Driver %s: %s, %d min driven today, %d alerts',
        driver_id,
        evaluation.status.value,
        stats.driving_time_today,
        len(alerts),
    )
    return evaluation
