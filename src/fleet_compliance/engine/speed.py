# fleet_compliance/engine/speed.py
"""
Speed violation classification and detection.

Severity is banded on the excess over the limit (see SpeedPolicy). Detection
collapses each run of consecutive over-limit points into one violation at
the run's peak speed, so a driver doing 70 in a 50 zone for two minutes gets
one violation, not one per GPS fix.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import SpeedPolicy
from fleet_compliance.engine.segments import sort_positions
from fleet_compliance.geo import speeds_to_kmh
from fleet_compliance.models import AlertSeverity, AlertType, ComplianceAlert
from fleet_compliance.schema import VIOLATION_COLUMNS, enforce_violation_schema

__all__: list[str] = [
    'SpeedViolation',
    'ViolationSeverity',
    'classify_speed_violation',
    'detect_speed_violations',
    'speed_violation_alert',
    'violations_to_frame',
]

logger: logging.Logger = logging.getLogger(__name__)


class ViolationSeverity(str, Enum):
    """Speed violation severity."""

    MINOR = 'minor'
    MAJOR = 'major'
    CRITICAL = 'critical'


_ALERT_SEVERITY: dict[ViolationSeverity, AlertSeverity] = {
    ViolationSeverity.MINOR: AlertSeverity.INFO,
    ViolationSeverity.MAJOR: AlertSeverity.WARNING,
    ViolationSeverity.CRITICAL: AlertSeverity.CRITICAL,
}


class SpeedViolation(BaseModel):
    """A detected speed violation, shaped like a `speed_violations` row."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    driver_id: str
    timestamp: datetime
    recorded_speed_kmh: float
    speed_limit_kmh: float
    excess_speed_kmh: float
    severity: ViolationSeverity
    violation_lat: float | None = None
    violation_lng: float | None = None
    is_acknowledged: bool = False

    def to_record(self) -> dict[str, Any]:
        """Row for the `speed_violations` table."""
        record: dict[str, Any] = self.model_dump(mode='json')
        return record


def classify_speed_violation(
    recorded_kmh: float,
    limit_kmh: float,
    policy: SpeedPolicy | None = None,
) -> ViolationSeverity | None:
    """
    Severity of a recorded speed against a limit.

    Args:
        recorded_kmh: Measured speed in km/h.
        limit_kmh: Posted limit in km/h.
        policy: Severity bands; defaults apply when None.

    Returns:
        The severity, or None when the excess is within tolerance.

    Raises:
        ValueError: If the limit is not positive.
    """
    if limit_kmh <= 0:
        raise ValueError(f'Speed limit must be positive, got: {limit_kmh}')

    policy = policy or SpeedPolicy()
    excess: float = recorded_kmh - limit_kmh

    if excess <= policy.tolerance_kmh:
        return None
    if excess <= policy.major_excess_kmh:
        return ViolationSeverity.MINOR
    if excess <= policy.critical_excess_kmh:
        return ViolationSeverity.MAJOR
    return ViolationSeverity.CRITICAL


def detect_speed_violations(
    positions: pd.DataFrame,
    speed_limit_kmh: float,
    policy: SpeedPolicy | None = None,
) -> list[SpeedViolation]:
    """
    Find speed violations in GPS points against a single limit.

    Points are grouped per driver; within each driver, consecutive points
    over the limit (beyond tolerance) form one run and produce one violation
    at the run's fastest point.

    Args:
        positions: Schema-enforced GPS frame, one or more drivers.
        speed_limit_kmh: Limit to check against.
        policy: Severity bands; defaults apply when None.

    Returns:
        Violations ordered by driver, then time.
    """
    policy = policy or SpeedPolicy()
    if speed_limit_kmh <= 0:
        raise ValueError(f'Speed limit must be positive, got: {speed_limit_kmh}')

    violations: list[SpeedViolation] = []
    if positions.empty:
        return violations

    for driver_id, driver_points in positions.groupby('driver_id', sort=True):
        frame: pd.DataFrame = sort_positions(driver_points)
        speeds_kmh: pd.Series = pd.Series(
            speeds_to_kmh(frame['speed'].to_numpy(dtype=np.float64)),
            index=frame.index,
        )
        over_limit: pd.Series = (speeds_kmh - speed_limit_kmh) > policy.tolerance_kmh
        if not over_limit.any():
            continue

        run_ids: pd.Series = (over_limit != over_limit.shift()).cumsum()
        for _, run_speeds in speeds_kmh[over_limit].groupby(run_ids[over_limit]):
            peak_label = run_speeds.idxmax()
            peak_kmh: float = float(run_speeds.loc[peak_label])
            severity: ViolationSeverity | None = classify_speed_violation(
                peak_kmh, speed_limit_kmh, policy
            )
            if severity is None:
                continue
            peak_point: pd.Series = frame.loc[peak_label]
            violations.append(
                SpeedViolation(
                    driver_id=str(driver_id),
                    timestamp=peak_point['timestamp'].to_pydatetime(),
                    recorded_speed_kmh=round(peak_kmh, 1),
                    speed_limit_kmh=speed_limit_kmh,
                    excess_speed_kmh=round(peak_kmh - speed_limit_kmh, 1),
                    severity=severity,
                    violation_lat=float(peak_point['latitude']),
                    violation_lng=float(peak_point['longitude']),
                )
            )

    logger.debug(
        'Detected %d speed violations against %.0f km/h',
        len(violations),
        speed_limit_kmh,
    )
    return violations


def violations_to_frame(violations: list[SpeedViolation]) -> pd.DataFrame:
    """Schema-enforced frame of detected violations."""
    if not violations:
        return enforce_violation_schema(pd.DataFrame(columns=VIOLATION_COLUMNS))
    return enforce_violation_schema(
        pd.DataFrame([violation.model_dump(mode='json') for violation in violations])
    )


def speed_violation_alert(
    violation: SpeedViolation,
    triggered_at: datetime | None = None,
) -> ComplianceAlert:
    """Driver alert for a speed violation; severity follows the violation's."""
    utc_time: str = violation.timestamp.astimezone(UTC).strftime('%H:%M')
    return ComplianceAlert(
        driver_id=violation.driver_id,
        alert_type=AlertType.SPEED_VIOLATION,
        severity=_ALERT_SEVERITY[violation.severity],
        title=f'Speed violation at {utc_time} UTC',
        message=(
            f'{violation.recorded_speed_kmh:.0f} km/h in a '
            f'{violation.speed_limit_kmh:.0f} km/h zone '
            f'(+{violation.excess_speed_kmh:.0f} km/h, {violation.severity.value})'
        ),
        triggered_at=triggered_at or violation.timestamp,
    )
