# fleet_compliance/engine/driver_stats.py
"""
Today's driving statistics for a single driver.

"Today" runs from local midnight (in the configured timezone) up to the
evaluation time. Distance and driving time count only today's points, while
continuous driving since the last break looks at the whole history given,
so a stint that started before midnight still counts toward the break rule.
"""

import logging
from datetime import datetime
from enum import Enum

import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import ComplianceSettings
from fleet_compliance.engine.periods import resolve_now, start_of_day
from fleet_compliance.engine.segments import (
    Segment,
    compute_intervals,
    continuous_driving_minutes,
    segment_positions,
    sort_positions,
)
from fleet_compliance.rules import FleetRules, get_fleet_rules

__all__: list[str] = [
    'DriverStats',
    'DrivingStatus',
    'compute_driver_stats',
    'driving_status',
    'format_driving_time',
    'needs_break',
]

logger: logging.Logger = logging.getLogger(__name__)


class DrivingStatus(str, Enum):
    """Shift status shown on the driver dashboard."""

    OFF_SHIFT = 'off_shift'
    BREAK_REQUIRED = 'break_required'
    SHIFT_ENDING = 'shift_ending'
    TIME_WARNING = 'time_warning'
    ON_DUTY = 'on_duty'


class DriverStats(BaseModel):
    """
    Driving statistics for the current day.

    Attributes:
        distance_today_km: Distance driven today, rounded to 2 decimals.
        driving_time_today: Minutes of driving today, rounded.
        remaining_driving_time: Minutes left under the daily limit, rounded,
            never negative.
        speed_violations_today: Speed violations recorded today.
        current_shift_start: Time of today's first point, None if no points.
        is_on_shift: Whether the last point is recent enough to consider the
            driver still on shift.
        continuous_driving_minutes: Driving since the last qualifying break.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    distance_today_km: float
    driving_time_today: int
    remaining_driving_time: int
    speed_violations_today: int
    current_shift_start: datetime | None
    is_on_shift: bool
    continuous_driving_minutes: float


def compute_driver_stats(  # noqa: PLR0913
    positions: pd.DataFrame,
    violations: pd.DataFrame | None = None,
    rules: FleetRules | None = None,
    settings: ComplianceSettings | None = None,
    now: datetime | None = None,
    segments: list[Segment] | None = None,
) -> DriverStats:
    """
    Compute today's statistics for one driver.

    Args:
        positions: Schema-enforced GPS frame for a single driver. May span
            several days; points after `now` are ignored.
        violations: Schema-enforced speed violation frame for the driver.
        rules: Rule set; defaults to the settings' fleet type.
        settings: Engine settings; defaults apply when None.
        now: Evaluation time (timezone-aware). Defaults to the current time.
        segments: Precomputed segments of `positions`, to avoid recomputing
            them when the caller already has them.

    Returns:
        DriverStats for the day containing `now`.
    """
    settings = settings or ComplianceSettings()
    rules = rules or get_fleet_rules(settings.fleet_type, settings.rule_overrides)
    now_ts: pd.Timestamp = resolve_now(now)
    day_start: pd.Timestamp = start_of_day(now_ts, settings.timezone)

    history: pd.DataFrame = sort_positions(
        positions.loc[positions['timestamp'] <= now_ts]
    )
    today: pd.DataFrame = history.loc[history['timestamp'] >= day_start]

    violations_today: int = 0
    if violations is not None and not violations.empty:
        in_window = (violations['timestamp'] >= day_start) & (
            violations['timestamp'] <= now_ts
        )
        violations_today = int(in_window.sum())

    if today.empty:
        return DriverStats(
            distance_today_km=0.0,
            driving_time_today=0,
            remaining_driving_time=round(rules.daily_driving_limit),
            speed_violations_today=violations_today,
            current_shift_start=None,
            is_on_shift=False,
            continuous_driving_minutes=0.0,
        )

    intervals: pd.DataFrame = compute_intervals(today, settings)
    distance_km: float = float(intervals['distance_km'].sum())
    driving: float = float(
        intervals.loc[intervals['is_moving'], 'duration_minutes'].sum()
    )
    remaining: float = max(0.0, rules.daily_driving_limit - driving)

    last_update: pd.Timestamp = today['timestamp'].iloc[-1]
    minutes_since_update: float = (now_ts - last_update).total_seconds() / 60.0
    is_on_shift: bool = minutes_since_update < settings.on_shift_window_minutes

    if segments is None:
        segments = segment_positions(history, settings)
    continuous: float = continuous_driving_minutes(
        segments, rules.minimum_break_duration, now=now_ts
    )

    stats = DriverStats(
        distance_today_km=round(distance_km, 2),
        driving_time_today=round(driving),
        remaining_driving_time=round(remaining),
        speed_violations_today=violations_today,
        current_shift_start=today['timestamp'].iloc[0].to_pydatetime(),
        is_on_shift=is_on_shift,
        continuous_driving_minutes=round(continuous, 1),
    )

    logger.debug(
        'Driver stats: %.2f km, %d min driving, %d min remaining, on_shift=%s',
        stats.distance_today_km,
        stats.driving_time_today,
        stats.remaining_driving_time,
        stats.is_on_shift,
    )
    return stats


def needs_break(stats: DriverStats, rules: FleetRules) -> bool:
    """
    Whether the driver must stop for a break now.

    True once continuous driving reaches `break_required_after` while daily
    driving time remains; once the daily limit is used up the driver must
    stop altogether, which is reported as a limit instead.
    """
    return (
        stats.continuous_driving_minutes >= rules.break_required_after
        and stats.remaining_driving_time > 0
    )


def driving_status(
    stats: DriverStats,
    rules: FleetRules,
    settings: ComplianceSettings | None = None,
    break_required: bool | None = None,
) -> DrivingStatus:
    """
    Dashboard status, checked in order of urgency.

    `break_required` overrides `needs_break(stats, rules)`. Pass
    `ThresholdReport.break_required` so the status agrees with the break
    alert, which is computed from unrounded minutes.
    """
    settings = settings or ComplianceSettings()
    if break_required is None:
        break_required = needs_break(stats, rules)

    if not stats.is_on_shift:
        return DrivingStatus.OFF_SHIFT
    if break_required:
        return DrivingStatus.BREAK_REQUIRED
    if stats.remaining_driving_time <= settings.shift_ending_margin_minutes:
        return DrivingStatus.SHIFT_ENDING
    if stats.remaining_driving_time <= settings.warning_margin_minutes:
        return DrivingStatus.TIME_WARNING
    return DrivingStatus.ON_DUTY


def format_driving_time(minutes: float) -> str:
    """Format minutes as '{hours}h {minutes}m', e.g. 135 -> '2h 15m'."""
    total: int = max(0, round(minutes))
    hours, mins = divmod(total, 60)
    return f'{hours}h {mins}m'
