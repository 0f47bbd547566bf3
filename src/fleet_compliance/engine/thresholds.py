# fleet_compliance/engine/thresholds.py
"""
Threshold state derivation over a driver's multi-day GPS history.

Four driving-time thresholds are tracked:

    break     continuous driving since the last qualifying break
    daily     driving today (local day)
    weekly    driving in the current local ISO week (Monday start)
    biweekly  driving in the current plus the previous week

Each threshold is `ok`, `warning` (remaining time within the warning margin)
or `exceeded` (used >= limit).

Two rest checks complement them:

    daily_rest   time between the last driving before today and the first
                 driving today
    weekly_rest  longest stretch without driving in the trailing 7 days,
                 evaluated only when the history covers 7 days

A rest check with too little data to decide is reported as not evaluated
(`satisfied is None`) instead of guessing.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Final, Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import ComplianceSettings
from fleet_compliance.engine.driver_stats import format_driving_time
from fleet_compliance.engine.periods import (
    local_dates,
    resolve_now,
    start_of_day,
    start_of_week,
)
from fleet_compliance.engine.segments import (
    Segment,
    compute_intervals,
    continuous_driving_minutes,
    segment_positions,
    sort_positions,
)
from fleet_compliance.models import AlertSeverity, AlertType, ComplianceAlert
from fleet_compliance.rules import FleetRules, get_fleet_rules

__all__: list[str] = [
    'DAILY_SUMMARY_COLUMNS',
    'RestCheck',
    'ThresholdLevel',
    'ThresholdName',
    'ThresholdReport',
    'ThresholdState',
    'build_alerts',
    'evaluate_thresholds',
    'summarize_daily_driving',
]

logger: logging.Logger = logging.getLogger(__name__)

ThresholdName = Literal['break', 'daily', 'weekly', 'biweekly']
RestName = Literal['daily_rest', 'weekly_rest']

DAILY_SUMMARY_COLUMNS: Final[list[str]] = [
    'day',
    'distance_km',
    'driving_minutes',
    'first_timestamp',
    'last_timestamp',
    'point_count',
    'longest_rest_minutes',
]

WEEKLY_REST_WINDOW: Final[pd.Timedelta] = pd.Timedelta(days=7)


class ThresholdLevel(str, Enum):
    """How close a driving-time threshold is."""

    OK = 'ok'
    WARNING = 'warning'
    EXCEEDED = 'exceeded'


class ThresholdState(BaseModel):
    """State of one driving-time threshold, all figures in minutes."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    name: ThresholdName
    used_minutes: float
    limit_minutes: float
    remaining_minutes: float
    level: ThresholdLevel


class RestCheck(BaseModel):
    """
    Outcome of a rest requirement check.

    Attributes:
        name: 'daily_rest' or 'weekly_rest'.
        rest_minutes: Measured rest, None when it could not be measured.
        required_minutes: Rest the rule set requires.
        satisfied: True/False, or None when not evaluated.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    name: RestName
    rest_minutes: float | None
    required_minutes: float
    satisfied: bool | None


class ThresholdReport(BaseModel):
    """All threshold states and rest checks for one driver at one instant."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    evaluated_at: datetime
    fleet_type: str
    thresholds: dict[ThresholdName, ThresholdState]
    daily_rest: RestCheck
    weekly_rest: RestCheck

    @property
    def break_required(self) -> bool:
        """A break is due and the driver still has daily driving time left."""
        return (
            self.thresholds['break'].level is ThresholdLevel.EXCEEDED
            and self.thresholds['daily'].level is not ThresholdLevel.EXCEEDED
        )

    @property
    def exceeded(self) -> list[ThresholdName]:
        """Names of limits that are exceeded, break excluded."""
        return [
            name
            for name, state in self.thresholds.items()
            if name != 'break' and state.level is ThresholdLevel.EXCEEDED
        ]


# =============================================================================
# Daily summaries
# =============================================================================


def summarize_daily_driving(
    positions: pd.DataFrame,
    settings: ComplianceSettings | None = None,
) -> pd.DataFrame:
    """
    One row per local calendar day of a driver's history.

    Intervals are built within each day, so a stint crossing midnight is
    split at the last point before and the first point after it.

    Returns:
        DataFrame with DAILY_SUMMARY_COLUMNS, sorted by day.
    """
    settings = settings or ComplianceSettings()

    if positions.empty:
        return pd.DataFrame(columns=DAILY_SUMMARY_COLUMNS)

    frame: pd.DataFrame = sort_positions(positions)
    days: pd.Series = local_dates(frame['timestamp'], settings.timezone)

    rows: list[dict[str, object]] = []
    for day, day_points in frame.groupby(days, sort=True):
        intervals: pd.DataFrame = compute_intervals(day_points, settings)
        resting: pd.DataFrame = intervals.loc[~intervals['is_moving']]
        longest_rest: float = 0.0
        if not resting.empty:
            run_ids = (intervals['is_moving'] != intervals['is_moving'].shift()).cumsum()
            longest_rest = float(
                resting.groupby(run_ids.loc[resting.index])['duration_minutes']
                .sum()
                .max()
            )
        rows.append(
            {
                'day': day,
                'distance_km': float(intervals['distance_km'].sum()),
                'driving_minutes': float(
                    intervals.loc[intervals['is_moving'], 'duration_minutes'].sum()
                ),
                'first_timestamp': day_points['timestamp'].iloc[0],
                'last_timestamp': day_points['timestamp'].iloc[-1],
                'point_count': len(day_points),
                'longest_rest_minutes': longest_rest,
            }
        )

    return pd.DataFrame(rows, columns=DAILY_SUMMARY_COLUMNS)


# =============================================================================
# Threshold evaluation
# =============================================================================


def _threshold(
    name: ThresholdName,
    used: float,
    limit: float,
    warning_margin: float,
) -> ThresholdState:
    remaining: float = max(0.0, limit - used)
    if used >= limit:
        level = ThresholdLevel.EXCEEDED
    elif remaining <= warning_margin:
        level = ThresholdLevel.WARNING
    else:
        level = ThresholdLevel.OK
    return ThresholdState(
        name=name,
        used_minutes=round(used, 1),
        limit_minutes=limit,
        remaining_minutes=round(remaining, 1),
        level=level,
    )


def _driving_since(summary: pd.DataFrame, first_day: date, last_day: date) -> float:
    if summary.empty:
        return 0.0
    in_window = (summary['day'] >= first_day) & (summary['day'] <= last_day)
    return float(summary.loc[in_window, 'driving_minutes'].sum())


def _daily_rest(
    moving: pd.DataFrame,
    day_start: pd.Timestamp,
    rules: FleetRules,
) -> RestCheck:
    before: pd.DataFrame = moving.loc[moving['end'] <= day_start]
    today: pd.DataFrame = moving.loc[moving['start'] >= day_start]

    if before.empty or today.empty:
        return RestCheck(
            name='daily_rest',
            rest_minutes=None,
            required_minutes=rules.daily_rest_minutes,
            satisfied=None,
        )

    rest: float = (
        today['start'].iloc[0] - before['end'].iloc[-1]
    ).total_seconds() / 60.0
    return RestCheck(
        name='daily_rest',
        rest_minutes=round(rest, 1),
        required_minutes=rules.daily_rest_minutes,
        satisfied=rest >= rules.daily_rest_minutes,
    )


def _weekly_rest(
    moving: pd.DataFrame,
    history_start: pd.Timestamp | None,
    now: pd.Timestamp,
    rules: FleetRules,
) -> RestCheck:
    window_start: pd.Timestamp = now - WEEKLY_REST_WINDOW

    if history_start is None or history_start > window_start:
        return RestCheck(
            name='weekly_rest',
            rest_minutes=None,
            required_minutes=rules.weekly_rest_minutes,
            satisfied=None,
        )

    in_window: pd.DataFrame = moving.loc[
        (moving['end'] > window_start) & (moving['start'] < now)
    ]
    if in_window.empty:
        longest: float = WEEKLY_REST_WINDOW.total_seconds() / 60.0
    else:
        starts: pd.Series = in_window['start'].clip(lower=window_start)
        ends: pd.Series = in_window['end']
        gaps: list[float] = [
            (starts.iloc[0] - window_start).total_seconds() / 60.0,
            (now - ends.iloc[-1]).total_seconds() / 60.0,
        ]
        if len(in_window) > 1:
            between: pd.Series = (
                starts.iloc[1:].reset_index(drop=True)
                - ends.iloc[:-1].reset_index(drop=True)
            ).dt.total_seconds() / 60.0
            gaps.extend(float(gap) for gap in between)
        longest = max(gaps)

    return RestCheck(
        name='weekly_rest',
        rest_minutes=round(longest, 1),
        required_minutes=rules.weekly_rest_minutes,
        satisfied=longest >= rules.weekly_rest_minutes,
    )


def evaluate_thresholds(
    positions: pd.DataFrame,
    rules: FleetRules | None = None,
    settings: ComplianceSettings | None = None,
    now: datetime | None = None,
    segments: list[Segment] | None = None,
) -> ThresholdReport:
    """
    Derive every threshold state for one driver.

    Args:
        positions: Schema-enforced GPS frame for a single driver. Should
            cover the current and previous week for bi-weekly figures and at
            least 7 days for the weekly rest check. Points after `now` are
            ignored.
        rules: Rule set; defaults to the settings' fleet type.
        settings: Engine settings; defaults apply when None.
        now: Evaluation time (timezone-aware). Defaults to the current time.
        segments: Precomputed segments of `positions`.

    Returns:
        ThresholdReport at `now`.
    """
    settings = settings or ComplianceSettings()
    rules = rules or get_fleet_rules(settings.fleet_type, settings.rule_overrides)
    now_ts: pd.Timestamp = resolve_now(now)

    history: pd.DataFrame = sort_positions(
        positions.loc[positions['timestamp'] <= now_ts]
    )
    summary: pd.DataFrame = summarize_daily_driving(history, settings)

    today: date = now_ts.tz_convert(settings.timezone).date()
    week_start: date = start_of_week(now_ts, settings.timezone).tz_convert(
        settings.timezone
    ).date()
    previous_week_start: date = start_of_week(
        now_ts, settings.timezone, weeks_back=1
    ).tz_convert(settings.timezone).date()

    daily_used: float = _driving_since(summary, today, today)
    weekly_used: float = _driving_since(summary, week_start, today)
    biweekly_used: float = _driving_since(summary, previous_week_start, today)

    if segments is None:
        segments = segment_positions(history, settings)
    continuous: float = continuous_driving_minutes(
        segments, rules.minimum_break_duration, now=now_ts
    )

    thresholds: dict[ThresholdName, ThresholdState] = {
        'break': _threshold(
            'break',
            continuous,
            rules.break_required_after,
            settings.break_warning_margin_minutes,
        ),
        'daily': _threshold(
            'daily', daily_used, rules.daily_driving_limit, settings.warning_margin_minutes
        ),
        'weekly': _threshold(
            'weekly',
            weekly_used,
            rules.weekly_driving_limit,
            settings.warning_margin_minutes,
        ),
        'biweekly': _threshold(
            'biweekly',
            biweekly_used,
            rules.biweekly_driving_limit,
            settings.warning_margin_minutes,
        ),
    }

    intervals: pd.DataFrame = compute_intervals(history, settings)
    moving: pd.DataFrame = intervals.loc[intervals['is_moving']].reset_index(drop=True)
    history_start: pd.Timestamp | None = (
        history['timestamp'].iloc[0] if not history.empty else None
    )

    report = ThresholdReport(
        evaluated_at=now_ts.to_pydatetime(),
        fleet_type=rules.fleet_type.value,
        thresholds=thresholds,
        daily_rest=_daily_rest(
            moving, start_of_day(now_ts, settings.timezone), rules
        ),
        weekly_rest=_weekly_rest(moving, history_start, now_ts, rules),
    )

    logger.debug(
        'Thresholds: %s',
        ', '.join(f'{name}={state.level.value}' for name, state in thresholds.items()),
    )
    return report


# =============================================================================
# Alerts
# =============================================================================

_LIMIT_ALERTS: Final[dict[ThresholdName, tuple[AlertType, str]]] = {
    'daily': (AlertType.DAILY_LIMIT, 'Daily driving limit'),
    'weekly': (AlertType.WEEKLY_LIMIT, 'Weekly driving limit'),
    'biweekly': (AlertType.BIWEEKLY_LIMIT, 'Two-week driving limit'),
}


def build_alerts(
    report: ThresholdReport,
    driver_id: str,
    now: datetime | None = None,
) -> list[ComplianceAlert]:
    """
    Turn a threshold report into driver alerts.

    Severity mapping:
        - exceeded driving limit: critical
        - driving limit within the warning margin: warning
        - break required: warning
        - break due within the break warning margin: info
        - insufficient daily or weekly rest: warning

    Args:
        report: Threshold report for the driver.
        driver_id: Driver the alerts are addressed to.
        now: Alert timestamp; defaults to the report's evaluation time.

    Returns:
        Alerts, most urgent first.
    """
    triggered_at: datetime = now or report.evaluated_at
    alerts: list[ComplianceAlert] = []

    def add(alert_type: AlertType, severity: AlertSeverity, title: str, message: str) -> None:
        alerts.append(
            ComplianceAlert(
                driver_id=driver_id,
                alert_type=alert_type,
                severity=severity,
                title=title,
                message=message,
                triggered_at=triggered_at,
            )
        )

    for name, (alert_type, label) in _LIMIT_ALERTS.items():
        state: ThresholdState = report.thresholds[name]
        if state.level is ThresholdLevel.EXCEEDED:
            add(
                alert_type,
                AlertSeverity.CRITICAL,
                f'{label} exceeded',
                f'Driven {format_driving_time(state.used_minutes)} of '
                f'{format_driving_time(state.limit_minutes)}. Stop driving and rest.',
            )
        elif state.level is ThresholdLevel.WARNING:
            add(
                alert_type,
                AlertSeverity.WARNING,
                f'{label} approaching',
                f'{format_driving_time(state.remaining_minutes)} of driving left '
                f'out of {format_driving_time(state.limit_minutes)}.',
            )

    break_state: ThresholdState = report.thresholds['break']
    if report.break_required:
        add(
            AlertType.BREAK_REQUIRED,
            AlertSeverity.WARNING,
            'Break required',
            f'Driven {format_driving_time(break_state.used_minutes)} without a '
            'qualifying break. Take a break now.',
        )
    elif (
        break_state.level is ThresholdLevel.WARNING
        and report.thresholds['daily'].level is not ThresholdLevel.EXCEEDED
    ):
        add(
            AlertType.BREAK_REQUIRED,
            AlertSeverity.INFO,
            'Break due soon',
            f'Break required in {format_driving_time(break_state.remaining_minutes)}.',
        )

    for check, alert_type, label in (
        (report.daily_rest, AlertType.DAILY_REST, 'Daily rest'),
        (report.weekly_rest, AlertType.WEEKLY_REST, 'Weekly rest'),
    ):
        if check.satisfied is False and check.rest_minutes is not None:
            add(
                alert_type,
                AlertSeverity.WARNING,
                f'{label} too short',
                f'Rested {format_driving_time(check.rest_minutes)} of the required '
                f'{format_driving_time(check.required_minutes)}.',
            )

    alerts.sort(key=lambda alert: alert.severity.rank, reverse=True)
    return alerts
