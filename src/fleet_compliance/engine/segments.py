# fleet_compliance/engine/segments.py
"""
Distance accumulation and moving/resting segmentation of a GPS point stream.

Interval Model:
---------------
A stream of N points sorted by time yields N-1 intervals; interval i spans
point i-1 to point i. Each interval gets:

    - distance_km: haversine distance between its endpoints. Jumps of
      `max_point_jump_km` or more are GPS errors and count as 0.
    - is_moving: speed reported at point i, in km/h, strictly above
      `moving_speed_kmh`. Intervals longer than `max_sample_gap_minutes`
      (tracking was off) are never moving.
    - duration_minutes: time between the two points.

Driving time is the sum of moving interval durations. Consecutive intervals
in the same state merge into Segments.

All functions expect a single driver's frame with the GPS schema applied
(see fleet_compliance.schema.enforce_gps_schema) and sort it by timestamp
themselves.
"""

import logging
from datetime import datetime
from typing import Final, Literal

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from fleet_compliance.config import ComplianceSettings
from fleet_compliance.geo import haversine_km_array, speeds_to_kmh

__all__: list[str] = [
    'INTERVAL_COLUMNS',
    'Segment',
    'SegmentState',
    'compute_intervals',
    'continuous_driving_minutes',
    'driving_minutes',
    'segment_positions',
    'sort_positions',
    'total_distance_km',
]

logger: logging.Logger = logging.getLogger(__name__)

SegmentState = Literal['moving', 'resting']

INTERVAL_COLUMNS: Final[list[str]] = [
    'start',
    'end',
    'duration_minutes',
    'distance_km',
    'speed_kmh',
    'is_moving',
]


class Segment(BaseModel):
    """
    A maximal run of intervals in the same state.

    Attributes:
        state: 'moving' or 'resting'.
        start: Timestamp of the first point of the run.
        end: Timestamp of the last point of the run.
        duration_minutes: Sum of interval durations.
        distance_km: Sum of counted interval distances.
        point_count: Points spanned (intervals + 1).
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    state: SegmentState
    start: datetime
    end: datetime
    duration_minutes: float
    distance_km: float
    point_count: int

    @property
    def is_moving(self) -> bool:
        return self.state == 'moving'


def sort_positions(positions: pd.DataFrame) -> pd.DataFrame:
    """Positions in ascending time order; stable for equal timestamps."""
    return positions.sort_values('timestamp', kind='mergesort').reset_index(drop=True)


def _empty_intervals() -> pd.DataFrame:
    return pd.DataFrame(
        {
            'start': pd.Series(dtype='datetime64[ns, UTC]'),
            'end': pd.Series(dtype='datetime64[ns, UTC]'),
            'duration_minutes': pd.Series(dtype=np.float64),
            'distance_km': pd.Series(dtype=np.float64),
            'speed_kmh': pd.Series(dtype=np.float64),
            'is_moving': pd.Series(dtype=bool),
        }
    )


def compute_intervals(
    positions: pd.DataFrame,
    settings: ComplianceSettings | None = None,
) -> pd.DataFrame:
    """
    Build the interval frame for one driver's points.

    Args:
        positions: Schema-enforced GPS frame for a single driver.
        settings: Engine settings; defaults apply when None.

    Returns:
        DataFrame with INTERVAL_COLUMNS, one row per consecutive point pair.
        Empty when fewer than two points are given.
    """
    settings = settings or ComplianceSettings()

    if len(positions) < 2:  # noqa: PLR2004
        return _empty_intervals()

    frame: pd.DataFrame = sort_positions(positions)

    latitudes = frame['latitude'].to_numpy(dtype=np.float64)
    longitudes = frame['longitude'].to_numpy(dtype=np.float64)
    raw_distances = haversine_km_array(
        latitudes[:-1], longitudes[:-1], latitudes[1:], longitudes[1:]
    )
    # NaN compares False, so unusable distances drop out here too
    counted_distances = np.where(
        raw_distances < settings.max_point_jump_km, raw_distances, 0.0
    )

    rejected: int = int(np.count_nonzero(raw_distances >= settings.max_point_jump_km))
    if rejected:
        logger.debug(
            'Ignored %d point jumps >= %.2f km as GPS noise',
            rejected,
            settings.max_point_jump_km,
        )

    timestamps: pd.Series = frame['timestamp']
    durations = (
        timestamps.diff().dt.total_seconds().to_numpy(dtype=np.float64)[1:] / 60.0
    )

    speeds_kmh = speeds_to_kmh(frame['speed'].to_numpy(dtype=np.float64)[1:])
    is_moving = speeds_kmh > settings.moving_speed_kmh
    if settings.max_sample_gap_minutes is not None:
        is_moving &= durations <= settings.max_sample_gap_minutes

    return pd.DataFrame(
        {
            'start': timestamps.iloc[:-1].reset_index(drop=True),
            'end': timestamps.iloc[1:].reset_index(drop=True),
            'duration_minutes': durations,
            'distance_km': counted_distances,
            'speed_kmh': speeds_kmh,
            'is_moving': is_moving,
        }
    )


def total_distance_km(
    positions: pd.DataFrame,
    settings: ComplianceSettings | None = None,
) -> float:
    """Sum of counted point-to-point distances in kilometres."""
    intervals: pd.DataFrame = compute_intervals(positions, settings)
    return float(intervals['distance_km'].sum())


def driving_minutes(
    positions: pd.DataFrame,
    settings: ComplianceSettings | None = None,
) -> float:
    """Sum of moving interval durations in minutes."""
    intervals: pd.DataFrame = compute_intervals(positions, settings)
    return float(intervals.loc[intervals['is_moving'], 'duration_minutes'].sum())


def segment_positions(
    positions: pd.DataFrame,
    settings: ComplianceSettings | None = None,
) -> list[Segment]:
    """
    Split one driver's points into alternating moving/resting segments.

    Args:
        positions: Schema-enforced GPS frame for a single driver.
        settings: Engine settings; defaults apply when None.

    Returns:
        Segments in time order. Empty when fewer than two points are given.
    """
    intervals: pd.DataFrame = compute_intervals(positions, settings)
    if intervals.empty:
        return []

    # A new run starts wherever the state flips
    run_ids: pd.Series = (
        intervals['is_moving'] != intervals['is_moving'].shift()
    ).cumsum()

    segments: list[Segment] = []
    for _, run in intervals.groupby(run_ids, sort=True):
        segments.append(
            Segment(
                state='moving' if bool(run['is_moving'].iloc[0]) else 'resting',
                start=run['start'].iloc[0].to_pydatetime(),
                end=run['end'].iloc[-1].to_pydatetime(),
                duration_minutes=float(run['duration_minutes'].sum()),
                distance_km=float(run['distance_km'].sum()),
                point_count=len(run) + 1,
            )
        )

    logger.debug(
        'Segmented %d intervals into %d segments (%d moving)',
        len(intervals),
        len(segments),
        sum(segment.is_moving for segment in segments),
    )
    return segments


def continuous_driving_minutes(
    segments: list[Segment],
    minimum_break_minutes: float,
    now: datetime | None = None,
) -> float:
    """
    Driving minutes since the last rest long enough to count as a break.

    Walks the segments backwards, summing moving time until a resting
    segment of at least `minimum_break_minutes` is found. When `now` is
    given, silence after the last point counts as rest and extends a
    trailing resting segment: 20 minutes parked plus 30 minutes without
    fixes is a 50 minute break.

    Args:
        segments: Segments in time order.
        minimum_break_minutes: Rest length that resets continuous driving.
        now: Evaluation time (timezone-aware), optional.

    Returns:
        Continuous driving minutes (0 when no driving since the last break).
    """
    if not segments:
        return 0.0

    if now is not None:
        trailing_rest: float = max(
            0.0, (now - segments[-1].end).total_seconds() / 60.0
        )
        if not segments[-1].is_moving:
            trailing_rest += segments[-1].duration_minutes
        if trailing_rest >= minimum_break_minutes:
            return 0.0

    continuous: float = 0.0
    for segment in reversed(segments):
        if segment.is_moving:
            continuous += segment.duration_minutes
        elif segment.duration_minutes >= minimum_break_minutes:
            break
    return continuous
