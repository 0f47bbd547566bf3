# fleet_compliance/engine/periods.py
"""
Calendar boundaries for driving-time windows.

Days and weeks are local to the fleet's configured timezone: a driver in
Rome who drives from 23:00 to 01:00 local time drives on two days, whatever
UTC says. All returned boundaries are UTC Timestamps so they compare directly
against the UTC `timestamp` column of GPS frames.
"""

from datetime import UTC, date, datetime

import pandas as pd

__all__: list[str] = [
    'local_dates',
    'resolve_now',
    'start_of_day',
    'start_of_week',
]


def resolve_now(now: datetime | pd.Timestamp | None = None) -> pd.Timestamp:
    """
    Normalise an evaluation time to a UTC Timestamp.

    Args:
        now: Timezone-aware evaluation time, or None for the current time.

    Raises:
        ValueError: If `now` is naive.
    """
    if now is None:
        return pd.Timestamp(datetime.now(UTC))

    timestamp = pd.Timestamp(now)
    if timestamp.tzinfo is None:
        raise ValueError(f'Evaluation time must be timezone-aware, got naive {now!r}')
    return timestamp.tz_convert('UTC')


def start_of_day(now: pd.Timestamp, timezone: str) -> pd.Timestamp:
    """UTC instant of local midnight on the day containing `now`."""
    local_now: pd.Timestamp = now.tz_convert(timezone)
    return local_now.normalize().tz_convert('UTC')


def start_of_week(now: pd.Timestamp, timezone: str, weeks_back: int = 0) -> pd.Timestamp:
    """
    UTC instant of local Monday midnight of the week containing `now`.

    Args:
        now: Evaluation time (UTC).
        timezone: IANA timezone defining the week.
        weeks_back: Number of whole weeks to step back (1 = previous week).
    """
    local_midnight: pd.Timestamp = now.tz_convert(timezone).normalize()
    days_since_monday: int = local_midnight.weekday() + 7 * weeks_back
    # Stepping in calendar days then re-localising keeps DST transitions right
    monday: date = (local_midnight - pd.Timedelta(days=days_since_monday)).date()
    return pd.Timestamp(monday).tz_localize(timezone).tz_convert('UTC')


def local_dates(timestamps: pd.Series, timezone: str) -> pd.Series:
    """Local calendar date of each UTC timestamp."""
    return timestamps.dt.tz_convert(timezone).dt.date
