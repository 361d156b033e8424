"""Working-hours arithmetic.

A weekday exposes 10:00–18:00 (8 hours); the 16 hours from 18:00 to 10:00
the next morning are excluded, and Saturdays and Sundays are excluded
entirely.  Day and hour boundaries are evaluated in the timezone of the
``start`` timestamp, so callers control the calendar by choosing the tz the
timestamps are constructed in (see ``models.parse_timestamp``).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from review_metrics.config import WEEKEND_DAYS, WORKDAY_END_HOUR, WORKDAY_START_HOUR

SECONDS_PER_HOUR = 3600.0


def _overlap_seconds(start: float, end: float, window_start: float, window_end: float) -> float:
    """Length of the intersection of two half-open intervals, in seconds."""
    return max(0.0, min(end, window_end) - max(start, window_start))


def working_hours(start: datetime | None, end: datetime | None) -> float:
    """Hours between *start* and *end*, excluding nights and weekends.

    Returns 0 for missing timestamps or when ``end <= start``; never raises
    for those.
    """
    if start is None or end is None:
        return 0.0

    # Instants are compared as POSIX timestamps so aware values with
    # different offsets (or DST shifts inside the interval) stay correct.
    start_ts = start.timestamp()
    end_ts = end.timestamp()
    if end_ts <= start_ts:
        return 0.0

    removed = 0.0
    day = start.replace(hour=0, minute=0, second=0, microsecond=0)

    while day.timestamp() < end_ts:
        next_day = day + timedelta(days=1)
        day_start_ts = day.timestamp()
        day_end_ts = next_day.timestamp()

        if day.weekday() in WEEKEND_DAYS:
            removed += _overlap_seconds(start_ts, end_ts, day_start_ts, day_end_ts)
        else:
            evening_ts = day.replace(hour=WORKDAY_END_HOUR).timestamp()
            morning_ts = day.replace(hour=WORKDAY_START_HOUR).timestamp()
            removed += _overlap_seconds(start_ts, end_ts, evening_ts, day_end_ts)
            removed += _overlap_seconds(start_ts, end_ts, day_start_ts, morning_ts)

        day = next_day

    return max(0.0, (end_ts - start_ts - removed) / SECONDS_PER_HOUR)
