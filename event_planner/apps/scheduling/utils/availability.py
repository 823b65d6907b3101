'''
Name: apps/scheduling/utils/availability.py
Description: Working hours, busy interval helpers and open slot search
Created: November 7, 2025
Last Modified: December 1, 2025
'''

from dataclasses import dataclass
from datetime import datetime, date, time, timedelta
from typing import FrozenSet, Iterator, List, Optional, Tuple
import logging

import pytz
from django.conf import settings
from django.core.exceptions import ValidationError

from .constants import DEFAULT_GRANULARITY_MINUTES, DEFAULT_WORKING_HOURS, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# BusySlot = (start_datetime, end_datetime), half-open [start, end)
BusySlot = Tuple[datetime, datetime]


@dataclass(frozen=True)
class WorkingHours:
    start: time
    end: time
    days: FrozenSet[int]  # 0=Sunday .. 6=Saturday


def js_weekday(d: date) -> int:
    """Weekday with Sunday as 0 (Python's date.weekday() has Monday as 0)."""
    return (d.weekday() + 1) % 7


def _parse_clock(val, label: str) -> time:
    if isinstance(val, time):
        return val
    try:
        # Expect "HH:MM" or "HH:MM:SS"
        return time.fromisoformat(str(val))
    except ValueError:
        raise ValidationError("%(label)s must be a time like HH:MM.", code="invalid_time", params={"label": label})


def parse_working_hours(raw: Optional[dict] = None) -> WorkingHours:
    """
    Build WorkingHours from {"start": "HH:MM", "end": "HH:MM", "days": [..]}.
    Missing keys fall back to settings.DEFAULT_WORKING_HOURS.
    """
    defaults = getattr(settings, "DEFAULT_WORKING_HOURS", DEFAULT_WORKING_HOURS)
    raw = raw or {}
    start = _parse_clock(raw.get("start") or defaults["start"], "Start time")
    end = _parse_clock(raw.get("end") or defaults["end"], "End time")
    days = raw.get("days")
    if days is None:
        days = defaults["days"]
    try:
        days = frozenset(int(d) for d in days)
    except (TypeError, ValueError):
        raise ValidationError("Working days must be numbers between 0 and 6.", code="invalid_days")

    if end <= start:
        raise ValidationError("Working hours must end after they start.", code="invalid_range")
    if any(d < 0 or d > 6 for d in days):
        raise ValidationError("Working days must be numbers between 0 and 6.", code="invalid_days")
    return WorkingHours(start=start, end=end, days=days)


def localize(naive: datetime, tz=None) -> datetime:
    """Attach tz to a wall-clock datetime; naive stays naive when tz is None."""
    if tz is None:
        return naive
    if isinstance(tz, str):
        tz = pytz.timezone(tz)
    # For pytz timezones use localize; for others set tzinfo directly
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def is_working_hour(moment: datetime, working_hours: WorkingHours) -> bool:
    """True when moment falls on an active day between start and end (inclusive, minute precision)."""
    if js_weekday(moment) not in working_hours.days:
        return False
    clock = moment.time().replace(second=0, microsecond=0)
    return working_hours.start <= clock <= working_hours.end


def overlaps(start: datetime, end: datetime, busy_start: datetime, busy_end: datetime) -> bool:
    """Half-open overlap; intervals that only touch do not conflict."""
    return start < busy_end and busy_start < end


def merge_busy_slots(busy: List[BusySlot]) -> List[BusySlot]:
    """Merge overlapping/adjacent busy intervals."""
    logger.debug("merge_busy_slots: in_count=%d", len(busy))
    if not busy:
        return []
    busy_sorted = sorted(busy, key=lambda x: x[0])
    merged = []
    cur_s, cur_e = busy_sorted[0]
    for s, e in busy_sorted[1:]:
        if s <= cur_e:
            cur_e = max(cur_e, e)
        else:
            merged.append((cur_s, cur_e))
            cur_s, cur_e = s, e
    merged.append((cur_s, cur_e))
    logger.debug("merge_busy_slots: out_count=%d", len(merged))
    return merged


def _working_window(day: date, working_hours: WorkingHours, tz=None) -> BusySlot:
    return (
        localize(datetime.combine(day, working_hours.start), tz),
        localize(datetime.combine(day, working_hours.end), tz),
    )


def free_windows(day: date, busy_intervals: List[BusySlot], working_hours: WorkingHours, tz=None) -> List[BusySlot]:
    """Return free gaps inside the day's working window given busy intervals."""
    if js_weekday(day) not in working_hours.days:
        return []
    window_start, window_end = _working_window(day, working_hours, tz)
    logger.debug("free_windows: window=[%s, %s) busy_count=%d", window_start, window_end, len(busy_intervals))
    free = []
    cur = window_start
    for s, e in merge_busy_slots(list(busy_intervals)):
        if e <= window_start or s >= window_end:
            continue
        s_clamped = max(s, window_start)
        e_clamped = min(e, window_end)
        if s_clamped > cur:
            free.append((cur, s_clamped))
        cur = max(cur, e_clamped)
    if cur < window_end:
        free.append((cur, window_end))
    logger.debug("free_windows: free_count=%d", len(free))
    return free


def find_open_slots(
    day: date,
    duration_minutes: int,
    busy_intervals: List[BusySlot],
    working_hours: WorkingHours,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    tz=None,
) -> Iterator[BusySlot]:
    """
    Yield (start, end) slots of duration_minutes inside the working window of day,
    stepping candidate starts by granularity_minutes. A slot may not run past the
    end of working hours and may not overlap a busy interval (back-to-back is fine).
    Nothing is yielded on days that are not working days.

    Arguments are validated when this is called, not when the first slot is taken.
    """
    if isinstance(day, datetime):
        day = day.date()
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes.", code="invalid_duration")
    if granularity_minutes is None or granularity_minutes <= 0:
        raise ValidationError("Granularity must be a positive number of minutes.", code="invalid_granularity")
    return _scan_slots(day, duration_minutes, list(busy_intervals), working_hours, granularity_minutes, tz)


def _scan_slots(day, duration_minutes, busy, working_hours, granularity_minutes, tz) -> Iterator[BusySlot]:
    if js_weekday(day) not in working_hours.days:
        logger.debug("find_open_slots: %s is not a working day", day)
        return

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)
    naive_start = datetime.combine(day, working_hours.start)
    naive_end = datetime.combine(day, working_hours.end)

    current = naive_start
    while current < naive_end:
        if current + duration <= naive_end:
            slot_s = localize(current, tz)
            slot_e = localize(current + duration, tz)
            if not any(overlaps(slot_s, slot_e, bs, be) for bs, be in busy):
                yield (slot_s, slot_e)
        current += step
