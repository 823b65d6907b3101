'''
Name: apps/scheduling/utils/formatting.py
Description: Human readable labels for event times and durations
Created: November 24, 2025
Last Modified: November 24, 2025
'''
from datetime import datetime
import math


def _day_label(d, with_year=True):
    # "Mar 5, 2025" / "Mar 5"
    label = f"{d:%b} {d.day}"
    return f"{label}, {d.year}" if with_year else label


def format_event_time(start: datetime, end: datetime, all_day: bool) -> str:
    same_day = start.date() == end.date()
    if all_day:
        if same_day:
            return _day_label(start)
        return f"{_day_label(start, with_year=False)} - {_day_label(end)}"

    if same_day:
        return f"{_day_label(start)} • {start:%H:%M} - {end:%H:%M}"
    return f"{_day_label(start, with_year=False)}, {start:%H:%M} - {_day_label(end, with_year=False)}, {end:%H:%M}, {end.year}"


def _round_half_up(x):
    # 2.5 -> 3, -2.5 -> -2
    return math.floor(x + 0.5)


def format_duration(start: datetime, end: datetime) -> str:
    """Duration as "45m", "2h" or "1h 30m"."""
    total_minutes = int((end - start).total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def relative_time_string(moment: datetime, now: datetime) -> str:
    """
    Short relative label ("now", "in 5m", "3h ago", "in 2d").
    Anything a week or more away falls back to the date.
    """
    diff_seconds = (moment - now).total_seconds()
    diff_minutes = _round_half_up(diff_seconds / 60)
    diff_hours = _round_half_up(diff_seconds / 3600)
    diff_days = _round_half_up(diff_seconds / 86400)

    if abs(diff_minutes) < 60:
        if diff_minutes == 0:
            return "now"
        return f"in {diff_minutes}m" if diff_minutes > 0 else f"{abs(diff_minutes)}m ago"
    if abs(diff_hours) < 24:
        return f"in {diff_hours}h" if diff_hours > 0 else f"{abs(diff_hours)}h ago"
    if abs(diff_days) < 7:
        return f"in {diff_days}d" if diff_days > 0 else f"{abs(diff_days)}d ago"
    return _day_label(moment)
