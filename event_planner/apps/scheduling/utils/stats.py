'''
Name: apps/scheduling/utils/stats.py
Description: Utility module with data analysis functions for
             a user's existing events (scheduling patterns).
Created: November 22, 2025
Last Modified: December 1, 2025
'''
from collections import Counter, defaultdict
from datetime import datetime

from .availability import js_weekday


def _event_bounds(ev):
    """(start, end) datetimes of an event dict, or None if unusable."""
    start = ev.get("start")
    end = ev.get("end")
    if not start or not end:
        return None

    # Parse strings into datetimes if needed
    try:
        if isinstance(start, str):
            start = datetime.fromisoformat(start)
        if isinstance(end, str):
            end = datetime.fromisoformat(end)
    except ValueError:
        return None

    if not isinstance(start, datetime) or not isinstance(end, datetime):
        return None
    if end <= start:
        return None
    return start, end


def compute_time_by_event_type(events):
    """
    Given a list of event dicts, return a list of
    { "event_type": str, "minutes": float } summaries.
    """
    totals = defaultdict(float)

    for ev in events:
        bounds = _event_bounds(ev)
        if bounds is None:
            continue
        start, end = bounds
        totals[ev.get("event_type") or "Other"] += (end - start).total_seconds() / 60.0

    return [
        {"event_type": etype, "minutes": round(minutes, 1)}
        for etype, minutes in totals.items()
    ]


def analyze_scheduling_patterns(events, top=4):
    """
    Summarize when a user usually schedules things.

    Returns a dict with:
      - busy_hours: the `top` most used start hours, ascending
      - preferred_days: the `top` most used weekdays (0=Sunday), ascending
      - average_meeting_duration: mean length in whole minutes (0 without events)
      - total_events: number of events with usable start/end
    """
    hours = Counter()
    days = Counter()
    total_minutes = 0.0
    counted = 0

    for ev in events:
        bounds = _event_bounds(ev)
        if bounds is None:
            continue
        start, end = bounds
        hours[start.hour] += 1
        days[js_weekday(start)] += 1
        total_minutes += (end - start).total_seconds() / 60.0
        counted += 1

    # ties go to the smaller value
    def _top(counter):
        ranked = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
        return sorted(value for value, _ in ranked[:top])

    return {
        "busy_hours": _top(hours),
        "preferred_days": _top(days),
        "average_meeting_duration": int(round(total_minutes / counted)) if counted else 0,
        "total_events": counted,
    }
