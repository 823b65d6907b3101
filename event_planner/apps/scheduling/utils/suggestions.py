'''
Name: apps/scheduling/utils/suggestions.py
Description: Heuristic meeting time suggestions. Each whole hour of the
             preferred day is scored by participant conflicts and time of day.
Created: November 20, 2025
Last Modified: December 1, 2025
'''

from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from typing import Callable, Iterable, List, Optional, Tuple
import logging

from django.core.exceptions import ValidationError

from .availability import localize
from .constants import (
    ACCEPTANCE_THRESHOLD,
    ALTERNATIVE_HOURS,
    ALTERNATIVE_STEP_MINUTES,
    ALTERNATIVE_STEPS,
    DEFAULT_SUGGESTION_HOURS,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)

# conflict_lookup(participants, start, end) -> busy intervals overlapping [start, end)
ConflictLookup = Callable[[List[str], datetime, datetime], Iterable]


@dataclass(frozen=True)
class SchedulingSuggestion:
    suggested_time: datetime
    confidence: float
    reason: str
    alternatives: Tuple[datetime, ...] = field(default_factory=tuple)
    conflicts: Tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "suggestedTime": self.suggested_time.isoformat(),
            "confidence": self.confidence,
            "reason": self.reason,
            "alternatives": [alt.isoformat() for alt in self.alternatives],
            "conflicts": [
                {"start": s.isoformat(), "end": e.isoformat()} for s, e in self.conflicts
            ],
        }


def _hour_of(val, label: str) -> int:
    """Hour from "HH:MM"; minutes are ignored."""
    try:
        hour = int(str(val).split(":")[0])
    except (TypeError, ValueError):
        raise ValidationError("%(label)s must be a time like HH:MM.", code="invalid_time_range", params={"label": label})
    if hour < 0 or hour > 24:
        raise ValidationError("%(label)s must be a time like HH:MM.", code="invalid_time_range", params={"label": label})
    return hour


def parse_time_range(time_range: Optional[dict]) -> Tuple[int, int]:
    """Return (start_hour, end_hour) of the search range; defaults to 9..17."""
    start_hour, end_hour = DEFAULT_SUGGESTION_HOURS
    if not time_range:
        return start_hour, end_hour
    if not isinstance(time_range, dict):
        raise ValidationError("Time range must have a start and an end.", code="invalid_time_range")
    if time_range.get("start"):
        start_hour = _hour_of(time_range["start"], "Range start")
    if time_range.get("end"):
        end_hour = _hour_of(time_range["end"], "Range end")
    return start_hour, end_hour


def calculate_confidence(hour: int, conflict_count: int) -> float:
    confidence = 1.0

    confidence -= conflict_count * 0.3

    if 10 <= hour <= 11:  # morning
        confidence += 0.2
    if 14 <= hour <= 15:  # early afternoon
        confidence += 0.1
    if hour == 12:  # lunch
        confidence -= 0.4
    if hour < 9 or hour > 17:  # outside work hours
        confidence -= 0.5

    return max(0.0, min(1.0, confidence))


def generate_reason(hour: int, conflict_count: int) -> str:
    if conflict_count > 0:
        plural = "s" if conflict_count > 1 else ""
        return f"{conflict_count} potential conflict{plural} detected"
    if 10 <= hour <= 11:
        return "Optimal morning slot - high productivity period"
    if 14 <= hour <= 15:
        return "Good afternoon slot - post-lunch energy"
    return "Available time slot"


def generate_alternatives(original_time: datetime) -> List[datetime]:
    """Nearby start times (+30, -30, +60, -60, +90, -90 min) that stay within 9:00-17:59."""
    low, high = ALTERNATIVE_HOURS
    alternatives = []
    for i in range(1, ALTERNATIVE_STEPS + 1):
        step = timedelta(minutes=i * ALTERNATIVE_STEP_MINUTES)
        for alt in (original_time + step, original_time - step):
            if low <= alt.hour <= high:
                alternatives.append(alt)
    return alternatives


def _lookup_conflicts(conflict_lookup, participants, start, end, on_lookup_error) -> list:
    try:
        return list(conflict_lookup(participants, start, end) or [])
    except Exception as exc:
        # fail open: the hour is scored as conflict free
        if on_lookup_error is not None:
            on_lookup_error(exc, start)
        return []


def suggest_meeting_times(
    participants: List[str],
    duration_minutes: int,
    preferred_date: date,
    conflict_lookup: ConflictLookup,
    time_range: Optional[dict] = None,
    tz=None,
    on_lookup_error: Optional[Callable[[Exception, datetime], None]] = None,
) -> List[SchedulingSuggestion]:
    """
    Score each whole hour of preferred_date inside time_range and return the ones
    above the acceptance threshold, best first (ties stay in hour order).

    conflict_lookup is called once per candidate hour, in hour order. If it raises,
    that hour is scored as conflict free and on_lookup_error(exc, start) is called.
    """
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes.", code="invalid_duration")
    start_hour, end_hour = parse_time_range(time_range)
    if isinstance(preferred_date, datetime):
        preferred_date = preferred_date.date()
    duration = timedelta(minutes=duration_minutes)

    logger.debug("suggest_meeting_times: participants=%d duration=%d date=%s hours=[%d, %d)",
                 len(participants), duration_minutes, preferred_date, start_hour, end_hour)

    suggestions = []
    for hour in range(start_hour, end_hour):
        suggested_time = localize(datetime.combine(preferred_date, time(hour)), tz)
        conflicts = _lookup_conflicts(conflict_lookup, participants, suggested_time,
                                      suggested_time + duration, on_lookup_error)
        confidence = calculate_confidence(hour, len(conflicts))
        if confidence <= ACCEPTANCE_THRESHOLD:
            continue
        suggestions.append(SchedulingSuggestion(
            suggested_time=suggested_time,
            confidence=confidence,
            reason=generate_reason(hour, len(conflicts)),
            alternatives=tuple(generate_alternatives(suggested_time)),
            conflicts=tuple(conflicts),
        ))

    # sorted() is stable, so equal scores keep ascending hour order
    suggestions = sorted(suggestions, key=lambda s: -s.confidence)
    logger.debug("suggest_meeting_times: suggestions=%d", len(suggestions))
    return suggestions
