'''
Name: apps/scheduling/utils/recurrence.py
Description: Expands a recurring event's rule into concrete occurrence dates
Created: November 7, 2025
Last Modified: December 1, 2025
'''

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from typing import FrozenSet, Iterator, List, Optional, Tuple
import logging

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta
import pytz
from django.core.exceptions import ValidationError

from .availability import js_weekday, localize
from .constants import DEFAULT_MAX_OCCURRENCES, EndType, Frequency, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str
    interval: int = 1
    end_type: str = EndType.NEVER
    end_date: Optional[date] = None
    end_count: Optional[int] = None
    by_week_day: Optional[FrozenSet[int]] = None
    by_month_day: Optional[FrozenSet[int]] = None
    by_month: Optional[FrozenSet[int]] = None
    exceptions: FrozenSet[date] = field(default_factory=frozenset)


# Raw rule keys come from the calendar front end (camelCase) or from forms (snake_case)
_RAW_KEYS = {
    "end_type": ("endType", "end_type"),
    "end_date": ("endDate", "end_date"),
    "end_count": ("endCount", "end_count"),
    "by_week_day": ("byWeekDay", "by_week_day"),
    "by_month_day": ("byMonthDay", "by_month_day"),
    "by_month": ("byMonth", "by_month"),
}


def _raw_get(raw: dict, key: str):
    for name in _RAW_KEYS.get(key, (key,)):
        if raw.get(name) not in (None, ""):
            return raw[name]
    return None


def _as_date(value) -> date:
    """Calendar day of a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return isoparse(str(value)).date()
    except (TypeError, ValueError):
        raise ValidationError("Invalid date: %(value)s", code="invalid_date", params={"value": value})


def _as_int(value, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError("%(label)s must be a whole number.", code="invalid", params={"label": label})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("%(label)s must be a whole number.", code="invalid", params={"label": label})


def _int_set(values, label: str) -> Optional[FrozenSet[int]]:
    # An empty filter list means "no filter"
    if not values:
        return None
    return frozenset(_as_int(v, label) for v in values)


def parse_recurrence_rule(raw: dict) -> RecurrenceRule:
    """
    Convert a recurrence dict (as posted by the event form) into a RecurrenceRule.
    Dates may be date objects or ISO strings. The rule is validated before returning.
    """
    logger.debug("parse_recurrence_rule: in=%r", raw)
    if not isinstance(raw, dict):
        raise ValidationError("Recurrence must be an object.", code="invalid_rule")

    interval = raw.get("interval")
    end_date = _raw_get(raw, "end_date")
    end_count = _raw_get(raw, "end_count")
    rule = RecurrenceRule(
        frequency=raw.get("frequency"),
        interval=1 if interval in (None, "") else _as_int(interval, "Interval"),
        end_type=_raw_get(raw, "end_type") or EndType.NEVER,
        end_date=_as_date(end_date) if end_date is not None else None,
        end_count=_as_int(end_count, "End count") if end_count is not None else None,
        by_week_day=_int_set(_raw_get(raw, "by_week_day"), "Week day"),
        by_month_day=_int_set(_raw_get(raw, "by_month_day"), "Month day"),
        by_month=_int_set(_raw_get(raw, "by_month"), "Month"),
        exceptions=frozenset(_as_date(d) for d in (raw.get("exceptions") or [])),
    )
    validate_recurrence_rule(rule)
    logger.debug("parse_recurrence_rule: out=%r", rule)
    return rule


def validate_recurrence_rule(rule: RecurrenceRule) -> None:
    """Raise ValidationError if the rule cannot be expanded."""
    if rule.frequency not in Frequency.values:
        raise ValidationError("Unknown frequency: %(value)s", code="invalid_frequency", params={"value": rule.frequency})
    if not isinstance(rule.interval, int) or isinstance(rule.interval, bool) or rule.interval < 1:
        raise ValidationError("Interval must be at least 1.", code="invalid_interval")
    if rule.end_type not in EndType.values:
        raise ValidationError("Unknown end type: %(value)s", code="invalid_end_type", params={"value": rule.end_type})
    if rule.end_type == EndType.DATE and rule.end_date is None:
        raise ValidationError("An end date is required when the rule ends on a date.", code="missing_end_date")
    if rule.end_type == EndType.COUNT and (rule.end_count is None or rule.end_count < 1):
        raise ValidationError("An end count of at least 1 is required when the rule ends after a count.", code="invalid_end_count")

    checks = (
        (rule.by_week_day, 0, 6, "Week days"),
        (rule.by_month_day, 1, 31, "Month days"),
        (rule.by_month, 1, 12, "Months"),
    )
    for values, low, high, label in checks:
        if values and any(v < low or v > high for v in values):
            raise ValidationError(
                "%(label)s must be between %(low)d and %(high)d.",
                code="out_of_range",
                params={"label": label, "low": low, "high": high},
            )


def _period_start(anchor, rule: RecurrenceRule, step: int):
    """
    Start of the step-th period. Always computed from the anchor so that month
    clamping (Jan 31 -> Feb 29) does not drift into later months.
    """
    n = rule.interval * step
    if rule.frequency == Frequency.WEEKLY:
        return anchor + timedelta(weeks=n)
    if rule.frequency == Frequency.MONTHLY:
        return anchor + relativedelta(months=n)
    if rule.frequency == Frequency.YEARLY:
        return anchor + relativedelta(years=n)
    # daily and custom
    return anchor + timedelta(days=n)


def _period_candidates(anchor, start, rule: RecurrenceRule) -> Iterator:
    """Candidate occurrences inside one period, in order."""
    if rule.frequency == Frequency.WEEKLY and rule.by_week_day:
        for offset in range(7):
            day = start + timedelta(days=offset)
            if js_weekday(day) in rule.by_week_day:
                yield day
        return

    if rule.frequency == Frequency.MONTHLY and rule.by_month_day:
        last_day = monthrange(start.year, start.month)[1]
        for month_day in sorted(rule.by_month_day):
            # day 31 does not exist in every month; skip rather than clamp
            if month_day > last_day:
                continue
            day = start.replace(day=month_day)
            if day >= anchor:
                yield day
        return

    if rule.frequency == Frequency.YEARLY and rule.by_month:
        for month in sorted(rule.by_month):
            last_day = monthrange(start.year, month)[1]
            day = start.replace(month=month, day=min(anchor.day, last_day))
            if day >= anchor:
                yield day
        return

    yield start


def _first_step(anchor, rule: RecurrenceRule, after) -> int:
    """Index of the last period starting at or before `after` (0 when there is none)."""
    if after is None or after <= anchor:
        return 0
    if rule.frequency in (Frequency.MONTHLY, Frequency.YEARLY):
        months = (after.year - anchor.year) * 12 + after.month - anchor.month
        unit = 12 if rule.frequency == Frequency.YEARLY else 1
        step = months // (unit * rule.interval)
    else:
        days = 7 if rule.frequency == Frequency.WEEKLY else 1
        step = (after - anchor) // timedelta(days=days * rule.interval)
    while step > 0 and _period_start(anchor, rule, step) > after:
        step -= 1
    return step


def _iter_candidates(anchor, rule: RecurrenceRule, first_step: int, max_periods: int) -> Iterator:
    # count ends need every earlier occurrence tallied, so they always start at the anchor
    step = 0 if rule.end_type == EndType.COUNT else first_step
    while step < first_step + max_periods:
        start = _period_start(anchor, rule, step)
        if rule.end_type == EndType.DATE and _as_date(start) > rule.end_date:
            return
        yield from _period_candidates(anchor, start, rule)
        step += 1


def _wall_clock(value, anchor, zone):
    """Express `value` the way the anchor is expanded: a plain date or a naive local datetime."""
    if not isinstance(anchor, datetime):
        return _as_date(value)
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value.tzinfo is not None:
        if zone is not None:
            value = value.astimezone(zone)
        value = value.replace(tzinfo=None)
    return value


def expand_recurrence(anchor, rule: RecurrenceRule, max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
                      after=None, tz=None) -> List:
    """
    Materialize the occurrences of a recurring event.

    anchor is the first occurrence (date or datetime; a datetime's time of day is
    kept on every occurrence). Returns occurrences in increasing order, skipping
    exception days and stopping at the rule's end condition. max_occurrences caps
    both the number of periods stepped and the number of dates returned.

    Timezone-aware anchors are stepped on the local wall clock of tz (default: the
    anchor's own tzinfo), so 09:00 stays 09:00 across DST changes.

    With `after`, only occurrences starting at or after it are returned, and the
    cap is counted from the period containing `after` instead of from the anchor.
    """
    validate_recurrence_rule(rule)
    if isinstance(max_occurrences, bool) or not isinstance(max_occurrences, int) or max_occurrences < 1:
        raise ValidationError("max_occurrences must be at least 1.", code="invalid_max_occurrences")

    zone = None
    if isinstance(anchor, datetime):
        if tz is not None:
            zone = pytz.timezone(tz) if isinstance(tz, str) else tz
        elif anchor.tzinfo is not None:
            zone = anchor.tzinfo
        if anchor.tzinfo is not None:
            anchor = anchor.astimezone(zone).replace(tzinfo=None)
    if after is not None:
        after = _wall_clock(after, anchor, zone)
    first_step = _first_step(anchor, rule, after)

    logger.debug("expand_recurrence: anchor=%s zone=%s frequency=%s interval=%d end=%s cap=%d first_step=%d",
                 anchor, zone, rule.frequency, rule.interval, rule.end_type, max_occurrences, first_step)

    occurrences = []
    emitted = 0
    for candidate in _iter_candidates(anchor, rule, first_step, max_occurrences):
        day = _as_date(candidate)
        if rule.end_type == EndType.DATE and day > rule.end_date:
            break
        if day in rule.exceptions:
            continue
        emitted += 1
        if after is None or candidate >= after:
            occurrences.append(candidate)
        if rule.end_type == EndType.COUNT and emitted >= rule.end_count:
            break
        if len(occurrences) >= max_occurrences:
            break

    if zone is not None:
        occurrences = [localize(occ, zone) for occ in occurrences]
    logger.debug("expand_recurrence: occurrences=%d", len(occurrences))
    return occurrences


def occurrence_windows(start: datetime, end: datetime, rule: RecurrenceRule,
                       max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
                       after=None, tz=None) -> List[Tuple[datetime, datetime]]:
    """
    (start, end) pairs for each occurrence of an event lasting end - start.
    With `after`, only windows still running after that moment are returned.
    """
    duration = end - start
    first = None if after is None else after - duration
    windows = [(occ, occ + duration) for occ in expand_recurrence(start, rule, max_occurrences, after=first, tz=tz)]
    if after is not None:
        windows = [(s, e) for s, e in windows if e > after]
    return windows
