'''
Name: icsImportExport.py
Description: Module for exporting event occurrences to ICS and reading
             busy intervals out of ICS files.
Created: October 26, 2025
Last Modified: December 1, 2025
Functions: export_occurrences_ics(events)
            import_busy_intervals(ics_text)
'''

from datetime import datetime
import logging

from ics import Calendar, Event
import pytz

from .availability import merge_busy_slots
from .constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def _to_utc(x):
    """Datetime or ISO string -> timezone-aware UTC datetime (naive is taken as UTC)."""
    if not isinstance(x, datetime):
        x = datetime.fromisoformat(str(x))
    return x.astimezone(pytz.UTC) if x.tzinfo else x.replace(tzinfo=pytz.UTC)


def export_occurrences_ics(events):
    """
    Exports a list of events (e.g. the occurrences of one recurring event) as ICS text.

    Parameters:
        events (List[Dict]): dicts with "name", "start", "end" and optional
            "description", "location", "uid".
    Returns:
        str: the serialized calendar.
    """
    calendar = Calendar()
    for event in events:
        ics_event = Event()
        ics_event.name = event.get("name") or "No Title"
        ics_event.begin = _to_utc(event["start"])
        ics_event.end = _to_utc(event["end"])
        ics_event.description = event.get("description") or ""
        ics_event.location = event.get("location") or ""
        if event.get("uid"):
            ics_event.uid = event["uid"]
        calendar.events.add(ics_event)

    logger.info("export_occurrences_ics: exported %d events", len(events))
    return calendar.serialize()


def import_busy_intervals(ics_text):
    """
    Reads an ICS document and returns its events as merged (start, end) UTC intervals.
    Events without a usable end are skipped.
    """
    busy = []
    calendar = Calendar(ics_text)
    for ics_event in calendar.events:
        if ics_event.begin is None or ics_event.end is None:
            logger.warning("import_busy_intervals: skipped event name=%r", ics_event.name)
            continue
        start = ics_event.begin.datetime.astimezone(pytz.UTC)
        end = ics_event.end.datetime.astimezone(pytz.UTC)
        if end > start:
            busy.append((start, end))
        else:
            logger.warning("import_busy_intervals: skipped event name=%r start=%s end=%s", ics_event.name, start, end)
    return merge_busy_slots(busy)
