'''
Name: apps/scheduling/views.py
Description: JSON views for recurrence previews, open slot search,
                working hours, .ics busy time imports, meeting time
                suggestions and analytics.
Created: October 26, 2025
Last Modified: December 1, 2025
'''
import json
import logging
import re
from datetime import datetime, time, timedelta

import pytz
from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_GET, require_POST

from .forms import (
    ICSUploadForm,
    OpenSlotsForm,
    RecurrenceForm,
    RecurrencePreviewForm,
    SuggestTimeForm,
    WorkingHoursForm,
)
from .models import Event
from .utils.availability import find_open_slots, free_windows, is_working_hour, parse_working_hours
from .utils.constants import (
    DEFAULT_GRANULARITY_MINUTES,
    DEFAULT_MAX_OCCURRENCES,
    LOGGER_NAME,
    SESSION_IMPORTED_BUSY,
    SESSION_WORKING_HOURS,
)
from .utils.formatting import format_duration, format_event_time, relative_time_string
from .utils.icsImportExport import export_occurrences_ics, import_busy_intervals
from .utils.recurrence import expand_recurrence, parse_recurrence_rule
from .utils.stats import analyze_scheduling_patterns, compute_time_by_event_type
from .utils.suggestions import suggest_meeting_times

logger = logging.getLogger(LOGGER_NAME)

# ============================================================
#  VIEWS
# ============================================================

@login_required
@require_POST
def recurrence_preview(request):
    '''
    Expand a recurrence rule from the event form so the user can see
    which dates the series will land on before saving it.
    Body: {"anchor": ISO datetime, "maxOccurrences": int, "exceptions": [dates],
           "timezone": name, "rule": {...}}
    '''
    body = _json_body(request)
    if body is None:
        return _error("Invalid JSON body")

    rule_form = RecurrenceForm(_snake_keys(body.get("rule") or {}))
    preview_form = RecurrencePreviewForm(_snake_keys({k: v for k, v in body.items() if k != "rule"}))
    if not (rule_form.is_valid() and preview_form.is_valid()):
        logger.warning("recurrence_preview: invalid form rule=%s preview=%s", rule_form.errors, preview_form.errors)
        return _form_error(rule_form, preview_form)

    raw_rule = dict(rule_form.cleaned_data)
    raw_rule["exceptions"] = preview_form.cleaned_data.get("exceptions") or []
    max_occurrences = preview_form.cleaned_data.get("max_occurrences") or getattr(
        settings, "RECURRENCE_MAX_OCCURRENCES", DEFAULT_MAX_OCCURRENCES
    )
    tz = pytz.timezone(preview_form.cleaned_data.get("timezone") or settings.TIME_ZONE)
    try:
        rule = parse_recurrence_rule(raw_rule)
        occurrences = expand_recurrence(preview_form.cleaned_data["anchor"], rule, max_occurrences, tz=tz)
    except ValidationError as e:
        logger.warning("recurrence_preview: rejected rule: %s", e.messages)
        return _error("Validation failed", e.messages)

    logger.info("recurrence_preview: frequency=%s occurrences=%d", rule.frequency, len(occurrences))
    return JsonResponse({"occurrences": [occ.isoformat() for occ in occurrences]})

@login_required
@require_http_methods(["GET", "POST"])
def working_hours(request):
    '''
    Read or update the working hours kept in the session.
    Falls back to settings.DEFAULT_WORKING_HOURS until the user saves their own.
    '''
    if request.method == "POST":
        body = _json_body(request)
        if body is None:
            return _error("Invalid JSON body")
        form = WorkingHoursForm(body)
        if not form.is_valid():
            logger.warning("working_hours: invalid form %s", form.errors)
            return _form_error(form)
        request.session[SESSION_WORKING_HOURS] = form.to_session()
        logger.info("working_hours: updated for session=%s", request.session.session_key)

    hours = _session_working_hours(request)
    return JsonResponse({
        "start": hours.start.strftime("%H:%M"),
        "end": hours.end.strftime("%H:%M"),
        "days": sorted(hours.days),
    })

@login_required
@require_GET
def open_slots(request):
    '''
    Open slots of the requested length on one day, given the user's working
    hours, everything already on their calendars and any .ics file uploaded
    this session.
    Query: date=YYYY-MM-DD&duration=30[&granularity=15][&timezone=America/Chicago]
    '''
    form = OpenSlotsForm(request.GET)
    if not form.is_valid():
        logger.warning("open_slots: invalid query %s", form.errors)
        return _form_error(form)

    day = form.cleaned_data["date"]
    tz = pytz.timezone(form.cleaned_data.get("timezone") or settings.TIME_ZONE)
    granularity = form.cleaned_data.get("granularity") or getattr(
        settings, "SCHEDULING_GRANULARITY_MINUTES", DEFAULT_GRANULARITY_MINUTES
    )
    hours = _session_working_hours(request)

    day_start = tz.localize(datetime.combine(day, time.min))
    day_end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    busy = [
        (s.astimezone(tz), e.astimezone(tz))
        for s, e in Event.objects.for_user(request.user).busy_between(day_start, day_end)
    ]
    busy += [
        (s.astimezone(tz), e.astimezone(tz))
        for s, e in _session_imported_busy(request)
        if s < day_end and e > day_start
    ]
    logger.debug("open_slots: day=%s busy=%d", day, len(busy))

    try:
        slots = list(find_open_slots(day, form.cleaned_data["duration"], busy, hours, granularity, tz=tz))
    except ValidationError as e:
        return _error("Validation failed", e.messages)

    logger.info("open_slots: day=%s duration=%d slots=%d", day, form.cleaned_data["duration"], len(slots))
    return JsonResponse({
        "slots": [{"start": s.isoformat(), "end": e.isoformat()} for s, e in slots],
        "free": [{"start": s.isoformat(), "end": e.isoformat()} for s, e in free_windows(day, busy, hours, tz=tz)],
    })

@login_required
@require_POST
def import_busy(request):
    '''
    Handle ICS file upload. The file's events count as busy time in the
    open slot search for the rest of the session.
    '''
    form = ICSUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        logger.warning("import_busy: upload form invalid: %s", form.errors)
        return _form_error(form)

    ics_file = form.cleaned_data["ics_file"]
    try:
        busy = import_busy_intervals(ics_file.read().decode("utf-8"))
    except Exception:
        logger.exception("import_busy: ICS import failed file=%s", ics_file.name)
        return _error("We couldn't read that .ics file. Please verify the file and try again.")

    request.session[SESSION_IMPORTED_BUSY] = [[s.isoformat(), e.isoformat()] for s, e in busy]
    logger.info("import_busy: ICS import success: file=%s busy=%d", ics_file.name, len(busy))
    return JsonResponse({"imported": len(busy)})

@login_required
@require_POST
def suggest_time(request):
    '''
    Ranked meeting times for a group of participants on a preferred day.
    Body: {"participants": [emails], "duration": minutes, "preferredDate": ISO date or datetime,
           "timeRange": {"start": "HH:MM", "end": "HH:MM"}, "timezone": name}
    '''
    body = _json_body(request)
    if body is None:
        return _error("Invalid JSON body")

    form = SuggestTimeForm(_snake_keys(body))
    if not form.is_valid():
        logger.warning("suggest_time: invalid body %s", form.errors)
        return _form_error(form)

    data = form.cleaned_data
    tz = pytz.timezone(data.get("timezone") or settings.TIME_ZONE)
    preferred_date = data["preferred_date"]
    if isinstance(preferred_date, datetime):
        preferred_date = preferred_date.astimezone(tz).date()

    def lookup(participants, start, end):
        return Event.objects.for_participants(participants).busy_between(start, end)

    def lookup_failed(exc, start):
        logger.warning("suggest_time: conflict lookup failed for %s, treating as free: %s", start, exc)

    try:
        suggestions = suggest_meeting_times(
            data["participants"],
            data["duration"],
            preferred_date,
            lookup,
            time_range=data.get("time_range"),
            tz=tz,
            on_lookup_error=lookup_failed,
        )
    except ValidationError as e:
        return _error("Validation failed", e.messages)

    logger.info("suggest_time: participants=%d date=%s suggestions=%d",
                len(data["participants"]), preferred_date, len(suggestions))
    return JsonResponse({"suggestions": [s.as_dict() for s in suggestions]})

@login_required
@require_GET
def event_occurrences_ics(request, event_id):
    '''
    Download every occurrence of one of the user's events as an .ics file.
    '''
    event = get_object_or_404(Event.objects.for_user(request.user), pk=event_id)
    max_occurrences = getattr(settings, "RECURRENCE_MAX_OCCURRENCES", DEFAULT_MAX_OCCURRENCES)
    try:
        occurrences = event.occurrences(max_occurrences)
    except ValidationError as e:
        logger.error("event_occurrences_ics: stored rule for event=%s is invalid: %s", event.pk, e.messages)
        return _error("Stored recurrence rule is invalid", e.messages)

    payload = export_occurrences_ics([
        {
            "name": event.summary,
            "description": event.description,
            "location": event.location,
            "start": s,
            "end": e,
            "uid": f"event-{event.pk}-{i}@event-planner",
        }
        for i, (s, e) in enumerate(occurrences)
    ])
    response = HttpResponse(payload, content_type="text/calendar")
    response["Content-Disposition"] = f'attachment; filename="event-{event.pk}.ics"'
    logger.info("event_occurrences_ics: event=%s occurrences=%d", event.pk, len(occurrences))
    return response

@login_required
@require_GET
def analytics(request):
    '''
    Scheduling patterns for the user's calendars plus labels for the next few events.
    Query: [upcoming=5]
    '''
    events = Event.objects.for_user(request.user).active()
    rows = [
        {
            "start": ev.start_time,
            "end": ev.end_time,
            "event_type": ev.event_type.name if ev.event_type else None,
        }
        for ev in events
    ]
    try:
        limit = max(0, int(request.GET.get("upcoming", 5)))
    except ValueError:
        return _error("Validation failed", {"upcoming": ["Enter a whole number."]})

    hours = _session_working_hours(request)
    now = timezone.now()
    upcoming = []
    for ev in events.upcoming()[:limit]:
        start = timezone.localtime(ev.start_time)
        end = timezone.localtime(ev.end_time)
        upcoming.append({
            "id": ev.pk,
            "summary": ev.summary,
            "when": format_event_time(start, end, ev.all_day),
            "duration": format_duration(start, end),
            "starts": relative_time_string(start, now),
            "in_working_hours": is_working_hour(start, hours),
        })

    logger.info("analytics: user=%s events=%d", request.user.pk, len(rows))
    return JsonResponse({
        "patterns": analyze_scheduling_patterns(rows),
        "time_by_event_type": compute_time_by_event_type(rows),
        "upcoming": upcoming,
    })

# ============================================================
#  HELPERS
# ============================================================

def _json_body(request):
    try:
        body = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None

def _snake_keys(data):
    '''camelCase keys from the front end -> snake_case form field names'''
    return {re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): value for key, value in data.items()}

def _session_working_hours(request):
    return parse_working_hours(request.session.get(SESSION_WORKING_HOURS))

def _session_imported_busy(request):
    return [
        (datetime.fromisoformat(s), datetime.fromisoformat(e))
        for s, e in request.session.get(SESSION_IMPORTED_BUSY) or []
    ]

def _error(message, details=None, status=400):
    payload = {"error": message}
    if details is not None:
        payload["details"] = details
    return JsonResponse(payload, status=status)

def _form_error(*forms):
    details = {}
    for form in forms:
        details.update(form.errors.get_json_data())
    return _error("Validation failed", details)
