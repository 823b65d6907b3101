"""
Models for Calendar, Event and Attendee management
Along with instance methods

Created: November 10, 2025
Last Modified: December 1, 2025
"""
from datetime import timedelta
import pytz
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from django.utils import timezone
from django.core.exceptions import ValidationError

from .utils.availability import overlaps
from .utils.constants import AttendeeStatus, DEFAULT_MAX_OCCURRENCES, EventStatus
from .utils.recurrence import occurrence_windows, parse_recurrence_rule

User = get_user_model()

# -----------------------------------
# QuerySets & Managers
# -----------------------------------
class EventQuerySet(models.QuerySet):
    def for_user(self, user):
        """All events belonging to calendars owned by this user."""
        return self.filter(calendar__owner=user)

    def for_calendar(self, calendar):
        """All events for a specific calendar."""
        return self.filter(calendar=calendar)

    def for_participants(self, emails):
        """
        Events that any of the given people take part in, either as the
        calendar owner or as an invited attendee (matched by email).
        """
        emails = [e.strip().lower() for e in emails if e and e.strip()]
        if not emails:
            return self.none()
        return self.filter(
            Q(calendar__owner__email__in=emails) | Q(attendees__email__in=emails)
        ).distinct()

    def active(self):
        """Everything except cancelled events."""
        return self.exclude(status=EventStatus.CANCELLED)

    def recurring(self):
        return self.exclude(recurrence__isnull=True)

    def single(self):
        return self.filter(recurrence__isnull=True)

    def upcoming(self):
        """Events starting now or in the future (ordered by start_time)."""
        return self.filter(start_time__gte=timezone.now()).order_by("start_time")

    def between(self, start, end):
        """
        Events that overlap a time range (start, end)
        Events that are 'touching' do not count as overlap (works with datetimes)
        """
        return self.filter(start_time__lt=end, end_time__gt=start)

    def busy_between(self, start, end, max_occurrences=DEFAULT_MAX_OCCURRENCES):
        """
        Busy (start, end) intervals overlapping [start, end), sorted by start.
        Recurring events contribute every expanded occurrence that overlaps.
        """
        events = self.active()
        busy = [(ev.start_time, ev.end_time) for ev in events.single().between(start, end)]
        for ev in events.recurring().filter(start_time__lt=end):
            for occ_s, occ_e in ev.occurrences(max_occurrences, after=start):
                if overlaps(occ_s, occ_e, start, end):
                    busy.append((occ_s, occ_e))
        return sorted(busy, key=lambda x: x[0])


class EventManager(models.Manager):
    def get_queryset(self):
        return (
            EventQuerySet(self.model, using=self._db).select_related("calendar", "event_type", "calendar__owner")
        )

    def for_user(self, user):
        return self.get_queryset().for_user(user)

    def for_calendar(self, calendar):
        return self.get_queryset().for_calendar(calendar)

    def for_participants(self, emails):
        return self.get_queryset().for_participants(emails)

    def upcoming(self):
        return self.get_queryset().upcoming()

    def between(self, start, end):
        return self.get_queryset().between(start, end)

# -----------------------------------
# Models
# -----------------------------------
class Calendar(models.Model):
    '''
    User can have more than 1 calendar
    '''
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='calendars')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, null=True)
    color = models.CharField(max_length=7, default="#3b82f6")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "calendar"
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['owner', 'name'], name='unique_calendar_per_user')
        ]

    def __str__(self):
        owner_name = getattr(self.owner, 'username', str(self.owner_id))
        return f"{self.name} (Owner: {owner_name})"

    # -----------------------------------
    # Helper methods
    # -----------------------------------

    def create_event(self, summary, start_time, end_time, event_type=None, description=None,
                     location=None, recurrence=None, attendees=(), all_day=False, time_zone=""):
        '''
        Create an event associated with this calendar.
        attendees is an iterable of emails or {"email", "name"} dicts.
        '''
        if end_time <= start_time:
            raise ValidationError("End time must be after start time.")
        if recurrence:
            # reject bad rules before anything is written
            parse_recurrence_rule(recurrence)

        event = Event.objects.create(
            calendar=self,
            summary=summary,
            start_time=start_time,
            end_time=end_time,
            event_type=event_type,
            description=description,
            location=location,
            all_day=all_day,
            time_zone=time_zone,
            recurrence=recurrence or None,
        )
        for attendee in attendees:
            if isinstance(attendee, str):
                attendee = {"email": attendee}
            event.invite(attendee["email"], name=attendee.get("name", ""))
        return event

    def has_conflict(self, start_time, end_time, exclude_event=None):
        '''
        Check if there is a conflict with existing events in this calendar
        (occurrences of recurring events included)
        '''
        events = Event.objects.for_calendar(self)
        if exclude_event:
            events = events.exclude(id=exclude_event.id)
        return bool(events.busy_between(start_time, end_time))

class EventType(models.Model):
    '''
    Event type labels, shared across calendars
    '''
    name = models.CharField(max_length=100, unique=True)

    class Meta:
        db_table = "event_type"

    def __str__(self):
        return self.name

class Event(models.Model):
    '''
    Event model to store event details and belongs to a specific calendar.
    recurrence holds the raw rule dict (frequency, interval, endType, ...);
    start_time/end_time describe the first occurrence.
    '''
    calendar = models.ForeignKey(Calendar, on_delete=models.CASCADE, related_name='events')
    event_type = models.ForeignKey(EventType, on_delete=models.SET_NULL, null=True, blank=True, related_name='events')
    summary = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    location = models.CharField(max_length=200, blank=True, null=True)
    all_day = models.BooleanField(default=False)
    # IANA zone the series repeats in; blank means settings.TIME_ZONE
    time_zone = models.CharField(max_length=64, blank=True, default="")
    recurrence = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    status = models.CharField(max_length=20, choices=EventStatus.choices, default=EventStatus.CONFIRMED)

    objects = EventManager()

    class Meta:
        db_table = "event"
        ordering = ['start_time']
        indexes = [
            models.Index(fields=["calendar", "start_time"], name="event_calenda_4b1f2c_idx"),
            models.Index(fields=["start_time"], name="event_start_t_8e0d3a_idx"),
        ]

    def __str__(self):
        return self.summary

    def safe(self):
        if self.end_time and self.start_time and self.end_time <= self.start_time:
            raise ValidationError("End time must be after start time.")
        if self.time_zone and self.time_zone not in pytz.all_timezones_set:
            raise ValidationError(f"Unknown timezone: {self.time_zone}")

    def save(self, *args, **kwargs):
        self.safe()
        super().save(*args, **kwargs)

    # -----------------------------------
    # Helper methods
    # -----------------------------------
    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def recurrence_rule(self):
        '''
        Parsed RecurrenceRule, or None for a one-off event
        '''
        if not self.recurrence:
            return None
        return parse_recurrence_rule(self.recurrence)

    def zone(self):
        '''
        pytz zone the recurrence is stepped in
        '''
        return pytz.timezone(self.time_zone or settings.TIME_ZONE)

    def occurrences(self, max_occurrences=DEFAULT_MAX_OCCURRENCES, after=None):
        '''
        (start, end) of every occurrence; a one-off event has exactly one.
        With after, only occurrences still running after that moment.
        '''
        rule = self.recurrence_rule()
        if rule is None:
            return [(self.start_time, self.end_time)]
        return occurrence_windows(self.start_time, self.end_time, rule, max_occurrences,
                                  after=after, tz=self.zone())

    def overlaps(self, start, end):
        '''
        Check if the event (first occurrence) overlaps with a given time range (start, end)
        '''
        return overlaps(self.start_time, self.end_time, start, end)

    def invite(self, email, name=""):
        '''
        Add an attendee (idempotent per email)
        '''
        attendee, _ = Attendee.objects.get_or_create(
            event=self, email=email.strip().lower(), defaults={"name": name},
        )
        return attendee

    def reschedule(self, new_start_time, new_end_time):
        '''
        Reschedule the event to new start and end times
        '''
        self.start_time = new_start_time
        self.end_time = new_end_time
        self.save()
        return self

class Attendee(models.Model):
    '''
    Person invited to an event, identified by email
    '''
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='attendees')
    email = models.EmailField()
    name = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=20, choices=AttendeeStatus.choices, default=AttendeeStatus.PENDING)
    is_optional = models.BooleanField(default=False)
    responded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "attendee"
        constraints = [
            models.UniqueConstraint(fields=['event', 'email'], name='unique_attendee_per_event')
        ]

    def __str__(self):
        return f"{self.email} ({self.status})"

    def respond(self, status):
        '''
        Record the attendee's answer
        '''
        if status not in AttendeeStatus.values:
            raise ValidationError(f"Unknown attendee status: {status}")
        self.status = status
        self.responded_at = timezone.now()
        self.save()
        return self
