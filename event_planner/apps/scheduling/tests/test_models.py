from datetime import datetime, timedelta

import pytz
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone
from django.contrib.auth import get_user_model

from apps.scheduling.models import Attendee, Calendar, Event, EventType
from apps.scheduling.utils.constants import AttendeeStatus, EventStatus

User = get_user_model()


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


class CalendarEventMinimalTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            username="testuser",
            password="password123",
        )
        self.calendar = Calendar.objects.create(
            owner=self.user,
            name="School",
        )
        self.event_type = EventType.objects.create(name="Study")

        self.now = timezone.now()
        self.start = self.now + timedelta(hours=1)
        self.end = self.start + timedelta(hours=2)

        self.event = self.calendar.create_event(
            summary="Study Session",
            start_time=self.start,
            end_time=self.end,
            event_type=self.event_type,
            description="EECS 581",
            location="Library",
        )

    # -----------------------------------
    # Calendar methods
    # -----------------------------------
    def test_create_event(self):
        events = Event.objects.for_calendar(self.calendar)
        self.assertEqual(events.count(), 1)
        self.assertEqual(events.first(), self.event)
        self.assertIsNone(self.event.recurrence)
        self.assertEqual(self.event.duration, timedelta(hours=2))

    def test_create_event_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            self.calendar.create_event(summary="Backwards", start_time=self.end, end_time=self.start)
        with self.assertRaises(ValidationError):
            self.calendar.create_event(
                summary="Bad rule", start_time=self.start, end_time=self.end,
                recurrence={"frequency": "weekly", "interval": 0},
            )
        self.assertEqual(Event.objects.for_calendar(self.calendar).count(), 1)

    def test_has_conflict(self):
        has_conflict = self.calendar.has_conflict(
            self.start + timedelta(minutes=10),
            self.end - timedelta(minutes=10),
        )
        self.assertTrue(has_conflict)

        # back to back is not a conflict
        self.assertFalse(self.calendar.has_conflict(self.end, self.end + timedelta(hours=1)))
        self.assertFalse(self.calendar.has_conflict(
            self.start, self.end, exclude_event=self.event,
        ))

    # -----------------------------------
    # Event methods
    # -----------------------------------
    def test_event_overlaps(self):
        self.assertTrue(
            self.event.overlaps(
                self.start + timedelta(minutes=10),
                self.end - timedelta(minutes=10),
            )
        )

        self.assertFalse(
            self.event.overlaps(
                self.end + timedelta(hours=1),
                self.end + timedelta(hours=2),
            )
        )

    def test_reschedule(self):
        new_start = self.start + timedelta(days=1)
        self.event.reschedule(new_start, new_start + timedelta(minutes=30))
        self.event.refresh_from_db()
        self.assertEqual(self.event.start_time, new_start)

        with self.assertRaises(ValidationError):
            self.event.reschedule(new_start, new_start)

    def test_one_off_event_has_single_occurrence(self):
        self.assertEqual(self.event.occurrences(), [(self.start, self.end)])
        self.assertIsNone(self.event.recurrence_rule())


class RecurringEventTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.calendar = Calendar.objects.create(owner=self.user, name="Work")
        self.standup = self.calendar.create_event(
            summary="Weekly sync",
            start_time=utc(2025, 1, 6, 10, 0),
            end_time=utc(2025, 1, 6, 10, 30),
            recurrence={"frequency": "weekly", "interval": 1, "endType": "count", "endCount": 4},
        )

    def test_occurrences(self):
        self.standup.refresh_from_db()
        occurrences = self.standup.occurrences()
        self.assertEqual(len(occurrences), 4)
        self.assertEqual(occurrences[-1], (utc(2025, 1, 27, 10, 0), utc(2025, 1, 27, 10, 30)))

    def test_busy_between_expands_recurring_events(self):
        busy = Event.objects.for_user(self.user).busy_between(utc(2025, 1, 13), utc(2025, 1, 14))
        self.assertEqual(busy, [(utc(2025, 1, 13, 10, 0), utc(2025, 1, 13, 10, 30))])

        # after the last occurrence
        self.assertEqual(Event.objects.for_user(self.user).busy_between(utc(2025, 2, 3), utc(2025, 2, 4)), [])

    def test_busy_between_skips_cancelled(self):
        self.calendar.create_event(
            summary="Cancelled", start_time=utc(2025, 1, 13, 14), end_time=utc(2025, 1, 13, 15),
        )
        Event.objects.filter(summary="Cancelled").update(status=EventStatus.CANCELLED)
        busy = Event.objects.for_user(self.user).busy_between(utc(2025, 1, 13), utc(2025, 1, 14))
        self.assertEqual(len(busy), 1)

    def test_has_conflict_sees_later_occurrences(self):
        self.assertTrue(self.calendar.has_conflict(utc(2025, 1, 20, 10, 15), utc(2025, 1, 20, 11)))
        self.assertFalse(self.calendar.has_conflict(utc(2025, 1, 20, 10, 30), utc(2025, 1, 20, 11)))

    def test_recurring_and_single_querysets(self):
        one_off = self.calendar.create_event(
            summary="Lunch", start_time=utc(2025, 1, 7, 12), end_time=utc(2025, 1, 7, 13),
        )
        self.assertEqual(list(Event.objects.get_queryset().recurring()), [self.standup])
        self.assertEqual(list(Event.objects.get_queryset().single()), [one_off])

    def test_long_running_daily_series_still_busy(self):
        self.calendar.create_event(
            summary="Daily check-in",
            start_time=utc(2024, 6, 1, 10),
            end_time=utc(2024, 6, 1, 10, 30),
            recurrence={"frequency": "daily"},
        )
        busy = Event.objects.for_participants(["owner@example.com"]).busy_between(
            utc(2025, 1, 6, 10), utc(2025, 1, 6, 11),
        )
        self.assertIn((utc(2025, 1, 6, 10), utc(2025, 1, 6, 10, 30)), busy)
        self.assertTrue(self.calendar.has_conflict(utc(2025, 3, 1, 10, 15), utc(2025, 3, 1, 10, 45)))

    def test_series_keeps_local_time_across_dst(self):
        chicago = pytz.timezone("America/Chicago")
        start = chicago.localize(datetime(2025, 3, 3, 9))
        event = self.calendar.create_event(
            summary="Chicago sync",
            start_time=start,
            end_time=start + timedelta(hours=1),
            recurrence={"frequency": "weekly", "endType": "count", "endCount": 2},
            time_zone="America/Chicago",
        )
        event.refresh_from_db()

        second_start, second_end = event.occurrences()[1]
        self.assertEqual(second_start.astimezone(chicago).hour, 9)
        self.assertEqual(second_start, utc(2025, 3, 10, 14))
        self.assertEqual(second_end - second_start, timedelta(hours=1))
        self.assertEqual(
            Event.objects.for_user(self.user).busy_between(utc(2025, 3, 10, 14), utc(2025, 3, 10, 15)),
            [(utc(2025, 3, 10, 14), utc(2025, 3, 10, 15))],
        )

    def test_unknown_time_zone_rejected(self):
        with self.assertRaises(ValidationError):
            self.calendar.create_event(
                summary="Nowhere", start_time=utc(2025, 1, 7, 9), end_time=utc(2025, 1, 7, 10),
                time_zone="Mars/Base",
            )


class AttendeeTests(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.other = User.objects.create_user(username="other", email="other@example.com", password="pass")
        calendar = Calendar.objects.create(owner=self.owner, name="Work")
        self.event = calendar.create_event(
            summary="Planning",
            start_time=utc(2025, 1, 6, 14),
            end_time=utc(2025, 1, 6, 15),
            attendees=["Guest@Example.com", {"email": "pm@example.com", "name": "PM"}],
        )

    def test_invite_is_idempotent_and_lowercases(self):
        self.assertEqual(self.event.attendees.count(), 2)
        again = self.event.invite("guest@example.com")
        self.assertEqual(self.event.attendees.count(), 2)
        self.assertEqual(again.email, "guest@example.com")
        self.assertEqual(Attendee.objects.get(email="pm@example.com").name, "PM")

    def test_respond(self):
        attendee = self.event.attendees.get(email="guest@example.com")
        self.assertEqual(attendee.status, AttendeeStatus.PENDING)
        attendee.respond(AttendeeStatus.ACCEPTED)
        attendee.refresh_from_db()
        self.assertEqual(attendee.status, AttendeeStatus.ACCEPTED)
        self.assertIsNotNone(attendee.responded_at)

        with self.assertRaises(ValidationError):
            attendee.respond("maybe")

    def test_for_participants(self):
        as_attendee = Event.objects.for_participants(["GUEST@example.com"])
        as_owner = Event.objects.for_participants(["owner@example.com"])
        both = Event.objects.for_participants(["owner@example.com", "guest@example.com"])

        self.assertEqual(list(as_attendee), [self.event])
        self.assertEqual(list(as_owner), [self.event])
        self.assertEqual(both.count(), 1)
        self.assertEqual(Event.objects.for_participants(["other@example.com"]).count(), 0)
        self.assertEqual(Event.objects.for_participants([]).count(), 0)

    def test_participant_busy_between(self):
        busy = Event.objects.for_participants(["pm@example.com"]).busy_between(
            utc(2025, 1, 6, 14, 30), utc(2025, 1, 6, 15, 30),
        )
        self.assertEqual(busy, [(utc(2025, 1, 6, 14), utc(2025, 1, 6, 15))])


class EventManagerMinimalTests(TestCase):
    def setUp(self):
        self.user1 = User.objects.create_user(username="u1", password="pass")
        self.user2 = User.objects.create_user(username="u2", password="pass")

        self.cal1 = Calendar.objects.create(owner=self.user1, name="Cal1")
        self.cal2 = Calendar.objects.create(owner=self.user2, name="Cal2")

        self.event_type = EventType.objects.create(name="Study")

        now = timezone.now()
        self.e1 = self.cal1.create_event(
            summary="Study 1",
            start_time=now + timedelta(hours=1),
            end_time=now + timedelta(hours=2),
            event_type=self.event_type,
        )
        self.e2 = self.cal2.create_event(
            summary="Study 2",
            start_time=now + timedelta(hours=3),
            end_time=now + timedelta(hours=4),
            event_type=self.event_type,
        )

    def test_for_user(self):
        qs1 = Event.objects.for_user(self.user1)
        qs2 = Event.objects.for_user(self.user2)

        self.assertIn(self.e1, qs1)
        self.assertNotIn(self.e2, qs1)

        self.assertIn(self.e2, qs2)
        self.assertNotIn(self.e1, qs2)

    def test_between_manager(self):
        now = timezone.now()
        qs = Event.objects.between(
            now + timedelta(minutes=30),
            now + timedelta(hours=2, minutes=30),
        )
        self.assertIn(self.e1, qs)
        self.assertNotIn(self.e2, qs)

    def test_upcoming(self):
        self.assertEqual(list(Event.objects.upcoming()), [self.e1, self.e2])
