from datetime import date, datetime, time, timedelta

import pytz
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from apps.scheduling.utils.suggestions import (
    calculate_confidence,
    generate_alternatives,
    generate_reason,
    parse_time_range,
    suggest_meeting_times,
)

DAY = date(2025, 1, 6)


def at(hour, minute=0):
    return datetime.combine(DAY, time(hour, minute))


def no_conflicts(participants, start, end):
    return []


class ScoringTests(SimpleTestCase):

    def test_confidence_arithmetic(self):
        self.assertEqual(calculate_confidence(10, 0), 1.0)
        self.assertEqual(calculate_confidence(13, 0), 1.0)
        self.assertAlmostEqual(calculate_confidence(12, 0), 0.6)
        self.assertAlmostEqual(calculate_confidence(9, 1), 0.7)
        self.assertAlmostEqual(calculate_confidence(10, 1), 0.9)
        self.assertAlmostEqual(calculate_confidence(8, 1), 0.2)
        self.assertAlmostEqual(calculate_confidence(18, 0), 0.5)
        self.assertEqual(calculate_confidence(8, 2), 0.0)
        self.assertEqual(calculate_confidence(12, 5), 0.0)

    def test_confidence_is_reproducible(self):
        self.assertEqual(calculate_confidence(14, 1), calculate_confidence(14, 1))

    def test_reason_priority(self):
        self.assertEqual(generate_reason(10, 1), "1 potential conflict detected")
        self.assertEqual(generate_reason(14, 3), "3 potential conflicts detected")
        self.assertEqual(generate_reason(11, 0), "Optimal morning slot - high productivity period")
        self.assertEqual(generate_reason(15, 0), "Good afternoon slot - post-lunch energy")
        self.assertEqual(generate_reason(9, 0), "Available time slot")

    def test_alternatives_in_generation_order(self):
        self.assertEqual(generate_alternatives(at(10)), [at(10, 30), at(9, 30), at(11), at(9), at(11, 30)])
        self.assertEqual(generate_alternatives(at(9)), [at(9, 30), at(10), at(10, 30)])
        self.assertEqual(generate_alternatives(at(17)), [at(17, 30), at(16, 30), at(16), at(15, 30)])

    def test_parse_time_range(self):
        self.assertEqual(parse_time_range(None), (9, 17))
        self.assertEqual(parse_time_range({"start": "13:30", "end": "15:59"}), (13, 15))
        for bad in ({"start": "ab:cd", "end": "12:00"}, {"start": "09:00", "end": "25:00"}, "9-5"):
            with self.subTest(bad=bad):
                with self.assertRaises(ValidationError):
                    parse_time_range(bad)


class SuggestMeetingTimesTests(SimpleTestCase):

    def test_default_range_without_conflicts(self):
        suggestions = suggest_meeting_times(["a@example.com"], 60, DAY, no_conflicts)

        hours = [s.suggested_time.hour for s in suggestions]
        self.assertEqual(hours, [9, 10, 11, 13, 14, 15, 16, 12])
        self.assertEqual(suggestions[1].reason, "Optimal morning slot - high productivity period")
        self.assertAlmostEqual(suggestions[-1].confidence, 0.6)
        self.assertTrue(all(s.confidence > 0.5 for s in suggestions))
        self.assertTrue(all(len(s.alternatives) <= 6 for s in suggestions))

    def test_conflicts_lower_confidence_and_are_reported(self):
        busy = (at(10), at(11))

        def lookup(participants, start, end):
            return [busy] if start < busy[1] and busy[0] < end else []

        suggestions = suggest_meeting_times(["a@example.com"], 60, DAY, lookup)
        by_hour = {s.suggested_time.hour: s for s in suggestions}

        self.assertAlmostEqual(by_hour[10].confidence, 0.9)
        self.assertEqual(by_hour[10].conflicts, (busy,))
        self.assertEqual(by_hour[10].reason, "1 potential conflict detected")
        # 9:00-10:00 only touches the busy block
        self.assertEqual(by_hour[9].conflicts, ())
        self.assertEqual(suggestions[-2].suggested_time.hour, 10)

    def test_lookup_gets_each_candidate_window_in_order(self):
        calls = []

        def lookup(participants, start, end):
            calls.append((tuple(participants), start, end))
            return []

        suggest_meeting_times(["a@example.com", "b@example.com"], 45, DAY, lookup,
                              time_range={"start": "09:00", "end": "12:00"})
        self.assertEqual(calls, [
            (("a@example.com", "b@example.com"), at(h), at(h) + timedelta(minutes=45)) for h in (9, 10, 11)
        ])

    def test_failed_lookup_fails_open(self):
        errors = []

        def lookup(participants, start, end):
            if start.hour == 11:
                raise RuntimeError("event store unavailable")
            return []

        suggestions = suggest_meeting_times(
            ["a@example.com"], 30, DAY, lookup,
            on_lookup_error=lambda exc, start: errors.append((str(exc), start)),
        )
        self.assertIn(11, [s.suggested_time.hour for s in suggestions])
        self.assertEqual(errors, [("event store unavailable", at(11))])

    def test_nothing_above_threshold_is_empty_not_error(self):
        suggestions = suggest_meeting_times([], 30, DAY, no_conflicts, time_range={"start": "07:00", "end": "09:00"})
        self.assertEqual(suggestions, [])

    def test_never_returns_low_confidence(self):
        def lookup(participants, start, end):
            return [(start, end)] * (start.hour % 3)

        suggestions = suggest_meeting_times([], 30, DAY, lookup, time_range={"start": "06:00", "end": "20:00"})
        self.assertTrue(suggestions)
        self.assertTrue(all(s.confidence > 0.5 for s in suggestions))
        confidences = [s.confidence for s in suggestions]
        self.assertEqual(confidences, sorted(confidences, reverse=True))

    def test_timezone_localizes_candidates(self):
        suggestions = suggest_meeting_times([], 30, DAY, no_conflicts, tz=pytz.timezone("Europe/Berlin"))
        first = suggestions[0].suggested_time
        self.assertEqual(first.utcoffset(), timedelta(hours=1))
        self.assertEqual(first.hour, 9)

    def test_invalid_duration(self):
        with self.assertRaises(ValidationError):
            suggest_meeting_times([], 0, DAY, no_conflicts)

    def test_as_dict(self):
        busy = (at(9), at(9, 30))
        suggestion = suggest_meeting_times([], 30, DAY, lambda p, s, e: [busy] if s.hour == 9 else [],
                                           time_range={"start": "09:00", "end": "10:00"})[0]
        payload = suggestion.as_dict()
        self.assertEqual(payload["suggestedTime"], "2025-01-06T09:00:00")
        self.assertEqual(payload["conflicts"], [{"start": "2025-01-06T09:00:00", "end": "2025-01-06T09:30:00"}])
        self.assertEqual(payload["alternatives"][0], "2025-01-06T09:30:00")
