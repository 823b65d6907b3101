'''
Name: apps/scheduling/forms.py
Description: Forms validating scheduling requests (recurrence preview,
             availability search, working hours, meeting suggestions
             and .ics uploads).
Created: November 7, 2025
Last Modified: December 1, 2025
'''

import pytz
from django import forms
from django.utils.dateparse import parse_date
from .utils.constants import (
    DEFAULT_MAX_OCCURRENCES,
    EndType,
    Frequency,
    MAX_MEETING_MINUTES,
    MIN_MEETING_MINUTES,
    WEEKDAY_CHOICES,
)


def _validate_timezone(value):
    if value and value not in pytz.all_timezones_set:
        raise forms.ValidationError("Unknown timezone: %(tz)s", params={"tz": value})


class RecurrenceForm(forms.Form):
    '''
    Recurrence section of the event form. cleaned_data maps straight onto
    parse_recurrence_rule().
    '''

    frequency = forms.ChoiceField(choices=Frequency.choices, label="Repeats")

    # Every N days/weeks/months/years
    interval = forms.IntegerField(min_value=1, max_value=99, initial=1, required=False, label="Every")

    end_type = forms.ChoiceField(choices=EndType.choices, initial=EndType.NEVER, required=False, label="Ends")
    end_date = forms.DateField(required=False, label="End date", widget=forms.DateInput(attrs={"type": "date"}))
    end_count = forms.IntegerField(required=False, min_value=1, max_value=999, label="Occurrences")

    by_week_day = forms.TypedMultipleChoiceField(
        choices=WEEKDAY_CHOICES, coerce=int, required=False,
        label="On days", widget=forms.CheckboxSelectMultiple,
    )
    by_month_day = forms.TypedMultipleChoiceField(
        choices=[(d, str(d)) for d in range(1, 32)], coerce=int, required=False, label="On month days",
    )
    by_month = forms.TypedMultipleChoiceField(
        choices=[(m, str(m)) for m in range(1, 13)], coerce=int, required=False, label="In months",
    )

    def clean(self):
        '''
        End condition payload must match the selected end type
        '''
        cleaned = super().clean()
        end_type = cleaned.get("end_type") or EndType.NEVER
        cleaned["end_type"] = end_type
        if not cleaned.get("interval"):
            cleaned["interval"] = 1

        if end_type == EndType.DATE and not cleaned.get("end_date"):
            self.add_error("end_date", "Pick the date the series ends on.")
        if end_type == EndType.COUNT and not cleaned.get("end_count"):
            self.add_error("end_count", "Enter how many times the event repeats.")
        return cleaned


class RecurrencePreviewForm(forms.Form):
    '''Anchor and cap for a recurrence preview; the rule itself goes through RecurrenceForm.'''

    anchor = forms.DateTimeField(label="First occurrence")
    max_occurrences = forms.IntegerField(required=False, min_value=1, max_value=1000, initial=DEFAULT_MAX_OCCURRENCES)
    exceptions = forms.JSONField(required=False)
    timezone = forms.CharField(required=False, validators=[_validate_timezone])


class WorkingHoursForm(forms.Form):
    '''Daily window the availability search may use'''

    start = forms.TimeField(label="Start", widget=forms.TimeInput(attrs={"type": "time"}))
    end = forms.TimeField(label="End", widget=forms.TimeInput(attrs={"type": "time"}))
    days = forms.TypedMultipleChoiceField(
        choices=WEEKDAY_CHOICES, coerce=int, label="Working days", widget=forms.CheckboxSelectMultiple,
    )

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("start")
        end = cleaned.get("end")
        if start and end and start >= end:
            self.add_error("end", "Working hours must end after they start.")
        return cleaned

    def to_session(self):
        '''JSON-safe dict for the session'''
        return {
            "start": self.cleaned_data["start"].strftime("%H:%M"),
            "end": self.cleaned_data["end"].strftime("%H:%M"),
            "days": sorted(self.cleaned_data["days"]),
        }


class OpenSlotsForm(forms.Form):
    '''Query parameters for the open slot search'''

    date = forms.DateField()
    duration = forms.IntegerField(min_value=1, max_value=24 * 60)
    granularity = forms.IntegerField(required=False, min_value=1, max_value=240)
    timezone = forms.CharField(required=False, validators=[_validate_timezone])


class SuggestTimeForm(forms.Form):
    '''Body of a meeting time suggestion request'''

    participants = forms.JSONField(required=False)
    duration = forms.IntegerField(min_value=MIN_MEETING_MINUTES, max_value=MAX_MEETING_MINUTES)
    preferred_date = forms.DateTimeField()
    time_range = forms.JSONField(required=False)
    timezone = forms.CharField(required=False, validators=[_validate_timezone])

    def clean_preferred_date(self):
        '''
        A bare "YYYY-MM-DD" is that calendar day in the request's timezone,
        not midnight UTC.
        '''
        raw = self.data.get("preferred_date")
        if isinstance(raw, str):
            day = parse_date(raw.strip())
            if day is not None:
                return day
        return self.cleaned_data["preferred_date"]

    def clean_participants(self):
        participants = self.cleaned_data.get("participants")
        if participants is None:
            return []
        if not isinstance(participants, list) or not all(isinstance(p, str) for p in participants):
            raise forms.ValidationError("Participants must be a list of email addresses.")
        return participants

    def clean_time_range(self):
        time_range = self.cleaned_data.get("time_range")
        if time_range in (None, ""):
            return None
        if not isinstance(time_range, dict) or not time_range.get("start") or not time_range.get("end"):
            raise forms.ValidationError("Time range needs a start and an end (HH:MM).")
        return time_range


class ICSUploadForm(forms.Form):
    '''Upload field for .ics files whose events count as busy time. Accepts only .ics files'''

    ics_file = forms.FileField(
        label="Calendar file",
        help_text="Select a .ics file to upload.",
        widget=forms.ClearableFileInput(attrs={'accept': '.ics'}),
        error_messages={"required": "Please select a .ics file to upload."}
    )

    def clean_ics_file(self):
        ics_file = self.cleaned_data["ics_file"]
        if not ics_file.name.lower().endswith(".ics"):
            raise forms.ValidationError("Only .ics files are supported.")
        return ics_file
