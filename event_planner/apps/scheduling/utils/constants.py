'''
Name: apps/scheduling/utils/constants.py
Description: Constants used in the scheduling app.
                Session keys (working hours, imported busy time)
                Recurrence choices
                Slot search and suggestion defaults
                Debug logger
Created: November 9, 2025
Last Modified: December 1, 2025
'''


from django.db import models

class Frequency(models.TextChoices):
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"
    CUSTOM = "custom", "Custom"

class EndType(models.TextChoices):
    NEVER = "never", "Never"
    DATE = "date", "On date"
    COUNT = "count", "After count"

class AttendeeStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    TENTATIVE = "tentative", "Tentative"

class EventStatus(models.TextChoices):
    TENTATIVE = "tentative", "Tentative"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"

# 0=Sunday .. 6=Saturday, same numbering the calendar front end uses
WEEKDAY_CHOICES = [
    (0, "Sunday"), (1, "Monday"), (2, "Tuesday"), (3, "Wednesday"),
    (4, "Thursday"), (5, "Friday"), (6, "Saturday"),
]


SESSION_WORKING_HOURS = "working_hours"
SESSION_IMPORTED_BUSY = "imported_busy"


LOGGER_NAME = "apps.scheduling"

DEFAULT_MAX_OCCURRENCES = 100
DEFAULT_GRANULARITY_MINUTES = 15

DEFAULT_WORKING_HOURS = {
    "start": "09:00",
    "end": "17:00",
    "days": [1, 2, 3, 4, 5],
}

# Suggestion scorer
DEFAULT_SUGGESTION_HOURS = (9, 17)
ALTERNATIVE_HOURS = (9, 17)
ALTERNATIVE_STEP_MINUTES = 30
ALTERNATIVE_STEPS = 3
ACCEPTANCE_THRESHOLD = 0.5
MIN_MEETING_MINUTES = 15
MAX_MEETING_MINUTES = 480
