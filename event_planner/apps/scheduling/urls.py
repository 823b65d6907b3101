'''
Name: apps/scheduling/urls.py
Description: URL configurations for the scheduling API.
Created: October 26, 2025
Last Modified: December 1, 2025
'''

from django.urls import path
from .views import (
    analytics,
    event_occurrences_ics,
    import_busy,
    open_slots,
    recurrence_preview,
    suggest_time,
    working_hours,
)

app_name = "scheduling"

urlpatterns = [
    path('api/recurrence/preview/', recurrence_preview, name='recurrence_preview'),
    path('api/availability/', open_slots, name='open_slots'),
    path('api/availability/import/', import_busy, name='import_busy'),
    path('api/working-hours/', working_hours, name='working_hours'),
    path('api/ai/suggest-time/', suggest_time, name='suggest_time'),
    path('api/analytics/', analytics, name='analytics'),
    path('api/events/<int:event_id>/occurrences.ics', event_occurrences_ics, name='event_occurrences_ics'),
]
