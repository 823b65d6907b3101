'''
Name: config/urls.py
Description: Root URL configuration.
Created: October 26, 2025
Last Modified: December 1, 2025
'''

from django.urls import path, include

urlpatterns = [
    path("", include("apps.scheduling.urls")),
]
