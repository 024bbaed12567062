"""
Celery configuration for the chat backend.

Celery runs the periodic housekeeping jobs of the chat app, currently the
expiry of calls that were never answered (see chat.tasks). Redis is used as
both the message broker and result backend, and the beat schedule is stored
in the database through django-celery-beat.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("chat_backend")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up chat/tasks.py and any other app's tasks module
app.autodiscover_tasks()
