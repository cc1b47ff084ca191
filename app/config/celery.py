"""
Celery configuration for the Django application.

The chat service only uses Celery for housekeeping: periodic tasks that
keep ephemeral tables small. No request path waits on a task, and chat
correctness never depends on a task having run.

Schedules are stored in the database (django-celery-beat) and created by
data migrations, e.g. chat/migrations/0002_typing_purge_schedule.py.

Usage:
    # Worker and beat
    celery -A config worker -l info
    celery -A config beat -l info

    # Run the typing purge by hand
    from chat.tasks import purge_expired_typing_indicators
    purge_expired_typing_indicators.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
