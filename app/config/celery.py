"""
Celery configuration for the chunked upload backend.

Celery runs two kinds of work here:
- Asynchronous assembly of completed upload sessions
  (when CHUNKED_UPLOAD_ASYNC_ASSEMBLY is enabled)
- Periodic maintenance: expiry sweeps, stalled-assembly recovery and
  orphaned chunk reclamation (see CELERY_BEAT_SCHEDULE in settings)

Tasks are auto-discovered from all installed Django apps.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

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
