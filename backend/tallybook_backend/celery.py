"""
Celery application configuration.

This is the main Celery app for the Tallybook backend.
It handles projection catch-up and rebuilds outside the request cycle.

Usage:
    # Start worker
    celery -A tallybook_backend worker -l INFO

    # Start beat scheduler (periodic projection catch-up)
    celery -A tallybook_backend beat -l INFO
"""
import os

from celery import Celery

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tallybook_backend.settings")

app = Celery("tallybook_backend")

# Load config from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()
