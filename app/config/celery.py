"""
Celery application for the rental payments service.

Workers run webhook processing (payments.tasks.process_webhook_event);
beat runs the periodic sweeps listed in CELERY_BEAT_SCHEDULE:
- retry_failed_webhooks
- process_scheduled_retries
- monitor_failed_payments

Redis is both the message broker and result backend. Tasks are
auto-discovered from the tasks.py module of every installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
