"""
Celery application for the billing service.

Workers run webhook processing when BILLING_WEBHOOK_ASYNC is on; beat runs
the webhook maintenance tasks listed in settings.CELERY_BEAT_SCHEDULE
(retry failed, reset stuck, delete old).

Redis is both broker and result backend. Tasks are auto-discovered from the
tasks.py module of each installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("billing")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
