"""
Celery configuration for the Django application.

Background work of the chat backend runs on Celery:
- Periodic presence expiry (chat.tasks.expire_stale_presence, scheduled
  through CELERY_BEAT_SCHEDULE in settings)
- Blob deletion after attachment rows are removed (media.tasks)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps. Tests run tasks eagerly
(CELERY_TASK_ALWAYS_EAGER).

Usage:
    from media.tasks import delete_blobs

    delete_blobs.delay([attachment.storage_key])
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
