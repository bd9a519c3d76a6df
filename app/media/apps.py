"""Django app configuration for the media app."""

from django.apps import AppConfig


class MediaConfig(AppConfig):
    """Attachments and their blobs."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "media"
    verbose_name = "Attachments"

    def ready(self) -> None:
        """Connect blob cleanup once models are loaded."""
        from media.signals import connect_signals

        connect_signals()
