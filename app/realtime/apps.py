"""Django app configuration for realtime app."""

from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    """Configuration for the realtime app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "realtime"
    verbose_name = "Realtime"

    def ready(self) -> None:
        """Connect the change feed when app is ready."""
        from realtime.signals import connect_signals

        connect_signals()
