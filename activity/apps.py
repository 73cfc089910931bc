from django.apps import AppConfig


class ActivityConfig(AppConfig):
    """App configuration for semester announcements."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "activity"
