from django.apps import AppConfig


class TimetableConfig(AppConfig):
    """App configuration for weekly timetable entries."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "timetable"
