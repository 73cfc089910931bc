from django.apps import AppConfig


class ApiConfig(AppConfig):
    """REST API v1: viewsets, serializers, filters and error mapping."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "api"
    verbose_name = "EduTrack API"
