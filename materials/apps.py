from django.apps import AppConfig


class MaterialsConfig(AppConfig):
    """Course materials uploaded by teachers."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "materials"
