from django.apps import AppConfig


class CoursesConfig(AppConfig):
    """Semesters, courses and enrolment."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "courses"
