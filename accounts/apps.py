from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """User profiles, roles and role guards."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"

    def ready(self) -> None:  # pragma: no cover (import-time hook)
        # Profiles and role identifiers are maintained by signal handlers.
        from . import signals  # noqa: F401
        return super().ready()
