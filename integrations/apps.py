from django.apps import AppConfig


class IntegrationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "integrations"

    def ready(self):
        # Import signal handlers to seed the built-in providers after migrate.
        from . import signals  # noqa: F401
