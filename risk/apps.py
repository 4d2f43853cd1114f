from django.apps import AppConfig


class RiskConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "risk"
    verbose_name = "Risk scoring"

    def ready(self):
        # Import signal handlers to seed the default global rules after migrate.
        from . import signals  # noqa: F401
