from django.apps import AppConfig


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"

    def ready(self):
        # Import signal handlers to create a subscription on tenant creation.
        from . import signals  # noqa: F401
