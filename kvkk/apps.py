from django.apps import AppConfig


class KvkkConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "kvkk"
    verbose_name = "KVKK compliance"
