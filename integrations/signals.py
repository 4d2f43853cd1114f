from django.db.models.signals import post_migrate
from django.dispatch import receiver

from .bootstrap import seed_default_providers


@receiver(post_migrate)
def seed_providers_after_migrate(sender, app_config=None, **kwargs):
    if app_config is None or app_config.name != "integrations":
        return
    seed_default_providers()
