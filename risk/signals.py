from django.db.models.signals import post_migrate
from django.dispatch import receiver

from .bootstrap import seed_default_rules


@receiver(post_migrate)
def seed_rules_after_migrate(sender, app_config=None, **kwargs):
    if app_config is None or app_config.name != "risk":
        return
    seed_default_rules()
