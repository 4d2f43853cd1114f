from django.db.models.signals import post_save
from django.dispatch import receiver

from core.models import Tenant
from .models import TenantSubscription


@receiver(post_save, sender=Tenant)
def create_subscription_on_tenant_create(sender, instance, created, raw, **kwargs):
    if raw or not created:
        return
    TenantSubscription.objects.get_or_create(tenant=instance)
