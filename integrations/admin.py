from django.contrib import admin

from .models import IntegrationProvider, IntegrationSyncJob, TenantIntegration


@admin.register(IntegrationProvider)
class IntegrationProviderAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "type", "connector_key", "is_active")
    list_filter = ("type", "is_active")


@admin.register(TenantIntegration)
class TenantIntegrationAdmin(admin.ModelAdmin):
    list_display = ("display_name", "tenant", "provider", "status", "last_sync_at")
    list_filter = ("status", "provider")
    # Config holds credentials.
    exclude = ("config",)


@admin.register(IntegrationSyncJob)
class IntegrationSyncJobAdmin(admin.ModelAdmin):
    list_display = ("integration", "job_type", "status", "created_at", "finished_at")
    list_filter = ("job_type", "status")
