from django.contrib import admin

from .models import DataBreach, DataSubjectRequest, UserConsent


@admin.register(UserConsent)
class UserConsentAdmin(admin.ModelAdmin):
    list_display = ("user", "consent_type", "granted", "granted_at", "revoked_at")
    list_filter = ("consent_type", "granted")
    raw_id_fields = ("user",)


@admin.register(DataSubjectRequest)
class DataSubjectRequestAdmin(admin.ModelAdmin):
    list_display = ("tenant", "user", "request_type", "status", "requested_at", "completed_at")
    list_filter = ("request_type", "status")
    raw_id_fields = ("user", "requested_by")


@admin.register(DataBreach)
class DataBreachAdmin(admin.ModelAdmin):
    list_display = ("tenant", "severity", "status", "affected_users", "detected_at", "reported_at")
    list_filter = ("severity", "status")
