from django.conf import settings
from django.db import models


class Notification(models.Model):
    class Type(models.TextChoices):
        RISK_ALERT = "RISK_ALERT", "Risk alert"
        SCHEDULED_REPORT = "SCHEDULED_REPORT", "Scheduled report"
        INTEGRATION_SYNC = "INTEGRATION_SYNC", "Integration sync"
        SYSTEM = "SYSTEM", "System"
        CLIENT_MESSAGE = "CLIENT_MESSAGE", "Client message"

    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    # Null user means the notification is visible to every member of the tenant.
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    type = models.CharField(max_length=30, choices=Type.choices, db_index=True)
    title = models.CharField(max_length=255)
    message = models.TextField()
    is_read = models.BooleanField(default=False, db_index=True)
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["tenant", "user", "is_read"], name="notif_tenant_user_read_idx"),
        ]

    def __str__(self):
        return self.title
