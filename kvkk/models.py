from django.conf import settings
from django.db import models


class ConsentType(models.TextChoices):
    DATA_PROCESSING = "data_processing", "Data processing"
    MARKETING = "marketing", "Marketing"
    ANALYTICS = "analytics", "Analytics"
    THIRD_PARTY = "third_party", "Third party sharing"


class UserConsent(models.Model):
    """Latest consent decision of a user for one processing purpose."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="kvkk_consents")
    consent_type = models.CharField(max_length=30, choices=ConsentType.choices)
    granted = models.BooleanField(default=False)
    granted_at = models.DateTimeField(null=True, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "consent_type"], name="unique_consent_per_user_type"),
        ]
        ordering = ["consent_type"]

    def __str__(self):
        state = "granted" if self.granted else "revoked"
        return f"{self.user_id}:{self.consent_type} ({state})"


class DataSubjectRequest(models.Model):
    class Type(models.TextChoices):
        ACCESS = "access", "Access"
        DELETION = "deletion", "Deletion"
        RECTIFICATION = "rectification", "Rectification"
        PORTABILITY = "portability", "Portability"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        REJECTED = "rejected", "Rejected"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="data_subject_requests")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="data_subject_requests",
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    request_type = models.CharField(max_length=20, choices=Type.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    data = models.JSONField(default=dict, blank=True)
    rejection_reason = models.TextField(blank=True, default="")
    requested_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-requested_at", "-id"]

    def __str__(self):
        return f"{self.request_type} request for user {self.user_id} ({self.status})"


class DataBreach(models.Model):
    class Severity(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        CRITICAL = "critical", "Critical"

    class Status(models.TextChoices):
        DETECTED = "detected", "Detected"
        INVESTIGATING = "investigating", "Investigating"
        CONTAINED = "contained", "Contained"
        RESOLVED = "resolved", "Resolved"
        REPORTED = "reported", "Reported"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="data_breaches")
    description = models.TextField()
    affected_users = models.PositiveIntegerField(default=0)
    severity = models.CharField(max_length=20, choices=Severity.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DETECTED, db_index=True)
    detected_at = models.DateTimeField(auto_now_add=True)
    reported_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-detected_at", "-id"]

    def __str__(self):
        return f"{self.severity} breach #{self.pk} ({self.status})"
