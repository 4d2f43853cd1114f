from django.db import models


class IntegrationProvider(models.Model):
    """An external accounting package or bank the platform can connect to."""

    class Type(models.TextChoices):
        ACCOUNTING = "accounting", "Accounting"
        BANK = "bank", "Bank"

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=Type.choices, db_index=True)
    connector_key = models.CharField(max_length=50)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class TenantIntegration(models.Model):
    class Status(models.TextChoices):
        CONNECTED = "connected", "Connected"
        DISCONNECTED = "disconnected", "Disconnected"
        ERROR = "error", "Error"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="integrations")
    client_company = models.ForeignKey(
        "core.ClientCompany",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="integrations",
    )
    provider = models.ForeignKey(IntegrationProvider, on_delete=models.PROTECT, related_name="integrations")
    display_name = models.CharField(max_length=255)
    config = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONNECTED, db_index=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.display_name} ({self.provider.code})"


class IntegrationSyncJob(models.Model):
    class JobType(models.TextChoices):
        PULL_INVOICES = "pull_invoices", "Pull invoices"
        PULL_BANK_TRANSACTIONS = "pull_bank_transactions", "Pull bank transactions"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RUNNING = "running", "Running"
        SUCCESS = "success", "Success"
        FAILED = "failed", "Failed"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="integration_sync_jobs")
    integration = models.ForeignKey(TenantIntegration, on_delete=models.CASCADE, related_name="sync_jobs")
    job_type = models.CharField(max_length=30, choices=JobType.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.job_type} #{self.pk} ({self.status})"
