from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Severity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class RiskRule(models.Model):
    class Scope(models.TextChoices):
        DOCUMENT = "document", "Document"
        COMPANY = "company", "Company"

    # Null tenant marks a global rule shared by every tenant.
    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="risk_rules",
    )
    scope = models.CharField(max_length=20, choices=Scope.choices, db_index=True)
    code = models.CharField(max_length=100)
    description = models.CharField(max_length=500)
    weight = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    is_active = models.BooleanField(default=True, db_index=True)
    default_severity = models.CharField(max_length=10, choices=Severity.choices, default=Severity.MEDIUM)
    config = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["tenant", "code"], name="unique_rule_code_per_tenant"),
            models.UniqueConstraint(
                fields=["code"],
                condition=models.Q(tenant__isnull=True),
                name="unique_global_rule_code",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.weight})"

    @property
    def is_global(self) -> bool:
        return self.tenant_id is None


class DocumentRiskFeatures(models.Model):
    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="document_risk_features")
    document = models.OneToOneField(
        "core.Document",
        on_delete=models.CASCADE,
        related_name="risk_features",
    )
    features = models.JSONField(default=dict, blank=True)
    risk_flags = models.JSONField(default=list, blank=True)
    risk_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    generated_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)


class DocumentRiskScore(models.Model):
    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="document_risk_scores")
    document = models.OneToOneField(
        "core.Document",
        on_delete=models.CASCADE,
        related_name="risk_score",
    )
    score = models.DecimalField(max_digits=5, decimal_places=2)
    severity = models.CharField(max_length=10, choices=Severity.choices, db_index=True)
    triggered_rule_codes = models.JSONField(default=list, blank=True)
    generated_at = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["tenant", "severity"], name="risk_docscore_tenant_sev_idx"),
        ]


class ClientCompanyRiskScore(models.Model):
    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="company_risk_scores")
    client_company = models.ForeignKey(
        "core.ClientCompany",
        on_delete=models.CASCADE,
        related_name="risk_scores",
    )
    score = models.DecimalField(max_digits=5, decimal_places=2)
    severity = models.CharField(max_length=10, choices=Severity.choices, db_index=True)
    triggered_rule_codes = models.JSONField(default=list, blank=True)
    generated_at = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-generated_at", "-id"]
        indexes = [
            models.Index(fields=["tenant", "severity"], name="risk_coscore_tenant_sev_idx"),
        ]


class RiskScoreHistory(models.Model):
    class EntityType(models.TextChoices):
        DOCUMENT = "document", "Document"
        COMPANY = "company", "Company"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="risk_score_history")
    entity_type = models.CharField(max_length=20, choices=EntityType.choices)
    entity_id = models.BigIntegerField()
    score = models.DecimalField(max_digits=5, decimal_places=2)
    severity = models.CharField(max_length=10, choices=Severity.choices)
    triggered_rule_codes = models.JSONField(default=list, blank=True)
    recorded_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ["recorded_at", "id"]
        indexes = [
            models.Index(fields=["tenant", "entity_type", "entity_id", "recorded_at"], name="risk_history_entity_idx"),
        ]


class RiskAlert(models.Model):
    class Type(models.TextChoices):
        RISK_THRESHOLD_EXCEEDED = "RISK_THRESHOLD_EXCEEDED", "Risk threshold exceeded"
        INVOICE_DUPLICATE = "INVOICE_DUPLICATE", "Invoice duplicate"
        FRAUD_PATTERN = "FRAUD_PATTERN", "Fraud pattern"

    Severity = Severity

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        IN_PROGRESS = "in_progress", "In progress"
        RESOLVED = "resolved", "Resolved"
        IGNORED = "ignored", "Ignored"

    tenant = models.ForeignKey("core.Tenant", on_delete=models.CASCADE, related_name="risk_alerts")
    client_company = models.ForeignKey(
        "core.ClientCompany",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="risk_alerts",
    )
    document = models.ForeignKey(
        "core.Document",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="risk_alerts",
    )
    type = models.CharField(max_length=50, choices=Type.choices, db_index=True)
    title = models.CharField(max_length=255)
    message = models.TextField()
    severity = models.CharField(max_length=10, choices=Severity.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_risk_alerts",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.type}: {self.title}"
