from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


SEVERITY_CHOICES = [("low", "Low"), ("medium", "Medium"), ("high", "High")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="RiskRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope", models.CharField(choices=[("document", "Document"), ("company", "Company")], db_index=True, max_length=20)),
                ("code", models.CharField(max_length=100)),
                ("description", models.CharField(max_length=500)),
                ("weight", models.DecimalField(decimal_places=2, max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal("0")), django.core.validators.MaxValueValidator(Decimal("100"))])),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("default_severity", models.CharField(choices=SEVERITY_CHOICES, default="medium", max_length=10)),
                ("config", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="risk_rules", to="core.tenant")),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.AddConstraint(
            model_name="riskrule",
            constraint=models.UniqueConstraint(fields=("tenant", "code"), name="unique_rule_code_per_tenant"),
        ),
        migrations.AddConstraint(
            model_name="riskrule",
            constraint=models.UniqueConstraint(condition=models.Q(("tenant__isnull", True)), fields=("code",), name="unique_global_rule_code"),
        ),
        migrations.CreateModel(
            name="DocumentRiskFeatures",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("features", models.JSONField(blank=True, default=dict)),
                ("risk_flags", models.JSONField(blank=True, default=list)),
                ("risk_score", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("generated_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("document", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="risk_features", to="core.document")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="document_risk_features", to="core.tenant")),
            ],
        ),
        migrations.CreateModel(
            name="DocumentRiskScore",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("score", models.DecimalField(decimal_places=2, max_digits=5)),
                ("severity", models.CharField(choices=SEVERITY_CHOICES, db_index=True, max_length=10)),
                ("triggered_rule_codes", models.JSONField(blank=True, default=list)),
                ("generated_at", models.DateTimeField(db_index=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("document", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="risk_score", to="core.document")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="document_risk_scores", to="core.tenant")),
            ],
        ),
        migrations.AddIndex(
            model_name="documentriskscore",
            index=models.Index(fields=["tenant", "severity"], name="risk_docscore_tenant_sev_idx"),
        ),
        migrations.CreateModel(
            name="ClientCompanyRiskScore",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("score", models.DecimalField(decimal_places=2, max_digits=5)),
                ("severity", models.CharField(choices=SEVERITY_CHOICES, db_index=True, max_length=10)),
                ("triggered_rule_codes", models.JSONField(blank=True, default=list)),
                ("generated_at", models.DateTimeField(db_index=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="risk_scores", to="core.clientcompany")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="company_risk_scores", to="core.tenant")),
            ],
            options={
                "ordering": ["-generated_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="clientcompanyriskscore",
            index=models.Index(fields=["tenant", "severity"], name="risk_coscore_tenant_sev_idx"),
        ),
        migrations.CreateModel(
            name="RiskScoreHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_type", models.CharField(choices=[("document", "Document"), ("company", "Company")], max_length=20)),
                ("entity_id", models.BigIntegerField()),
                ("score", models.DecimalField(decimal_places=2, max_digits=5)),
                ("severity", models.CharField(choices=SEVERITY_CHOICES, max_length=10)),
                ("triggered_rule_codes", models.JSONField(blank=True, default=list)),
                ("recorded_at", models.DateTimeField(db_index=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="risk_score_history", to="core.tenant")),
            ],
            options={
                "ordering": ["recorded_at", "id"],
            },
        ),
        migrations.AddIndex(
            model_name="riskscorehistory",
            index=models.Index(fields=["tenant", "entity_type", "entity_id", "recorded_at"], name="risk_history_entity_idx"),
        ),
        migrations.CreateModel(
            name="RiskAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("RISK_THRESHOLD_EXCEEDED", "Risk threshold exceeded"), ("INVOICE_DUPLICATE", "Invoice duplicate"), ("FRAUD_PATTERN", "Fraud pattern")], db_index=True, max_length=50)),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("severity", models.CharField(choices=SEVERITY_CHOICES, max_length=10)),
                ("status", models.CharField(choices=[("open", "Open"), ("in_progress", "In progress"), ("resolved", "Resolved"), ("ignored", "Ignored")], db_index=True, default="open", max_length=20)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="risk_alerts", to="core.clientcompany")),
                ("document", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="risk_alerts", to="core.document")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resolved_risk_alerts", to=settings.AUTH_USER_MODEL)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="risk_alerts", to="core.tenant")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
