from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="IntegrationProvider",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("type", models.CharField(choices=[("accounting", "Accounting"), ("bank", "Bank")], db_index=True, max_length=20)),
                ("connector_key", models.CharField(max_length=50)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="TenantIntegration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(max_length=255)),
                ("config", models.JSONField(blank=True, default=dict)),
                ("status", models.CharField(choices=[("connected", "Connected"), ("disconnected", "Disconnected"), ("error", "Error")], db_index=True, default="connected", max_length=20)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="integrations", to="core.clientcompany")),
                ("provider", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="integrations", to="integrations.integrationprovider")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="integrations", to="core.tenant")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="IntegrationSyncJob",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("job_type", models.CharField(choices=[("pull_invoices", "Pull invoices"), ("pull_bank_transactions", "Pull bank transactions")], max_length=30)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("running", "Running"), ("success", "Success"), ("failed", "Failed")], db_index=True, default="pending", max_length=20)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("integration", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sync_jobs", to="integrations.tenantintegration")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="integration_sync_jobs", to="core.tenant")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
