from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TenantSubscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("plan", models.CharField(choices=[("FREE", "Free"), ("PRO", "Pro"), ("ENTERPRISE", "Enterprise")], default="FREE", max_length=20)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("PAST_DUE", "Past due"), ("CANCELLED", "Cancelled")], default="ACTIVE", max_length=20)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("trial_until", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="subscription", to="core.tenant")),
            ],
        ),
        migrations.CreateModel(
            name="TenantUsage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("metric", models.CharField(choices=[("CLIENT_COMPANIES", "Client Companies"), ("DOCUMENTS", "Documents"), ("AI_ANALYSES", "Ai Analyses"), ("USERS", "Users"), ("SCHEDULED_REPORTS", "Scheduled Reports")], max_length=30)),
                ("period_start", models.DateTimeField()),
                ("period_end", models.DateTimeField()),
                ("value", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="usage_records", to="core.tenant")),
            ],
        ),
        migrations.AddConstraint(
            model_name="tenantusage",
            constraint=models.UniqueConstraint(fields=("tenant", "metric", "period_start"), name="unique_usage_per_period"),
        ),
    ]
