from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("slug", models.SlugField(max_length=100, unique=True)),
                ("tax_number", models.CharField(blank=True, default="", max_length=20)),
                ("settings", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="TenantMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("TenantOwner", "Tenant owner"), ("Accountant", "Accountant"), ("Staff", "Staff"), ("ReadOnly", "Read only")], default="Staff", max_length=20)),
                ("status", models.CharField(choices=[("active", "Active"), ("invited", "Invited"), ("suspended", "Suspended")], db_index=True, default="active", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to="core.tenant")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.AddConstraint(
            model_name="tenantmembership",
            constraint=models.UniqueConstraint(fields=("user", "tenant"), name="unique_membership_per_tenant"),
        ),
        migrations.CreateModel(
            name="ClientCompany",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("legal_type", models.CharField(blank=True, default="", max_length=50)),
                ("tax_number", models.CharField(max_length=20)),
                ("trade_registry_number", models.CharField(blank=True, default="", max_length=50)),
                ("sector", models.CharField(blank=True, default="", max_length=100)),
                ("contact_person_name", models.CharField(blank=True, default="", max_length=255)),
                ("contact_phone", models.CharField(blank=True, default="", max_length=50)),
                ("contact_email", models.EmailField(blank=True, default="", max_length=254)),
                ("start_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="client_companies", to="core.tenant")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="clientcompany",
            constraint=models.UniqueConstraint(fields=("tenant", "tax_number"), name="unique_company_tax_number_per_tenant"),
        ),
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("in_progress", "In progress"), ("completed", "Completed"), ("cancelled", "Cancelled")], db_index=True, default="pending", max_length=20)),
                ("priority", models.CharField(choices=[("low", "Low"), ("medium", "Medium"), ("high", "High")], default="medium", max_length=10)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("assignee", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_tasks", to=settings.AUTH_USER_MODEL)),
                ("client_company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to="core.clientcompany")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_tasks", to=settings.AUTH_USER_MODEL)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to="core.tenant")),
            ],
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(blank=True, db_index=True, default="", max_length=100)),
                ("type", models.CharField(choices=[("purchase", "Purchase"), ("sale", "Sale")], max_length=10)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                ("counterparty_name", models.CharField(blank=True, default="", max_length=255)),
                ("counterparty_tax_number", models.CharField(blank=True, default="", max_length=20)),
                ("currency", models.CharField(default="TRY", max_length=3)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("net_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("issued", "Issued"), ("cancelled", "Cancelled"), ("posted", "Posted")], db_index=True, default="draft", max_length=20)),
                ("source", models.CharField(default="manual", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="invoices", to="core.clientcompany")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="invoices", to="core.tenant")),
            ],
            options={
                "ordering": ["-issue_date", "-id"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField()),
                ("description", models.CharField(max_length=500)),
                ("quantity", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=18)),
                ("unit_price", models.DecimalField(decimal_places=4, max_digits=18)),
                ("line_total", models.DecimalField(decimal_places=2, max_digits=18)),
                ("vat_rate", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=5)),
                ("vat_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="core.invoice")),
            ],
            options={
                "ordering": ["line_number"],
            },
        ),
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="ledger_accounts", to="core.clientcompany")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="ledger_accounts", to="core.tenant")),
            ],
            options={
                "ordering": ["code"],
            },
        ),
        migrations.AddConstraint(
            model_name="ledgeraccount",
            constraint=models.UniqueConstraint(fields=("client_company", "code"), name="unique_account_code_per_company"),
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateTimeField(db_index=True)),
                ("reference_no", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("source", models.CharField(default="manual", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="core.clientcompany")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="core.tenant")),
            ],
            options={
                "ordering": ["-date", "-id"],
            },
        ),
        migrations.CreateModel(
            name="TransactionLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lines", to="core.ledgeraccount")),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="core.transaction")),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("invoice", "Invoice"), ("bank_statement", "Bank statement"), ("receipt", "Receipt"), ("other", "Other")], db_index=True, default="other", max_length=20)),
                ("original_filename", models.CharField(max_length=255)),
                ("storage_path", models.CharField(blank=True, default="", max_length=500)),
                ("mime_type", models.CharField(max_length=100)),
                ("size_bytes", models.PositiveBigIntegerField(default=0)),
                ("status", models.CharField(choices=[("uploaded", "Uploaded"), ("processing", "Processing"), ("processed", "Processed"), ("failed", "Failed")], db_index=True, default="uploaded", max_length=20)),
                ("parsed_data", models.JSONField(blank=True, null=True)),
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="documents", to="core.clientcompany")),
                ("related_invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="documents", to="core.invoice")),
                ("related_transaction", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="documents", to="core.transaction")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="documents", to="core.tenant")),
                ("uploaded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="uploaded_documents", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="DocumentRequirement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_type", models.CharField(choices=[("invoice", "Invoice"), ("bank_statement", "Bank statement"), ("receipt", "Receipt"), ("other", "Other")], max_length=20)),
                ("required_by_date", models.DateTimeField()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("received", "Received"), ("overdue", "Overdue")], db_index=True, default="pending", max_length=20)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="document_requirements", to="core.clientcompany")),
                ("received_document", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="fulfilled_requirements", to="core.document")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="document_requirements", to="core.tenant")),
            ],
            options={
                "ordering": ["required_by_date", "id"],
            },
        ),
        migrations.CreateModel(
            name="CheckNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("check", "Check"), ("promissory_note", "Promissory note")], max_length=20)),
                ("direction", models.CharField(choices=[("receivable", "Receivable"), ("payable", "Payable")], max_length=20)),
                ("document_number", models.CharField(max_length=100)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("currency", models.CharField(default="TRY", max_length=3)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField(db_index=True)),
                ("drawer", models.CharField(blank=True, default="", max_length=255)),
                ("bank_name", models.CharField(blank=True, default="", max_length=255)),
                ("status", models.CharField(choices=[("in_portfolio", "In portfolio"), ("sent_for_collection", "Sent for collection"), ("collected", "Collected"), ("bounced", "Bounced"), ("returned", "Returned"), ("endorsed", "Endorsed")], db_index=True, default="in_portfolio", max_length=30)),
                ("collected_date", models.DateField(blank=True, null=True)),
                ("bounced_date", models.DateField(blank=True, null=True)),
                ("endorsed_to", models.CharField(blank=True, default="", max_length=255)),
                ("endorsed_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client_company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="check_notes", to="core.clientcompany")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="check_notes", to="core.tenant")),
            ],
            options={
                "ordering": ["due_date", "id"],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(db_index=True, max_length=50)),
                ("resource_type", models.CharField(db_index=True, max_length=100)),
                ("resource_id", models.CharField(blank=True, default="", max_length=64)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("tenant", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="audit_logs", to="core.tenant")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="audit_logs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="auditlog",
            index=models.Index(fields=["resource_type", "resource_id"], name="core_audit_resource_idx"),
        ),
    ]
