from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Manager
from django.utils import timezone


class Tenant(models.Model):
    """An accounting office using the platform; every business row hangs off one."""

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    tax_number = models.CharField(max_length=20, blank=True, default="")
    settings = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class TenantRole(models.TextChoices):
    OWNER = "TenantOwner", "Tenant owner"
    ACCOUNTANT = "Accountant", "Accountant"
    STAFF = "Staff", "Staff"
    READ_ONLY = "ReadOnly", "Read only"


class TenantMembership(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INVITED = "invited", "Invited"
        SUSPENDED = "suspended", "Suspended"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    role = models.CharField(max_length=20, choices=TenantRole.choices, default=TenantRole.STAFF)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "tenant"], name="unique_membership_per_tenant"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.tenant} ({self.role})"


class ClientCompany(models.Model):
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="client_companies",
    )
    name = models.CharField(max_length=255)
    legal_type = models.CharField(max_length=50, blank=True, default="")
    tax_number = models.CharField(max_length=20)
    trade_registry_number = models.CharField(max_length=50, blank=True, default="")
    sector = models.CharField(max_length=100, blank=True, default="")
    contact_person_name = models.CharField(max_length=255, blank=True, default="")
    contact_phone = models.CharField(max_length=50, blank=True, default="")
    contact_email = models.EmailField(blank=True, default="")
    start_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["tenant", "tax_number"], name="unique_company_tax_number_per_tenant"),
        ]

    def __str__(self):
        return self.name

    if TYPE_CHECKING:
        id: int
        invoices: Manager["Invoice"]


class Task(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="tasks")
    client_company = models.ForeignKey(
        ClientCompany,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="tasks",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_tasks",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_tasks",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    due_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def is_overdue(self) -> bool:
        return bool(
            self.due_date
            and self.due_date < timezone.now()
            and self.status != self.Status.COMPLETED
        )


class Invoice(models.Model):
    class Type(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        SALE = "sale", "Sale"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ISSUED = "issued", "Issued"
        CANCELLED = "cancelled", "Cancelled"
        POSTED = "posted", "Posted"

    LOCKED_STATUSES = (Status.CANCELLED, Status.POSTED)

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="invoices")
    client_company = models.ForeignKey(
        ClientCompany,
        on_delete=models.CASCADE,
        related_name="invoices",
    )
    external_id = models.CharField(max_length=100, blank=True, default="", db_index=True)
    type = models.CharField(max_length=10, choices=Type.choices)
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    counterparty_name = models.CharField(max_length=255, blank=True, default="")
    counterparty_tax_number = models.CharField(max_length=20, blank=True, default="")
    currency = models.CharField(max_length=3, default="TRY")
    total_amount = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    net_amount = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    source = models.CharField(max_length=20, default="manual")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-issue_date", "-id"]

    def __str__(self):
        return f"{self.external_id or self.pk} ({self.counterparty_name})"

    @property
    def is_locked(self) -> bool:
        return self.status in self.LOCKED_STATUSES

    if TYPE_CHECKING:
        id: int
        lines: Manager["InvoiceLine"]


class InvoiceLine(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")
    line_number = models.PositiveIntegerField()
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    line_total = models.DecimalField(max_digits=18, decimal_places=2)
    vat_rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal("0"))
    vat_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["line_number"]


class LedgerAccount(models.Model):
    """Chart-of-accounts entry; Turkish uniform chart codes (6xx revenue, 7xx expense)."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="ledger_accounts")
    client_company = models.ForeignKey(ClientCompany, on_delete=models.CASCADE, related_name="ledger_accounts")
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(fields=["client_company", "code"], name="unique_account_code_per_company"),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"


class Transaction(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="transactions")
    client_company = models.ForeignKey(ClientCompany, on_delete=models.CASCADE, related_name="transactions")
    date = models.DateTimeField(db_index=True)
    reference_no = models.CharField(max_length=100, blank=True, default="")
    description = models.CharField(max_length=500, blank=True, default="")
    source = models.CharField(max_length=20, default="manual")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-date", "-id"]

    def __str__(self):
        return f"{self.date:%Y-%m-%d} {self.description}"

    if TYPE_CHECKING:
        id: int
        lines: Manager["TransactionLine"]


class TransactionLine(models.Model):
    transaction = models.ForeignKey(Transaction, on_delete=models.CASCADE, related_name="lines")
    account = models.ForeignKey(LedgerAccount, on_delete=models.PROTECT, related_name="lines")
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["id"]


class Document(models.Model):
    class Type(models.TextChoices):
        INVOICE = "invoice", "Invoice"
        BANK_STATEMENT = "bank_statement", "Bank statement"
        RECEIPT = "receipt", "Receipt"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        UPLOADED = "uploaded", "Uploaded"
        PROCESSING = "processing", "Processing"
        PROCESSED = "processed", "Processed"
        FAILED = "failed", "Failed"

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="documents")
    client_company = models.ForeignKey(ClientCompany, on_delete=models.CASCADE, related_name="documents")
    related_invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents",
    )
    related_transaction = models.ForeignKey(
        Transaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents",
    )
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.OTHER, db_index=True)
    original_filename = models.CharField(max_length=255)
    storage_path = models.CharField(max_length=500, blank=True, default="")
    mime_type = models.CharField(max_length=100)
    size_bytes = models.PositiveBigIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.UPLOADED, db_index=True)
    parsed_data = models.JSONField(null=True, blank=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="uploaded_documents",
    )
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.original_filename


class DocumentRequirement(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RECEIVED = "received", "Received"
        OVERDUE = "overdue", "Overdue"

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="document_requirements")
    client_company = models.ForeignKey(
        ClientCompany,
        on_delete=models.CASCADE,
        related_name="document_requirements",
    )
    document_type = models.CharField(max_length=20, choices=Document.Type.choices)
    required_by_date = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    received_document = models.ForeignKey(
        Document,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="fulfilled_requirements",
    )
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["required_by_date", "id"]


class CheckNote(models.Model):
    """Check (çek) or promissory note (senet) tracked through collection."""

    class Type(models.TextChoices):
        CHECK = "check", "Check"
        PROMISSORY_NOTE = "promissory_note", "Promissory note"

    class Direction(models.TextChoices):
        RECEIVABLE = "receivable", "Receivable"
        PAYABLE = "payable", "Payable"

    class Status(models.TextChoices):
        IN_PORTFOLIO = "in_portfolio", "In portfolio"
        SENT_FOR_COLLECTION = "sent_for_collection", "Sent for collection"
        COLLECTED = "collected", "Collected"
        BOUNCED = "bounced", "Bounced"
        RETURNED = "returned", "Returned"
        ENDORSED = "endorsed", "Endorsed"

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="check_notes")
    client_company = models.ForeignKey(ClientCompany, on_delete=models.CASCADE, related_name="check_notes")
    type = models.CharField(max_length=20, choices=Type.choices)
    direction = models.CharField(max_length=20, choices=Direction.choices)
    document_number = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency = models.CharField(max_length=3, default="TRY")
    issue_date = models.DateField()
    due_date = models.DateField(db_index=True)
    drawer = models.CharField(max_length=255, blank=True, default="")
    bank_name = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.IN_PORTFOLIO,
        db_index=True,
    )
    collected_date = models.DateField(null=True, blank=True)
    bounced_date = models.DateField(null=True, blank=True)
    endorsed_to = models.CharField(max_length=255, blank=True, default="")
    endorsed_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_date", "id"]

    def __str__(self):
        return f"{self.get_type_display()} {self.document_number}"


class AuditLog(models.Model):
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=50, db_index=True)
    resource_type = models.CharField(max_length=100, db_index=True)
    resource_id = models.CharField(max_length=64, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["resource_type", "resource_id"], name="core_audit_resource_idx"),
        ]
