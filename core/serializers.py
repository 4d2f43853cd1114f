from decimal import Decimal

from rest_framework import serializers

from .models import (
    CheckNote,
    ClientCompany,
    Document,
    DocumentRequirement,
    Invoice,
    InvoiceLine,
    Task,
    Transaction,
    TransactionLine,
)


# ---------------------------------------------------------------------------
# Client companies
# ---------------------------------------------------------------------------


class ClientCompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = ClientCompany
        fields = [
            "id",
            "name",
            "legal_type",
            "tax_number",
            "trade_registry_number",
            "sector",
            "contact_person_name",
            "contact_phone",
            "contact_email",
            "start_date",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # Uniqueness per tenant is enforced by the service.
        validators = []


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskSerializer(serializers.ModelSerializer):
    is_overdue = serializers.BooleanField(read_only=True)
    client_company_name = serializers.CharField(source="client_company.name", read_only=True, default=None)
    assignee_name = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "client_company",
            "client_company_name",
            "assignee",
            "assignee_name",
            "created_by",
            "due_date",
            "status",
            "priority",
            "completed_at",
            "is_overdue",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assignee_name(self, obj):
        if obj.assignee is None:
            return None
        return obj.assignee.get_full_name() or obj.assignee.get_username()


class TaskWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    client_company_id = serializers.IntegerField(required=False, allow_null=True)
    assignee_id = serializers.IntegerField(required=False, allow_null=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=Task.Status.choices, required=False)
    priority = serializers.ChoiceField(choices=Task.Priority.choices, required=False)


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class InvoiceLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceLine
        fields = ["line_number", "description", "quantity", "unit_price", "line_total", "vat_rate", "vat_amount"]


class InvoiceLineInputSerializer(serializers.Serializer):
    line_number = serializers.IntegerField(required=False, min_value=1)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=18, decimal_places=4, required=False)
    unit_price = serializers.DecimalField(max_digits=18, decimal_places=4, required=False)
    line_total = serializers.DecimalField(max_digits=18, decimal_places=2)
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=4, required=False, default=Decimal("0"))
    vat_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=Decimal("0"))


class InvoiceSerializer(serializers.ModelSerializer):
    lines = InvoiceLineSerializer(many=True, read_only=True)
    client_company_name = serializers.CharField(source="client_company.name", read_only=True)
    is_locked = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "client_company",
            "client_company_name",
            "external_id",
            "type",
            "issue_date",
            "due_date",
            "counterparty_name",
            "counterparty_tax_number",
            "currency",
            "total_amount",
            "tax_amount",
            "net_amount",
            "status",
            "source",
            "is_locked",
            "lines",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InvoiceListSerializer(InvoiceSerializer):
    class Meta(InvoiceSerializer.Meta):
        fields = [f for f in InvoiceSerializer.Meta.fields if f != "lines"]
        read_only_fields = fields


class InvoiceWriteSerializer(serializers.Serializer):
    client_company_id = serializers.IntegerField(required=False)
    external_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=Invoice.Type.choices, required=False)
    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    counterparty_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    counterparty_tax_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    currency = serializers.CharField(max_length=3, required=False)
    total_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False)
    tax_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False)
    net_amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=Invoice.Status.choices, required=False)
    source = serializers.CharField(max_length=20, required=False)
    lines = InvoiceLineInputSerializer(many=True, required=False)


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.Status.choices)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class TransactionLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = TransactionLine
        fields = ["id", "account", "account_code", "account_name", "debit", "credit", "description"]
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    lines = TransactionLineSerializer(many=True, read_only=True)

    class Meta:
        model = Transaction
        fields = ["id", "client_company", "date", "reference_no", "description", "source", "lines", "created_at"]
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentSerializer(serializers.ModelSerializer):
    risk_flag_count = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            "id",
            "client_company",
            "related_invoice",
            "related_transaction",
            "type",
            "original_filename",
            "mime_type",
            "size_bytes",
            "status",
            "parsed_data",
            "uploaded_by",
            "risk_flag_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_risk_flag_count(self, obj):
        return getattr(obj, "risk_flag_count", 0)


class DocumentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    client_company_id = serializers.IntegerField()
    type = serializers.ChoiceField(choices=Document.Type.choices, required=False)
    related_invoice_id = serializers.IntegerField(required=False, allow_null=True)
    related_transaction_id = serializers.IntegerField(required=False, allow_null=True)


# ---------------------------------------------------------------------------
# Checks and promissory notes
# ---------------------------------------------------------------------------


class CheckNoteSerializer(serializers.ModelSerializer):
    client_company_name = serializers.CharField(source="client_company.name", read_only=True)

    class Meta:
        model = CheckNote
        fields = [
            "id",
            "client_company",
            "client_company_name",
            "type",
            "direction",
            "document_number",
            "amount",
            "currency",
            "issue_date",
            "due_date",
            "drawer",
            "bank_name",
            "status",
            "collected_date",
            "bounced_date",
            "endorsed_to",
            "endorsed_date",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CheckNoteWriteSerializer(serializers.Serializer):
    client_company_id = serializers.IntegerField(required=False)
    type = serializers.ChoiceField(choices=CheckNote.Type.choices, required=False)
    direction = serializers.ChoiceField(choices=CheckNote.Direction.choices, required=False)
    document_number = serializers.CharField(max_length=100, required=False)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, required=False)
    currency = serializers.CharField(max_length=3, required=False)
    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    drawer = serializers.CharField(max_length=255, required=False, allow_blank=True)
    bank_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class CheckNoteStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CheckNote.Status.choices)
    date = serializers.DateField(required=False)
    endorsed_to = serializers.CharField(max_length=255, required=False, allow_blank=True)


class CheckNoteEndorseSerializer(serializers.Serializer):
    endorsed_to = serializers.CharField(max_length=255)
    date = serializers.DateField(required=False)


# ---------------------------------------------------------------------------
# Document requirements
# ---------------------------------------------------------------------------


class DocumentRequirementSerializer(serializers.ModelSerializer):
    client_company_name = serializers.CharField(source="client_company.name", read_only=True)

    class Meta:
        model = DocumentRequirement
        fields = [
            "id",
            "client_company",
            "client_company_name",
            "document_type",
            "required_by_date",
            "status",
            "received_document",
            "description",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DocumentRequirementWriteSerializer(serializers.Serializer):
    client_company_id = serializers.IntegerField(required=False)
    document_type = serializers.ChoiceField(choices=Document.Type.choices, required=False)
    required_by_date = serializers.DateTimeField(required=False)
    status = serializers.ChoiceField(choices=DocumentRequirement.Status.choices, required=False)
    received_document_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
