from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from django.db import transaction
from django.db.models import Q

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Invoice, InvoiceLine
from core.pagination import paginate
from risk import alerts as risk_alerts
from risk.models import RiskAlert


logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
SIMILARITY_THRESHOLD = 0.8

HEADER_FIELDS = [
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
]


def _to_decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number.")


def get_invoice_or_404(tenant, invoice_id) -> Invoice:
    invoice = Invoice.objects.filter(tenant=tenant, id=invoice_id).select_related("client_company").first()
    if invoice is None:
        raise NotFoundError("Invoice not found.")
    return invoice


def list_invoices(
    tenant,
    client_company_id=None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    issue_date_from=None,
    issue_date_to=None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = Invoice.objects.filter(tenant=tenant).select_related("client_company")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if type:
        qs = qs.filter(type=type)
    if status:
        qs = qs.filter(status=status)
    if issue_date_from:
        qs = qs.filter(issue_date__gte=issue_date_from)
    if issue_date_to:
        qs = qs.filter(issue_date__lte=issue_date_to)
    if search:
        qs = qs.filter(Q(external_id__icontains=search) | Q(counterparty_name__icontains=search))
    return paginate(qs, page, page_size)


def get_invoice(tenant, invoice_id) -> Invoice:
    return get_invoice_or_404(tenant, invoice_id)


def _validate_lines(lines: Iterable[dict], total_amount: Decimal) -> List[dict]:
    cleaned = []
    line_sum = Decimal("0.00")
    for index, raw in enumerate(lines, start=1):
        line_total = _to_decimal(raw.get("line_total"), "line_total")
        quantity = _to_decimal(raw.get("quantity", 1), "quantity")
        unit_price = _to_decimal(raw.get("unit_price", line_total), "unit_price")
        vat_rate = _to_decimal(raw.get("vat_rate", 0), "vat_rate")
        vat_amount = _to_decimal(raw.get("vat_amount", 0), "vat_amount")
        cleaned.append(
            {
                "line_number": raw.get("line_number") or index,
                "description": raw.get("description") or "",
                "quantity": quantity,
                "unit_price": unit_price,
                "line_total": line_total,
                "vat_rate": vat_rate,
                "vat_amount": vat_amount,
            }
        )
        line_sum += line_total

    if cleaned and abs(line_sum - total_amount) > AMOUNT_TOLERANCE:
        raise ValidationError(
            f"Line totals ({line_sum}) do not match invoice total ({total_amount}).",
            code="AMOUNT_MISMATCH",
        )
    return cleaned


def _replace_lines(invoice: Invoice, lines: List[dict]) -> None:
    invoice.lines.all().delete()
    InvoiceLine.objects.bulk_create([InvoiceLine(invoice=invoice, **line) for line in lines])


def _alert_on_duplicates(tenant, invoice: Invoice) -> None:
    try:
        duplicates = check_invoice_duplicates(tenant, invoice)
        if not duplicates:
            return
        risk_alerts.create_alert(
            tenant,
            type=RiskAlert.Type.INVOICE_DUPLICATE,
            title="Possible duplicate invoice",
            message=(
                f"Invoice {invoice.external_id} matches {len(duplicates)} other invoice(s) "
                f"with the same number, date and amount."
            ),
            severity=RiskAlert.Severity.MEDIUM,
            client_company=invoice.client_company,
        )
    except Exception as exc:  # noqa: BLE001 - alerting must not block invoice writes
        logger.warning("Duplicate check failed for invoice %s: %s", invoice.id, exc)


def create_invoice(tenant, user, data: dict[str, Any]) -> Invoice:
    company = ClientCompany.objects.filter(tenant=tenant, id=data.get("client_company_id")).first()
    if company is None:
        raise NotFoundError("Client company not found.")
    if data.get("type") not in Invoice.Type.values:
        raise ValidationError("type must be 'purchase' or 'sale'.")
    if not data.get("issue_date"):
        raise ValidationError("issue_date is required.")

    total_amount = _to_decimal(data.get("total_amount"), "total_amount")
    lines = _validate_lines(data.get("lines") or [], total_amount)

    values = {field: data[field] for field in HEADER_FIELDS if field in data and data[field] is not None}
    values["total_amount"] = total_amount
    values.setdefault("currency", "TRY")
    values.setdefault("status", Invoice.Status.DRAFT)
    values.setdefault("source", "manual")

    with transaction.atomic():
        invoice = Invoice.objects.create(tenant=tenant, client_company=company, **values)
        _replace_lines(invoice, lines)

    logger.info("Invoice %s created for company %s", invoice.id, company.id)
    _alert_on_duplicates(tenant, invoice)
    return invoice


def update_invoice(tenant, user, invoice_id, data: dict[str, Any]) -> Invoice:
    invoice = get_invoice_or_404(tenant, invoice_id)
    if invoice.is_locked:
        raise ValidationError(f"Invoices in status '{invoice.status}' cannot be edited.", code="INVOICE_LOCKED")

    total_amount = invoice.total_amount
    if data.get("total_amount") is not None:
        total_amount = _to_decimal(data["total_amount"], "total_amount")

    if "lines" in data:
        lines = _validate_lines(data.get("lines") or [], total_amount)
    else:
        lines = None
        existing_sum = sum((line.line_total for line in invoice.lines.all()), Decimal("0.00"))
        if invoice.lines.exists() and abs(existing_sum - total_amount) > AMOUNT_TOLERANCE:
            raise ValidationError(
                f"Line totals ({existing_sum}) do not match invoice total ({total_amount}).",
                code="AMOUNT_MISMATCH",
            )

    with transaction.atomic():
        for field in HEADER_FIELDS:
            if field in data and data[field] is not None:
                setattr(invoice, field, data[field])
        invoice.total_amount = total_amount
        invoice.save()
        if lines is not None:
            _replace_lines(invoice, lines)

    _alert_on_duplicates(tenant, invoice)
    return invoice


def update_invoice_status(tenant, user, invoice_id, status: str) -> Invoice:
    if status not in Invoice.Status.values:
        raise ValidationError(f"Unknown invoice status: {status}")
    invoice = get_invoice_or_404(tenant, invoice_id)
    invoice.status = status
    invoice.save(update_fields=["status", "updated_at"])
    return invoice


def delete_invoice(tenant, invoice_id) -> None:
    invoice = get_invoice_or_404(tenant, invoice_id)
    if invoice.is_locked:
        raise ValidationError(f"Invoices in status '{invoice.status}' cannot be deleted.", code="INVOICE_LOCKED")
    invoice.delete()


def check_invoice_duplicates(tenant, invoice: Invoice) -> List[Invoice]:
    """Other invoices with the same number and issue date whose total matches within a cent."""
    if not invoice.external_id:
        return []
    return list(
        Invoice.objects.filter(
            tenant=tenant,
            external_id=invoice.external_id,
            issue_date=invoice.issue_date,
            total_amount__gte=invoice.total_amount - AMOUNT_TOLERANCE,
            total_amount__lte=invoice.total_amount + AMOUNT_TOLERANCE,
        ).exclude(id=invoice.id)
    )


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance (insert, delete, substitute) between two strings.

    ``difflib.SequenceMatcher.ratio`` is not an edit distance and gives
    different scores, so similarity thresholds for counterparty names are
    computed from this integer distance instead.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    a = (a or "").strip().lower()
    b = (b or "").strip().lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


@dataclass
class SimilarInvoice:
    invoice: Invoice
    similarity: float


def find_similar_invoices(tenant, invoice: Invoice, threshold: float = SIMILARITY_THRESHOLD) -> List[SimilarInvoice]:
    """
    Score other invoices of the same company and type.

    Name similarity weighs 0.5, an amount within 10% adds 0.3, and an issue
    date within 30 days adds 0.2.
    """
    candidates = Invoice.objects.filter(
        tenant=tenant,
        client_company_id=invoice.client_company_id,
        type=invoice.type,
        issue_date__gte=invoice.issue_date - timedelta(days=365),
        issue_date__lte=invoice.issue_date + timedelta(days=365),
    ).exclude(id=invoice.id)

    matches: List[SimilarInvoice] = []
    for other in candidates:
        score = 0.5 * name_similarity(invoice.counterparty_name, other.counterparty_name)
        reference = max(abs(invoice.total_amount), abs(other.total_amount))
        if reference == 0 or abs(invoice.total_amount - other.total_amount) / reference <= Decimal("0.10"):
            score += 0.3
        if abs((invoice.issue_date - other.issue_date).days) <= 30:
            score += 0.2
        if score >= threshold:
            matches.append(SimilarInvoice(invoice=other, similarity=round(score, 4)))

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches
