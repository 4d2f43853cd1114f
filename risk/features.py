"""
Feature extraction for uploaded documents.

Parsed fields come from ``Document.parsed_data`` (``{"document_type", "fields"}``)
when an extractor has filled it in, otherwise from the related invoice.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from core.models import Document, Invoice

from .models import DocumentRiskFeatures


logger = logging.getLogger(__name__)

HIGH_INVOICE_AMOUNT = Decimal("1000000")
HIGH_STATEMENT_LINE_AMOUNT = Decimal("100000")
AMOUNT_TOLERANCE = Decimal("0.01")

FLAG_POINTS = {"high": 30, "medium": 15, "low": 5}


@dataclass
class FeatureResult:
    features: Dict[str, Any] = field(default_factory=dict)
    risk_flags: List[dict] = field(default_factory=list)
    risk_score: Optional[Decimal] = None

    def flag(self, code: str, severity: str, description: str, **extra) -> None:
        entry = {"code": code, "severity": severity, "description": description}
        entry.update(extra)
        self.risk_flags.append(entry)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def parse_date(value: Any) -> Optional[date]:
    """Accept ISO dates as well as Turkish ``DD.MM.YYYY`` / ``DD/MM/YYYY``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def invoice_fields(invoice: Invoice) -> dict:
    return {
        "invoiceNumber": invoice.external_id,
        "issueDate": invoice.issue_date,
        "dueDate": invoice.due_date,
        "totalAmount": invoice.total_amount,
        "taxAmount": invoice.tax_amount,
        "counterpartyName": invoice.counterparty_name,
        "counterpartyTaxNumber": invoice.counterparty_tax_number,
        "lineItems": [{"lineTotal": line.line_total, "vatRate": line.vat_rate} for line in invoice.lines.all()],
    }


def _parsed_source(document: Document) -> tuple[Optional[str], Optional[dict]]:
    parsed = document.parsed_data or {}
    if isinstance(parsed, dict) and isinstance(parsed.get("fields"), dict):
        return parsed.get("document_type") or document.type, parsed["fields"]
    if document.related_invoice_id:
        return Document.Type.INVOICE, invoice_fields(document.related_invoice)
    return None, None


def calculate_flag_score(flags: List[dict]) -> Decimal:
    score = sum(FLAG_POINTS.get(flag.get("severity"), 0) for flag in flags)
    return Decimal(min(100, score))


def _invoice_number_taken(document: Document, invoice_number: str) -> bool:
    others = Document.objects.filter(
        tenant_id=document.tenant_id,
        type=Document.Type.INVOICE,
        is_deleted=False,
    ).exclude(id=document.id).select_related("related_invoice")
    for other in others:
        parsed = other.parsed_data or {}
        fields = parsed.get("fields") if isinstance(parsed, dict) else None
        if isinstance(fields, dict) and fields.get("invoiceNumber") == invoice_number:
            return True
        if other.related_invoice_id and other.related_invoice_id != document.related_invoice_id:
            if other.related_invoice.external_id == invoice_number:
                return True
    return False


def _check_invoice(document: Document, fields: dict, result: FeatureResult) -> None:
    features = result.features
    invoice_number = str(fields.get("invoiceNumber") or "").strip()
    if not invoice_number:
        features["hasMissingFields"] = True
        result.flag("INVOICE_NUMBER_MISSING", "high", "Invoice number not found")

    issue_date = parse_date(fields.get("issueDate"))
    due_date = parse_date(fields.get("dueDate"))
    if issue_date is None:
        features["hasMissingFields"] = True
        result.flag("ISSUE_DATE_MISSING", "medium", "Invoice date not found")
    elif due_date is not None and due_date < issue_date:
        features["dateInconsistency"] = True
        result.flag("DATE_INCONSISTENCY", "high", "Due date is before the invoice date")

    total = _decimal(fields.get("totalAmount"))
    if total is not None and total < 0:
        features["negativeAmount"] = True
        result.flag("NEGATIVE_AMOUNT", "high", "Invoice amount is negative")

    line_items = fields.get("lineItems") or []
    if total is not None and line_items:
        line_total = sum((_decimal(item.get("lineTotal")) or Decimal("0") for item in line_items), Decimal("0"))
        if abs(line_total - total) > AMOUNT_TOLERANCE:
            features["amountMismatch"] = True
            result.flag(
                "AMOUNT_MISMATCH",
                "medium",
                f"Invoice total ({total}) does not match line totals ({line_total})",
            )

    if total is not None and total > HIGH_INVOICE_AMOUNT:
        features["highAmount"] = True
        result.flag("HIGH_AMOUNT", "medium", "Invoice amount is unusually high")

    if not fields.get("counterpartyName") and not fields.get("counterpartyTaxNumber"):
        features["hasMissingFields"] = True
        result.flag("MISSING_COUNTERPARTY_INFO", "medium", "Counterparty details are missing")

    if invoice_number and _invoice_number_taken(document, invoice_number):
        features["duplicateInvoiceNumber"] = True
        result.flag(
            "DUPLICATE_INVOICE_NUMBER",
            "high",
            f"Invoice number {invoice_number} has already been used",
        )


def _check_bank_statement(fields: dict, result: FeatureResult) -> None:
    features = result.features
    start = _decimal(fields.get("startingBalance"))
    end = _decimal(fields.get("endingBalance"))
    if start is None and end is None:
        features["hasMissingFields"] = True
        result.flag("MISSING_BALANCE_INFO", "medium", "Balance information is missing")
    if start is not None and start > 0 and end is not None and end < 0:
        features["negativeBalance"] = True
        result.flag("NEGATIVE_BALANCE", "high", "Ending balance is negative")

    high_lines = [
        line
        for line in fields.get("transactions") or []
        if (_decimal(line.get("amount")) or Decimal("0")).copy_abs() > HIGH_STATEMENT_LINE_AMOUNT
    ]
    if high_lines:
        features["highAmount"] = True
        result.flag(
            "HIGH_AMOUNT",
            "medium",
            f"{len(high_lines)} high-value transactions detected",
            value=len(high_lines),
        )


def extract_document_features(document: Document) -> FeatureResult:
    result = FeatureResult()
    doc_type, fields = _parsed_source(document)
    if fields is None:
        # Nothing parsed yet: no flags and no score.
        return result

    if doc_type == Document.Type.INVOICE:
        _check_invoice(document, fields, result)
    elif doc_type == Document.Type.BANK_STATEMENT:
        _check_bank_statement(fields, result)
    result.risk_score = calculate_flag_score(result.risk_flags)
    return result


@transaction.atomic
def store_document_features(document: Document, result: Optional[FeatureResult] = None) -> DocumentRiskFeatures:
    result = result or extract_document_features(document)
    row, _ = DocumentRiskFeatures.objects.update_or_create(
        document=document,
        defaults={
            "tenant_id": document.tenant_id,
            "features": result.features,
            "risk_flags": result.risk_flags,
            "risk_score": result.risk_score,
            "generated_at": timezone.now(),
        },
    )
    logger.info(
        "Stored risk features for document %s: %s flag(s), score=%s",
        document.id,
        len(result.risk_flags),
        result.risk_score,
    )
    return row
