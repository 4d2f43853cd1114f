from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from core.models import Invoice, InvoiceLine
from core.services.client_companies import get_company_or_404


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# Rates in force in Turkey, historical 18% included for older invoices.
VALID_VAT_RATES = (Decimal("0"), Decimal("0.01"), Decimal("0.10"), Decimal("0.18"), Decimal("0.20"))


def q2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def normalize_rate(rate: Any) -> Decimal:
    """Accept both fractions (0.20) and percentages (20) and return a fraction."""
    rate = Decimal(str(rate or 0))
    if rate > 1:
        rate = rate / Decimal("100")
    return rate


def is_valid_vat_rate(rate: Any) -> bool:
    normalized = normalize_rate(rate)
    return any(abs(normalized - valid) < Decimal("0.0001") for valid in VALID_VAT_RATES)


def rate_label(rate: Any) -> str:
    percent = (normalize_rate(rate) * 100).normalize()
    return f"%{percent:f}"


def period_invoices(tenant, client_company_id, start: date, end: date):
    """Invoices issued in ``[start, end)``, cancelled ones excluded."""
    return Invoice.objects.filter(
        tenant=tenant,
        client_company_id=client_company_id,
        issue_date__gte=start,
        issue_date__lt=end,
    ).exclude(status=Invoice.Status.CANCELLED)


def analyze_vat(tenant, client_company_id, start: date, end: date) -> dict:
    """Split VAT into input (purchases) and output (sales), grouped by rate label."""
    get_company_or_404(tenant, client_company_id)
    input_by_rate: dict[str, Decimal] = defaultdict(lambda: ZERO)
    output_by_rate: dict[str, Decimal] = defaultdict(lambda: ZERO)
    base_by_rate: dict[str, Decimal] = defaultdict(lambda: ZERO)

    lines = InvoiceLine.objects.filter(invoice__in=period_invoices(tenant, client_company_id, start, end)).select_related(
        "invoice"
    )
    for line in lines:
        label = rate_label(line.vat_rate)
        if line.invoice.type == Invoice.Type.PURCHASE:
            input_by_rate[label] += line.vat_amount
        else:
            output_by_rate[label] += line.vat_amount
            base_by_rate[label] += line.line_total

    input_vat = q2(sum(input_by_rate.values(), ZERO))
    output_vat = q2(sum(output_by_rate.values(), ZERO))
    return {
        "period_start": start,
        "period_end": end,
        "input_vat": input_vat,
        "output_vat": output_vat,
        "net_vat": q2(output_vat - input_vat),
        "input_by_rate": {k: q2(v) for k, v in sorted(input_by_rate.items())},
        "output_by_rate": {k: q2(v) for k, v in sorted(output_by_rate.items())},
        "taxable_base_by_rate": {k: q2(v) for k, v in sorted(base_by_rate.items())},
    }


def prepare_vat_return(tenant, client_company_id, start: date, end: date) -> dict:
    analysis = analyze_vat(tenant, client_company_id, start, end)
    invoices = period_invoices(tenant, client_company_id, start, end)

    breakdown = []
    labels = sorted(set(analysis["input_by_rate"]) | set(analysis["output_by_rate"]))
    for label in labels:
        breakdown.append(
            {
                "rate": label,
                "taxable_base": analysis["taxable_base_by_rate"].get(label, ZERO),
                "output_vat": analysis["output_by_rate"].get(label, ZERO),
                "input_vat": analysis["input_by_rate"].get(label, ZERO),
            }
        )

    net = analysis["net_vat"]
    return {
        **analysis,
        "breakdown": breakdown,
        "sales_invoice_count": invoices.filter(type=Invoice.Type.SALE).count(),
        "purchase_invoice_count": invoices.filter(type=Invoice.Type.PURCHASE).count(),
        "payable_vat": net if net > 0 else ZERO,
        "deductible_vat_carried_forward": -net if net < 0 else ZERO,
    }


@dataclass
class VatInconsistency:
    invoice_id: int
    external_id: str
    kind: str
    severity: str
    expected: Optional[Decimal]
    actual: Optional[Decimal]
    message: str
    line_number: Optional[int] = None

    def as_dict(self) -> dict:
        return asdict(self)


def _severity(difference: Decimal) -> str:
    return "high" if difference > 1 else "medium"


def check_vat_inconsistencies(tenant, client_company_id, start: date, end: date) -> List[VatInconsistency]:
    get_company_or_404(tenant, client_company_id)
    issues: List[VatInconsistency] = []
    for invoice in period_invoices(tenant, client_company_id, start, end).prefetch_related("lines"):
        line_vat_sum = ZERO
        for line in invoice.lines.all():
            line_vat_sum += line.vat_amount
            if not is_valid_vat_rate(line.vat_rate):
                issues.append(
                    VatInconsistency(
                        invoice_id=invoice.id,
                        external_id=invoice.external_id,
                        line_number=line.line_number,
                        kind="invalid_rate",
                        severity="high",
                        expected=None,
                        actual=line.vat_rate,
                        message=f"VAT rate {rate_label(line.vat_rate)} is not a valid Turkish rate.",
                    )
                )
                continue
            expected = q2(line.line_total * normalize_rate(line.vat_rate))
            difference = abs(expected - line.vat_amount)
            if difference > TWOPLACES:
                issues.append(
                    VatInconsistency(
                        invoice_id=invoice.id,
                        external_id=invoice.external_id,
                        line_number=line.line_number,
                        kind="line_vat_mismatch",
                        severity=_severity(difference),
                        expected=expected,
                        actual=line.vat_amount,
                        message=f"Line {line.line_number}: VAT should be {expected}, found {line.vat_amount}.",
                    )
                )

        difference = abs(q2(line_vat_sum) - invoice.tax_amount)
        if invoice.lines.all() and difference > TWOPLACES:
            issues.append(
                VatInconsistency(
                    invoice_id=invoice.id,
                    external_id=invoice.external_id,
                    kind="header_vat_mismatch",
                    severity=_severity(difference),
                    expected=q2(line_vat_sum),
                    actual=invoice.tax_amount,
                    message=f"Invoice tax {invoice.tax_amount} differs from line VAT total {q2(line_vat_sum)}.",
                )
            )

    if issues:
        logger.info("Found %s VAT inconsistencies for company %s", len(issues), client_company_id)
    return issues
