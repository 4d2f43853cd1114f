from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from django.db.models import F, Sum
from django.utils import timezone

from core.exceptions import ValidationError
from core.models import Invoice
from core.services.client_companies import get_company_or_404
from core.services.ledger import account_balances

from .vat import ZERO, period_invoices, prepare_vat_return, q2


logger = logging.getLogger(__name__)

CORPORATE_TAX_RATE = Decimal("0.25")
WITHHOLDING_RATE = Decimal("0.20")

REVENUE_PREFIX = "6"
EXPENSE_PREFIX = "7"


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12.")
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def period_label(kind: str, start: date) -> str:
    if kind == "yearly":
        return f"{start.year}"
    if kind == "quarterly":
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    if kind == "monthly":
        return f"{start.year}-{start.month:02d}"
    raise ValidationError(f"Unknown period kind: {kind}")


def _aware(day: date) -> datetime:
    return timezone.make_aware(datetime(day.year, day.month, day.day))


def calculate_corporate_tax(tenant, client_company_id, year: int) -> dict:
    """
    Annual corporate tax from the ledger.

    Revenue is credit minus debit on 6xx accounts, expenses are debit minus
    credit on 7xx accounts; the tax never goes below zero.
    """
    get_company_or_404(tenant, client_company_id)
    start, end = _aware(date(year, 1, 1)), _aware(date(year + 1, 1, 1))

    revenue_totals = account_balances(tenant, client_company_id, REVENUE_PREFIX, start, end)
    expense_totals = account_balances(tenant, client_company_id, EXPENSE_PREFIX, start, end)
    revenue = revenue_totals["credit"] - revenue_totals["debit"]
    expenses = expense_totals["debit"] - expense_totals["credit"]
    taxable_income = revenue - expenses

    return {
        "year": year,
        "period": period_label("yearly", date(year, 1, 1)),
        "revenue": q2(revenue),
        "expenses": q2(expenses),
        "taxable_income": q2(taxable_income),
        "rate": CORPORATE_TAX_RATE,
        "corporate_tax": q2(max(taxable_income * CORPORATE_TAX_RATE, ZERO)),
    }


def calculate_withholding(tenant, client_company_id, start: date, end: date) -> dict:
    get_company_or_404(tenant, client_company_id)
    totals = (
        period_invoices(tenant, client_company_id, start, end)
        .filter(type=Invoice.Type.PURCHASE)
        .aggregate(base=Sum(F("total_amount") - F("tax_amount")))
    )
    base = totals["base"] or ZERO
    return {
        "period_start": start,
        "period_end": end,
        "taxable_base": q2(base),
        "rate": WITHHOLDING_RATE,
        "withholding": q2(base * WITHHOLDING_RATE),
    }


def get_monthly_tax_summary(tenant, client_company_id, year: int, month: int) -> dict:
    start, end = month_bounds(year, month)
    vat_return = prepare_vat_return(tenant, client_company_id, start, end)
    withholding = calculate_withholding(tenant, client_company_id, start, end)["withholding"]

    # Corporate tax is declared yearly, so a single month carries none.
    corporate_tax = ZERO
    return {
        "period": period_label("monthly", start),
        "vat_input": vat_return["input_vat"],
        "vat_output": vat_return["output_vat"],
        "net_vat": vat_return["net_vat"],
        "withholding": withholding,
        "corporate_tax": corporate_tax,
        "total_liability": q2(vat_return["payable_vat"] + withholding + corporate_tax),
    }


def get_vat_declaration(tenant, client_company_id, year: int, month: int) -> dict:
    company = get_company_or_404(tenant, client_company_id)
    start, end = month_bounds(year, month)
    vat_return = prepare_vat_return(tenant, client_company_id, start, end)
    logger.info("VAT declaration prepared for company %s, %s", company.id, period_label("monthly", start))
    return {
        "period": period_label("monthly", start),
        "status": "ready",
        "client_company": {"id": company.id, "name": company.name, "tax_number": company.tax_number},
        "vat_return": vat_return,
    }
