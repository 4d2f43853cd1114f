from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from django.db.models import Q
from django.utils import timezone

from core.models import Invoice, Transaction
from core.services.ledger import transaction_amount


logger = logging.getLogger(__name__)

STALE_AFTER_DAYS = 90
AMOUNT_SPIKE_FACTOR = Decimal("3")
RECENT_DAYS = 7
LOW_FREQUENCY_PER_DAY = 0.1


@dataclass
class CounterpartyAnalysis:
    is_new: bool
    is_unusual: bool
    reasons: List[str] = field(default_factory=list)
    history_count: int = 0
    average_amount: Decimal = Decimal("0")
    last_seen: Optional[date] = None


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    return value


def _history(tenant, client_company, name: str, tax_number: str, exclude_invoice_id=None) -> List[tuple[date, Decimal]]:
    points: List[tuple[date, Decimal]] = []

    match = Q()
    if name:
        match |= Q(counterparty_name__iexact=name)
    if tax_number:
        match |= Q(counterparty_tax_number=tax_number)
    if match:
        invoices = Invoice.objects.filter(match, tenant=tenant, client_company=client_company)
        if exclude_invoice_id:
            invoices = invoices.exclude(id=exclude_invoice_id)
        points.extend((inv.issue_date, abs(inv.total_amount)) for inv in invoices.only("issue_date", "total_amount"))

    if name:
        transactions = Transaction.objects.filter(
            tenant=tenant,
            client_company=client_company,
            description__icontains=name,
        ).prefetch_related("lines")
        points.extend((_as_date(txn.date), transaction_amount(txn)) for txn in transactions)

    points.sort(key=lambda p: p[0])
    return points


def analyze_counterparty(
    tenant,
    client_company,
    name: str,
    tax_number: str = "",
    amount: Optional[Decimal] = None,
    exclude_invoice_id=None,
    today: Optional[date] = None,
) -> CounterpartyAnalysis:
    name = (name or "").strip()
    tax_number = (tax_number or "").strip()
    history = _history(tenant, client_company, name, tax_number, exclude_invoice_id)
    if not history:
        return CounterpartyAnalysis(is_new=True, is_unusual=False)

    today = today or timezone.localdate()
    first_seen = history[0][0]
    last_seen = history[-1][0]
    total = sum((amt for _, amt in history), Decimal("0"))
    average = total / len(history)

    reasons: List[str] = []
    if (today - last_seen).days > STALE_AFTER_DAYS:
        reasons.append("dormant")
    if amount is not None and average > 0 and abs(Decimal(amount)) > average * AMOUNT_SPIKE_FACTOR:
        reasons.append("amount_spike")
    span_days = max((last_seen - first_seen).days, 1)
    frequency = len(history) / span_days
    if (today - last_seen).days <= RECENT_DAYS and frequency < LOW_FREQUENCY_PER_DAY:
        reasons.append("sudden_activity")

    return CounterpartyAnalysis(
        is_new=False,
        is_unusual=bool(reasons),
        reasons=reasons,
        history_count=len(history),
        average_amount=average.quantize(Decimal("0.01")),
        last_seen=last_seen,
    )
