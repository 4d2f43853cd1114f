from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.db.models import Sum

from core.exceptions import NotFoundError
from core.models import Transaction, TransactionLine
from core.pagination import paginate


def transaction_amount(txn: Transaction) -> Decimal:
    """Gross movement of a transaction: debit plus credit across its lines."""
    total = Decimal("0.00")
    for line in txn.lines.all():
        total += (line.debit or Decimal("0")) + (line.credit or Decimal("0"))
    return total


def list_transactions(
    tenant,
    client_company_id=None,
    date_from=None,
    date_to=None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = Transaction.objects.filter(tenant=tenant).prefetch_related("lines__account")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if date_from:
        qs = qs.filter(date__gte=date_from)
    if date_to:
        qs = qs.filter(date__lte=date_to)
    if search:
        qs = qs.filter(description__icontains=search)
    return paginate(qs, page, page_size)


def get_transaction(tenant, transaction_id) -> Transaction:
    txn = Transaction.objects.filter(tenant=tenant, id=transaction_id).prefetch_related("lines__account").first()
    if txn is None:
        raise NotFoundError("Transaction not found.")
    return txn


def account_balances(tenant, client_company_id, prefix: str, date_from=None, date_to=None) -> dict:
    """Debit and credit totals over accounts whose code starts with ``prefix``."""
    qs = TransactionLine.objects.filter(
        transaction__tenant=tenant,
        transaction__client_company_id=client_company_id,
        account__code__startswith=prefix,
    )
    if date_from:
        qs = qs.filter(transaction__date__gte=date_from)
    if date_to:
        qs = qs.filter(transaction__date__lt=date_to)
    totals = qs.aggregate(debit=Sum("debit"), credit=Sum("credit"))
    return {
        "debit": totals["debit"] or Decimal("0.00"),
        "credit": totals["credit"] or Decimal("0.00"),
    }
