from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.models import CheckNote, ClientCompany
from core.pagination import paginate


logger = logging.getLogger(__name__)

S = CheckNote.Status

ALLOWED_TRANSITIONS = {
    S.IN_PORTFOLIO: {S.SENT_FOR_COLLECTION, S.ENDORSED, S.RETURNED},
    S.SENT_FOR_COLLECTION: {S.COLLECTED, S.BOUNCED, S.RETURNED},
    S.COLLECTED: set(),
    S.BOUNCED: {S.IN_PORTFOLIO},
    S.RETURNED: {S.IN_PORTFOLIO},
    S.ENDORSED: set(),
}

OPEN_STATUSES = (S.IN_PORTFOLIO, S.SENT_FOR_COLLECTION)

EDITABLE_FIELDS = [
    "type",
    "direction",
    "document_number",
    "amount",
    "currency",
    "issue_date",
    "due_date",
    "drawer",
    "bank_name",
    "notes",
]


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _get_or_404(tenant, check_note_id) -> CheckNote:
    note = CheckNote.objects.filter(tenant=tenant, id=check_note_id).select_related("client_company").first()
    if note is None:
        raise NotFoundError("Check/note not found.")
    return note


def list_check_notes(
    tenant,
    client_company_id=None,
    type: Optional[str] = None,
    direction: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = CheckNote.objects.filter(tenant=tenant).select_related("client_company")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if type:
        qs = qs.filter(type=type)
    if direction:
        qs = qs.filter(direction=direction)
    if status:
        qs = qs.filter(status=status)
    return paginate(qs.order_by("due_date", "id"), page, page_size, max_page_size=100)


def get_check_note(tenant, check_note_id) -> CheckNote:
    return _get_or_404(tenant, check_note_id)


def create_check_note(tenant, data: dict[str, Any]) -> CheckNote:
    company = ClientCompany.objects.filter(tenant=tenant, id=data.get("client_company_id")).first()
    if company is None:
        raise NotFoundError("Client company not found.")
    for required in ("type", "direction", "document_number", "amount", "issue_date", "due_date"):
        if data.get(required) in (None, ""):
            raise ValidationError(f"{required} is required.")
    if Decimal(str(data["amount"])) <= 0:
        raise ValidationError("amount must be positive.")

    values = {field: data[field] for field in EDITABLE_FIELDS if field in data}
    return CheckNote.objects.create(tenant=tenant, client_company=company, **values)


def update_check_note(tenant, check_note_id, data: dict[str, Any]) -> CheckNote:
    note = _get_or_404(tenant, check_note_id)
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(note, field, data[field])
    note.save()
    return note


def delete_check_note(tenant, check_note_id) -> None:
    _get_or_404(tenant, check_note_id).delete()


def update_status(
    tenant,
    check_note_id,
    status: str,
    on_date: Optional[date] = None,
    endorsed_to: Optional[str] = None,
) -> CheckNote:
    note = _get_or_404(tenant, check_note_id)
    if status not in S.values:
        raise ValidationError(f"Unknown status: {status}")
    if not can_transition(note.status, status):
        raise ValidationError(
            f"Cannot move from '{note.status}' to '{status}'.",
            code="INVALID_STATUS_TRANSITION",
        )

    on_date = on_date or timezone.localdate()
    if status == S.COLLECTED:
        note.collected_date = on_date
    elif status == S.BOUNCED:
        note.bounced_date = on_date
    elif status == S.ENDORSED:
        if not endorsed_to:
            raise ValidationError("endorsed_to is required when endorsing.")
        note.endorsed_to = endorsed_to
        note.endorsed_date = on_date

    previous = note.status
    note.status = status
    note.save()
    logger.info("Check/note %s moved %s -> %s", note.id, previous, status)
    return note


def endorse(tenant, check_note_id, endorsed_to: str, on_date: Optional[date] = None) -> CheckNote:
    return update_status(tenant, check_note_id, S.ENDORSED, on_date=on_date, endorsed_to=endorsed_to)


def get_dashboard_stats(tenant, client_company_id=None) -> dict:
    qs = CheckNote.objects.filter(tenant=tenant)
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    today = timezone.localdate()
    open_q = Q(status__in=OPEN_STATUSES)

    stats = qs.aggregate(
        in_portfolio=Count("id", filter=Q(status=S.IN_PORTFOLIO)),
        collected=Count("id", filter=Q(status=S.COLLECTED)),
        bounced=Count("id", filter=Q(status=S.BOUNCED)),
        overdue_count=Count("id", filter=open_q & Q(due_date__lt=today)),
        total_receivable=Sum("amount", filter=open_q & Q(direction=CheckNote.Direction.RECEIVABLE)),
        total_payable=Sum("amount", filter=open_q & Q(direction=CheckNote.Direction.PAYABLE)),
    )
    stats["total_receivable"] = stats["total_receivable"] or Decimal("0.00")
    stats["total_payable"] = stats["total_payable"] or Decimal("0.00")
    return stats


def get_upcoming_due(tenant, days: int = 7):
    today = timezone.localdate()
    return CheckNote.objects.filter(
        tenant=tenant,
        status__in=OPEN_STATUSES,
        due_date__gte=today,
        due_date__lte=today + timedelta(days=days),
    ).order_by("due_date", "id")


def get_overdue(tenant):
    return CheckNote.objects.filter(
        tenant=tenant,
        status__in=OPEN_STATUSES,
        due_date__lt=timezone.localdate(),
    ).order_by("due_date", "id")
