from __future__ import annotations

import logging
from typing import Any, Optional

from django.db.models import Q
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Document, DocumentRequirement, Tenant
from notifications.models import Notification
from notifications.services import notify_safely


logger = logging.getLogger(__name__)


def _get_requirement_or_404(tenant, requirement_id) -> DocumentRequirement:
    requirement = (
        DocumentRequirement.objects.filter(tenant=tenant, id=requirement_id).select_related("client_company").first()
    )
    if requirement is None:
        raise NotFoundError("Document requirement not found.")
    return requirement


def _notify_overdue(tenant, requirement: DocumentRequirement):
    return notify_safely(
        tenant,
        Notification.Type.SYSTEM,
        "Missing document",
        (
            f"{requirement.client_company.name}: the required "
            f"{requirement.get_document_type_display().lower()} was due on "
            f"{timezone.localtime(requirement.required_by_date):%Y-%m-%d} and has not been received."
        ),
        meta={"document_requirement_id": requirement.id, "client_company_id": requirement.client_company_id},
    )


def list_requirements(
    tenant,
    client_company_id=None,
    status: Optional[str] = None,
    overdue: Optional[bool] = None,
):
    qs = DocumentRequirement.objects.filter(tenant=tenant).select_related("client_company", "received_document")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if status:
        qs = qs.filter(status=status)
    if overdue:
        qs = qs.filter(required_by_date__lt=timezone.now()).exclude(status=DocumentRequirement.Status.RECEIVED)
    return qs.order_by("required_by_date", "id")


def get_requirement(tenant, requirement_id) -> DocumentRequirement:
    return _get_requirement_or_404(tenant, requirement_id)


def create_requirement(tenant, data: dict[str, Any]) -> DocumentRequirement:
    company = ClientCompany.objects.filter(tenant=tenant, id=data.get("client_company_id")).first()
    if company is None:
        raise NotFoundError("Client company not found.")
    if data.get("document_type") not in Document.Type.values:
        raise ValidationError("document_type is invalid.")
    if not data.get("required_by_date"):
        raise ValidationError("required_by_date is required.")

    requirement = DocumentRequirement(
        tenant=tenant,
        client_company=company,
        document_type=data["document_type"],
        required_by_date=data["required_by_date"],
        description=data.get("description") or "",
    )
    already_late = requirement.required_by_date < timezone.now()
    if already_late:
        requirement.status = DocumentRequirement.Status.OVERDUE
    requirement.save()

    if already_late:
        _notify_overdue(tenant, requirement)
    return requirement


def update_requirement(tenant, requirement_id, data: dict[str, Any]) -> DocumentRequirement:
    requirement = _get_requirement_or_404(tenant, requirement_id)

    if data.get("received_document_id"):
        document = Document.objects.filter(
            tenant=tenant,
            id=data["received_document_id"],
            client_company_id=requirement.client_company_id,
            is_deleted=False,
        ).first()
        if document is None:
            raise ValidationError("Received document does not belong to this client company.")
        requirement.received_document = document
        requirement.status = DocumentRequirement.Status.RECEIVED

    if data.get("status"):
        if data["status"] not in DocumentRequirement.Status.values:
            raise ValidationError(f"Unknown status: {data['status']}")
        requirement.status = data["status"]
    if "description" in data:
        requirement.description = data["description"] or ""
    if data.get("document_type"):
        requirement.document_type = data["document_type"]
    if data.get("required_by_date"):
        requirement.required_by_date = data["required_by_date"]
        if (
            requirement.required_by_date < timezone.now()
            and requirement.status != DocumentRequirement.Status.RECEIVED
        ):
            requirement.status = DocumentRequirement.Status.OVERDUE

    requirement.save()
    return requirement


def delete_requirement(tenant, requirement_id) -> None:
    _get_requirement_or_404(tenant, requirement_id).delete()


def check_and_update_missing_documents(tenant: Optional[Tenant] = None) -> dict:
    """Flag pending requirements whose deadline has passed and notify their tenants."""
    qs = DocumentRequirement.objects.filter(status=DocumentRequirement.Status.PENDING).select_related(
        "client_company", "tenant"
    )
    if tenant is not None:
        qs = qs.filter(tenant=tenant)

    checked = 0
    marked_overdue = 0
    alerts_created = 0
    now = timezone.now()
    for requirement in qs:
        checked += 1
        if requirement.required_by_date >= now:
            continue
        requirement.status = DocumentRequirement.Status.OVERDUE
        requirement.save(update_fields=["status", "updated_at"])
        marked_overdue += 1
        if _notify_overdue(requirement.tenant, requirement) is not None:
            alerts_created += 1

    logger.info("Document requirement check: checked=%s overdue=%s", checked, marked_overdue)
    return {"checked": checked, "marked_overdue": marked_overdue, "alerts_created": alerts_created}


def fulfil_requirements_for_document(tenant, document: Document) -> Optional[DocumentRequirement]:
    requirement = (
        DocumentRequirement.objects.filter(
            tenant=tenant,
            client_company_id=document.client_company_id,
            document_type=document.type,
        )
        .filter(Q(status=DocumentRequirement.Status.PENDING) | Q(status=DocumentRequirement.Status.OVERDUE))
        .order_by("required_by_date", "id")
        .first()
    )
    if requirement is None:
        return None
    requirement.status = DocumentRequirement.Status.RECEIVED
    requirement.received_document = document
    requirement.save(update_fields=["status", "received_document", "updated_at"])
    logger.info("Document %s fulfils requirement %s", document.id, requirement.id)
    return requirement
