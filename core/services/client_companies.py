from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.db.models import Q

from billing.plans import UsageMetric
from billing.services import UsageService
from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany
from core.pagination import paginate


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = [
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
]


def get_company_or_404(tenant, company_id) -> ClientCompany:
    company = ClientCompany.objects.filter(tenant=tenant, id=company_id).first()
    if company is None:
        raise NotFoundError("Client company not found.")
    return company


def list_client_companies(
    tenant,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = ClientCompany.objects.filter(tenant=tenant)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(tax_number__icontains=search))
    return paginate(qs.order_by("-created_at", "-id"), page, page_size)


def get_client_company(tenant, company_id) -> dict:
    company = get_company_or_404(tenant, company_id)
    stats = {
        "invoice_count": company.invoices.count(),
        "transaction_count": company.transactions.count(),
        "document_count": company.documents.filter(is_deleted=False).count(),
    }
    return {"company": company, "stats": stats}


def _ensure_unique_tax_number(tenant, tax_number: str, exclude_id: Optional[int] = None) -> None:
    qs = ClientCompany.objects.filter(tenant=tenant, tax_number=tax_number)
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    if qs.exists():
        raise ValidationError("A client company with this tax number already exists.", code="DUPLICATE_TAX_NUMBER")


def create_client_company(tenant, data: dict[str, Any]) -> ClientCompany:
    UsageService.ensure_within_limit(tenant, UsageMetric.CLIENT_COMPANIES)

    tax_number = (data.get("tax_number") or "").strip()
    if not tax_number:
        raise ValidationError("tax_number is required.")
    if not (data.get("name") or "").strip():
        raise ValidationError("name is required.")
    _ensure_unique_tax_number(tenant, tax_number)

    values = {field: data[field] for field in EDITABLE_FIELDS if field in data}
    values["tax_number"] = tax_number
    try:
        with transaction.atomic():
            company = ClientCompany.objects.create(tenant=tenant, **values)
    except IntegrityError as exc:
        raise ValidationError("A client company with this tax number already exists.", code="DUPLICATE_TAX_NUMBER") from exc

    logger.info("Client company %s created for tenant %s", company.id, tenant.id)
    return company


def update_client_company(tenant, company_id, data: dict[str, Any]) -> ClientCompany:
    company = get_company_or_404(tenant, company_id)
    if "tax_number" in data and data["tax_number"] != company.tax_number:
        _ensure_unique_tax_number(tenant, data["tax_number"], exclude_id=company.id)

    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(company, field, data[field])
    company.save()
    return company


def delete_client_company(tenant, company_id) -> None:
    company = get_company_or_404(tenant, company_id)
    company.delete()
    logger.info("Client company %s deleted for tenant %s", company_id, tenant.id)
