from __future__ import annotations

import logging

from core.exceptions import NotFoundError
from core.models import ClientCompany, Document

from . import engine
from .features import store_document_features
from .models import DocumentRiskScore


logger = logging.getLogger(__name__)


def calculate_document_risk(tenant, document_id) -> DocumentRiskScore:
    """Extract features for a document and score it."""
    document = (
        Document.objects.filter(tenant=tenant, id=document_id, is_deleted=False)
        .select_related("related_invoice")
        .first()
    )
    if document is None:
        raise NotFoundError("Document not found.")
    features = store_document_features(document)
    return engine.evaluate_document(tenant, document.id, features=features)


def calculate_tenant_risk(tenant) -> dict:
    """
    Score every unscored document and then every active company of a tenant.

    A failure for one company is logged and counted; the batch keeps going.
    """
    companies_processed = 0
    documents_processed = 0
    errors = 0

    for company in ClientCompany.objects.filter(tenant=tenant, is_active=True).order_by("id"):
        try:
            pending = Document.objects.filter(
                tenant=tenant,
                client_company=company,
                is_deleted=False,
                risk_score__isnull=True,
            ).values_list("id", flat=True)
            for document_id in list(pending):
                calculate_document_risk(tenant, document_id)
                documents_processed += 1
            engine.evaluate_client_company(tenant, company.id)
            companies_processed += 1
        except Exception:  # noqa: BLE001 - keep processing the remaining companies
            errors += 1
            logger.exception("Risk calculation failed for company %s (tenant %s)", company.id, tenant.id)

    logger.info(
        "Tenant %s risk run: %s companies, %s documents, %s errors",
        tenant.id,
        companies_processed,
        documents_processed,
        errors,
    )
    return {
        "companies_processed": companies_processed,
        "documents_processed": documents_processed,
        "errors": errors,
    }
