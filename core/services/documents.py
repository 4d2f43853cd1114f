from __future__ import annotations

import logging
from typing import Any, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from billing.plans import UsageMetric
from billing.services import UsageService
from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Document, Invoice, Transaction
from core.pagination import paginate
from core.services import document_requirements
from core.storage import build_document_key, get_storage


logger = logging.getLogger(__name__)


def _risk_flag_count(document: Document) -> int:
    features = getattr(document, "risk_features", None)
    if features is None:
        return 0
    return len(features.risk_flags or [])


def _get_document_or_404(tenant, document_id) -> Document:
    document = (
        Document.objects.filter(tenant=tenant, id=document_id, is_deleted=False)
        .select_related("client_company", "risk_features")
        .first()
    )
    if document is None:
        raise NotFoundError("Document not found.")
    return document


def _validate_file(file) -> str:
    max_bytes = settings.DOCUMENT_MAX_UPLOAD_BYTES
    if file.size > max_bytes:
        raise ValidationError(
            f"File is too large ({file.size} bytes, max {max_bytes}).",
            code="FILE_TOO_LARGE",
        )
    mime_type = (getattr(file, "content_type", None) or "").lower()
    if mime_type not in settings.DOCUMENT_ALLOWED_MIME_TYPES:
        raise ValidationError(f"Unsupported file type: {mime_type or 'unknown'}.", code="UNSUPPORTED_FILE_TYPE")
    return mime_type


def upload_document(tenant, user, file, data: dict[str, Any]) -> Document:
    mime_type = _validate_file(file)
    UsageService.ensure_within_limit(tenant, UsageMetric.DOCUMENTS)

    company = ClientCompany.objects.filter(tenant=tenant, id=data.get("client_company_id")).first()
    if company is None:
        raise NotFoundError("Client company not found.")

    related_invoice = None
    if data.get("related_invoice_id"):
        related_invoice = Invoice.objects.filter(
            tenant=tenant, id=data["related_invoice_id"], client_company=company
        ).first()
        if related_invoice is None:
            raise ValidationError("Related invoice does not belong to this client company.")

    related_transaction = None
    if data.get("related_transaction_id"):
        related_transaction = Transaction.objects.filter(
            tenant=tenant, id=data["related_transaction_id"], client_company=company
        ).first()
        if related_transaction is None:
            raise ValidationError("Related transaction does not belong to this client company.")

    doc_type = data.get("type") or Document.Type.OTHER
    if doc_type not in Document.Type.values:
        raise ValidationError(f"Unknown document type: {doc_type}")

    storage = get_storage(tenant.id)
    with transaction.atomic():
        document = Document.objects.create(
            tenant=tenant,
            client_company=company,
            related_invoice=related_invoice,
            related_transaction=related_transaction,
            type=doc_type,
            original_filename=file.name,
            mime_type=mime_type,
            size_bytes=file.size,
            status=Document.Status.UPLOADED,
            parsed_data=data.get("parsed_data"),
            uploaded_by=user,
        )
        document.storage_path = storage.save(build_document_key(tenant.id, document.id, file.name), file)
        document.save(update_fields=["storage_path"])

    UsageService.increment_usage(tenant, UsageMetric.DOCUMENTS)
    logger.info("Document %s uploaded for company %s (%s bytes)", document.id, company.id, file.size)

    try:
        document_requirements.fulfil_requirements_for_document(tenant, document)
    except Exception as exc:  # noqa: BLE001 - requirement bookkeeping is secondary
        logger.warning("Requirement fulfilment failed for document %s: %s", document.id, exc)
    return document


def list_documents(
    tenant,
    client_company_id=None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    has_risk_flags: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = Document.objects.filter(tenant=tenant, is_deleted=False).select_related("client_company", "risk_features")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if type:
        qs = qs.filter(type=type)
    if status:
        qs = qs.filter(status=status)

    if has_risk_flags is not None:
        # risk_flags is a JSON list, so the filter runs after loading.
        documents = [doc for doc in qs if (_risk_flag_count(doc) > 0) == has_risk_flags]
        result = paginate(documents, page, page_size)
    else:
        result = paginate(qs, page, page_size)

    for document in result["data"]:
        document.risk_flag_count = _risk_flag_count(document)
    return result


def get_document(tenant, document_id) -> Document:
    document = _get_document_or_404(tenant, document_id)
    document.risk_flag_count = _risk_flag_count(document)
    return document


def open_document_stream(tenant, document_id):
    """Return ``(file, mime_type, filename)`` for a stored document."""
    document = _get_document_or_404(tenant, document_id)
    storage = get_storage(tenant.id)
    if not document.storage_path or not storage.exists(document.storage_path):
        raise NotFoundError("Document file not found in storage.")
    return storage.open(document.storage_path), document.mime_type, document.original_filename


def delete_document(tenant, document_id) -> None:
    document = _get_document_or_404(tenant, document_id)
    document.is_deleted = True
    document.deleted_at = timezone.now()
    document.save(update_fields=["is_deleted", "deleted_at", "updated_at"])
    logger.info("Document %s soft-deleted", document.id)
