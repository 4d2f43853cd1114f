from __future__ import annotations

import logging

from django.db import DatabaseError, connection
from django.http import FileResponse, JsonResponse
from django.views.decorators.http import require_GET
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from core.audit import log_request_action
from core.exceptions import NotFoundError, ValidationError
from core.services import (
    check_notes,
    client_companies,
    document_requirements,
    documents,
    invoices,
    ledger,
    tasks,
)
from core.tenancy import TenantScopedViewMixin

from .serializers import (
    CheckNoteEndorseSerializer,
    CheckNoteSerializer,
    CheckNoteStatusSerializer,
    CheckNoteWriteSerializer,
    ClientCompanySerializer,
    DocumentRequirementSerializer,
    DocumentRequirementWriteSerializer,
    DocumentSerializer,
    DocumentUploadSerializer,
    InvoiceListSerializer,
    InvoiceSerializer,
    InvoiceStatusSerializer,
    InvoiceWriteSerializer,
    TaskSerializer,
    TaskWriteSerializer,
    TransactionSerializer,
)


logger = logging.getLogger(__name__)


@require_GET
def health_check(request):
    """Liveness probe; also reports whether the database answers."""
    database = "ok"
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        logger.error("Health check database probe failed: %s", exc)
        database = "unavailable"
    status_code = 200 if database == "ok" else 503
    return JsonResponse({"status": "ok" if database == "ok" else "degraded", "database": database}, status=status_code)


def query_bool(params, name):
    raw = params.get(name)
    if raw is None or raw == "":
        return None
    return str(raw).lower() in {"1", "true", "yes"}


def query_int(params, name, default=None):
    raw = params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer.")


def _validated(serializer_class, data, partial=False) -> dict:
    serializer = serializer_class(data=data, partial=partial)
    serializer.is_valid(raise_exception=True)
    return dict(serializer.validated_data)


def _page(result: dict, serializer_class) -> Response:
    result["data"] = serializer_class(result["data"], many=True).data
    return Response(result)


class TenantViewSet(TenantScopedViewMixin, viewsets.ViewSet):
    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        pk = kwargs.get("pk")
        # Ids are integers; anything else cannot name a row.
        if pk is not None and not str(pk).isdigit():
            raise NotFoundError()

    def audit(self, action_name: str, obj=None, metadata=None):
        log_request_action(self.request, action_name, obj, metadata)

    def paging(self):
        params = self.request.query_params
        return {"page": params.get("page", 1), "page_size": params.get("page_size", 20)}


class ClientCompanyViewSet(TenantViewSet):
    def list(self, request):
        result = client_companies.list_client_companies(
            self.tenant,
            is_active=query_bool(request.query_params, "is_active"),
            search=request.query_params.get("search") or None,
            **self.paging(),
        )
        return _page(result, ClientCompanySerializer)

    def retrieve(self, request, pk=None):
        result = client_companies.get_client_company(self.tenant, pk)
        data = ClientCompanySerializer(result["company"]).data
        data["stats"] = result["stats"]
        return Response({"data": data})

    def create(self, request):
        data = _validated(ClientCompanySerializer, request.data)
        company = client_companies.create_client_company(self.tenant, data)
        self.audit("create", company)
        return Response({"data": ClientCompanySerializer(company).data}, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        data = _validated(ClientCompanySerializer, request.data, partial=True)
        company = client_companies.update_client_company(self.tenant, pk, data)
        self.audit("update", company, {"fields": sorted(data)})
        return Response({"data": ClientCompanySerializer(company).data})

    update = partial_update

    def destroy(self, request, pk=None):
        company = client_companies.get_company_or_404(self.tenant, pk)
        self.audit("delete", company)
        client_companies.delete_client_company(self.tenant, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaskViewSet(TenantViewSet):
    def list(self, request):
        params = request.query_params
        result = tasks.list_tasks(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            assignee_id=query_int(params, "assignee_id"),
            status=params.get("status") or None,
            priority=params.get("priority") or None,
            overdue=query_bool(params, "overdue"),
            **self.paging(),
        )
        return _page(result, TaskSerializer)

    def retrieve(self, request, pk=None):
        return Response({"data": TaskSerializer(tasks.get_task(self.tenant, pk)).data})

    def create(self, request):
        task = tasks.create_task(self.tenant, request.user, _validated(TaskWriteSerializer, request.data))
        self.audit("create", task)
        return Response({"data": TaskSerializer(task).data}, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        data = _validated(TaskWriteSerializer, request.data, partial=True)
        task = tasks.update_task(self.tenant, request.user, pk, data)
        self.audit("update", task, {"fields": sorted(data)})
        return Response({"data": TaskSerializer(task).data})

    update = partial_update

    def destroy(self, request, pk=None):
        tasks.delete_task(self.tenant, pk)
        self.audit("delete", metadata={"task_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        stats = tasks.get_task_statistics(self.tenant, assignee_id=query_int(request.query_params, "assignee_id"))
        return Response({"data": stats})


class InvoiceViewSet(TenantViewSet):
    def list(self, request):
        params = request.query_params
        result = invoices.list_invoices(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            type=params.get("type") or None,
            status=params.get("status") or None,
            issue_date_from=params.get("issue_date_from") or None,
            issue_date_to=params.get("issue_date_to") or None,
            search=params.get("search") or None,
            **self.paging(),
        )
        return _page(result, InvoiceListSerializer)

    def retrieve(self, request, pk=None):
        return Response({"data": InvoiceSerializer(invoices.get_invoice(self.tenant, pk)).data})

    def create(self, request):
        invoice = invoices.create_invoice(self.tenant, request.user, _validated(InvoiceWriteSerializer, request.data))
        self.audit("create", invoice)
        return Response({"data": InvoiceSerializer(invoice).data}, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        data = _validated(InvoiceWriteSerializer, request.data, partial=True)
        invoice = invoices.update_invoice(self.tenant, request.user, pk, data)
        self.audit("update", invoice, {"fields": sorted(data)})
        return Response({"data": InvoiceSerializer(invoice).data})

    update = partial_update

    def destroy(self, request, pk=None):
        invoices.delete_invoice(self.tenant, pk)
        self.audit("delete", metadata={"invoice_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch", "post"], url_path="status")
    def set_status(self, request, pk=None):
        data = _validated(InvoiceStatusSerializer, request.data)
        invoice = invoices.update_invoice_status(self.tenant, request.user, pk, data["status"])
        self.audit("update", invoice, {"status": invoice.status})
        return Response({"data": InvoiceSerializer(invoice).data})

    @action(detail=True, methods=["get"])
    def duplicates(self, request, pk=None):
        invoice = invoices.get_invoice(self.tenant, pk)
        matches = invoices.check_invoice_duplicates(self.tenant, invoice)
        return Response({"data": InvoiceListSerializer(matches, many=True).data})

    @action(detail=True, methods=["get"])
    def similar(self, request, pk=None):
        threshold = request.query_params.get("threshold")
        try:
            threshold = float(threshold) if threshold else invoices.SIMILARITY_THRESHOLD
        except ValueError:
            raise ValidationError("threshold must be a number.")
        invoice = invoices.get_invoice(self.tenant, pk)
        matches = invoices.find_similar_invoices(self.tenant, invoice, threshold=threshold)
        return Response(
            {
                "data": [
                    {"invoice": InvoiceListSerializer(m.invoice).data, "similarity": m.similarity}
                    for m in matches
                ]
            }
        )


class TransactionViewSet(TenantViewSet):
    def list(self, request):
        params = request.query_params
        result = ledger.list_transactions(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            date_from=params.get("date_from") or None,
            date_to=params.get("date_to") or None,
            search=params.get("search") or None,
            **self.paging(),
        )
        return _page(result, TransactionSerializer)

    def retrieve(self, request, pk=None):
        return Response({"data": TransactionSerializer(ledger.get_transaction(self.tenant, pk)).data})


class DocumentViewSet(TenantViewSet):
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def list(self, request):
        params = request.query_params
        result = documents.list_documents(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            type=params.get("type") or None,
            status=params.get("status") or None,
            has_risk_flags=query_bool(params, "has_risk_flags"),
            **self.paging(),
        )
        return _page(result, DocumentSerializer)

    def retrieve(self, request, pk=None):
        return Response({"data": DocumentSerializer(documents.get_document(self.tenant, pk)).data})

    def create(self, request):
        data = _validated(DocumentUploadSerializer, request.data)
        upload = data.pop("file")
        document = documents.upload_document(self.tenant, request.user, upload, data)
        self.audit("create", document, {"filename": document.original_filename})
        return Response({"data": DocumentSerializer(document).data}, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        documents.delete_document(self.tenant, pk)
        self.audit("delete", metadata={"document_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def download(self, request, pk=None):
        handle, mime_type, filename = documents.open_document_stream(self.tenant, pk)
        self.audit("read", metadata={"document_id": pk})
        return FileResponse(handle, content_type=mime_type, as_attachment=True, filename=filename)


class CheckNoteViewSet(TenantViewSet):
    def list(self, request):
        params = request.query_params
        result = check_notes.list_check_notes(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            type=params.get("type") or None,
            direction=params.get("direction") or None,
            status=params.get("status") or None,
            **self.paging(),
        )
        return _page(result, CheckNoteSerializer)

    def retrieve(self, request, pk=None):
        return Response({"data": CheckNoteSerializer(check_notes.get_check_note(self.tenant, pk)).data})

    def create(self, request):
        note = check_notes.create_check_note(self.tenant, _validated(CheckNoteWriteSerializer, request.data))
        self.audit("create", note)
        return Response({"data": CheckNoteSerializer(note).data}, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        data = _validated(CheckNoteWriteSerializer, request.data, partial=True)
        note = check_notes.update_check_note(self.tenant, pk, data)
        self.audit("update", note, {"fields": sorted(data)})
        return Response({"data": CheckNoteSerializer(note).data})

    update = partial_update

    def destroy(self, request, pk=None):
        check_notes.delete_check_note(self.tenant, pk)
        self.audit("delete", metadata={"check_note_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch", "post"], url_path="status")
    def set_status(self, request, pk=None):
        data = _validated(CheckNoteStatusSerializer, request.data)
        note = check_notes.update_status(
            self.tenant,
            pk,
            data["status"],
            on_date=data.get("date"),
            endorsed_to=data.get("endorsed_to"),
        )
        self.audit("update", note, {"status": note.status})
        return Response({"data": CheckNoteSerializer(note).data})

    @action(detail=True, methods=["post"])
    def endorse(self, request, pk=None):
        data = _validated(CheckNoteEndorseSerializer, request.data)
        note = check_notes.endorse(self.tenant, pk, data["endorsed_to"], on_date=data.get("date"))
        self.audit("update", note, {"status": note.status, "endorsed_to": note.endorsed_to})
        return Response({"data": CheckNoteSerializer(note).data})

    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        stats = check_notes.get_dashboard_stats(
            self.tenant, client_company_id=query_int(request.query_params, "client_company_id")
        )
        return Response({"data": stats})

    @action(detail=False, methods=["get"])
    def upcoming(self, request):
        days = query_int(request.query_params, "days", 7)
        notes = check_notes.get_upcoming_due(self.tenant, days=days)
        return Response({"data": CheckNoteSerializer(notes, many=True).data})

    @action(detail=False, methods=["get"])
    def overdue(self, request):
        return Response({"data": CheckNoteSerializer(check_notes.get_overdue(self.tenant), many=True).data})


class DocumentRequirementViewSet(TenantViewSet):
    def list(self, request):
        params = request.query_params
        qs = document_requirements.list_requirements(
            self.tenant,
            client_company_id=query_int(params, "client_company_id"),
            status=params.get("status") or None,
            overdue=query_bool(params, "overdue"),
        )
        return Response({"data": DocumentRequirementSerializer(qs, many=True).data})

    def retrieve(self, request, pk=None):
        requirement = document_requirements.get_requirement(self.tenant, pk)
        return Response({"data": DocumentRequirementSerializer(requirement).data})

    def create(self, request):
        data = _validated(DocumentRequirementWriteSerializer, request.data)
        requirement = document_requirements.create_requirement(self.tenant, data)
        self.audit("create", requirement)
        return Response({"data": DocumentRequirementSerializer(requirement).data}, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        data = _validated(DocumentRequirementWriteSerializer, request.data, partial=True)
        requirement = document_requirements.update_requirement(self.tenant, pk, data)
        self.audit("update", requirement, {"fields": sorted(data)})
        return Response({"data": DocumentRequirementSerializer(requirement).data})

    update = partial_update

    def destroy(self, request, pk=None):
        document_requirements.delete_requirement(self.tenant, pk)
        self.audit("delete", metadata={"document_requirement_id": pk})
        return Response(status=status.HTTP_204_NO_CONTENT)
