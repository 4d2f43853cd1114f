from __future__ import annotations

from datetime import date

from django.http import HttpResponse
from django.utils import timezone
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ValidationError
from core.tenancy import TenantScopedViewMixin

from . import reporting, vat
from .pdf import render_vat_return_pdf


def _parse_date(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).")


def _parse_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")


def _company_id(request) -> int:
    raw = request.query_params.get("client_company_id")
    if not raw:
        raise ValidationError("client_company_id is required.")
    return _parse_int(raw, "client_company_id")


def _period(request) -> tuple[date, date]:
    """``start`` (inclusive) and ``end`` (exclusive); defaults to the current month."""
    params = request.query_params
    today = timezone.localdate()
    default_start, default_end = reporting.month_bounds(today.year, today.month)
    start = _parse_date(params["start"], "start") if params.get("start") else default_start
    end = _parse_date(params["end"], "end") if params.get("end") else default_end
    if end <= start:
        raise ValidationError("end must be after start.")
    return start, end


def _year_month(request) -> tuple[int, int]:
    today = timezone.localdate()
    year = _parse_int(request.query_params.get("year", today.year), "year")
    month = _parse_int(request.query_params.get("month", today.month), "month")
    return year, month


class VatAnalysisView(TenantScopedViewMixin, APIView):
    def get(self, request):
        start, end = _period(request)
        return Response({"data": vat.analyze_vat(self.tenant, _company_id(request), start, end)})


class VatReturnView(TenantScopedViewMixin, APIView):
    def get(self, request):
        start, end = _period(request)
        return Response({"data": vat.prepare_vat_return(self.tenant, _company_id(request), start, end)})


class VatInconsistencyView(TenantScopedViewMixin, APIView):
    def get(self, request):
        start, end = _period(request)
        issues = vat.check_vat_inconsistencies(self.tenant, _company_id(request), start, end)
        return Response({"data": [issue.as_dict() for issue in issues]})


class CorporateTaxView(TenantScopedViewMixin, APIView):
    def get(self, request):
        year = _parse_int(request.query_params.get("year", timezone.localdate().year), "year")
        return Response({"data": reporting.calculate_corporate_tax(self.tenant, _company_id(request), year)})


class MonthlyTaxSummaryView(TenantScopedViewMixin, APIView):
    def get(self, request):
        year, month = _year_month(request)
        summary = reporting.get_monthly_tax_summary(self.tenant, _company_id(request), year, month)
        return Response({"data": summary})


class VatDeclarationView(TenantScopedViewMixin, APIView):
    def perform_content_negotiation(self, request, force=False):
        # ?format=pdf picks the response body below, not a DRF renderer.
        return super().perform_content_negotiation(request, force=True)

    def get(self, request):
        year, month = _year_month(request)
        declaration = reporting.get_vat_declaration(self.tenant, _company_id(request), year, month)
        if request.query_params.get("format") == "pdf":
            response = HttpResponse(render_vat_return_pdf(declaration), content_type="application/pdf")
            response["Content-Disposition"] = f'attachment; filename="kdv-{declaration["period"]}.pdf"'
            return response
        return Response({"data": declaration})
