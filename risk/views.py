from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.models import ClientCompany, TenantRole
from core.tenancy import TenantScopedViewMixin

from . import alerts, engine, rules, trends
from .models import ClientCompanyRiskScore, DocumentRiskScore, RiskRule
from .processor import calculate_document_risk
from .serializers import (
    ClientCompanyRiskScoreSerializer,
    DocumentRiskScoreSerializer,
    RiskAlertSerializer,
    RiskAlertStatusSerializer,
    RiskRuleSerializer,
    RiskRuleWriteSerializer,
)


RULE_EDITOR_ROLES = (TenantRole.OWNER, TenantRole.ACCOUNTANT)


def _days(request):
    raw = request.query_params.get("days")
    if not raw:
        return None
    try:
        days = int(raw)
    except ValueError:
        raise ValidationError("days must be an integer.")
    if days <= 0:
        raise ValidationError("days must be positive.")
    return days


class RiskRuleListView(TenantScopedViewMixin, APIView):
    write_roles = RULE_EDITOR_ROLES

    def get(self, request):
        items = rules.list_rules(self.tenant, scope=request.query_params.get("scope") or None)
        return Response({"data": RiskRuleSerializer(items, many=True).data})

    def post(self, request):
        serializer = RiskRuleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        is_global = data.pop("is_global", False)
        if is_global and not request.user.is_staff:
            raise ForbiddenError("Only platform staff can create global rules.")
        rule = rules.create_rule(None if is_global else self.tenant, data)
        return Response({"data": RiskRuleSerializer(rule).data}, status=status.HTTP_201_CREATED)


class RiskRuleDetailView(TenantScopedViewMixin, APIView):
    write_roles = RULE_EDITOR_ROLES

    def _check_global(self, request, pk):
        rule = RiskRule.objects.filter(id=pk).only("tenant_id").first()
        if rule is not None and rule.is_global and not request.user.is_staff:
            raise ForbiddenError("Global rules can only be changed by platform staff.")

    def get(self, request, pk: int):
        rule = next((r for r in rules.list_rules(self.tenant) if r.id == pk), None)
        if rule is None:
            raise NotFoundError("Risk rule not found.")
        return Response({"data": RiskRuleSerializer(rule).data})

    def patch(self, request, pk: int):
        serializer = RiskRuleWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop("is_global", None)
        self._check_global(request, pk)
        rule = rules.update_rule(self.tenant, pk, data)
        return Response({"data": RiskRuleSerializer(rule).data})

    put = patch

    def delete(self, request, pk: int):
        self._check_global(request, pk)
        rules.delete_rule(self.tenant, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DocumentRiskView(TenantScopedViewMixin, APIView):
    """GET returns the stored score; POST re-extracts features and re-scores."""

    def get(self, request, document_id: int):
        score = DocumentRiskScore.objects.filter(
            tenant=self.tenant,
            document_id=document_id,
            document__is_deleted=False,
        ).first()
        if score is None:
            raise NotFoundError("No risk score for this document.")
        return Response({"data": DocumentRiskScoreSerializer(score).data})

    def post(self, request, document_id: int):
        score = calculate_document_risk(self.tenant, document_id)
        return Response({"data": DocumentRiskScoreSerializer(score).data})


class DocumentRiskTrendView(TenantScopedViewMixin, APIView):
    def get(self, request, document_id: int):
        return Response({"data": trends.get_document_risk_trend(self.tenant, document_id, days=_days(request))})


class CompanyRiskView(TenantScopedViewMixin, APIView):
    def get(self, request, company_id: int):
        if not ClientCompany.objects.filter(tenant=self.tenant, id=company_id).exists():
            raise NotFoundError("Client company not found.")
        score = ClientCompanyRiskScore.objects.filter(tenant=self.tenant, client_company_id=company_id).first()
        if score is None:
            raise NotFoundError("No risk score for this client company.")
        return Response({"data": ClientCompanyRiskScoreSerializer(score).data})

    def post(self, request, company_id: int):
        score = engine.evaluate_client_company(self.tenant, company_id)
        return Response({"data": ClientCompanyRiskScoreSerializer(score).data})


class CompanyRiskTrendView(TenantScopedViewMixin, APIView):
    def get(self, request, company_id: int):
        return Response({"data": trends.get_company_risk_trend(self.tenant, company_id, days=_days(request))})


class RiskAlertListView(TenantScopedViewMixin, APIView):
    def get(self, request):
        params = request.query_params
        result = alerts.list_alerts(
            self.tenant,
            status=params.get("status") or None,
            severity=params.get("severity") or None,
            client_company_id=params.get("client_company_id") or None,
            page=params.get("page", 1),
            page_size=params.get("page_size", 20),
        )
        result["data"] = RiskAlertSerializer(result["data"], many=True).data
        return Response(result)


class RiskAlertDetailView(TenantScopedViewMixin, APIView):
    def patch(self, request, pk: int):
        serializer = RiskAlertStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        alert = alerts.update_alert_status(self.tenant, request.user, pk, serializer.validated_data["status"])
        return Response({"data": RiskAlertSerializer(alert).data})


class RiskDashboardView(TenantScopedViewMixin, APIView):
    def get(self, request):
        return Response({"data": alerts.get_risk_dashboard(self.tenant)})
