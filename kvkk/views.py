from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.audit import client_ip, log_request_action
from core.exceptions import ValidationError
from core.models import TenantRole
from core.tenancy import ALL_ROLES, TenantScopedViewMixin

from . import services
from .models import DataSubjectRequest
from .serializers import (
    ConsentWriteSerializer,
    DataAccessLogSerializer,
    DataBreachSerializer,
    DataSubjectRequestSerializer,
    SubjectSerializer,
    UserConsentSerializer,
)


PRIVACY_OFFICER_ROLES = (TenantRole.OWNER, TenantRole.ACCOUNTANT)
OWNER_ONLY = (TenantRole.OWNER,)


def _optional_user_id(value):
    if value in (None, ""):
        return None
    if not str(value).isdigit():
        raise ValidationError("user_id must be an integer.")
    return int(value)


class SubjectMixin(TenantScopedViewMixin):
    """
    Resolves the data subject from ``user_id`` (query string or body).

    Users act on their own data freely; acting on somebody else's needs
    ``others_roles``.
    """

    others_roles = PRIVACY_OFFICER_ROLES

    def _requested_user_id(self, request):
        source = request.query_params if request.method == "GET" else request.data
        if not hasattr(source, "get"):
            return None
        return _optional_user_id(source.get("user_id"))

    def get_required_roles(self, request):
        user_id = self._requested_user_id(request)
        if user_id is None or user_id == request.user.pk:
            return ALL_ROLES
        return self.others_roles

    def get_subject(self, request):
        user_id = self._requested_user_id(request)
        if user_id is None:
            return request.user
        return services.get_tenant_user(self.tenant, user_id)


class ConsentView(SubjectMixin, APIView):
    def get(self, request):
        subject = self.get_subject(request)
        return Response({"data": services.get_consent_status(subject)})

    def post(self, request):
        serializer = ConsentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subject = self.get_subject(request)
        consent = services.record_consent(
            subject,
            serializer.validated_data["consent_type"],
            serializer.validated_data["granted"],
            ip_address=client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
        )
        log_request_action(request, "update", consent, {"granted": consent.granted})
        return Response({"data": UserConsentSerializer(consent).data})


class DataRequestListMixin:
    request_type: str = ""

    def get(self, request):
        qs = DataSubjectRequest.objects.filter(tenant=self.tenant, request_type=self.request_type)
        if self.membership.role not in PRIVACY_OFFICER_ROLES:
            qs = qs.filter(user=request.user)
        return Response({"data": DataSubjectRequestSerializer(qs, many=True).data})


class AccessRequestView(DataRequestListMixin, SubjectMixin, APIView):
    request_type = DataSubjectRequest.Type.ACCESS

    def post(self, request):
        SubjectSerializer(data=request.data).is_valid(raise_exception=True)
        subject = self.get_subject(request)
        dsr = services.request_data_access(self.tenant, subject, requested_by=request.user)
        log_request_action(request, "export", dsr, {"subject_id": subject.pk})
        return Response({"data": DataSubjectRequestSerializer(dsr).data}, status=status.HTTP_201_CREATED)


class DeletionRequestView(DataRequestListMixin, SubjectMixin, APIView):
    request_type = DataSubjectRequest.Type.DELETION
    others_roles = OWNER_ONLY

    def post(self, request):
        SubjectSerializer(data=request.data).is_valid(raise_exception=True)
        subject = self.get_subject(request)
        dsr = services.request_data_deletion(self.tenant, subject, requested_by=request.user)
        log_request_action(request, "delete", dsr, {"subject_id": subject.pk})
        return Response({"data": DataSubjectRequestSerializer(dsr).data}, status=status.HTTP_201_CREATED)


class BreachView(TenantScopedViewMixin, APIView):
    read_roles = PRIVACY_OFFICER_ROLES
    write_roles = OWNER_ONLY

    def get(self, request):
        breaches = services.list_breaches(self.tenant)
        return Response({"data": DataBreachSerializer(breaches, many=True).data})

    def post(self, request):
        serializer = DataBreachSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        breach = services.record_breach(
            self.tenant,
            serializer.validated_data["description"],
            serializer.validated_data["affected_users"],
            serializer.validated_data["severity"],
        )
        log_request_action(request, "create", breach, {"severity": breach.severity})
        return Response({"data": DataBreachSerializer(breach).data}, status=status.HTTP_201_CREATED)


class RetentionCheckView(TenantScopedViewMixin, APIView):
    read_roles = PRIVACY_OFFICER_ROLES

    def get(self, request):
        user_id = _optional_user_id(request.query_params.get("user_id"))
        return Response({"data": services.check_data_retention(self.tenant, user_id=user_id)})


class DataAccessAuditLogView(TenantScopedViewMixin, APIView):
    read_roles = PRIVACY_OFFICER_ROLES

    def get(self, request):
        user_id = _optional_user_id(request.query_params.get("user_id"))
        entries = services.get_data_access_audit_log(self.tenant, user_id=user_id)
        return Response({"data": DataAccessLogSerializer(entries, many=True).data})
