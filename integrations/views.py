from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.audit import log_request_action
from core.exceptions import ValidationError
from core.models import TenantRole
from core.tenancy import TenantScopedViewMixin

from . import services
from .serializers import (
    IntegrationProviderSerializer,
    IntegrationSyncJobSerializer,
    SyncRequestSerializer,
    TenantIntegrationSerializer,
    TenantIntegrationWriteSerializer,
)


INTEGRATION_MANAGER_ROLES = (TenantRole.OWNER, TenantRole.ACCOUNTANT)


class ProviderListView(TenantScopedViewMixin, APIView):
    def get(self, request):
        providers = services.list_providers(type=request.query_params.get("type") or None)
        return Response({"data": IntegrationProviderSerializer(providers, many=True).data})


class IntegrationListView(TenantScopedViewMixin, APIView):
    write_roles = INTEGRATION_MANAGER_ROLES

    def get(self, request):
        params = request.query_params
        company_id = params.get("client_company_id")
        if company_id and not company_id.isdigit():
            raise ValidationError("client_company_id must be an integer.")
        items = services.list_integrations(
            self.tenant,
            client_company_id=company_id or None,
            status=params.get("status") or None,
        )
        return Response({"data": TenantIntegrationSerializer(items, many=True).data})

    def post(self, request):
        serializer = TenantIntegrationWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        integration = services.create_integration(self.tenant, dict(serializer.validated_data))
        log_request_action(request, "create", integration, {"provider": integration.provider.code})
        return Response({"data": TenantIntegrationSerializer(integration).data}, status=status.HTTP_201_CREATED)


class IntegrationDetailView(TenantScopedViewMixin, APIView):
    write_roles = INTEGRATION_MANAGER_ROLES

    def get(self, request, pk: int):
        return Response({"data": TenantIntegrationSerializer(services.get_integration(self.tenant, pk)).data})

    def patch(self, request, pk: int):
        serializer = TenantIntegrationWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        integration = services.update_integration(self.tenant, pk, data)
        log_request_action(request, "update", integration, {"fields": sorted(data)})
        return Response({"data": TenantIntegrationSerializer(integration).data})

    put = patch

    def delete(self, request, pk: int):
        integration = services.delete_integration(self.tenant, pk)
        log_request_action(request, "delete", integration)
        return Response(status=status.HTTP_204_NO_CONTENT)


class IntegrationTestView(TenantScopedViewMixin, APIView):
    write_roles = INTEGRATION_MANAGER_ROLES

    def post(self, request, pk: int):
        return Response({"data": services.test_connection(self.tenant, pk)})


class IntegrationSyncView(TenantScopedViewMixin, APIView):
    write_roles = INTEGRATION_MANAGER_ROLES

    def post(self, request, pk: int):
        serializer = SyncRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.trigger_sync(self.tenant, pk, serializer.validated_data["job_type"])
        return Response({"data": IntegrationSyncJobSerializer(job).data}, status=status.HTTP_202_ACCEPTED)
