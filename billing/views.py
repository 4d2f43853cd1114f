from __future__ import annotations

from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import TenantRole
from core.tenancy import TenantScopedViewMixin, user_has_role

from .serializers import SubscriptionSerializer, SubscriptionUpdateSerializer
from .services import SubscriptionService, UsageService


LIMIT_VIEWER_ROLES = (TenantRole.OWNER, TenantRole.ACCOUNTANT)


class SubscriptionView(TenantScopedViewMixin, APIView):
    write_roles = (TenantRole.OWNER,)

    def _payload(self, request):
        config = SubscriptionService.get_tenant_plan_config(self.tenant)
        data = SubscriptionSerializer(config["subscription"]).data
        if user_has_role(self.membership, LIMIT_VIEWER_ROLES):
            data["limits"] = config["limits"].as_dict()
        return data

    def get(self, request):
        return Response({"data": self._payload(request)})

    def put(self, request):
        serializer = SubscriptionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        SubscriptionService.update_tenant_plan(self.tenant, **serializer.validated_data)
        return Response({"data": self._payload(request)})


class UsageView(TenantScopedViewMixin, APIView):
    def get(self, request):
        return Response({"data": UsageService.get_usage_for_tenant(self.tenant)})
