from __future__ import annotations

from django.utils.dateparse import parse_datetime
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ValidationError
from core.tenancy import ALL_ROLES, TenantScopedViewMixin

from . import services
from .serializers import NotificationSerializer


def _parse_bool(raw):
    if raw is None or raw == "":
        return None
    return str(raw).lower() in {"1", "true", "yes"}


def _parse_dt(raw, field):
    if not raw:
        return None
    value = parse_datetime(raw)
    if value is None:
        raise ValidationError(f"Invalid {field}.")
    return value


class NotificationListView(TenantScopedViewMixin, APIView):
    def get(self, request):
        params = request.query_params
        try:
            limit = int(params.get("limit", services.DEFAULT_LIMIT))
            offset = int(params.get("offset", 0))
        except ValueError:
            raise ValidationError("limit and offset must be integers.")
        result = services.list_notifications(
            self.tenant,
            request.user,
            is_read=_parse_bool(params.get("is_read")),
            type=params.get("type") or None,
            from_date=_parse_dt(params.get("from"), "from"),
            to_date=_parse_dt(params.get("to"), "to"),
            limit=limit,
            offset=offset,
        )
        return Response(
            {
                "data": NotificationSerializer(result["data"], many=True).data,
                "meta": {"total": result["total"], "limit": limit, "offset": offset},
            }
        )


class NotificationReadView(TenantScopedViewMixin, APIView):
    # Marking as read is allowed for read-only members as well.
    write_roles = ALL_ROLES

    def post(self, request, pk: int):
        notification = services.mark_as_read(self.tenant, request.user, pk)
        return Response({"data": NotificationSerializer(notification).data})


class NotificationReadAllView(TenantScopedViewMixin, APIView):
    write_roles = ALL_ROLES

    def post(self, request):
        updated = services.mark_all_as_read(self.tenant, request.user)
        return Response({"data": {"updated": updated}})


class UnreadCountView(TenantScopedViewMixin, APIView):
    def get(self, request):
        return Response({"data": {"count": services.get_unread_count(self.tenant, request.user)}})
