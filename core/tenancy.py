from __future__ import annotations

from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import Tenant, TenantMembership, TenantRole


User = get_user_model()

TENANT_HEADER = "HTTP_X_TENANT_ID"

DEFAULT_WRITE_ROLES = (TenantRole.OWNER, TenantRole.ACCOUNTANT, TenantRole.STAFF)
ALL_ROLES = tuple(TenantRole.values)


def get_active_membership(user: User, tenant_id: Optional[str] = None) -> Optional[TenantMembership]:
    """
    Resolve the membership the request acts through.

    With an explicit tenant id only that tenant is considered; without one the
    user's single active membership is used (ambiguous when there are several).
    """
    if not user or not user.is_authenticated:
        return None
    qs = TenantMembership.objects.select_related("tenant").filter(
        user=user,
        status=TenantMembership.Status.ACTIVE,
        tenant__is_active=True,
    )
    if tenant_id:
        if not str(tenant_id).isdigit():
            return None
        return qs.filter(tenant_id=int(tenant_id)).first()
    memberships = list(qs[:2])
    if len(memberships) == 1:
        return memberships[0]
    return None


def user_has_role(membership: Optional[TenantMembership], roles: Iterable[str]) -> bool:
    if membership is None:
        return False
    return membership.role in set(roles)


class TenantRolePermission(BasePermission):
    """
    Ensures the user belongs to the requested tenant.

    Safe methods are open to every role listed in ``read_roles`` on the view
    (all roles by default); writes require one of ``write_roles``. Views may
    also implement ``get_required_roles(request)`` for per-action rules.
    """

    message = "You do not have access to this tenant."

    def has_permission(self, request, view) -> bool:
        membership = get_active_membership(request.user, request.META.get(TENANT_HEADER))
        if membership is None:
            return False

        request.tenant = membership.tenant
        request.membership = membership

        if hasattr(view, "get_required_roles"):
            roles = view.get_required_roles(request)
            if roles is not None:
                return user_has_role(membership, roles)

        if request.method in SAFE_METHODS:
            return user_has_role(membership, getattr(view, "read_roles", ALL_ROLES))
        return user_has_role(membership, getattr(view, "write_roles", DEFAULT_WRITE_ROLES))


class TenantScopedViewMixin:
    """Gives views ``self.tenant`` after TenantRolePermission has run."""

    permission_classes = [TenantRolePermission]

    @property
    def tenant(self) -> Tenant:
        return self.request.tenant

    @property
    def membership(self) -> TenantMembership:
        return self.request.membership
