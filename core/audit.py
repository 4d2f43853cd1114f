from __future__ import annotations

from ipaddress import ip_address
from typing import Any, Optional

from django.conf import settings
from django.http import HttpRequest

from .models import AuditLog


def _parse_ip(value: str) -> Optional[str]:
    try:
        return str(ip_address(value.strip()))
    except ValueError:
        return None


def client_ip(request: HttpRequest) -> Optional[str]:
    """
    Best-effort client IP.

    X-Forwarded-For is honoured only when TRUST_PROXY_HEADERS is on.
    """
    remote_addr = request.META.get("REMOTE_ADDR") or ""
    remote_ip = _parse_ip(remote_addr) if remote_addr else None

    forwarded = request.META.get("HTTP_X_FORWARDED_FOR") or ""
    if not forwarded or not getattr(settings, "TRUST_PROXY_HEADERS", False):
        return remote_ip
    for part in forwarded.split(","):
        candidate = _parse_ip(part)
        if candidate:
            return candidate
    return remote_ip


def _resource_type_and_id(obj: Any) -> tuple[str, str]:
    if obj is None:
        return "", ""
    if hasattr(obj, "_meta"):
        resource_type = f"{obj._meta.app_label}.{obj._meta.model_name}"  # type: ignore[attr-defined]
    else:
        resource_type = obj.__class__.__name__.lower()
    resource_id = ""
    if getattr(obj, "pk", None) is not None:
        resource_id = str(obj.pk)
    return resource_type, resource_id


def log_action(
    tenant,
    user,
    action: str,
    obj: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    resource_type, resource_id = _resource_type_and_id(obj)
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    return AuditLog.objects.create(
        tenant=tenant,
        user=user,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        metadata=metadata or {},
        ip_address=ip_address,
    )


def log_request_action(request, action: str, obj: Optional[Any] = None, metadata: Optional[dict[str, Any]] = None):
    return log_action(
        getattr(request, "tenant", None),
        getattr(request, "user", None),
        action,
        obj,
        metadata=metadata,
        ip_address=client_ip(request),
    )
