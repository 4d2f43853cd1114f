from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from django.db.models import Q

from core.exceptions import NotFoundError

from .models import Notification


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def create_notification(
    tenant,
    type: str,
    title: str,
    message: str,
    user=None,
    meta: Optional[dict[str, Any]] = None,
) -> Notification:
    notification = Notification.objects.create(
        tenant=tenant,
        user=user,
        type=type,
        title=title,
        message=message,
        meta=meta or {},
    )
    logger.info(
        "Notification %s created for tenant=%s user=%s type=%s",
        notification.id,
        tenant.id,
        getattr(user, "id", None),
        type,
    )
    return notification


def notify_safely(tenant, type: str, title: str, message: str, user=None, meta=None) -> Optional[Notification]:
    """Create a notification without letting a failure break the caller."""
    try:
        return create_notification(tenant, type, title, message, user=user, meta=meta)
    except Exception as exc:  # noqa: BLE001 - notification is a side channel
        logger.warning("Failed to create notification '%s' for tenant %s: %s", title, tenant.id, exc)
        return None


def _visible_to(tenant, user):
    return Notification.objects.filter(tenant=tenant).filter(Q(user=user) | Q(user__isnull=True))


def list_notifications(
    tenant,
    user,
    is_read: Optional[bool] = None,
    type: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> dict:
    qs = _visible_to(tenant, user)
    if is_read is not None:
        qs = qs.filter(is_read=is_read)
    if type:
        qs = qs.filter(type=type)
    if from_date:
        qs = qs.filter(created_at__gte=from_date)
    if to_date:
        qs = qs.filter(created_at__lte=to_date)

    limit = max(1, min(int(limit or DEFAULT_LIMIT), MAX_LIMIT))
    offset = max(0, int(offset or 0))
    total = qs.count()
    return {"data": list(qs[offset : offset + limit]), "total": total}


def mark_as_read(tenant, user, notification_id: int) -> Notification:
    notification = _visible_to(tenant, user).filter(id=notification_id).first()
    if notification is None:
        raise NotFoundError("Notification not found.")
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=["is_read", "updated_at"])
    return notification


def mark_all_as_read(tenant, user) -> int:
    return _visible_to(tenant, user).filter(is_read=False).update(is_read=True)


def get_unread_count(tenant, user) -> int:
    return _visible_to(tenant, user).filter(is_read=False).count()
