from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db.models import Count, OuterRef, Q, Subquery
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany
from core.pagination import paginate
from notifications.models import Notification
from notifications.services import notify_safely

from .models import ClientCompanyRiskScore, DocumentRiskScore, RiskAlert


logger = logging.getLogger(__name__)

OPEN_STATUSES = (RiskAlert.Status.OPEN, RiskAlert.Status.IN_PROGRESS)


def create_alert(
    tenant,
    type: str,
    title: str,
    message: str,
    severity: str,
    client_company=None,
    document=None,
) -> RiskAlert:
    """
    Create a risk alert, or refresh a recent open one for the same target.

    Alerts are deduplicated per (tenant, company, document, type) over the last
    ``RISK_ALERT_DEDUP_HOURS``.
    """
    since = timezone.now() - timedelta(hours=settings.RISK_ALERT_DEDUP_HOURS)
    existing = (
        RiskAlert.objects.filter(
            tenant=tenant,
            type=type,
            client_company=client_company,
            document=document,
            status__in=OPEN_STATUSES,
            created_at__gte=since,
        )
        .order_by("-created_at")
        .first()
    )
    if existing is not None:
        existing.title = title
        existing.message = message
        existing.severity = severity
        existing.save(update_fields=["title", "message", "severity", "updated_at"])
        logger.info("Refreshed risk alert %s (%s)", existing.id, type)
        return existing

    alert = RiskAlert.objects.create(
        tenant=tenant,
        type=type,
        title=title,
        message=message,
        severity=severity,
        client_company=client_company,
        document=document,
    )
    logger.info("Created risk alert %s (%s, %s)", alert.id, type, severity)
    notify_safely(
        tenant,
        Notification.Type.RISK_ALERT,
        title,
        message,
        meta={
            "alert_id": alert.id,
            "client_company_id": getattr(client_company, "id", None),
            "document_id": getattr(document, "id", None),
            "severity": severity,
        },
    )
    return alert


def list_alerts(
    tenant,
    status: Optional[str] = None,
    severity: Optional[str] = None,
    client_company_id=None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = RiskAlert.objects.filter(tenant=tenant).select_related("client_company", "document")
    if status:
        qs = qs.filter(status=status)
    if severity:
        qs = qs.filter(severity=severity)
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    return paginate(qs, page, page_size)


def update_alert_status(tenant, user, alert_id, status: str) -> RiskAlert:
    if status not in RiskAlert.Status.values:
        raise ValidationError(f"Unknown alert status: {status}")
    alert = RiskAlert.objects.filter(tenant=tenant, id=alert_id).first()
    if alert is None:
        raise NotFoundError("Risk alert not found.")

    alert.status = status
    if status == RiskAlert.Status.RESOLVED:
        alert.resolved_at = timezone.now()
        alert.resolved_by = user
    else:
        alert.resolved_at = None
        alert.resolved_by = None
    alert.save()
    return alert


def get_risk_dashboard(tenant) -> dict:
    by_severity = {severity: 0 for severity in ("low", "medium", "high")}
    for row in (
        DocumentRiskScore.objects.filter(tenant=tenant, document__is_deleted=False)
        .values("severity")
        .annotate(count=Count("id"))
    ):
        by_severity[row["severity"]] = row["count"]

    open_alerts = RiskAlert.objects.filter(tenant=tenant, status__in=OPEN_STATUSES).aggregate(
        total=Count("id"),
        high=Count("id", filter=Q(severity="high")),
    )

    latest = ClientCompanyRiskScore.objects.filter(client_company=OuterRef("pk")).order_by("-generated_at", "-id")
    companies = (
        ClientCompany.objects.filter(tenant=tenant, is_active=True)
        .annotate(
            latest_score=Subquery(latest.values("score")[:1]),
            latest_severity=Subquery(latest.values("severity")[:1]),
        )
        .filter(latest_score__isnull=False)
        .order_by("-latest_score", "name")[:5]
    )
    return {
        "document_scores_by_severity": by_severity,
        "open_alerts": open_alerts["total"],
        "open_high_alerts": open_alerts["high"],
        "top_risk_companies": [
            {"id": c.id, "name": c.name, "score": c.latest_score, "severity": c.latest_severity}
            for c in companies
        ],
    }
