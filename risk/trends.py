from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from django.conf import settings
from django.utils import timezone

from core.exceptions import NotFoundError

from .models import ClientCompanyRiskScore, DocumentRiskScore, RiskScoreHistory


logger = logging.getLogger(__name__)

TREND_DELTA = Decimal("5")


def store_risk_score_history(
    tenant,
    entity_type: str,
    entity_id: int,
    score: Decimal,
    severity: str,
    triggered_rule_codes: Iterable[str],
) -> Optional[RiskScoreHistory]:
    """Append a history row; failures are logged and never propagate."""
    try:
        return RiskScoreHistory.objects.create(
            tenant=tenant,
            entity_type=entity_type,
            entity_id=entity_id,
            score=score,
            severity=severity,
            triggered_rule_codes=list(triggered_rule_codes),
            recorded_at=timezone.now(),
        )
    except Exception as exc:  # noqa: BLE001 - history is best effort
        logger.error("Failed to store %s risk history for %s: %s", entity_type, entity_id, exc)
        return None


def classify_trend(points: List[dict]) -> str:
    if len(points) < 2:
        return "stable"
    diff = Decimal(points[-1]["score"]) - Decimal(points[0]["score"])
    if diff > TREND_DELTA:
        return "increasing"
    if diff < -TREND_DELTA:
        return "decreasing"
    return "stable"


def _summarize(points: List[dict]) -> dict:
    scores = [Decimal(p["score"]) for p in points]
    return {
        "points": points,
        "current_score": scores[-1],
        "previous_score": scores[-2] if len(scores) > 1 else None,
        "trend": classify_trend(points),
        "average": (sum(scores, Decimal("0")) / len(scores)).quantize(Decimal("0.01")),
        "min": min(scores),
        "max": max(scores),
    }


def _point(score, severity, at, codes) -> dict:
    return {"score": score, "severity": severity, "recorded_at": at, "triggered_rule_codes": list(codes or [])}


def _window_start(days: Optional[int]):
    return timezone.now() - timedelta(days=days or settings.RISK_HISTORY_DAYS)


def get_document_risk_trend(tenant, document_id, days: Optional[int] = None) -> dict:
    current = DocumentRiskScore.objects.filter(
        tenant=tenant,
        document_id=document_id,
        document__is_deleted=False,
    ).first()
    if current is None:
        raise NotFoundError("No risk score for this document.")

    history = RiskScoreHistory.objects.filter(
        tenant=tenant,
        entity_type=RiskScoreHistory.EntityType.DOCUMENT,
        entity_id=document_id,
        recorded_at__gte=_window_start(days),
    ).order_by("recorded_at", "id")
    points = [_point(h.score, h.severity, h.recorded_at, h.triggered_rule_codes) for h in history]
    if not points:
        points = [_point(current.score, current.severity, current.generated_at, current.triggered_rule_codes)]
    return _summarize(points)


def get_company_risk_trend(tenant, client_company_id, days: Optional[int] = None) -> dict:
    since = _window_start(days)
    history = RiskScoreHistory.objects.filter(
        tenant=tenant,
        entity_type=RiskScoreHistory.EntityType.COMPANY,
        entity_id=client_company_id,
        recorded_at__gte=since,
    ).order_by("recorded_at", "id")
    points = [_point(h.score, h.severity, h.recorded_at, h.triggered_rule_codes) for h in history]

    if not points:
        scores = ClientCompanyRiskScore.objects.filter(
            tenant=tenant,
            client_company_id=client_company_id,
            generated_at__gte=since,
        ).order_by("generated_at", "id")
        points = [_point(s.score, s.severity, s.generated_at, s.triggered_rule_codes) for s in scores]

    if not points:
        raise NotFoundError("No risk scores for this client company in the selected window.")
    return _summarize(points)
