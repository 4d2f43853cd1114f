from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import LimitExceededError, ValidationError
from core.models import ClientCompany, TenantMembership

from .models import TenantSubscription, TenantUsage
from .plans import PLAN_LIMITS, Plan, PlanLimits, UsageMetric, get_plan_limits


logger = logging.getLogger(__name__)

# Metrics counted from live rows instead of the monthly counter.
LIVE_METRICS = {UsageMetric.CLIENT_COMPANIES, UsageMetric.USERS}


def current_period(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    now = timezone.localtime(now or timezone.now())
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class SubscriptionService:
    @staticmethod
    def get_subscription(tenant) -> TenantSubscription:
        subscription, _ = TenantSubscription.objects.get_or_create(tenant=tenant)
        return subscription

    @classmethod
    def get_tenant_plan_config(cls, tenant) -> dict:
        subscription = cls.get_subscription(tenant)
        limits = get_plan_limits(subscription.plan)
        return {
            "plan": subscription.plan,
            "limits": limits,
            "subscription": subscription,
        }

    @classmethod
    def get_limits(cls, tenant) -> PlanLimits:
        return get_plan_limits(cls.get_subscription(tenant).plan)

    @classmethod
    def update_tenant_plan(
        cls,
        tenant,
        plan: Optional[str] = None,
        status: Optional[str] = None,
        valid_until: Optional[datetime] = None,
        trial_until: Optional[datetime] = None,
    ) -> TenantSubscription:
        subscription = cls.get_subscription(tenant)
        if plan is not None:
            if plan not in PLAN_LIMITS:
                raise ValidationError(f"Unknown plan: {plan}")
            subscription.plan = plan
        if status is not None:
            if status not in TenantSubscription.Status.values:
                raise ValidationError(f"Unknown subscription status: {status}")
            subscription.status = status
        if valid_until is not None:
            subscription.valid_until = valid_until
        if trial_until is not None:
            subscription.trial_until = trial_until
        subscription.save()
        logger.info("Tenant %s subscription set to %s/%s", tenant.id, subscription.plan, subscription.status)
        return subscription


class UsageService:
    @staticmethod
    def _live_count(tenant, metric: str) -> int:
        if metric == UsageMetric.CLIENT_COMPANIES:
            return ClientCompany.objects.filter(tenant=tenant).count()
        return TenantMembership.objects.filter(
            tenant=tenant,
            status=TenantMembership.Status.ACTIVE,
        ).count()

    @classmethod
    def get_used(cls, tenant, metric: str) -> int:
        if metric in LIVE_METRICS:
            return cls._live_count(tenant, metric)
        period_start, _ = current_period()
        row = TenantUsage.objects.filter(tenant=tenant, metric=metric, period_start=period_start).first()
        return row.value if row else 0

    @classmethod
    def get_usage_for_tenant(cls, tenant) -> dict:
        limits = SubscriptionService.get_limits(tenant)
        usage = {}
        for metric in UsageMetric.ALL:
            used = cls.get_used(tenant, metric)
            limit = limits.for_metric(metric)
            usage[metric] = {"used": used, "limit": limit, "remaining": max(0, limit - used)}
        return usage

    @staticmethod
    @transaction.atomic
    def increment_usage(tenant, metric: str, amount: int = 1) -> TenantUsage:
        if metric not in UsageMetric.ALL:
            raise ValidationError(f"Unknown usage metric: {metric}")
        period_start, period_end = current_period()
        row, _ = TenantUsage.objects.select_for_update().get_or_create(
            tenant=tenant,
            metric=metric,
            period_start=period_start,
            defaults={"period_end": period_end, "value": 0},
        )
        TenantUsage.objects.filter(pk=row.pk).update(value=F("value") + amount)
        row.refresh_from_db()
        return row

    @classmethod
    def check_limit(cls, tenant, metric: str) -> dict:
        limit = SubscriptionService.get_limits(tenant).for_metric(metric)
        used = cls.get_used(tenant, metric)
        remaining = max(0, limit - used)
        return {"allowed": remaining > 0, "used": used, "limit": limit, "remaining": remaining}

    @classmethod
    def ensure_within_limit(cls, tenant, metric: str) -> None:
        result = cls.check_limit(tenant, metric)
        if not result["allowed"]:
            logger.info("Tenant %s hit %s limit (%s)", tenant.id, metric, result["limit"])
            raise LimitExceededError(
                f"Plan limit reached for {metric} ({result['used']}/{result['limit']}).",
                details=result,
            )
