"""
Risk rule definitions and their per-tenant cache.

A tenant sees every active global rule (tenant is null) plus its own rules.
A tenant rule with the same code as a global rule overrides it in place.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction

from core.exceptions import NotFoundError, ValidationError

from .models import RiskRule, Severity


logger = logging.getLogger(__name__)

GENERATION_KEY = "risk-rules:generation"
EDITABLE_FIELDS = ["scope", "code", "description", "weight", "is_active", "default_severity", "config"]


def _generation() -> int:
    generation = cache.get(GENERATION_KEY)
    if generation is None:
        generation = 1
        cache.add(GENERATION_KEY, generation, timeout=None)
    return generation


def _cache_key(tenant_id: Optional[int], scope: str) -> str:
    return f"risk-rules:{_generation()}:{tenant_id or 'global'}:{scope}"


def invalidate_tenant(tenant_id: Optional[int]) -> None:
    if tenant_id is None:
        invalidate_all()
        return
    cache.delete_many([_cache_key(tenant_id, scope) for scope in RiskRule.Scope.values])


def invalidate_all() -> None:
    """Drop every cached rule set; used when a global rule changes."""
    try:
        cache.incr(GENERATION_KEY)
    except ValueError:
        cache.set(GENERATION_KEY, 2, timeout=None)


def merge_rules(global_rules: List[RiskRule], tenant_rules: List[RiskRule]) -> List[RiskRule]:
    overrides = {rule.code: rule for rule in tenant_rules}
    merged = [overrides.pop(rule.code, rule) for rule in global_rules]
    merged.extend(rule for rule in tenant_rules if rule.code in overrides)
    return merged


def load_active_rules(tenant, scope: str) -> List[RiskRule]:
    tenant_id = getattr(tenant, "id", tenant)
    key = _cache_key(tenant_id, scope)
    rules = cache.get(key)
    if rules is not None:
        return rules

    active = RiskRule.objects.filter(scope=scope, is_active=True).order_by("id")
    global_rules = list(active.filter(tenant__isnull=True))
    tenant_rules = list(active.filter(tenant_id=tenant_id)) if tenant_id else []
    rules = merge_rules(global_rules, tenant_rules)
    cache.set(key, rules, timeout=settings.RISK_RULE_CACHE_SECONDS)
    logger.debug("Loaded %s %s rules for tenant %s", len(rules), scope, tenant_id)
    return rules


def get_rule_by_code(tenant, code: str) -> Optional[RiskRule]:
    rule = None
    if tenant is not None:
        rule = RiskRule.objects.filter(tenant=tenant, code=code).first()
    if rule is None:
        rule = RiskRule.objects.filter(tenant__isnull=True, code=code).first()
    return rule


def list_rules(tenant, scope: Optional[str] = None) -> List[RiskRule]:
    qs = RiskRule.objects.all()
    if scope:
        qs = qs.filter(scope=scope)
    global_rules = list(qs.filter(tenant__isnull=True).order_by("id"))
    tenant_rules = list(qs.filter(tenant=tenant).order_by("id")) if tenant is not None else []
    return global_rules + tenant_rules


def _clean(data: dict[str, Any], partial: bool) -> dict[str, Any]:
    values = {field: data[field] for field in EDITABLE_FIELDS if field in data}
    if not partial:
        for required in ("scope", "code", "description", "weight"):
            if values.get(required) in (None, ""):
                raise ValidationError(f"{required} is required.")
    if "scope" in values and values["scope"] not in RiskRule.Scope.values:
        raise ValidationError(f"Unknown scope: {values['scope']}")
    if "default_severity" in values and values["default_severity"] not in Severity.values:
        raise ValidationError(f"Unknown severity: {values['default_severity']}")
    if "weight" in values:
        try:
            weight = Decimal(str(values["weight"]))
        except (InvalidOperation, ValueError):
            raise ValidationError("weight must be a number.")
        if weight < 0 or weight > 100:
            raise ValidationError("weight must be between 0 and 100.")
        values["weight"] = weight
    if "config" in values and not isinstance(values["config"], dict):
        raise ValidationError("config must be an object.")
    return values


def _get_editable_rule(tenant, rule_id) -> RiskRule:
    rule = RiskRule.objects.filter(id=rule_id).first()
    if rule is None:
        raise NotFoundError("Risk rule not found.")
    if rule.tenant_id is not None and rule.tenant_id != getattr(tenant, "id", None):
        raise NotFoundError("Risk rule not found.")
    return rule


def create_rule(tenant, data: dict[str, Any]) -> RiskRule:
    values = _clean(data, partial=False)
    try:
        with transaction.atomic():
            rule = RiskRule.objects.create(tenant=tenant, **values)
    except IntegrityError as exc:
        raise ValidationError(f"A rule with code {values['code']} already exists.", code="DUPLICATE_RULE") from exc
    invalidate_tenant(rule.tenant_id)
    logger.info("Risk rule %s created (tenant=%s)", rule.code, rule.tenant_id)
    return rule


def update_rule(tenant, rule_id, data: dict[str, Any]) -> RiskRule:
    rule = _get_editable_rule(tenant, rule_id)
    for field, value in _clean(data, partial=True).items():
        setattr(rule, field, value)
    try:
        with transaction.atomic():
            rule.save()
    except IntegrityError as exc:
        raise ValidationError(f"A rule with code {rule.code} already exists.", code="DUPLICATE_RULE") from exc
    invalidate_tenant(rule.tenant_id)
    return rule


def delete_rule(tenant, rule_id) -> None:
    rule = _get_editable_rule(tenant, rule_id)
    tenant_id = rule.tenant_id
    rule.delete()
    invalidate_tenant(tenant_id)
