"""
KVKK (Turkish personal data protection law) obligations: consent records,
data subject requests, breach register and retention checks.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.models import AuditLog, TenantMembership

from .models import ConsentType, DataBreach, DataSubjectRequest, UserConsent


logger = logging.getLogger(__name__)

User = get_user_model()

RETENTION_PERIOD_YEARS = 10
CONSENT_VALIDITY_YEARS = 2
AUDIT_LOG_LIMIT = 100
DATA_ACCESS_ACTIONS = ("read", "update", "delete", "export")
REPORTABLE_SEVERITIES = {DataBreach.Severity.HIGH, DataBreach.Severity.CRITICAL}


def get_tenant_user(tenant, user_id):
    """A user with any membership (active or not) in ``tenant``."""
    user = User.objects.filter(id=user_id, memberships__tenant=tenant).distinct().first()
    if user is None:
        raise NotFoundError("User not found.")
    return user


def record_consent(
    user,
    consent_type: str,
    granted: bool,
    ip_address: Optional[str] = None,
    user_agent: str = "",
) -> UserConsent:
    if consent_type not in ConsentType.values:
        raise ValidationError(f"Unknown consent type: {consent_type}.", code="INVALID_CONSENT_TYPE")

    now = timezone.now()
    consent, _ = UserConsent.objects.update_or_create(
        user=user,
        consent_type=consent_type,
        defaults={
            "granted": granted,
            "granted_at": now if granted else None,
            "revoked_at": None if granted else now,
            "ip_address": ip_address,
            "user_agent": (user_agent or "")[:500],
        },
    )
    logger.info(
        "KVKK consent %s %s for user %s",
        consent_type,
        "granted" if granted else "revoked",
        user.pk,
    )
    return consent


def get_consent_status(user) -> dict:
    status = {value: False for value in ConsentType.values}
    last_updated = None
    for consent in UserConsent.objects.filter(user=user):
        status[consent.consent_type] = consent.granted
        if last_updated is None or consent.updated_at > last_updated:
            last_updated = consent.updated_at
    status["last_updated"] = last_updated
    return status


def _isoformat(value):
    return value.isoformat() if value else None


def _export_user_data(tenant, user) -> dict:
    memberships = TenantMembership.objects.filter(user=user, tenant=tenant)
    consents = UserConsent.objects.filter(user=user)
    return {
        "personal_info": {
            "username": user.get_username(),
            "email": user.email,
            "full_name": user.get_full_name(),
            "date_joined": _isoformat(user.date_joined),
            "last_login": _isoformat(user.last_login),
        },
        "memberships": [
            {
                "tenant_id": m.tenant_id,
                "role": m.role,
                "status": m.status,
                "joined_at": _isoformat(m.created_at),
            }
            for m in memberships
        ],
        "consents": [
            {
                "consent_type": c.consent_type,
                "granted": c.granted,
                "granted_at": _isoformat(c.granted_at),
                "revoked_at": _isoformat(c.revoked_at),
            }
            for c in consents
        ],
    }


def request_data_access(tenant, user, requested_by=None) -> DataSubjectRequest:
    """Right of access: the export is assembled and the request closed at once."""
    request = DataSubjectRequest.objects.create(
        tenant=tenant,
        user=user,
        requested_by=requested_by,
        request_type=DataSubjectRequest.Type.ACCESS,
        status=DataSubjectRequest.Status.COMPLETED,
        data=_export_user_data(tenant, user),
        completed_at=timezone.now(),
    )
    logger.info("KVKK data access request %s completed for user %s", request.pk, user.pk)
    return request


@transaction.atomic
def request_data_deletion(tenant, user, requested_by=None) -> DataSubjectRequest:
    """
    Right to erasure. The account is anonymized rather than removed so that
    accounting records keep their references.
    """
    has_active = TenantMembership.objects.filter(
        user=user, tenant=tenant, status=TenantMembership.Status.ACTIVE
    ).exists()
    if has_active:
        raise ValidationError(
            "User has an active membership. End the membership before deleting personal data.",
            code="ACTIVE_MEMBERSHIP",
        )

    user.email = f"deleted-{user.pk}@deleted.local"
    user.username = f"deleted-{user.pk}"
    user.first_name = "Deleted User"
    user.last_name = ""
    user.is_active = False
    user.set_unusable_password()
    user.save()
    UserConsent.objects.filter(user=user).delete()

    request = DataSubjectRequest.objects.create(
        tenant=tenant,
        user=user,
        requested_by=requested_by,
        request_type=DataSubjectRequest.Type.DELETION,
        status=DataSubjectRequest.Status.COMPLETED,
        completed_at=timezone.now(),
    )
    logger.info("KVKK data deletion request %s completed for user %s", request.pk, user.pk)
    return request


def record_breach(tenant, description: str, affected_users: int, severity: str) -> DataBreach:
    if severity not in DataBreach.Severity.values:
        raise ValidationError(f"Unknown severity: {severity}.")
    if affected_users < 0:
        raise ValidationError("affected_users cannot be negative.")

    reportable = severity in REPORTABLE_SEVERITIES
    breach = DataBreach.objects.create(
        tenant=tenant,
        description=description,
        affected_users=affected_users,
        severity=severity,
        status=DataBreach.Status.REPORTED if reportable else DataBreach.Status.DETECTED,
        reported_at=timezone.now() if reportable else None,
    )
    if reportable:
        # The authority must be notified within 72 hours.
        logger.warning(
            "KVKK breach %s (%s): %s, %s users affected",
            breach.pk,
            severity,
            description,
            affected_users,
        )
    return breach


def list_breaches(tenant):
    return DataBreach.objects.filter(tenant=tenant)


def check_data_retention(tenant, user_id=None) -> dict:
    now = timezone.now()
    retention_cutoff = now - timedelta(days=365 * RETENTION_PERIOD_YEARS)
    consent_cutoff = now - timedelta(days=365 * CONSENT_VALIDITY_YEARS)

    users = User.objects.filter(memberships__tenant=tenant).distinct()
    if user_id is not None:
        users = users.filter(id=user_id)

    issues = []
    for user in users.order_by("id"):
        if not user.is_active and user.date_joined < retention_cutoff:
            issues.append(
                {
                    "type": "retention_period_exceeded",
                    "user_id": user.pk,
                    "description": f"User data is older than the {RETENTION_PERIOD_YEARS} year retention period.",
                    "action_required": "Delete or anonymize the user's personal data.",
                }
            )
        stale = UserConsent.objects.filter(user=user, granted=True, granted_at__lt=consent_cutoff)
        for consent in stale:
            age_years = (now - consent.granted_at).days / 365
            issues.append(
                {
                    "type": "consent_expired",
                    "user_id": user.pk,
                    "consent_type": consent.consent_type,
                    "description": f"Consent was given {age_years:.1f} years ago and must be renewed.",
                    "action_required": "Collect a new consent from the user.",
                }
            )

    return {"compliant": not issues, "issues": issues}


def get_data_access_audit_log(tenant, user_id=None):
    qs = AuditLog.objects.filter(tenant=tenant, action__in=DATA_ACCESS_ACTIONS)
    if user_id is not None:
        qs = qs.filter(user_id=user_id)
    return qs.order_by("-created_at", "-id")[:AUDIT_LOG_LIMIT]
