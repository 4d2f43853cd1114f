from __future__ import annotations

import logging
from typing import Any, Optional

from django.db.models import Q

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany

from .connectors import get_connector
from .models import IntegrationProvider, IntegrationSyncJob, TenantIntegration


logger = logging.getLogger(__name__)

# Matched against the key lowercased with "_" and "-" removed.
SECRET_KEY_SUFFIXES = ("apikey", "password", "secret", "token")
MASK = "***"


def is_secret_key(key) -> bool:
    normalized = str(key).lower().replace("_", "").replace("-", "")
    return normalized.endswith(SECRET_KEY_SUFFIXES)


def mask_config(config: Any) -> Any:
    """Copy of ``config`` with secret values replaced, at any depth."""
    if isinstance(config, dict):
        return {
            key: MASK if is_secret_key(key) and value not in (None, "") else mask_config(value)
            for key, value in config.items()
        }
    if isinstance(config, list):
        return [mask_config(item) for item in config]
    return config


def list_providers(type: Optional[str] = None):
    qs = IntegrationProvider.objects.filter(is_active=True)
    if type:
        qs = qs.filter(type=type)
    return qs.order_by("name")


def _get_integration_or_404(tenant, integration_id) -> TenantIntegration:
    integration = (
        TenantIntegration.objects.filter(tenant=tenant, id=integration_id)
        .select_related("provider", "client_company")
        .first()
    )
    if integration is None:
        raise NotFoundError("Integration not found.")
    return integration


def list_integrations(tenant, client_company_id=None, status: Optional[str] = None):
    qs = TenantIntegration.objects.filter(tenant=tenant).select_related("provider", "client_company")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if status:
        qs = qs.filter(status=status)
    return qs


def get_integration(tenant, integration_id) -> TenantIntegration:
    return _get_integration_or_404(tenant, integration_id)


def _run_connection_test(provider: IntegrationProvider, config: dict) -> dict:
    connector = get_connector(provider.connector_key)
    if connector is None:
        return {"success": False, "message": f"No connector available for provider {provider.code}."}
    try:
        return connector.test_connection(config or {})
    except Exception as exc:  # noqa: BLE001 - connector failures become a failed test
        logger.warning("Connection test for provider %s raised: %s", provider.code, exc)
        return {"success": False, "message": f"Connection test failed: {exc}"}


def _require_successful_test(provider: IntegrationProvider, config: dict) -> None:
    result = _run_connection_test(provider, config)
    if not result.get("success"):
        raise ValidationError(result.get("message") or "Connection test failed.", code="CONNECTION_FAILED")


def create_integration(tenant, data: dict[str, Any]) -> TenantIntegration:
    provider = (
        IntegrationProvider.objects.filter(is_active=True)
        .filter(Q(id=data.get("provider_id")) | Q(code=data.get("provider_code") or ""))
        .first()
    )
    if provider is None:
        raise NotFoundError("Integration provider not found or inactive.")

    company = None
    if data.get("client_company_id"):
        company = ClientCompany.objects.filter(tenant=tenant, id=data["client_company_id"]).first()
        if company is None:
            raise NotFoundError("Client company not found.")

    config = data.get("config") or {}
    _require_successful_test(provider, config)

    integration = TenantIntegration.objects.create(
        tenant=tenant,
        client_company=company,
        provider=provider,
        display_name=data.get("display_name") or provider.name,
        config=config,
        status=TenantIntegration.Status.CONNECTED,
    )
    logger.info("Integration %s (%s) connected for tenant %s", integration.id, provider.code, tenant.id)
    return integration


def update_integration(tenant, integration_id, data: dict[str, Any]) -> TenantIntegration:
    integration = _get_integration_or_404(tenant, integration_id)

    if "config" in data and data["config"] is not None:
        _require_successful_test(integration.provider, data["config"])
        integration.config = data["config"]
        integration.status = TenantIntegration.Status.CONNECTED
        integration.last_error = ""
    if data.get("display_name"):
        integration.display_name = data["display_name"]
    integration.save()
    return integration


def delete_integration(tenant, integration_id) -> TenantIntegration:
    integration = _get_integration_or_404(tenant, integration_id)
    integration.status = TenantIntegration.Status.DISCONNECTED
    integration.save(update_fields=["status", "updated_at"])
    logger.info("Integration %s disconnected for tenant %s", integration.id, tenant.id)
    return integration


def test_connection(tenant, integration_id) -> dict:
    integration = _get_integration_or_404(tenant, integration_id)
    result = _run_connection_test(integration.provider, integration.config)

    if integration.status != TenantIntegration.Status.DISCONNECTED:
        if result.get("success"):
            integration.status = TenantIntegration.Status.CONNECTED
            integration.last_error = ""
        else:
            integration.status = TenantIntegration.Status.ERROR
            integration.last_error = result.get("message") or ""
        integration.save(update_fields=["status", "last_error", "updated_at"])
    return result


def trigger_sync(tenant, integration_id, job_type: str) -> IntegrationSyncJob:
    if job_type not in IntegrationSyncJob.JobType.values:
        raise ValidationError(f"Unknown job type: {job_type}")
    integration = _get_integration_or_404(tenant, integration_id)
    if integration.status != TenantIntegration.Status.CONNECTED:
        raise ValidationError("Only connected integrations can be synchronised.")

    job = IntegrationSyncJob.objects.create(
        tenant=tenant,
        integration=integration,
        job_type=job_type,
        status=IntegrationSyncJob.Status.PENDING,
    )
    logger.info("Sync job %s (%s) queued for integration %s", job.id, job_type, integration.id)
    return job
