from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import NotFoundError, ValidationError
from core.models import AuditLog, ClientCompany, Tenant, TenantMembership, TenantRole

from . import services
from .connectors import get_connector
from .models import IntegrationProvider, IntegrationSyncJob, TenantIntegration

User = get_user_model()


class MaskConfigTests(TestCase):
    def test_masks_secrets_at_any_depth(self):
        config = {
            "apiKey": "abc",
            "endpoint": "https://example.test",
            "auth": {"password": "pw", "username": "u", "nested": [{"token": "t"}]},
            "secret": "",
        }
        self.assertEqual(
            services.mask_config(config),
            {
                "apiKey": "***",
                "endpoint": "https://example.test",
                "auth": {"password": "***", "username": "u", "nested": [{"token": "***"}]},
                "secret": "",
            },
        )
        self.assertEqual(config["apiKey"], "abc")

    def test_masks_client_secrets_in_any_casing(self):
        masked = services.mask_config(
            {"client_id": "cid", "client_secret": "s1", "clientSecret": "s2", "X-Access-Token": "t", "tokenUrl": "u"}
        )
        self.assertEqual(
            masked,
            {"client_id": "cid", "client_secret": "***", "clientSecret": "***", "X-Access-Token": "***", "tokenUrl": "u"},
        )


class ConnectorTests(TestCase):
    def test_registry(self):
        self.assertIsNone(get_connector("unknown"))
        self.assertTrue(get_connector("mock").test_connection({"api_key": "k"})["success"])
        self.assertFalse(get_connector("mock").test_connection({"api_key": "  "})["success"])
        result = get_connector("mock_bank").test_connection({"client_id": "x"})
        self.assertFalse(result["success"])
        self.assertIn("client_secret", result["message"])


class IntegrationServiceTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")
        self.provider = IntegrationProvider.objects.get(code="mock_accounting")

    def _create(self, **overrides):
        data = {
            "provider_id": self.provider.id,
            "client_company_id": self.company.id,
            "config": {"api_key": "secret-key"},
        }
        data.update(overrides)
        return services.create_integration(self.tenant, data)

    def test_default_providers_are_seeded(self):
        codes = set(services.list_providers().values_list("code", flat=True))
        self.assertTrue({"mock_accounting", "mock_bank"} <= codes)
        self.assertEqual([p.code for p in services.list_providers(type="bank")], ["mock_bank"])

    def test_create_connects_after_successful_test(self):
        integration = self._create()
        self.assertEqual(integration.status, TenantIntegration.Status.CONNECTED)
        self.assertEqual(integration.display_name, self.provider.name)

    def test_create_rejects_failed_test(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create(config={})
        self.assertEqual(ctx.exception.error_code, "CONNECTION_FAILED")
        self.assertFalse(TenantIntegration.objects.exists())

    def test_inactive_provider(self):
        self.provider.is_active = False
        self.provider.save()
        with self.assertRaises(NotFoundError):
            self._create()

    def test_company_must_belong_to_tenant(self):
        other = Tenant.objects.create(name="Other", slug="other")
        foreign = ClientCompany.objects.create(tenant=other, name="X", tax_number="9")
        with self.assertRaises(NotFoundError):
            self._create(client_company_id=foreign.id)

    def test_unknown_connector_key(self):
        provider = IntegrationProvider.objects.create(
            code="legacy", name="Legacy", type=IntegrationProvider.Type.ACCOUNTING, connector_key="nope"
        )
        with self.assertRaises(ValidationError):
            self._create(provider_id=provider.id)

    def test_config_change_is_retested(self):
        integration = self._create()
        with self.assertRaises(ValidationError):
            services.update_integration(self.tenant, integration.id, {"config": {"api_key": ""}})
        updated = services.update_integration(
            self.tenant, integration.id, {"config": {"api_key": "new"}, "display_name": "Muhasebe"}
        )
        self.assertEqual(updated.config, {"api_key": "new"})
        self.assertEqual(updated.display_name, "Muhasebe")

    def test_connection_test_records_errors(self):
        integration = self._create()
        TenantIntegration.objects.filter(id=integration.id).update(config={})
        result = services.test_connection(self.tenant, integration.id)
        self.assertFalse(result["success"])
        integration.refresh_from_db()
        self.assertEqual(integration.status, TenantIntegration.Status.ERROR)
        self.assertTrue(integration.last_error)

    def test_sync_requires_connected_integration(self):
        integration = self._create()
        job = services.trigger_sync(self.tenant, integration.id, IntegrationSyncJob.JobType.PULL_INVOICES)
        self.assertEqual(job.status, IntegrationSyncJob.Status.PENDING)
        self.assertEqual(job.tenant, self.tenant)

        services.delete_integration(self.tenant, integration.id)
        integration.refresh_from_db()
        self.assertEqual(integration.status, TenantIntegration.Status.DISCONNECTED)
        with self.assertRaises(ValidationError):
            services.trigger_sync(self.tenant, integration.id, IntegrationSyncJob.JobType.PULL_INVOICES)

    def test_other_tenant_cannot_see_integration(self):
        integration = self._create()
        other = Tenant.objects.create(name="Other", slug="other")
        with self.assertRaises(NotFoundError):
            services.get_integration(other, integration.id)
        self.assertEqual(services.list_integrations(other).count(), 0)


class IntegrationApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="owner", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.OWNER)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def test_bank_credentials_are_masked(self):
        response = self.client.post(
            "/api/v1/integrations/",
            {"provider_code": "mock_bank", "config": {"client_id": "cid", "client_secret": "TOPSECRET"}},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["config"], {"client_id": "cid", "client_secret": "***"})
        self.assertNotIn(b"TOPSECRET", self.client.get("/api/v1/integrations/").content)

    def test_connect_list_and_sync(self):
        response = self.client.post(
            "/api/v1/integrations/",
            {"provider_code": "mock_accounting", "client_company_id": self.company.id, "config": {"apiKey": "k"}},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()["data"]
        self.assertEqual(body["config"], {"apiKey": "***"})
        self.assertTrue(AuditLog.objects.filter(action="create", resource_type="integrations.tenantintegration").exists())

        listing = self.client.get(f"/api/v1/integrations/?client_company_id={self.company.id}").json()["data"]
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]["config"], {"apiKey": "***"})

        response = self.client.post(f"/api/v1/integrations/{body['id']}/test/")
        self.assertTrue(response.json()["data"]["success"])

        response = self.client.post(
            f"/api/v1/integrations/{body['id']}/sync/", {"job_type": "pull_invoices"}, format="json"
        )
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["data"]["status"], "pending")

    def test_staff_cannot_manage_integrations(self):
        TenantMembership.objects.filter(user=self.user).update(role=TenantRole.STAFF)
        self.assertEqual(self.client.get("/api/v1/integrations/providers/").status_code, 200)
        response = self.client.post(
            "/api/v1/integrations/",
            {"provider_code": "mock_accounting", "config": {"apiKey": "k"}},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_provider_is_required(self):
        response = self.client.post("/api/v1/integrations/", {"config": {"apiKey": "k"}}, format="json")
        self.assertEqual(response.status_code, 400)
