"""
Tenant resolution, role checks and the error envelope.
"""
from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog, ClientCompany, Tenant, TenantMembership, TenantRole

User = get_user_model()


class TenantResolutionTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="acct", email="acct@example.com", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis A", slug="ofis-a")
        self.other_tenant = Tenant.objects.create(name="Ofis B", slug="ofis-b")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.ACCOUNTANT)
        ClientCompany.objects.create(tenant=self.tenant, name="Alfa Ltd", tax_number="1111111111")
        ClientCompany.objects.create(tenant=self.other_tenant, name="Beta AS", tax_number="2222222222")
        self.client.force_authenticate(self.user)

    def test_single_membership_is_used_without_header(self):
        response = self.client.get("/api/v1/client-companies/")
        self.assertEqual(response.status_code, 200)
        names = [c["name"] for c in response.json()["data"]]
        self.assertEqual(names, ["Alfa Ltd"])

    def test_header_for_foreign_tenant_is_rejected(self):
        response = self.client.get("/api/v1/client-companies/", HTTP_X_TENANT_ID=str(self.other_tenant.id))
        self.assertEqual(response.status_code, 403)
        self.assertIn("error", response.json())

    def test_ambiguous_membership_requires_header(self):
        TenantMembership.objects.create(user=self.user, tenant=self.other_tenant, role=TenantRole.STAFF)
        self.assertEqual(self.client.get("/api/v1/client-companies/").status_code, 403)

        response = self.client.get("/api/v1/client-companies/", HTTP_X_TENANT_ID=str(self.other_tenant.id))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c["name"] for c in response.json()["data"]], ["Beta AS"])

    def test_suspended_membership_has_no_access(self):
        TenantMembership.objects.filter(user=self.user).update(status=TenantMembership.Status.SUSPENDED)
        self.assertEqual(self.client.get("/api/v1/client-companies/").status_code, 403)

    def test_read_only_member_cannot_write(self):
        TenantMembership.objects.filter(user=self.user).update(role=TenantRole.READ_ONLY)
        self.assertEqual(self.client.get("/api/v1/client-companies/").status_code, 200)
        response = self.client.post(
            "/api/v1/client-companies/",
            {"name": "Gamma", "tax_number": "3333333333"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_anonymous_request_is_rejected(self):
        self.client.force_authenticate(None)
        self.assertIn(self.client.get("/api/v1/client-companies/").status_code, (401, 403))

    def test_not_found_uses_error_envelope(self):
        foreign = ClientCompany.objects.get(tenant=self.other_tenant)
        response = self.client.get(f"/api/v1/client-companies/{foreign.id}/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_non_numeric_id_is_not_found(self):
        for path in ("client-companies", "invoices", "tasks", "documents", "check-notes", "ledger/transactions"):
            response = self.client.get(f"/api/v1/{path}/abc/")
            self.assertEqual(response.status_code, 404, path)
            self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")
        response = self.client.get("/api/v1/invoices/abc/duplicates/")
        self.assertEqual(response.status_code, 404)

    def test_writes_are_audited(self):
        response = self.client.post(
            "/api/v1/client-companies/",
            {"name": "Gamma", "tax_number": "3333333333"},
            format="json",
            REMOTE_ADDR="10.0.0.5",
        )
        self.assertEqual(response.status_code, 201)
        entry = AuditLog.objects.get(action="create")
        self.assertEqual(entry.tenant, self.tenant)
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.resource_type, "core.clientcompany")
        self.assertEqual(entry.ip_address, "10.0.0.5")


class HealthCheckTests(TestCase):
    def test_health_reports_database(self):
        response = self.client.get("/api/v1/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "database": "ok"})
