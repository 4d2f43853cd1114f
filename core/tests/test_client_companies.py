from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from billing.services import SubscriptionService
from core.exceptions import LimitExceededError, NotFoundError, ValidationError
from core.models import ClientCompany, Document, Invoice, Tenant, TenantMembership, TenantRole
from core.services import client_companies

User = get_user_model()


class ClientCompanyServiceTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")

    def test_create_and_reject_duplicate_tax_number(self):
        company = client_companies.create_client_company(self.tenant, {"name": "Alfa", "tax_number": "1111111111"})
        self.assertEqual(company.tenant, self.tenant)
        with self.assertRaises(ValidationError) as ctx:
            client_companies.create_client_company(self.tenant, {"name": "Alfa 2", "tax_number": "1111111111"})
        self.assertEqual(ctx.exception.error_code, "DUPLICATE_TAX_NUMBER")

    def test_same_tax_number_allowed_in_another_tenant(self):
        other = Tenant.objects.create(name="Other", slug="other")
        client_companies.create_client_company(self.tenant, {"name": "Alfa", "tax_number": "1111111111"})
        company = client_companies.create_client_company(other, {"name": "Alfa", "tax_number": "1111111111"})
        self.assertEqual(company.tenant, other)

    def test_free_plan_limits_client_companies(self):
        for i in range(3):
            client_companies.create_client_company(self.tenant, {"name": f"C{i}", "tax_number": f"10{i}"})
        with self.assertRaises(LimitExceededError) as ctx:
            client_companies.create_client_company(self.tenant, {"name": "C4", "tax_number": "104"})
        self.assertEqual(ctx.exception.error_code, "USAGE_LIMIT_EXCEEDED")
        self.assertEqual(ctx.exception.details["limit"], 3)

        SubscriptionService.update_tenant_plan(self.tenant, plan="PRO")
        client_companies.create_client_company(self.tenant, {"name": "C4", "tax_number": "104"})
        self.assertEqual(ClientCompany.objects.filter(tenant=self.tenant).count(), 4)

    def test_update_checks_uniqueness(self):
        client_companies.create_client_company(self.tenant, {"name": "Alfa", "tax_number": "1"})
        beta = client_companies.create_client_company(self.tenant, {"name": "Beta", "tax_number": "2"})
        with self.assertRaises(ValidationError):
            client_companies.update_client_company(self.tenant, beta.id, {"tax_number": "1"})
        updated = client_companies.update_client_company(self.tenant, beta.id, {"sector": "Retail"})
        self.assertEqual(updated.sector, "Retail")

    def test_stats_and_search(self):
        company = client_companies.create_client_company(self.tenant, {"name": "Alfa Gida", "tax_number": "555"})
        Invoice.objects.create(
            tenant=self.tenant,
            client_company=company,
            type=Invoice.Type.SALE,
            issue_date=date(2025, 1, 1),
            total_amount=Decimal("10"),
        )
        Document.objects.create(
            tenant=self.tenant,
            client_company=company,
            original_filename="a.pdf",
            mime_type="application/pdf",
        )
        Document.objects.create(
            tenant=self.tenant,
            client_company=company,
            original_filename="b.pdf",
            mime_type="application/pdf",
            is_deleted=True,
        )
        result = client_companies.get_client_company(self.tenant, company.id)
        self.assertEqual(
            result["stats"],
            {"invoice_count": 1, "transaction_count": 0, "document_count": 1},
        )

        self.assertEqual(client_companies.list_client_companies(self.tenant, search="gida")["meta"]["total"], 1)
        self.assertEqual(client_companies.list_client_companies(self.tenant, search="555")["meta"]["total"], 1)
        self.assertEqual(client_companies.list_client_companies(self.tenant, is_active=False)["meta"]["total"], 0)

    def test_other_tenant_company_is_not_found(self):
        other = Tenant.objects.create(name="Other", slug="other")
        company = client_companies.create_client_company(other, {"name": "X", "tax_number": "9"})
        with self.assertRaises(NotFoundError):
            client_companies.delete_client_company(self.tenant, company.id)


class ClientCompanyApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="owner", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.OWNER)
        self.client.force_authenticate(self.user)

    def test_crud(self):
        response = self.client.post(
            "/api/v1/client-companies/",
            {"name": "Alfa", "tax_number": "1234567890", "legal_type": "LTD"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        company_id = response.json()["data"]["id"]

        detail = self.client.get(f"/api/v1/client-companies/{company_id}/").json()["data"]
        self.assertEqual(detail["stats"]["invoice_count"], 0)

        response = self.client.patch(f"/api/v1/client-companies/{company_id}/", {"is_active": False}, format="json")
        self.assertFalse(response.json()["data"]["is_active"])

        listing = self.client.get("/api/v1/client-companies/?is_active=false").json()
        self.assertEqual(listing["meta"]["total"], 1)

        self.assertEqual(self.client.delete(f"/api/v1/client-companies/{company_id}/").status_code, 204)
        self.assertFalse(ClientCompany.objects.filter(id=company_id).exists())

    def test_limit_error_envelope(self):
        for i in range(3):
            ClientCompany.objects.create(tenant=self.tenant, name=f"C{i}", tax_number=f"{i}")
        response = self.client.post(
            "/api/v1/client-companies/",
            {"name": "Too many", "tax_number": "99"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        error = response.json()["error"]
        self.assertEqual(error["code"], "USAGE_LIMIT_EXCEEDED")
        self.assertEqual(error["details"]["used"], 3)
