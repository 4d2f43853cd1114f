from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Invoice, Tenant, TenantMembership, TenantRole
from core.services import invoices
from risk.models import RiskAlert

User = get_user_model()


class InvoiceServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username="acct", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")

    def _payload(self, **overrides):
        payload = {
            "client_company_id": self.company.id,
            "external_id": "ABC2025000001",
            "type": "purchase",
            "issue_date": date(2025, 3, 10),
            "counterparty_name": "Tedarik AS",
            "total_amount": Decimal("1180.00"),
            "tax_amount": Decimal("180.00"),
            "lines": [
                {"description": "Hizmet", "line_total": Decimal("1000.00")},
                {"description": "Malzeme", "line_total": Decimal("180.00")},
            ],
        }
        payload.update(overrides)
        return payload

    def test_create_with_lines(self):
        invoice = invoices.create_invoice(self.tenant, self.user, self._payload())
        self.assertEqual(invoice.status, Invoice.Status.DRAFT)
        self.assertEqual(invoice.currency, "TRY")
        self.assertEqual([line.line_number for line in invoice.lines.all()], [1, 2])

    def test_line_sum_must_match_total(self):
        with self.assertRaises(ValidationError) as ctx:
            invoices.create_invoice(self.tenant, self.user, self._payload(total_amount=Decimal("1200.00")))
        self.assertEqual(ctx.exception.error_code, "AMOUNT_MISMATCH")
        self.assertFalse(Invoice.objects.exists())

    def test_one_cent_tolerance(self):
        invoice = invoices.create_invoice(self.tenant, self.user, self._payload(total_amount=Decimal("1180.01")))
        self.assertEqual(invoice.total_amount, Decimal("1180.01"))

    def test_unknown_company_is_not_found(self):
        with self.assertRaises(NotFoundError):
            invoices.create_invoice(self.tenant, self.user, self._payload(client_company_id=999999))

    def test_locked_invoice_cannot_change(self):
        invoice = invoices.create_invoice(self.tenant, self.user, self._payload())
        invoices.update_invoice_status(self.tenant, self.user, invoice.id, Invoice.Status.POSTED)

        with self.assertRaises(ValidationError) as ctx:
            invoices.update_invoice(self.tenant, self.user, invoice.id, {"counterparty_name": "Baska"})
        self.assertEqual(ctx.exception.error_code, "INVOICE_LOCKED")
        with self.assertRaises(ValidationError):
            invoices.delete_invoice(self.tenant, invoice.id)

    def test_total_change_without_lines_is_checked(self):
        invoice = invoices.create_invoice(self.tenant, self.user, self._payload())
        with self.assertRaises(ValidationError) as ctx:
            invoices.update_invoice(self.tenant, self.user, invoice.id, {"total_amount": Decimal("500.00")})
        self.assertEqual(ctx.exception.error_code, "AMOUNT_MISMATCH")

        updated = invoices.update_invoice(
            self.tenant,
            self.user,
            invoice.id,
            {"total_amount": Decimal("500.00"), "lines": [{"line_total": Decimal("500.00")}]},
        )
        self.assertEqual(updated.lines.count(), 1)

    def test_duplicate_raises_alert(self):
        first = invoices.create_invoice(self.tenant, self.user, self._payload())
        self.assertFalse(RiskAlert.objects.exists())

        second = invoices.create_invoice(self.tenant, self.user, self._payload(total_amount=Decimal("1180.00")))
        self.assertEqual(invoices.check_invoice_duplicates(self.tenant, second), [first])
        alert = RiskAlert.objects.get(type=RiskAlert.Type.INVOICE_DUPLICATE)
        self.assertEqual(alert.client_company, self.company)

    def test_similar_invoices(self):
        base = invoices.create_invoice(self.tenant, self.user, self._payload(lines=[]))
        close = invoices.create_invoice(
            self.tenant,
            self.user,
            self._payload(
                external_id="ABC2025000002",
                counterparty_name="Tedarik A.S",
                issue_date=date(2025, 3, 20),
                total_amount=Decimal("1150.00"),
                lines=[],
            ),
        )
        invoices.create_invoice(
            self.tenant,
            self.user,
            self._payload(
                external_id="XYZ1",
                counterparty_name="Tamamen Farkli Ltd",
                issue_date=date(2024, 6, 1),
                total_amount=Decimal("90000.00"),
                lines=[],
            ),
        )
        matches = invoices.find_similar_invoices(self.tenant, base)
        self.assertEqual([m.invoice.id for m in matches], [close.id])
        self.assertGreaterEqual(matches[0].similarity, 0.8)

    def test_levenshtein(self):
        self.assertEqual(invoices.levenshtein_distance("kitten", "sitting"), 3)
        self.assertEqual(invoices.levenshtein_distance("", "abc"), 3)
        self.assertEqual(invoices.name_similarity("Alfa", "alfa"), 1.0)
        self.assertEqual(invoices.name_similarity("", ""), 1.0)


class InvoiceApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.user = User.objects.create_user(username="acct", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.ACCOUNTANT)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def test_create_then_lock(self):
        response = self.client.post(
            "/api/v1/invoices/",
            {
                "client_company_id": self.company.id,
                "external_id": "A1",
                "type": "sale",
                "issue_date": "2025-04-01",
                "total_amount": "100.00",
                "lines": [{"description": "Danismanlik", "line_total": "100.00"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()["data"]
        self.assertEqual(len(body["lines"]), 1)
        self.assertFalse(body["is_locked"])

        response = self.client.patch(f"/api/v1/invoices/{body['id']}/status/", {"status": "cancelled"}, format="json")
        self.assertTrue(response.json()["data"]["is_locked"])

        response = self.client.patch(f"/api/v1/invoices/{body['id']}/", {"counterparty_name": "X"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVOICE_LOCKED")

    def test_amount_mismatch_envelope(self):
        response = self.client.post(
            "/api/v1/invoices/",
            {
                "client_company_id": self.company.id,
                "type": "sale",
                "issue_date": "2025-04-01",
                "total_amount": "100.00",
                "lines": [{"line_total": "90.00"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "AMOUNT_MISMATCH")

    def test_list_filters(self):
        Invoice.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            type=Invoice.Type.SALE,
            issue_date=date(2025, 1, 5),
            total_amount=Decimal("10"),
            counterparty_name="Musteri",
        )
        Invoice.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            type=Invoice.Type.PURCHASE,
            issue_date=date(2025, 2, 5),
            total_amount=Decimal("20"),
        )
        body = self.client.get("/api/v1/invoices/?type=sale").json()
        self.assertEqual(body["meta"]["total"], 1)
        self.assertNotIn("lines", body["data"][0])

        body = self.client.get("/api/v1/invoices/?issue_date_from=2025-02-01").json()
        self.assertEqual(body["meta"]["total"], 1)

        body = self.client.get("/api/v1/invoices/?search=muster").json()
        self.assertEqual(body["meta"]["total"], 1)
