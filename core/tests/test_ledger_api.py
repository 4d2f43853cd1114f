from datetime import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.exceptions import NotFoundError
from core.models import ClientCompany, LedgerAccount, Tenant, TenantMembership, TenantRole, Transaction, TransactionLine
from core.services import ledger

User = get_user_model()


class LedgerTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1111111111")
        self.cash = LedgerAccount.objects.create(
            tenant=self.tenant, client_company=self.company, code="100", name="Kasa"
        )
        self.sales = LedgerAccount.objects.create(
            tenant=self.tenant, client_company=self.company, code="600", name="Yurtici Satislar"
        )
        self.march = self._post(datetime(2025, 3, 10, 9), "Cash sale", "1000")
        self.april = self._post(datetime(2025, 4, 2, 9), "Service income", "250")

        self.client = APIClient()
        self.user = User.objects.create_user(username="viewer", password="pass")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.READ_ONLY)
        self.client.force_authenticate(self.user)

    def _post(self, when, description, amount):
        txn = Transaction.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            date=timezone.make_aware(when),
            description=description,
        )
        TransactionLine.objects.create(transaction=txn, account=self.cash, debit=Decimal(amount))
        TransactionLine.objects.create(transaction=txn, account=self.sales, credit=Decimal(amount))
        return txn

    def test_transaction_amount_sums_both_sides(self):
        self.assertEqual(ledger.transaction_amount(self.march), Decimal("2000"))

    def test_account_balances_by_prefix(self):
        balances = ledger.account_balances(self.tenant, self.company.id, "6")
        self.assertEqual(balances, {"debit": Decimal("0.00"), "credit": Decimal("1250.00")})

        march_only = ledger.account_balances(
            self.tenant,
            self.company.id,
            "6",
            date_from=timezone.make_aware(datetime(2025, 3, 1)),
            date_to=timezone.make_aware(datetime(2025, 4, 1)),
        )
        self.assertEqual(march_only["credit"], Decimal("1000.00"))

    def test_get_transaction_is_tenant_scoped(self):
        other = Tenant.objects.create(name="Other", slug="other")
        with self.assertRaises(NotFoundError):
            ledger.get_transaction(other, self.march.id)

    def test_list_endpoint_newest_first(self):
        response = self.client.get("/api/v1/ledger/transactions/")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([row["id"] for row in body["data"]], [self.april.id, self.march.id])
        self.assertEqual(body["meta"]["total"], 2)
        self.assertEqual(body["data"][0]["lines"][0]["account_code"], "100")

    def test_list_endpoint_search(self):
        response = self.client.get("/api/v1/ledger/transactions/?search=service")
        self.assertEqual([row["id"] for row in response.json()["data"]], [self.april.id])

    def test_retrieve_endpoint(self):
        response = self.client.get(f"/api/v1/ledger/transactions/{self.march.id}/")
        self.assertEqual(response.json()["data"]["description"], "Cash sale")
        self.assertEqual(self.client.get("/api/v1/ledger/transactions/999999/").status_code, 404)
