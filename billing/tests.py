from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import LimitExceededError, ValidationError
from core.models import ClientCompany, Tenant, TenantMembership, TenantRole

from .models import TenantSubscription, TenantUsage
from .plans import Plan, UsageMetric, get_plan_limits
from .services import SubscriptionService, UsageService, current_period

User = get_user_model()


class SubscriptionServiceTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")

    def test_new_tenant_starts_on_free(self):
        subscription = TenantSubscription.objects.get(tenant=self.tenant)
        self.assertEqual(subscription.plan, Plan.FREE)
        self.assertEqual(subscription.status, TenantSubscription.Status.ACTIVE)

    def test_unknown_plan_is_rejected(self):
        with self.assertRaises(ValidationError):
            SubscriptionService.update_tenant_plan(self.tenant, plan="GOLD")

    def test_unknown_plan_name_falls_back_to_free_limits(self):
        self.assertEqual(get_plan_limits("GOLD"), get_plan_limits(Plan.FREE))

    def test_plan_change_updates_limits(self):
        SubscriptionService.update_tenant_plan(self.tenant, plan=Plan.PRO)
        self.assertEqual(SubscriptionService.get_limits(self.tenant).max_client_companies, 50)


class UsageServiceTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")

    def test_increment_is_per_period(self):
        UsageService.increment_usage(self.tenant, UsageMetric.DOCUMENTS)
        row = UsageService.increment_usage(self.tenant, UsageMetric.DOCUMENTS, amount=2)
        self.assertEqual(row.value, 3)
        start, end = current_period()
        self.assertEqual(row.period_start, start)
        self.assertEqual(row.period_end, end)
        self.assertEqual(TenantUsage.objects.count(), 1)

    def test_unknown_metric(self):
        with self.assertRaises(ValidationError):
            UsageService.increment_usage(self.tenant, "PAGES")

    def test_client_companies_counted_live(self):
        ClientCompany.objects.create(tenant=self.tenant, name="A", tax_number="1")
        ClientCompany.objects.create(tenant=self.tenant, name="B", tax_number="2")
        result = UsageService.check_limit(self.tenant, UsageMetric.CLIENT_COMPANIES)
        self.assertEqual(result, {"allowed": True, "used": 2, "limit": 3, "remaining": 1})

    def test_document_limit(self):
        UsageService.increment_usage(self.tenant, UsageMetric.DOCUMENTS, amount=100)
        with self.assertRaises(LimitExceededError):
            UsageService.ensure_within_limit(self.tenant, UsageMetric.DOCUMENTS)

        SubscriptionService.update_tenant_plan(self.tenant, plan=Plan.ENTERPRISE)
        UsageService.ensure_within_limit(self.tenant, UsageMetric.DOCUMENTS)

    def test_usage_summary_covers_every_metric(self):
        usage = UsageService.get_usage_for_tenant(self.tenant)
        self.assertEqual(set(usage), set(UsageMetric.ALL))
        self.assertEqual(usage[UsageMetric.USERS]["used"], 0)


class BillingApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = User.objects.create_user(username="owner", password="pass")
        self.staff = User.objects.create_user(username="staff", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.owner, tenant=self.tenant, role=TenantRole.OWNER)
        TenantMembership.objects.create(user=self.staff, tenant=self.tenant, role=TenantRole.STAFF)

    def test_owner_sees_limits_and_changes_plan(self):
        self.client.force_authenticate(self.owner)
        body = self.client.get("/api/v1/billing/subscription").json()["data"]
        self.assertEqual(body["plan"], "FREE")
        self.assertEqual(body["limits"]["max_client_companies"], 3)

        response = self.client.put("/api/v1/billing/subscription", {"plan": "PRO"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["plan"], "PRO")

    def test_staff_cannot_see_limits_or_change_plan(self):
        self.client.force_authenticate(self.staff)
        body = self.client.get("/api/v1/billing/subscription").json()["data"]
        self.assertNotIn("limits", body)

        response = self.client.put("/api/v1/billing/subscription", {"plan": "PRO"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_usage_endpoint(self):
        self.client.force_authenticate(self.staff)
        body = self.client.get("/api/v1/billing/usage").json()["data"]
        self.assertEqual(body["USERS"]["used"], 2)
        self.assertEqual(body["USERS"]["limit"], 3)
