from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import NotFoundError
from core.models import Tenant, TenantMembership, TenantRole

from . import services
from .models import Notification

User = get_user_model()


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", password="pass")
        self.bob = User.objects.create_user(username="bob", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")

    def test_broadcast_and_personal_visibility(self):
        services.create_notification(self.tenant, Notification.Type.SYSTEM, "All", "for everyone")
        services.create_notification(self.tenant, Notification.Type.SYSTEM, "Alice", "only alice", user=self.alice)

        alice_titles = [n.title for n in services.list_notifications(self.tenant, self.alice)["data"]]
        bob_titles = [n.title for n in services.list_notifications(self.tenant, self.bob)["data"]]
        self.assertCountEqual(alice_titles, ["All", "Alice"])
        self.assertEqual(bob_titles, ["All"])

    def test_cannot_read_someone_elses(self):
        notification = services.create_notification(
            self.tenant, Notification.Type.SYSTEM, "Alice", "only alice", user=self.alice
        )
        with self.assertRaises(NotFoundError):
            services.mark_as_read(self.tenant, self.bob, notification.id)

    def test_mark_all_and_unread_count(self):
        for i in range(3):
            services.create_notification(self.tenant, Notification.Type.RISK_ALERT, f"n{i}", "msg", user=self.alice)
        self.assertEqual(services.get_unread_count(self.tenant, self.alice), 3)
        self.assertEqual(services.mark_all_as_read(self.tenant, self.alice), 3)
        self.assertEqual(services.get_unread_count(self.tenant, self.alice), 0)

    def test_limit_is_capped(self):
        services.create_notification(self.tenant, Notification.Type.SYSTEM, "x", "y")
        result = services.list_notifications(self.tenant, self.alice, limit=1000)
        self.assertEqual(result["total"], 1)

    def test_filters(self):
        services.create_notification(self.tenant, Notification.Type.SYSTEM, "sys", "m")
        risk = services.create_notification(self.tenant, Notification.Type.RISK_ALERT, "risk", "m")
        services.mark_as_read(self.tenant, self.alice, risk.id)

        unread = services.list_notifications(self.tenant, self.alice, is_read=False)["data"]
        self.assertEqual([n.title for n in unread], ["sys"])
        by_type = services.list_notifications(self.tenant, self.alice, type=Notification.Type.RISK_ALERT)["data"]
        self.assertEqual([n.title for n in by_type], ["risk"])


class NotificationApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="viewer", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.READ_ONLY)
        self.client.force_authenticate(self.user)

    def test_read_only_member_can_mark_read(self):
        notification = services.create_notification(self.tenant, Notification.Type.SYSTEM, "Hello", "world")

        body = self.client.get("/api/v1/notifications/?is_read=false").json()
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(self.client.get("/api/v1/notifications/unread-count/").json()["data"]["count"], 1)

        response = self.client.post(f"/api/v1/notifications/{notification.id}/read/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["is_read"])

        response = self.client.post("/api/v1/notifications/read-all/")
        self.assertEqual(response.json()["data"]["updated"], 0)

    def test_bad_date_filter(self):
        response = self.client.get("/api/v1/notifications/?from=yesterday")
        self.assertEqual(response.status_code, 400)
