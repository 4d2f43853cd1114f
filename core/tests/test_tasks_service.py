from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Task, Tenant, TenantMembership, TenantRole
from core.services import tasks
from notifications.models import Notification

User = get_user_model()


class TaskServiceTests(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pass")
        self.staff = User.objects.create_user(username="staff", password="pass")
        self.outsider = User.objects.create_user(username="outsider", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.owner, tenant=self.tenant, role=TenantRole.OWNER)
        TenantMembership.objects.create(user=self.staff, tenant=self.tenant, role=TenantRole.STAFF)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")

    def test_create_requires_title(self):
        with self.assertRaises(ValidationError):
            tasks.create_task(self.tenant, self.owner, {"title": "  "})

    def test_assignee_must_be_member(self):
        with self.assertRaises(ValidationError):
            tasks.create_task(self.tenant, self.owner, {"title": "KDV", "assignee_id": self.outsider.id})

    def test_company_from_other_tenant_is_not_found(self):
        other = Tenant.objects.create(name="Other", slug="other")
        foreign = ClientCompany.objects.create(tenant=other, name="X", tax_number="9")
        with self.assertRaises(NotFoundError):
            tasks.create_task(self.tenant, self.owner, {"title": "KDV", "client_company_id": foreign.id})

    def test_assignment_notifies_assignee(self):
        task = tasks.create_task(
            self.tenant,
            self.owner,
            {"title": "Beyanname", "assignee_id": self.staff.id, "client_company_id": self.company.id},
        )
        self.assertEqual(task.created_by, self.owner)
        notification = Notification.objects.get(user=self.staff)
        self.assertEqual(notification.meta["task_id"], task.id)

    def test_completion_sets_and_clears_completed_at(self):
        task = tasks.create_task(self.tenant, self.owner, {"title": "Mizan"})
        self.assertIsNone(task.completed_at)

        task = tasks.update_task(self.tenant, self.owner, task.id, {"status": Task.Status.COMPLETED})
        self.assertIsNotNone(task.completed_at)

        task = tasks.update_task(self.tenant, self.owner, task.id, {"status": Task.Status.IN_PROGRESS})
        self.assertIsNone(task.completed_at)

    def test_completed_task_cannot_be_deleted(self):
        task = tasks.create_task(self.tenant, self.owner, {"title": "Mizan", "status": Task.Status.COMPLETED})
        with self.assertRaises(ValidationError):
            tasks.delete_task(self.tenant, task.id)
        open_task = tasks.create_task(self.tenant, self.owner, {"title": "Open"})
        tasks.delete_task(self.tenant, open_task.id)
        self.assertFalse(Task.objects.filter(id=open_task.id).exists())

    def test_list_orders_by_priority_then_due_date(self):
        now = timezone.now()
        low = tasks.create_task(self.tenant, self.owner, {"title": "low", "priority": "low"})
        late_high = tasks.create_task(
            self.tenant, self.owner, {"title": "late", "priority": "high", "due_date": now + timedelta(days=5)}
        )
        early_high = tasks.create_task(
            self.tenant, self.owner, {"title": "early", "priority": "high", "due_date": now + timedelta(days=1)}
        )
        ids = [t.id for t in tasks.list_tasks(self.tenant)["data"]]
        self.assertEqual(ids, [early_high.id, late_high.id, low.id])

    def test_overdue_filter_and_statistics(self):
        past = timezone.now() - timedelta(days=2)
        overdue = tasks.create_task(self.tenant, self.owner, {"title": "late", "due_date": past})
        tasks.create_task(self.tenant, self.owner, {"title": "done", "due_date": past, "status": "completed"})
        tasks.create_task(self.tenant, self.owner, {"title": "later", "priority": "high"})

        listed = tasks.list_tasks(self.tenant, overdue=True)["data"]
        self.assertEqual([t.id for t in listed], [overdue.id])
        self.assertTrue(listed[0].is_overdue)

        stats = tasks.get_task_statistics(self.tenant)
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["completed"], 1)
        self.assertEqual(stats["overdue"], 1)
        self.assertEqual(stats["by_priority"], {"low": 0, "medium": 2, "high": 1})

    def test_due_date_change_to_past_warns_assignee(self):
        task = tasks.create_task(self.tenant, self.owner, {"title": "KDV", "assignee_id": self.staff.id})
        tasks.update_task(
            self.tenant, self.owner, task.id, {"due_date": timezone.now() - timedelta(hours=1)}
        )
        titles = list(Notification.objects.filter(user=self.staff).values_list("title", flat=True))
        self.assertIn("Task overdue", titles)


class TaskApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="acct", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.STAFF)
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def test_create_list_and_statistics(self):
        response = self.client.post("/api/v1/tasks/", {"title": "Ba-Bs formu", "priority": "high"}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["priority"], "high")

        listing = self.client.get("/api/v1/tasks/?priority=high").json()
        self.assertEqual(listing["meta"]["total"], 1)

        stats = self.client.get("/api/v1/tasks/statistics/").json()["data"]
        self.assertEqual(stats["pending"], 1)

    def test_bad_integer_filter_is_validation_error(self):
        response = self.client.get("/api/v1/tasks/?assignee_id=abc")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")
