from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.exceptions import ValidationError
from core.models import CheckNote, ClientCompany, Tenant, TenantMembership, TenantRole
from core.services import check_notes

User = get_user_model()


class CheckNoteServiceTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")

    def _create(self, **overrides):
        data = {
            "client_company_id": self.company.id,
            "type": CheckNote.Type.CHECK,
            "direction": CheckNote.Direction.RECEIVABLE,
            "document_number": "CK-001",
            "amount": Decimal("5000.00"),
            "issue_date": date(2025, 1, 1),
            "due_date": timezone.localdate() + timedelta(days=3),
        }
        data.update(overrides)
        return check_notes.create_check_note(self.tenant, data)

    def test_amount_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self._create(amount=Decimal("0"))

    def test_collection_path(self):
        note = self._create()
        note = check_notes.update_status(self.tenant, note.id, CheckNote.Status.SENT_FOR_COLLECTION)
        note = check_notes.update_status(
            self.tenant, note.id, CheckNote.Status.COLLECTED, on_date=date(2025, 2, 1)
        )
        self.assertEqual(note.collected_date, date(2025, 2, 1))

        with self.assertRaises(ValidationError) as ctx:
            check_notes.update_status(self.tenant, note.id, CheckNote.Status.IN_PORTFOLIO)
        self.assertEqual(ctx.exception.error_code, "INVALID_STATUS_TRANSITION")

    def test_bounced_can_return_to_portfolio(self):
        note = self._create()
        check_notes.update_status(self.tenant, note.id, CheckNote.Status.SENT_FOR_COLLECTION)
        note = check_notes.update_status(self.tenant, note.id, CheckNote.Status.BOUNCED)
        self.assertEqual(note.bounced_date, timezone.localdate())
        note = check_notes.update_status(self.tenant, note.id, CheckNote.Status.IN_PORTFOLIO)
        self.assertEqual(note.status, CheckNote.Status.IN_PORTFOLIO)

    def test_portfolio_cannot_be_collected_directly(self):
        note = self._create()
        self.assertFalse(check_notes.can_transition(note.status, CheckNote.Status.COLLECTED))
        with self.assertRaises(ValidationError):
            check_notes.update_status(self.tenant, note.id, CheckNote.Status.COLLECTED)

    def test_endorse_requires_target(self):
        note = self._create()
        with self.assertRaises(ValidationError):
            check_notes.update_status(self.tenant, note.id, CheckNote.Status.ENDORSED)
        note = check_notes.endorse(self.tenant, note.id, "Beta AS")
        self.assertEqual(note.status, CheckNote.Status.ENDORSED)
        self.assertEqual(note.endorsed_to, "Beta AS")
        self.assertEqual(note.endorsed_date, timezone.localdate())

    def test_dashboard_upcoming_and_overdue(self):
        today = timezone.localdate()
        soon = self._create(document_number="A", due_date=today + timedelta(days=2))
        late = self._create(document_number="B", due_date=today - timedelta(days=1), amount=Decimal("100"))
        self._create(
            document_number="C",
            direction=CheckNote.Direction.PAYABLE,
            due_date=today + timedelta(days=30),
            amount=Decimal("250"),
        )
        done = self._create(document_number="D")
        check_notes.update_status(self.tenant, done.id, CheckNote.Status.SENT_FOR_COLLECTION)
        check_notes.update_status(self.tenant, done.id, CheckNote.Status.COLLECTED)

        stats = check_notes.get_dashboard_stats(self.tenant)
        self.assertEqual(stats["in_portfolio"], 3)
        self.assertEqual(stats["collected"], 1)
        self.assertEqual(stats["overdue_count"], 1)
        self.assertEqual(stats["total_receivable"], Decimal("5100.00"))
        self.assertEqual(stats["total_payable"], Decimal("250.00"))

        self.assertEqual([n.id for n in check_notes.get_upcoming_due(self.tenant, days=7)], [soon.id])
        self.assertEqual([n.id for n in check_notes.get_overdue(self.tenant)], [late.id])


class CheckNoteApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="acct", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.ACCOUNTANT)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def test_create_and_transition(self):
        response = self.client.post(
            "/api/v1/check-notes/",
            {
                "client_company_id": self.company.id,
                "type": "promissory_note",
                "direction": "payable",
                "document_number": "SN-9",
                "amount": "750.00",
                "issue_date": "2025-01-01",
                "due_date": "2025-06-01",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        note_id = response.json()["data"]["id"]

        response = self.client.post(
            f"/api/v1/check-notes/{note_id}/endorse/", {"endorsed_to": "Gamma Ltd"}, format="json"
        )
        self.assertEqual(response.json()["data"]["status"], "endorsed")

        response = self.client.patch(
            f"/api/v1/check-notes/{note_id}/status/", {"status": "in_portfolio"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_STATUS_TRANSITION")

        dashboard = self.client.get("/api/v1/check-notes/dashboard/").json()["data"]
        self.assertEqual(dashboard["in_portfolio"], 0)
