from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from core.exceptions import ValidationError
from core.models import ClientCompany, Document, DocumentRequirement, Tenant
from core.services import document_requirements
from notifications.models import Notification


class DocumentRequirementTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")

    def _create(self, days, document_type=Document.Type.BANK_STATEMENT):
        return document_requirements.create_requirement(
            self.tenant,
            {
                "client_company_id": self.company.id,
                "document_type": document_type,
                "required_by_date": timezone.now() + timedelta(days=days),
            },
        )

    def test_past_deadline_is_overdue_on_create(self):
        requirement = self._create(-2)
        self.assertEqual(requirement.status, DocumentRequirement.Status.OVERDUE)
        self.assertTrue(Notification.objects.filter(meta__document_requirement_id=requirement.id).exists())

    def test_invalid_document_type(self):
        with self.assertRaises(ValidationError):
            self._create(3, document_type="passport")

    def test_check_marks_pending_requirements_overdue(self):
        late = self._create(5)
        DocumentRequirement.objects.filter(id=late.id).update(required_by_date=timezone.now() - timedelta(hours=1))
        future = self._create(5)

        result = document_requirements.check_and_update_missing_documents(self.tenant)
        self.assertEqual(result, {"checked": 2, "marked_overdue": 1, "alerts_created": 1})

        late.refresh_from_db()
        future.refresh_from_db()
        self.assertEqual(late.status, DocumentRequirement.Status.OVERDUE)
        self.assertEqual(future.status, DocumentRequirement.Status.PENDING)

        again = document_requirements.check_and_update_missing_documents(self.tenant)
        self.assertEqual(again["marked_overdue"], 0)

    def test_receiving_document_fulfils(self):
        requirement = self._create(-1)
        document = Document.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            type=Document.Type.BANK_STATEMENT,
            original_filename="ekstre.pdf",
            mime_type="application/pdf",
        )
        updated = document_requirements.update_requirement(
            self.tenant, requirement.id, {"received_document_id": document.id}
        )
        self.assertEqual(updated.status, DocumentRequirement.Status.RECEIVED)
        self.assertEqual(updated.received_document, document)

    def test_document_of_other_company_is_rejected(self):
        requirement = self._create(2)
        other = ClientCompany.objects.create(tenant=self.tenant, name="Beta", tax_number="2")
        document = Document.objects.create(
            tenant=self.tenant,
            client_company=other,
            original_filename="x.pdf",
            mime_type="application/pdf",
        )
        with self.assertRaises(ValidationError):
            document_requirements.update_requirement(self.tenant, requirement.id, {"received_document_id": document.id})

    def test_overdue_listing(self):
        late = self._create(-1)
        self._create(4)
        listed = document_requirements.list_requirements(self.tenant, overdue=True)
        self.assertEqual([r.id for r in listed], [late.id])

    def test_management_command(self):
        requirement = self._create(3)
        DocumentRequirement.objects.filter(id=requirement.id).update(required_by_date=timezone.now() - timedelta(days=1))
        out = StringIO()
        call_command("check_document_requirements", stdout=out)
        requirement.refresh_from_db()
        self.assertEqual(requirement.status, DocumentRequirement.Status.OVERDUE)
        self.assertIn("1 marked overdue", out.getvalue())
