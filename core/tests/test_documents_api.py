from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from billing.plans import UsageMetric
from billing.services import UsageService
from core.models import AuditLog, ClientCompany, Document, DocumentRequirement, Tenant, TenantMembership, TenantRole

User = get_user_model()

IN_MEMORY_STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}


def pdf_upload(name="fatura.pdf", content=b"%PDF-1.4 test"):
    return SimpleUploadedFile(name, content, content_type="application/pdf")


@override_settings(STORAGES=IN_MEMORY_STORAGES)
class DocumentApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="staff", password="pass")
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.STAFF)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa", tax_number="1")
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def _upload(self, **extra):
        data = {"file": pdf_upload(), "client_company_id": self.company.id, "type": "invoice"}
        data.update(extra)
        return self.client.post("/api/v1/documents/", data, format="multipart")

    def test_upload_stores_file_under_tenant_prefix(self):
        response = self._upload()
        self.assertEqual(response.status_code, 201)
        body = response.json()["data"]
        self.assertEqual(body["original_filename"], "fatura.pdf")
        self.assertEqual(body["mime_type"], "application/pdf")
        self.assertEqual(body["risk_flag_count"], 0)

        document = Document.objects.get(id=body["id"])
        self.assertTrue(document.storage_path.startswith(f"tenants/{self.tenant.id}/documents/{document.id}/"))
        self.assertEqual(UsageService.get_used(self.tenant, UsageMetric.DOCUMENTS), 1)

    def test_rejects_unsupported_type(self):
        response = self.client.post(
            "/api/v1/documents/",
            {
                "file": SimpleUploadedFile("x.exe", b"MZ", content_type="application/x-msdownload"),
                "client_company_id": self.company.id,
            },
            format="multipart",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "UNSUPPORTED_FILE_TYPE")

    @override_settings(DOCUMENT_MAX_UPLOAD_BYTES=4)
    def test_rejects_large_file(self):
        response = self._upload()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "FILE_TOO_LARGE")

    def test_upload_fulfils_matching_requirement(self):
        requirement = DocumentRequirement.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            document_type=Document.Type.INVOICE,
            required_by_date=timezone.now() + timedelta(days=3),
        )
        body = self._upload().json()["data"]
        requirement.refresh_from_db()
        self.assertEqual(requirement.status, DocumentRequirement.Status.RECEIVED)
        self.assertEqual(requirement.received_document_id, body["id"])

    def test_download_and_soft_delete(self):
        document_id = self._upload().json()["data"]["id"]

        response = self.client.get(f"/api/v1/documents/{document_id}/download/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(b"".join(response.streaming_content), b"%PDF-1.4 test")
        self.assertIn("attachment", response["Content-Disposition"])
        self.assertTrue(AuditLog.objects.filter(action="read", metadata__document_id=str(document_id)).exists())

        self.assertEqual(self.client.delete(f"/api/v1/documents/{document_id}/").status_code, 204)
        document = Document.objects.get(id=document_id)
        self.assertTrue(document.is_deleted)
        self.assertIsNotNone(document.deleted_at)

        self.assertEqual(self.client.get(f"/api/v1/documents/{document_id}/").status_code, 404)
        self.assertEqual(self.client.get("/api/v1/documents/").json()["meta"]["total"], 0)

    def test_documents_are_tenant_scoped(self):
        document_id = self._upload().json()["data"]["id"]
        other_user = User.objects.create_user(username="other", password="pass")
        other_tenant = Tenant.objects.create(name="Other", slug="other")
        TenantMembership.objects.create(user=other_user, tenant=other_tenant, role=TenantRole.OWNER)

        client = APIClient()
        client.force_authenticate(other_user)
        self.assertEqual(client.get(f"/api/v1/documents/{document_id}/").status_code, 404)
        self.assertEqual(client.get(f"/api/v1/documents/{document_id}/download/").status_code, 404)

    def test_related_invoice_must_belong_to_company(self):
        response = self._upload(related_invoice_id=424242)
        self.assertEqual(response.status_code, 400)
