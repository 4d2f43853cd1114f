from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.audit import log_action
from core.exceptions import NotFoundError, ValidationError
from core.models import AuditLog, Tenant, TenantMembership, TenantRole

from . import services
from .models import DataBreach, DataSubjectRequest, UserConsent

User = get_user_model()


class KvkkFixtureMixin:
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.owner = User.objects.create_user(username="owner", password="pass", email="owner@example.com")
        TenantMembership.objects.create(user=self.owner, tenant=self.tenant, role=TenantRole.OWNER)
        self.staff = User.objects.create_user(
            username="staff", password="pass", email="staff@example.com", first_name="Ayse", last_name="Kaya"
        )
        self.staff_membership = TenantMembership.objects.create(
            user=self.staff, tenant=self.tenant, role=TenantRole.STAFF
        )


class ConsentServiceTests(KvkkFixtureMixin, TestCase):
    def test_record_consent_upserts(self):
        services.record_consent(self.staff, "marketing", True, ip_address="10.0.0.1")
        consent = services.record_consent(self.staff, "marketing", False)

        self.assertEqual(UserConsent.objects.filter(user=self.staff).count(), 1)
        self.assertFalse(consent.granted)
        self.assertIsNone(consent.granted_at)
        self.assertIsNotNone(consent.revoked_at)

    def test_unknown_consent_type(self):
        with self.assertRaises(ValidationError):
            services.record_consent(self.staff, "profiling", True)

    def test_consent_status(self):
        empty = services.get_consent_status(self.staff)
        self.assertFalse(any(empty[key] for key in ("data_processing", "marketing", "analytics", "third_party")))
        self.assertIsNone(empty["last_updated"])

        services.record_consent(self.staff, "data_processing", True)
        services.record_consent(self.staff, "analytics", False)
        status = services.get_consent_status(self.staff)
        self.assertTrue(status["data_processing"])
        self.assertFalse(status["analytics"])
        self.assertIsNotNone(status["last_updated"])

    def test_tenant_user_lookup(self):
        other = Tenant.objects.create(name="Other", slug="other")
        self.assertEqual(services.get_tenant_user(self.tenant, self.staff.id), self.staff)
        with self.assertRaises(NotFoundError):
            services.get_tenant_user(other, self.staff.id)


class DataSubjectRequestTests(KvkkFixtureMixin, TestCase):
    def test_access_request_exports_personal_data(self):
        services.record_consent(self.staff, "marketing", True)
        request = services.request_data_access(self.tenant, self.staff, requested_by=self.owner)

        self.assertEqual(request.status, DataSubjectRequest.Status.COMPLETED)
        self.assertIsNotNone(request.completed_at)
        self.assertEqual(request.data["personal_info"]["email"], "staff@example.com")
        self.assertEqual(request.data["personal_info"]["full_name"], "Ayse Kaya")
        self.assertEqual(request.data["memberships"][0]["role"], TenantRole.STAFF)
        self.assertEqual(request.data["consents"][0]["consent_type"], "marketing")

    def test_deletion_rejected_with_active_membership(self):
        with self.assertRaises(ValidationError) as ctx:
            services.request_data_deletion(self.tenant, self.staff)
        self.assertEqual(ctx.exception.error_code, "ACTIVE_MEMBERSHIP")
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.email, "staff@example.com")
        self.assertFalse(DataSubjectRequest.objects.exists())

    def test_deletion_anonymizes_user(self):
        self.staff_membership.status = TenantMembership.Status.SUSPENDED
        self.staff_membership.save()
        services.record_consent(self.staff, "marketing", True)

        request = services.request_data_deletion(self.tenant, self.staff, requested_by=self.owner)

        self.staff.refresh_from_db()
        self.assertEqual(request.status, DataSubjectRequest.Status.COMPLETED)
        self.assertEqual(self.staff.email, f"deleted-{self.staff.id}@deleted.local")
        self.assertEqual(self.staff.get_full_name(), "Deleted User")
        self.assertFalse(self.staff.is_active)
        self.assertFalse(self.staff.has_usable_password())
        self.assertFalse(UserConsent.objects.filter(user=self.staff).exists())


class BreachAndRetentionTests(KvkkFixtureMixin, TestCase):
    def test_high_severity_breach_is_reported(self):
        with self.assertLogs("kvkk.services", level="WARNING"):
            breach = services.record_breach(self.tenant, "Leaked export", 120, "critical")
        self.assertEqual(breach.status, DataBreach.Status.REPORTED)
        self.assertIsNotNone(breach.reported_at)

    def test_low_severity_breach_is_detected(self):
        breach = services.record_breach(self.tenant, "Misdirected email", 1, "low")
        self.assertEqual(breach.status, DataBreach.Status.DETECTED)
        self.assertIsNone(breach.reported_at)

    def test_invalid_breach_input(self):
        with self.assertRaises(ValidationError):
            services.record_breach(self.tenant, "x", 1, "catastrophic")
        with self.assertRaises(ValidationError):
            services.record_breach(self.tenant, "x", -1, "low")

    def test_retention_check(self):
        self.assertEqual(services.check_data_retention(self.tenant), {"compliant": True, "issues": []})

        old = timezone.now() - timedelta(days=365 * 11)
        self.staff.is_active = False
        self.staff.date_joined = old
        self.staff.save()
        consent = services.record_consent(self.owner, "analytics", True)
        UserConsent.objects.filter(pk=consent.pk).update(granted_at=timezone.now() - timedelta(days=365 * 3))

        result = services.check_data_retention(self.tenant)
        self.assertFalse(result["compliant"])
        kinds = {(issue["type"], issue["user_id"]) for issue in result["issues"]}
        self.assertEqual(
            kinds,
            {("retention_period_exceeded", self.staff.id), ("consent_expired", self.owner.id)},
        )

        only_owner = services.check_data_retention(self.tenant, user_id=self.owner.id)
        self.assertEqual([issue["type"] for issue in only_owner["issues"]], ["consent_expired"])

    def test_active_old_user_is_retained(self):
        self.staff.date_joined = timezone.now() - timedelta(days=365 * 11)
        self.staff.save()
        self.assertTrue(services.check_data_retention(self.tenant)["compliant"])

    def test_data_access_audit_log(self):
        log_action(self.tenant, self.owner, "read", metadata={"document_id": "1"})
        log_action(self.tenant, self.staff, "export")
        log_action(self.tenant, self.owner, "create")
        log_action(Tenant.objects.create(name="Other", slug="other"), self.owner, "read")

        entries = list(services.get_data_access_audit_log(self.tenant))
        self.assertEqual([e.action for e in entries], ["export", "read"])
        owner_only = list(services.get_data_access_audit_log(self.tenant, user_id=self.owner.id))
        self.assertEqual([e.action for e in owner_only], ["read"])

    def test_audit_log_is_capped(self):
        for _ in range(services.AUDIT_LOG_LIMIT + 5):
            log_action(self.tenant, self.owner, "read")
        self.assertEqual(len(services.get_data_access_audit_log(self.tenant)), services.AUDIT_LOG_LIMIT)


class KvkkApiTests(KvkkFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_user_records_own_consent(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post(
            "/api/v1/kvkk/consents/",
            {"consent_type": "marketing", "granted": True},
            format="json",
            REMOTE_ADDR="10.0.0.9",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["ip_address"], "10.0.0.9")
        self.assertTrue(AuditLog.objects.filter(action="update", resource_type="kvkk.userconsent").exists())

        status = self.client.get("/api/v1/kvkk/consents/").json()["data"]
        self.assertTrue(status["marketing"])

    def test_staff_cannot_read_other_users_consent(self):
        self.client.force_authenticate(self.staff)
        response = self.client.get(f"/api/v1/kvkk/consents/?user_id={self.owner.id}")
        self.assertEqual(response.status_code, 403)

    def test_owner_reads_staff_consent(self):
        services.record_consent(self.staff, "analytics", True)
        self.client.force_authenticate(self.owner)
        response = self.client.get(f"/api/v1/kvkk/consents/?user_id={self.staff.id}")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["analytics"])

    def test_invalid_consent_type(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post("/api/v1/kvkk/consents/", {"consent_type": "x", "granted": True}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_access_request(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post("/api/v1/kvkk/access-requests/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["status"], "completed")
        self.assertTrue(AuditLog.objects.filter(action="export", user=self.staff).exists())
        self.assertEqual(len(self.client.get("/api/v1/kvkk/access-requests/").json()["data"]), 1)

    def test_deletion_request_envelope(self):
        self.client.force_authenticate(self.owner)
        response = self.client.post("/api/v1/kvkk/deletion-requests/", {"user_id": self.staff.id}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "ACTIVE_MEMBERSHIP")

        self.staff_membership.status = TenantMembership.Status.SUSPENDED
        self.staff_membership.save()
        response = self.client.post("/api/v1/kvkk/deletion-requests/", {"user_id": self.staff.id}, format="json")
        self.assertEqual(response.status_code, 201)

    def test_accountant_cannot_delete_others(self):
        accountant = User.objects.create_user(username="acct", password="pass")
        TenantMembership.objects.create(user=accountant, tenant=self.tenant, role=TenantRole.ACCOUNTANT)
        self.client.force_authenticate(accountant)
        response = self.client.post("/api/v1/kvkk/deletion-requests/", {"user_id": self.staff.id}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_breach_register(self):
        self.client.force_authenticate(self.owner)
        response = self.client.post(
            "/api/v1/kvkk/breaches/",
            {"description": "Laptop stolen", "affected_users": 12, "severity": "high"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["status"], "reported")
        self.assertEqual(len(self.client.get("/api/v1/kvkk/breaches/").json()["data"]), 1)

        self.client.force_authenticate(self.staff)
        self.assertEqual(self.client.get("/api/v1/kvkk/breaches/").status_code, 403)

    def test_retention_and_audit_log_endpoints(self):
        log_action(self.tenant, self.staff, "read")
        self.client.force_authenticate(self.owner)
        retention = self.client.get("/api/v1/kvkk/retention-check/")
        self.assertEqual(retention.json()["data"]["compliant"], True)

        audit = self.client.get(f"/api/v1/kvkk/audit-log/?user_id={self.staff.id}")
        self.assertEqual(audit.status_code, 200)
        self.assertEqual(audit.json()["data"][0]["user_id"], self.staff.id)

        self.assertEqual(self.client.get("/api/v1/kvkk/audit-log/?user_id=abc").status_code, 400)
