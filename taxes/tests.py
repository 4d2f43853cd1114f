from datetime import date, datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.exceptions import NotFoundError, ValidationError
from core.models import (
    ClientCompany,
    Invoice,
    InvoiceLine,
    LedgerAccount,
    Tenant,
    TenantMembership,
    TenantRole,
    Transaction,
    TransactionLine,
)

from . import reporting, vat
from .pdf import render_vat_return_pdf

User = get_user_model()


class TaxFixtureMixin:
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Ofis", slug="ofis")
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Alfa Ticaret", tax_number="1234567890")

    def make_invoice(self, type, issue_date, lines, tax_amount=None, status=Invoice.Status.ISSUED, external_id=""):
        total = sum((Decimal(l[0]) + Decimal(l[2]) for l in lines), Decimal("0"))
        vat_total = sum((Decimal(l[2]) for l in lines), Decimal("0"))
        invoice = Invoice.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            external_id=external_id,
            type=type,
            issue_date=issue_date,
            total_amount=total,
            tax_amount=vat_total if tax_amount is None else Decimal(tax_amount),
            status=status,
        )
        for number, (line_total, rate, vat_amount) in enumerate(lines, start=1):
            InvoiceLine.objects.create(
                invoice=invoice,
                line_number=number,
                description=f"line {number}",
                unit_price=Decimal(line_total),
                line_total=Decimal(line_total),
                vat_rate=Decimal(rate),
                vat_amount=Decimal(vat_amount),
            )
        return invoice

    def post(self, when, code, debit="0", credit="0"):
        account, _ = LedgerAccount.objects.get_or_create(
            tenant=self.tenant, client_company=self.company, code=code, defaults={"name": code}
        )
        txn = Transaction.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            date=timezone.make_aware(datetime(when.year, when.month, when.day, 12)),
        )
        TransactionLine.objects.create(transaction=txn, account=account, debit=Decimal(debit), credit=Decimal(credit))
        return txn


class VatTests(TaxFixtureMixin, TestCase):
    def test_rate_helpers(self):
        self.assertEqual(vat.rate_label(Decimal("0.20")), "%20")
        self.assertEqual(vat.rate_label(Decimal("18")), "%18")
        self.assertTrue(vat.is_valid_vat_rate(Decimal("0.01")))
        self.assertFalse(vat.is_valid_vat_rate(Decimal("0.08")))

    def test_analysis_groups_by_rate_and_skips_cancelled(self):
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 5), [("1000", "0.20", "200"), ("500", "0.10", "50")])
        self.make_invoice(Invoice.Type.PURCHASE, date(2025, 3, 9), [("400", "0.20", "80")])
        self.make_invoice(
            Invoice.Type.SALE, date(2025, 3, 10), [("9999", "0.20", "1999.80")], status=Invoice.Status.CANCELLED
        )
        self.make_invoice(Invoice.Type.SALE, date(2025, 4, 1), [("100", "0.20", "20")])

        result = vat.analyze_vat(self.tenant, self.company.id, date(2025, 3, 1), date(2025, 4, 1))
        self.assertEqual(result["output_vat"], Decimal("250.00"))
        self.assertEqual(result["input_vat"], Decimal("80.00"))
        self.assertEqual(result["net_vat"], Decimal("170.00"))
        self.assertEqual(result["output_by_rate"], {"%10": Decimal("50.00"), "%20": Decimal("200.00")})

    def test_return_carries_forward_deductible_vat(self):
        self.make_invoice(Invoice.Type.PURCHASE, date(2025, 3, 9), [("1000", "0.20", "200")])
        result = vat.prepare_vat_return(self.tenant, self.company.id, date(2025, 3, 1), date(2025, 4, 1))
        self.assertEqual(result["payable_vat"], Decimal("0.00"))
        self.assertEqual(result["deductible_vat_carried_forward"], Decimal("200.00"))
        self.assertEqual(result["purchase_invoice_count"], 1)
        self.assertEqual(result["breakdown"][0]["rate"], "%20")

    def test_other_tenant_company_is_not_found(self):
        other = Tenant.objects.create(name="Other", slug="other")
        period = (date(2025, 3, 1), date(2025, 4, 1))
        with self.assertRaises(NotFoundError):
            vat.analyze_vat(other, self.company.id, *period)
        with self.assertRaises(NotFoundError):
            vat.prepare_vat_return(other, self.company.id, *period)
        with self.assertRaises(NotFoundError):
            vat.check_vat_inconsistencies(other, self.company.id, *period)

    def test_inconsistencies(self):
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 1), [("100", "0.08", "8")], external_id="BADRATE")
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 2), [("1000", "0.20", "150")], external_id="BADLINE")
        self.make_invoice(
            Invoice.Type.SALE, date(2025, 3, 3), [("100", "0.20", "20")], tax_amount="20.50", external_id="BADHEAD"
        )
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 4), [("100", "0.20", "20")], external_id="OK")

        issues = vat.check_vat_inconsistencies(self.tenant, self.company.id, date(2025, 3, 1), date(2025, 4, 1))
        found = {(i.external_id, i.kind, i.severity) for i in issues}
        self.assertEqual(
            found,
            {
                ("BADRATE", "invalid_rate", "high"),
                ("BADLINE", "line_vat_mismatch", "high"),
                ("BADHEAD", "header_vat_mismatch", "medium"),
            },
        )


class ReportingTests(TaxFixtureMixin, TestCase):
    def test_period_labels(self):
        self.assertEqual(reporting.period_label("yearly", date(2025, 5, 1)), "2025")
        self.assertEqual(reporting.period_label("quarterly", date(2025, 5, 1)), "2025-Q2")
        self.assertEqual(reporting.period_label("monthly", date(2025, 1, 1)), "2025-01")
        with self.assertRaises(ValidationError):
            reporting.period_label("weekly", date(2025, 1, 1))

    def test_month_bounds(self):
        self.assertEqual(reporting.month_bounds(2025, 12), (date(2025, 12, 1), date(2026, 1, 1)))
        with self.assertRaises(ValidationError):
            reporting.month_bounds(2025, 13)

    def test_corporate_tax(self):
        self.post(date(2025, 2, 1), "600", credit="100000")
        self.post(date(2025, 2, 1), "610", debit="5000")
        self.post(date(2025, 6, 1), "770", debit="40000")
        self.post(date(2024, 6, 1), "600", credit="999999")

        result = reporting.calculate_corporate_tax(self.tenant, self.company.id, 2025)
        self.assertEqual(result["revenue"], Decimal("95000.00"))
        self.assertEqual(result["expenses"], Decimal("40000.00"))
        self.assertEqual(result["taxable_income"], Decimal("55000.00"))
        self.assertEqual(result["corporate_tax"], Decimal("13750.00"))

    def test_corporate_tax_never_negative(self):
        self.post(date(2025, 2, 1), "770", debit="1000")
        result = reporting.calculate_corporate_tax(self.tenant, self.company.id, 2025)
        self.assertEqual(result["taxable_income"], Decimal("-1000.00"))
        self.assertEqual(result["corporate_tax"], Decimal("0.00"))

    def test_other_tenant_company(self):
        other = Tenant.objects.create(name="Other", slug="other")
        with self.assertRaises(NotFoundError):
            reporting.calculate_corporate_tax(other, self.company.id, 2025)

    def test_withholding_and_monthly_summary(self):
        self.make_invoice(Invoice.Type.PURCHASE, date(2025, 3, 9), [("1000", "0.20", "200")])
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 12), [("3000", "0.20", "600")])

        withholding = reporting.calculate_withholding(self.tenant, self.company.id, date(2025, 3, 1), date(2025, 4, 1))
        self.assertEqual(withholding["taxable_base"], Decimal("1000.00"))
        self.assertEqual(withholding["withholding"], Decimal("200.00"))

        summary = reporting.get_monthly_tax_summary(self.tenant, self.company.id, 2025, 3)
        self.assertEqual(summary["period"], "2025-03")
        self.assertEqual(summary["net_vat"], Decimal("400.00"))
        self.assertEqual(summary["corporate_tax"], Decimal("0.00"))
        self.assertEqual(summary["total_liability"], Decimal("600.00"))

    def test_declaration_pdf(self):
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 12), [("3000", "0.20", "600")])
        declaration = reporting.get_vat_declaration(self.tenant, self.company.id, 2025, 3)
        self.assertEqual(declaration["status"], "ready")
        self.assertEqual(declaration["period"], "2025-03")
        pdf = render_vat_return_pdf(declaration)
        self.assertTrue(pdf.startswith(b"%PDF"))


class TaxApiTests(TaxFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.user = User.objects.create_user(username="acct", password="pass")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.READ_ONLY)
        self.client.force_authenticate(self.user)

    def test_vat_return_endpoint(self):
        self.make_invoice(Invoice.Type.SALE, date(2025, 3, 12), [("100", "0.20", "20")])
        response = self.client.get(
            f"/api/v1/taxes/vat-return/?client_company_id={self.company.id}&start=2025-03-01&end=2025-04-01"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["data"]["payable_vat"]), Decimal("20.00"))

    def test_company_is_required(self):
        response = self.client.get("/api/v1/taxes/vat-analysis/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_declaration_json_and_pdf(self):
        url = f"/api/v1/taxes/vat-declaration/?client_company_id={self.company.id}&year=2025&month=3"
        self.assertEqual(self.client.get(url).json()["data"]["period"], "2025-03")

        response = self.client.get(url + "&format=pdf")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertTrue(response.content.startswith(b"%PDF"))

    def test_pdf_request_errors_stay_json(self):
        response = self.client.get("/api/v1/taxes/vat-declaration/?client_company_id=999999&format=pdf")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_vat_endpoints_reject_unknown_and_foreign_companies(self):
        other = Tenant.objects.create(name="Other", slug="other")
        foreign = ClientCompany.objects.create(tenant=other, name="Beta", tax_number="9999999999")
        for path in ("vat-analysis", "vat-return", "vat-inconsistencies"):
            for company_id in (foreign.id, 999999):
                response = self.client.get(f"/api/v1/taxes/{path}/?client_company_id={company_id}")
                self.assertEqual(response.status_code, 404, path)
                self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_corporate_tax_endpoint(self):
        self.post(date(2025, 2, 1), "600", credit="1000")
        response = self.client.get(f"/api/v1/taxes/corporate-tax/?client_company_id={self.company.id}&year=2025")
        self.assertEqual(Decimal(response.json()["data"]["corporate_tax"]), Decimal("250.00"))
