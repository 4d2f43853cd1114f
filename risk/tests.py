from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.models import (
    ClientCompany,
    Document,
    Invoice,
    InvoiceLine,
    LedgerAccount,
    Tenant,
    TenantMembership,
    TenantRole,
    Transaction,
    TransactionLine,
)
from notifications.models import Notification
from risk import alerts, engine, fraud, rules, trends
from risk.counterparty import analyze_counterparty
from risk.features import extract_document_features, store_document_features
from risk.models import ClientCompanyRiskScore, DocumentRiskScore, RiskAlert, RiskRule, RiskScoreHistory
from risk.processor import calculate_document_risk, calculate_tenant_risk


User = get_user_model()


class RiskTestMixin:
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username="owner", email="owner@example.com", password="pass")
        self.tenant = Tenant.objects.create(name="Yildiz SMMM", slug="yildiz")
        TenantMembership.objects.create(user=self.user, tenant=self.tenant, role=TenantRole.OWNER)
        self.company = ClientCompany.objects.create(tenant=self.tenant, name="Acme Ltd", tax_number="1234567890")

    def make_invoice(self, external_id="INV-1", issue=date(2025, 1, 10), due=None, total="100.00", **kwargs):
        invoice = Invoice.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            external_id=external_id,
            type=kwargs.pop("type", Invoice.Type.PURCHASE),
            issue_date=issue,
            due_date=due,
            counterparty_name=kwargs.pop("counterparty_name", "Tedarik AS"),
            counterparty_tax_number=kwargs.pop("counterparty_tax_number", "9876543210"),
            total_amount=Decimal(total),
            **kwargs,
        )
        InvoiceLine.objects.create(
            invoice=invoice,
            line_number=1,
            description="Service",
            unit_price=Decimal(total),
            line_total=Decimal(total),
        )
        return invoice

    def make_document(self, invoice=None, **kwargs):
        return Document.objects.create(
            tenant=self.tenant,
            client_company=self.company,
            related_invoice=invoice,
            type=kwargs.pop("type", Document.Type.INVOICE),
            original_filename=kwargs.pop("original_filename", "fatura.pdf"),
            mime_type="application/pdf",
            **kwargs,
        )


class RuleCacheTests(RiskTestMixin, TestCase):
    def test_seeded_global_rules_are_loaded(self):
        codes = [rule.code for rule in rules.load_active_rules(self.tenant, RiskRule.Scope.DOCUMENT)]
        self.assertIn("INV_DUE_BEFORE_ISSUE", codes)
        self.assertNotIn("COMP_HIGH_RISK_RATIO", codes)

    def test_tenant_rule_overrides_global_in_place(self):
        before = [rule.code for rule in rules.load_active_rules(self.tenant, RiskRule.Scope.DOCUMENT)]
        rules.create_rule(
            self.tenant,
            {"scope": "document", "code": "INV_DUE_BEFORE_ISSUE", "description": "Stricter", "weight": "50"},
        )
        rules.create_rule(
            self.tenant,
            {"scope": "document", "code": "CUSTOM_FLAG", "description": "Custom", "weight": "5"},
        )
        loaded = rules.load_active_rules(self.tenant, RiskRule.Scope.DOCUMENT)
        codes = [rule.code for rule in loaded]
        self.assertEqual(codes[:-1], before)
        self.assertEqual(codes[-1], "CUSTOM_FLAG")
        override = loaded[before.index("INV_DUE_BEFORE_ISSUE")]
        self.assertEqual(override.tenant_id, self.tenant.id)
        self.assertEqual(override.weight, Decimal("50"))

    def test_update_invalidates_cached_rules(self):
        rule = rules.create_rule(
            self.tenant,
            {"scope": "document", "code": "CUSTOM_FLAG", "description": "Custom", "weight": "5"},
        )
        self.assertIn("CUSTOM_FLAG", [r.code for r in rules.load_active_rules(self.tenant, "document")])
        rules.update_rule(self.tenant, rule.id, {"is_active": False})
        self.assertNotIn("CUSTOM_FLAG", [r.code for r in rules.load_active_rules(self.tenant, "document")])

    def test_global_rule_change_clears_every_tenant(self):
        rules.load_active_rules(self.tenant, "document")
        global_rule = RiskRule.objects.get(tenant__isnull=True, code="NEW_COUNTERPARTY")
        rules.update_rule(None, global_rule.id, {"is_active": False})
        self.assertNotIn("NEW_COUNTERPARTY", [r.code for r in rules.load_active_rules(self.tenant, "document")])

    def test_other_tenant_rule_is_not_found(self):
        other = Tenant.objects.create(name="Other", slug="other")
        rule = rules.create_rule(other, {"scope": "document", "code": "X", "description": "x", "weight": "1"})
        with self.assertRaises(rules.NotFoundError):
            rules.update_rule(self.tenant, rule.id, {"weight": "2"})
        with self.assertRaises(rules.NotFoundError):
            rules.delete_rule(self.tenant, rule.id)

    def test_weight_out_of_range_is_rejected(self):
        with self.assertRaises(rules.ValidationError):
            rules.create_rule(self.tenant, {"scope": "document", "code": "X", "description": "x", "weight": "101"})

    def test_seeding_is_idempotent(self):
        count = RiskRule.objects.filter(tenant__isnull=True).count()
        call_command("seed_risk_rules", stdout=StringIO())
        self.assertEqual(RiskRule.objects.filter(tenant__isnull=True).count(), count)


class ScoringTests(TestCase):
    def test_severity_bands(self):
        self.assertEqual(engine.severity_for(Decimal("30")), "low")
        self.assertEqual(engine.severity_for(Decimal("30.01")), "medium")
        self.assertEqual(engine.severity_for(Decimal("65")), "medium")
        self.assertEqual(engine.severity_for(Decimal("65.01")), "high")

    def test_score_is_clamped(self):
        heavy = [RiskRule(code=f"R{i}", weight=Decimal("40")) for i in range(4)]
        result = engine.score_rules(heavy, lambda rule: True)
        self.assertEqual(result.score, Decimal("100.00"))
        self.assertEqual(result.severity, "high")
        self.assertEqual(len(result.triggered_rule_codes), 4)

        none = engine.score_rules(heavy, lambda rule: False)
        self.assertEqual(none.score, Decimal("0.00"))
        self.assertEqual(none.triggered_rule_codes, [])


class FraudCheckTests(TestCase):
    def test_benford_needs_twenty_amounts(self):
        result = fraud.check_benfords_law([Decimal("900")] * 19)
        self.assertFalse(result.is_suspicious)
        self.assertEqual(result.sample_size, 19)

    def test_benford_flags_skewed_first_digits(self):
        result = fraud.check_benfords_law([Decimal("912.40")] * 25)
        self.assertTrue(result.is_suspicious)
        self.assertGreater(result.chi_square, fraud.BENFORD_CHI_SQUARE_HIGH)

    def test_roundness_levels(self):
        self.assertEqual(fraud.roundness(Decimal("5000")), "high")
        self.assertEqual(fraud.roundness(Decimal("1500")), "medium")
        self.assertEqual(fraud.roundness(Decimal("1010")), "low")
        self.assertIsNone(fraud.roundness(Decimal("50")))
        self.assertIsNone(fraud.roundness(Decimal("1000.50")))

    def test_round_numbers_ratio(self):
        result = fraud.check_round_numbers([Decimal("1000"), Decimal("2000"), Decimal("3000"), Decimal("123.45")])
        self.assertTrue(result.is_suspicious)
        self.assertEqual(result.round_ratio, 0.75)

    def test_weekend_activity_is_unusual(self):
        saturday = timezone.make_aware(datetime(2025, 3, 15, 11, 0))
        monday = timezone.make_aware(datetime(2025, 3, 10, 11, 0))
        result = fraud.check_unusual_timing([saturday, saturday, monday, monday])
        self.assertTrue(result.is_suspicious)
        self.assertIn("weekend", result.reasons)
        self.assertNotIn("off_hours", result.reasons)

    def test_off_hours_activity_is_unusual(self):
        late = timezone.make_aware(datetime(2025, 3, 11, 22, 0))
        midday = timezone.make_aware(datetime(2025, 3, 12, 11, 0))
        result = fraud.check_unusual_timing([late, late, midday, midday])
        self.assertEqual(result.reasons, ["off_hours"])
        self.assertEqual(result.off_hours_ratio, 0.5)

    def test_month_end_clustering_is_unusual(self):
        stamps = [
            timezone.make_aware(datetime(2025, 4, 29, 11, 0)),
            timezone.make_aware(datetime(2025, 4, 30, 11, 0)),
            timezone.make_aware(datetime(2025, 4, 30, 14, 0)),
            timezone.make_aware(datetime(2025, 4, 15, 11, 0)),
        ]
        result = fraud.check_unusual_timing(stamps)
        self.assertEqual(result.reasons, ["month_end"])
        self.assertEqual(result.month_end_ratio, 0.75)


class CompanyFraudPatternTests(RiskTestMixin, TestCase):
    def _single_line(self, when, description, debit="0", credit="0"):
        account, _ = LedgerAccount.objects.get_or_create(
            tenant=self.tenant, client_company=self.company, code="102", defaults={"name": "Bankalar"}
        )
        txn = Transaction.objects.create(
            tenant=self.tenant, client_company=self.company, date=when, description=description
        )
        TransactionLine.objects.create(transaction=txn, account=account, debit=Decimal(debit), credit=Decimal(credit))
        return txn

    def test_mirrored_movements_are_circular(self):
        base = timezone.now() - timedelta(days=20)
        for i, amount in enumerate(("1234.56", "2345.67", "3456.78")):
            self._single_line(base + timedelta(days=i), f"Virman {i}", debit=amount)
            self._single_line(base + timedelta(days=i + 2), f"Virman {i}", credit=amount)
        # Mirrored outside the one-week window.
        self._single_line(base, "Virman late", debit="987.65")
        self._single_line(base + timedelta(days=10), "Virman late", credit="987.65")

        patterns = {p.type: p for p in fraud.detect_fraud_patterns(self.tenant, self.company)}
        self.assertIn("circular_transactions", patterns)
        self.assertEqual(patterns["circular_transactions"].evidence, {"pairs": 3})
        self.assertEqual(patterns["circular_transactions"].severity, "high")

    def test_two_mirrored_pairs_are_not_enough(self):
        base = timezone.now() - timedelta(days=20)
        for i, amount in enumerate(("1234.56", "2345.67")):
            self._single_line(base, f"Virman {i}", debit=amount)
            self._single_line(base + timedelta(days=1), f"Virman {i}", credit=amount)
        types = {p.type for p in fraud.detect_fraud_patterns(self.tenant, self.company)}
        self.assertNotIn("circular_transactions", types)

    def test_non_standard_vat_rates(self):
        today = timezone.localdate()
        for i in range(3):
            invoice = self.make_invoice(external_id=f"V-{i}", issue=today - timedelta(days=10 + i))
            if i < 2:
                invoice.lines.update(vat_rate=Decimal("0.08"))

        patterns = {p.type: p for p in fraud.detect_fraud_patterns(self.tenant, self.company)}
        self.assertEqual(patterns["vat_pattern"].evidence, {"invalid_lines": 2, "total_lines": 3})
        self.assertNotIn("date_manipulation", patterns)

    def test_future_and_inverted_dates(self):
        today = timezone.localdate()
        self.make_invoice(external_id="F-1", issue=today + timedelta(days=5))
        self.make_invoice(external_id="F-2", issue=today - timedelta(days=5), due=today - timedelta(days=20))
        for i in range(3):
            self.make_invoice(external_id=f"OK-{i}", issue=today - timedelta(days=5), due=today + timedelta(days=25))

        patterns = {p.type: p for p in fraud.detect_fraud_patterns(self.tenant, self.company)}
        self.assertEqual(
            patterns["date_manipulation"].evidence, {"suspicious_invoices": 2, "total_invoices": 5}
        )
        self.assertNotIn("vat_pattern", patterns)

    def test_company_rules_follow_detected_patterns(self):
        today = timezone.localdate()
        for i in range(2):
            invoice = self.make_invoice(external_id=f"P-{i}", issue=today + timedelta(days=3))
            invoice.lines.update(vat_rate=Decimal("0.08"))

        score = engine.evaluate_client_company(self.tenant, self.company.id)
        self.assertIn("COMP_UNUSUAL_VAT_PATTERNS", score.triggered_rule_codes)
        self.assertIn("COMP_DATE_MANIPULATION", score.triggered_rule_codes)


class FeatureExtractionTests(RiskTestMixin, TestCase):
    def test_invoice_features_from_related_invoice(self):
        invoice = self.make_invoice(issue=date(2025, 1, 10), due=date(2025, 1, 5))
        result = extract_document_features(self.make_document(invoice))
        self.assertTrue(result.features["dateInconsistency"])
        self.assertEqual([flag["code"] for flag in result.risk_flags], ["DATE_INCONSISTENCY"])
        self.assertEqual(result.risk_score, Decimal("30"))

    def test_parsed_fields_take_precedence(self):
        document = self.make_document(
            parsed_data={
                "document_type": "invoice",
                "fields": {"issueDate": "10.01.2025", "totalAmount": "-5"},
            }
        )
        result = extract_document_features(document)
        codes = {flag["code"] for flag in result.risk_flags}
        self.assertEqual(codes, {"INVOICE_NUMBER_MISSING", "NEGATIVE_AMOUNT", "MISSING_COUNTERPARTY_INFO"})
        self.assertEqual(result.risk_score, Decimal("75"))

    def test_unparsed_document_has_no_score(self):
        result = extract_document_features(self.make_document(type=Document.Type.OTHER))
        self.assertIsNone(result.risk_score)
        self.assertEqual(result.risk_flags, [])

    def test_bank_statement_checks(self):
        document = self.make_document(
            type=Document.Type.BANK_STATEMENT,
            parsed_data={
                "document_type": "bank_statement",
                "fields": {
                    "startingBalance": "100",
                    "endingBalance": "-50",
                    "transactions": [{"amount": "-250000"}],
                },
            },
        )
        codes = {flag["code"] for flag in extract_document_features(document).risk_flags}
        self.assertEqual(codes, {"NEGATIVE_BALANCE", "HIGH_AMOUNT"})


class CounterpartyTests(RiskTestMixin, TestCase):
    def test_unknown_counterparty_is_new(self):
        analysis = analyze_counterparty(self.tenant, self.company, "Yeni Firma")
        self.assertTrue(analysis.is_new)
        self.assertFalse(analysis.is_unusual)

    def test_amount_spike_is_unusual(self):
        today = date(2025, 6, 1)
        for i in range(5):
            self.make_invoice(external_id=f"H-{i}", issue=today - timedelta(days=30 * i + 1), total="100.00")
        analysis = analyze_counterparty(
            self.tenant, self.company, "Tedarik AS", amount=Decimal("1000"), today=today
        )
        self.assertFalse(analysis.is_new)
        self.assertTrue(analysis.is_unusual)
        self.assertIn("amount_spike", analysis.reasons)
        self.assertEqual(analysis.history_count, 5)

    def test_dormant_counterparty(self):
        today = date(2025, 6, 1)
        self.make_invoice(external_id="OLD-1", issue=today - timedelta(days=200))
        self.make_invoice(external_id="OLD-2", issue=today - timedelta(days=120))
        analysis = analyze_counterparty(self.tenant, self.company, "Tedarik AS", today=today)
        self.assertEqual(analysis.reasons, ["dormant"])
        self.assertEqual(analysis.last_seen, today - timedelta(days=120))

    def test_recently_seen_counterparty_is_not_dormant(self):
        today = date(2025, 6, 1)
        self.make_invoice(external_id="R-1", issue=today - timedelta(days=60))
        self.make_invoice(external_id="R-2", issue=today - timedelta(days=30))
        analysis = analyze_counterparty(self.tenant, self.company, "Tedarik AS", today=today)
        self.assertFalse(analysis.is_unusual)

    def test_sudden_activity_after_sparse_history(self):
        today = date(2025, 6, 1)
        self.make_invoice(external_id="S-1", issue=today - timedelta(days=200))
        self.make_invoice(external_id="S-2", issue=today - timedelta(days=2))
        analysis = analyze_counterparty(self.tenant, self.company, "Tedarik AS", today=today)
        self.assertTrue(analysis.is_unusual)
        self.assertEqual(analysis.reasons, ["sudden_activity"])

    def test_evaluated_invoice_is_excluded_from_history(self):
        invoice = self.make_invoice()
        analysis = analyze_counterparty(
            self.tenant, self.company, invoice.counterparty_name, exclude_invoice_id=invoice.id
        )
        self.assertTrue(analysis.is_new)


class DocumentEvaluationTests(RiskTestMixin, TestCase):
    def test_evaluate_document_scores_and_records_history(self):
        invoice = self.make_invoice(issue=date(2025, 1, 10), due=date(2025, 1, 5))
        document = self.make_document(invoice)

        score = calculate_document_risk(self.tenant, document.id)

        self.assertEqual(score.triggered_rule_codes, ["INV_DUE_BEFORE_ISSUE", "NEW_COUNTERPARTY"])
        self.assertEqual(score.score, Decimal("25.00"))
        self.assertEqual(score.severity, "low")
        self.assertEqual(
            RiskScoreHistory.objects.filter(entity_type="document", entity_id=document.id).count(),
            1,
        )
        self.assertFalse(RiskAlert.objects.exists())

    def test_reevaluation_upserts_score(self):
        document = self.make_document(self.make_invoice())
        calculate_document_risk(self.tenant, document.id)
        calculate_document_risk(self.tenant, document.id)
        self.assertEqual(DocumentRiskScore.objects.filter(document=document).count(), 1)
        self.assertEqual(RiskScoreHistory.objects.filter(entity_id=document.id).count(), 2)

    def test_high_score_raises_single_alert(self):
        rules.create_rule(
            self.tenant,
            {"scope": "document", "code": "INV_DUE_BEFORE_ISSUE", "description": "Strict", "weight": "70"},
        )
        document = self.make_document(self.make_invoice(issue=date(2025, 1, 10), due=date(2025, 1, 5)))

        score = calculate_document_risk(self.tenant, document.id)
        calculate_document_risk(self.tenant, document.id)

        self.assertEqual(score.severity, "high")
        alerts_qs = RiskAlert.objects.filter(document=document, type=RiskAlert.Type.RISK_THRESHOLD_EXCEEDED)
        self.assertEqual(alerts_qs.count(), 1)
        self.assertEqual(Notification.objects.filter(type=Notification.Type.RISK_ALERT).count(), 1)

    def test_duplicate_check_ignores_blank_counterparty_name(self):
        self.make_invoice(external_id="B-1", issue=date(2025, 1, 1), total="750.00")
        blank = self.make_invoice(external_id="B-2", issue=date(2025, 1, 15), total="750.00", counterparty_name="")
        self.assertTrue(engine._is_duplicate_invoice(self.tenant, blank))

        named = self.make_invoice(
            external_id="B-3", issue=date(2025, 1, 15), total="750.00", counterparty_name="Baska Firma"
        )
        Invoice.objects.filter(id=blank.id).delete()
        self.assertFalse(engine._is_duplicate_invoice(self.tenant, named))

    def test_duplicate_invoice_within_window(self):
        self.make_invoice(external_id="A-1", issue=date(2025, 1, 1), total="500.00")
        invoice = self.make_invoice(external_id="A-2", issue=date(2025, 1, 20), total="500.00")
        score = calculate_document_risk(self.tenant, self.make_document(invoice).id)
        self.assertIn("INV_DUPLICATE_INVOICE", score.triggered_rule_codes)
        self.assertNotIn("NEW_COUNTERPARTY", score.triggered_rule_codes)

    def test_unparsed_document_triggers_parsing_rule(self):
        document = self.make_document(type=Document.Type.OTHER)
        score = calculate_document_risk(self.tenant, document.id)
        self.assertEqual(score.triggered_rule_codes, ["DOC_PARSING_FAILED"])

    def test_missing_features_raise_not_found(self):
        document = self.make_document(self.make_invoice())
        with self.assertRaises(engine.NotFoundError):
            engine.evaluate_document(self.tenant, document.id)

    def test_other_tenant_document_is_not_found(self):
        document = self.make_document(self.make_invoice())
        store_document_features(document)
        other = Tenant.objects.create(name="Other", slug="other")
        with self.assertRaises(engine.NotFoundError):
            engine.evaluate_document(other, document.id)


class CompanyEvaluationTests(RiskTestMixin, TestCase):
    def test_clean_company_scores_zero_and_updates_latest_row(self):
        first = engine.evaluate_client_company(self.tenant, self.company.id)
        second = engine.evaluate_client_company(self.tenant, self.company.id)

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.score, Decimal("0.00"))
        self.assertEqual(second.severity, "low")
        self.assertEqual(ClientCompanyRiskScore.objects.filter(client_company=self.company).count(), 1)
        self.assertEqual(RiskScoreHistory.objects.filter(entity_type="company").count(), 2)

    def test_frequent_duplicate_numbers(self):
        for i in range(4):
            self.make_invoice(external_id=f"D-{i}", issue=date(2025, 1, 1))
            self.make_invoice(external_id=f"D-{i}", issue=date(2025, 2, 1))
        score = engine.evaluate_client_company(self.tenant, self.company.id)
        self.assertIn("COMP_FREQUENT_DUPLICATES", score.triggered_rule_codes)

    def _score(self, document, severity="high"):
        return DocumentRiskScore.objects.create(
            tenant=self.tenant,
            document=document,
            score=Decimal("80") if severity == "high" else Decimal("10"),
            severity=severity,
            generated_at=timezone.now(),
        )

    def test_many_high_risk_documents_and_ratio(self):
        for i in range(6):
            self._score(self.make_document(self.make_invoice(external_id=f"H-{i}")))
        for i in range(4):
            self.make_invoice(external_id=f"L-{i}")

        context = engine.build_company_context(self.tenant, self.company)
        self.assertEqual(context.high_risk_invoice_count, 6)
        self.assertEqual(context.total_invoice_count, 10)

        score = engine.evaluate_client_company(self.tenant, self.company.id)
        self.assertIn("COMP_MANY_HIGH_RISK_DOCS", score.triggered_rule_codes)
        self.assertIn("COMP_HIGH_RISK_RATIO", score.triggered_rule_codes)

    def test_five_high_risk_documents_are_below_threshold(self):
        for i in range(5):
            self._score(self.make_document(self.make_invoice(external_id=f"H-{i}")))
        for i in range(20):
            self.make_invoice(external_id=f"L-{i}")
        score = engine.evaluate_client_company(self.tenant, self.company.id)
        self.assertNotIn("COMP_MANY_HIGH_RISK_DOCS", score.triggered_rule_codes)
        self.assertNotIn("COMP_HIGH_RISK_RATIO", score.triggered_rule_codes)

    def test_high_risk_ratio_counts_distinct_linked_invoices(self):
        invoice = self.make_invoice()
        self._score(self.make_document())
        self._score(self.make_document())
        context = engine.build_company_context(self.tenant, self.company)
        self.assertEqual(context.high_risk_invoice_count, 0)

        self._score(self.make_document(invoice))
        self._score(self.make_document(invoice))
        context = engine.build_company_context(self.tenant, self.company)
        self.assertEqual(context.high_risk_invoice_count, 1)
        self.assertEqual(context.total_invoice_count, 1)

    def test_tenant_risk_batch(self):
        self.make_document(self.make_invoice())
        self.make_document(type=Document.Type.OTHER)
        result = calculate_tenant_risk(self.tenant)
        self.assertEqual(result, {"companies_processed": 1, "documents_processed": 2, "errors": 0})

        again = calculate_tenant_risk(self.tenant)
        self.assertEqual(again["documents_processed"], 0)


class TrendTests(RiskTestMixin, TestCase):
    def test_classify_trend(self):
        self.assertEqual(trends.classify_trend([{"score": 10}]), "stable")
        self.assertEqual(trends.classify_trend([{"score": 10}, {"score": 20}]), "increasing")
        self.assertEqual(trends.classify_trend([{"score": 20}, {"score": 14}]), "decreasing")
        self.assertEqual(trends.classify_trend([{"score": 20}, {"score": 24}]), "stable")

    def test_document_trend_without_history_uses_current_score(self):
        document = self.make_document()
        DocumentRiskScore.objects.create(
            tenant=self.tenant,
            document=document,
            score=Decimal("40"),
            severity="medium",
            generated_at=timezone.now(),
        )
        trend = trends.get_document_risk_trend(self.tenant, document.id)
        self.assertEqual(len(trend["points"]), 1)
        self.assertEqual(trend["current_score"], Decimal("40"))
        self.assertIsNone(trend["previous_score"])

    def test_company_trend_requires_scores(self):
        with self.assertRaises(trends.NotFoundError):
            trends.get_company_risk_trend(self.tenant, self.company.id)


class AlertTests(RiskTestMixin, TestCase):
    def test_open_alert_is_refreshed_instead_of_duplicated(self):
        first = alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "first", "medium", self.company)
        second = alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "second", "high", self.company)
        self.assertEqual(first.id, second.id)
        second.refresh_from_db()
        self.assertEqual(second.message, "second")
        self.assertEqual(second.severity, "high")

    def test_resolved_alert_allows_new_one(self):
        first = alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "first", "medium", self.company)
        alerts.update_alert_status(self.tenant, self.user, first.id, RiskAlert.Status.RESOLVED)
        first.refresh_from_db()
        self.assertIsNotNone(first.resolved_at)
        self.assertEqual(first.resolved_by, self.user)

        second = alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "again", "medium", self.company)
        self.assertNotEqual(first.id, second.id)

    def test_dashboard_counts(self):
        alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "msg", "high", self.company)
        engine.evaluate_client_company(self.tenant, self.company.id)
        dashboard = alerts.get_risk_dashboard(self.tenant)
        self.assertEqual(dashboard["open_alerts"], 1)
        self.assertEqual(dashboard["open_high_alerts"], 1)
        self.assertEqual(dashboard["top_risk_companies"][0]["id"], self.company.id)


class RiskApiTests(RiskTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(self.user)
        self.client.credentials(HTTP_X_TENANT_ID=str(self.tenant.id))

    def test_list_rules(self):
        response = self.client.get("/api/v1/risk/rules/?scope=company")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(all(rule["scope"] == "company" for rule in response.json()["data"]))

    def test_non_staff_cannot_edit_global_rule(self):
        rule = RiskRule.objects.filter(tenant__isnull=True).first()
        response = self.client.patch(f"/api/v1/risk/rules/{rule.id}/", {"weight": "1"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

        response = self.client.post(
            "/api/v1/risk/rules/",
            {"scope": "document", "code": "G", "description": "g", "weight": "1", "is_global": True},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_create_tenant_rule(self):
        response = self.client.post(
            "/api/v1/risk/rules/",
            {"scope": "document", "code": "MY_RULE", "description": "mine", "weight": "12.5"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["tenant"], self.tenant.id)

    def test_read_only_member_cannot_create_rules(self):
        viewer = User.objects.create_user(username="viewer", password="pass")
        TenantMembership.objects.create(user=viewer, tenant=self.tenant, role=TenantRole.READ_ONLY)
        self.client.force_authenticate(viewer)
        response = self.client.post(
            "/api/v1/risk/rules/",
            {"scope": "document", "code": "MY_RULE", "description": "mine", "weight": "1"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_evaluate_and_fetch_document_score(self):
        document = self.make_document(self.make_invoice())
        self.assertEqual(self.client.get(f"/api/v1/risk/documents/{document.id}/").status_code, 404)

        response = self.client.post(f"/api/v1/risk/documents/{document.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["severity"], "low")

        trend = self.client.get(f"/api/v1/risk/documents/{document.id}/trend/")
        self.assertEqual(trend.status_code, 200)
        self.assertEqual(trend.json()["data"]["trend"], "stable")

    def test_company_score_endpoints(self):
        self.assertEqual(self.client.post(f"/api/v1/risk/companies/{self.company.id}/").status_code, 200)
        response = self.client.get(f"/api/v1/risk/companies/{self.company.id}/trend/?days=30")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["data"]["points"]), 1)

    def test_alert_status_update(self):
        alert = alerts.create_alert(self.tenant, "FRAUD_PATTERN", "Benford", "msg", "medium", self.company)
        response = self.client.patch(f"/api/v1/risk/alerts/{alert.id}/", {"status": "ignored"}, format="json")
        self.assertEqual(response.status_code, 200)
        listing = self.client.get("/api/v1/risk/alerts/?status=ignored").json()
        self.assertEqual(listing["meta"]["total"], 1)

    def test_missing_membership_is_rejected(self):
        stranger = User.objects.create_user(username="stranger", password="pass")
        self.client.force_authenticate(stranger)
        self.assertEqual(self.client.get("/api/v1/risk/dashboard/").status_code, 403)
