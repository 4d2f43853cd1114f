"""
Weighted rule evaluation for documents and client companies.

Each active rule contributes its weight when its condition holds; the total is
clamped to 0..100 and banded into low (<=30), medium (<=65) or high.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.exceptions import NotFoundError
from core.models import ClientCompany, Document, Invoice
from core.services.ledger import transaction_amount

from . import alerts, fraud, rules, trends
from .counterparty import analyze_counterparty
from .models import (
    ClientCompanyRiskScore,
    DocumentRiskFeatures,
    DocumentRiskScore,
    RiskAlert,
    RiskRule,
    RiskScoreHistory,
)


logger = logging.getLogger(__name__)

LOW_MAX = Decimal("30")
MEDIUM_MAX = Decimal("65")
DUPLICATE_WINDOW_DAYS = 30


def clamp_score(total: Decimal) -> Decimal:
    return min(Decimal("100"), max(Decimal("0"), Decimal(total))).quantize(Decimal("0.01"))


def severity_for(score: Decimal) -> str:
    if score <= LOW_MAX:
        return "low"
    if score <= MEDIUM_MAX:
        return "medium"
    return "high"


@dataclass
class RiskEvaluation:
    score: Decimal
    severity: str
    triggered_rule_codes: List[str] = field(default_factory=list)


def score_rules(active_rules: List[RiskRule], condition: Callable[[RiskRule], bool]) -> RiskEvaluation:
    total = Decimal("0")
    triggered: List[str] = []
    for rule in active_rules:
        if condition(rule):
            total += Decimal(rule.weight)
            triggered.append(rule.code)
    score = clamp_score(total)
    return RiskEvaluation(score=score, severity=severity_for(score), triggered_rule_codes=triggered)


# ---------------------------------------------------------------------------
# Document scope
# ---------------------------------------------------------------------------


@dataclass
class DocumentContext:
    features: Dict[str, Any]
    risk_flags: List[dict]
    risk_score: Optional[Decimal]
    benford_suspicious: bool = False
    round_numbers_suspicious: bool = False
    timing_suspicious: bool = False
    counterparty_new: bool = False
    counterparty_unusual: bool = False
    duplicate_invoice: bool = False

    @property
    def flag_codes(self) -> set:
        return {flag.get("code") for flag in self.risk_flags or []}


def _guarded(label: str, document_id: int, fn: Callable[[], Any], default: Any) -> Any:
    try:
        return fn()
    except Exception as exc:  # noqa: BLE001 - a failing check must not abort scoring
        logger.warning("Risk check '%s' failed for document %s: %s", label, document_id, exc)
        return default


def _fraud_flags(tenant, company) -> tuple[bool, bool, bool]:
    transactions = fraud.recent_transactions(tenant, company)
    amounts = [transaction_amount(txn) for txn in transactions]
    benford = False
    if len(amounts) >= fraud.BENFORD_MIN_SAMPLE:
        benford = fraud.check_benfords_law(amounts).is_suspicious
    rounds = fraud.check_round_numbers(amounts).is_suspicious
    timing = fraud.check_unusual_timing([txn.date for txn in transactions]).is_suspicious
    return benford, rounds, timing


def _is_duplicate_invoice(tenant, invoice: Invoice) -> bool:
    window = timedelta(days=DUPLICATE_WINDOW_DAYS)
    qs = Invoice.objects.filter(
        tenant=tenant,
        client_company_id=invoice.client_company_id,
        total_amount=invoice.total_amount,
        issue_date__gte=invoice.issue_date - window,
        issue_date__lte=invoice.issue_date + window,
    ).exclude(id=invoice.id)
    if invoice.counterparty_name:
        qs = qs.filter(counterparty_name=invoice.counterparty_name)
    return qs.exists()


def build_document_context(tenant, document: Document, features: DocumentRiskFeatures) -> DocumentContext:
    context = DocumentContext(
        features=dict(features.features or {}),
        risk_flags=list(features.risk_flags or []),
        risk_score=features.risk_score,
    )
    context.features["riskScore"] = features.risk_score

    context.benford_suspicious, context.round_numbers_suspicious, context.timing_suspicious = _guarded(
        "fraud", document.id, lambda: _fraud_flags(tenant, document.client_company), (False, False, False)
    )

    invoice = document.related_invoice
    if invoice is not None:
        analysis = _guarded(
            "counterparty",
            document.id,
            lambda: analyze_counterparty(
                tenant,
                document.client_company,
                invoice.counterparty_name,
                invoice.counterparty_tax_number,
                amount=invoice.total_amount,
                exclude_invoice_id=invoice.id,
            ),
            None,
        )
        if analysis is not None:
            context.counterparty_new = analysis.is_new
            context.counterparty_unusual = analysis.is_unusual
        context.duplicate_invoice = _guarded(
            "duplicate_invoice", document.id, lambda: _is_duplicate_invoice(tenant, invoice), False
        )
    return context


def _feature(context: DocumentContext, name: str) -> bool:
    return bool(context.features.get(name))


DOCUMENT_CONDITIONS: Dict[str, Callable[[DocumentContext], bool]] = {
    "INV_DUE_BEFORE_ISSUE": lambda c: _feature(c, "dateInconsistency"),
    "INV_TOTAL_MISMATCH": lambda c: _feature(c, "amountMismatch"),
    "VAT_RATE_INCONSISTENCY": lambda c: _feature(c, "vatRateInconsistency"),
    "AMOUNT_DATE_INCONSISTENCY": lambda c: _feature(c, "amountDateInconsistency"),
    "CHART_MISMATCH": lambda c: _feature(c, "chartMismatch"),
    "INV_DUPLICATE_NUMBER": lambda c: _feature(c, "duplicateInvoiceNumber"),
    "INV_DUPLICATE_INVOICE": lambda c: c.duplicate_invoice,
    "UNUSUAL_COUNTERPARTY": lambda c: c.counterparty_unusual,
    "NEW_COUNTERPARTY": lambda c: c.counterparty_new,
    "BENFORDS_LAW_VIOLATION": lambda c: c.benford_suspicious,
    "ROUND_NUMBER_SUSPICIOUS": lambda c: c.round_numbers_suspicious,
    "UNUSUAL_TIMING": lambda c: c.timing_suspicious,
    "INV_MISSING_TAX_NUMBER": lambda c: _feature(c, "hasMissingFields") and not _feature(c, "duplicateInvoiceNumber"),
    "DOC_PARSING_FAILED": lambda c: c.risk_score is None or not c.risk_flags,
}


def evaluate_document_rule(rule: RiskRule, context: DocumentContext) -> bool:
    condition = DOCUMENT_CONDITIONS.get(rule.code)
    if condition is None:
        return rule.code in context.flag_codes
    return bool(condition(context))


def _raise_threshold_alert(tenant, evaluation: RiskEvaluation, title: str, message: str, company, document=None):
    if evaluation.severity != "high":
        return
    try:
        alerts.create_alert(
            tenant,
            type=RiskAlert.Type.RISK_THRESHOLD_EXCEEDED,
            title=title,
            message=message,
            severity="high",
            client_company=company,
            document=document,
        )
    except Exception as exc:  # noqa: BLE001 - alerting is a side effect of scoring
        logger.warning("Failed to raise risk alert: %s", exc)


def evaluate_document(tenant, document_id, features: Optional[DocumentRiskFeatures] = None) -> DocumentRiskScore:
    document = (
        Document.objects.filter(tenant=tenant, id=document_id, is_deleted=False)
        .select_related("client_company", "related_invoice")
        .first()
    )
    if document is None:
        raise NotFoundError("Document not found.")

    active_rules = rules.load_active_rules(tenant, RiskRule.Scope.DOCUMENT)

    if features is None:
        features = DocumentRiskFeatures.objects.filter(document=document).first()
    if features is None or features.tenant_id != tenant.id:
        raise NotFoundError("Risk features not found for this document.")

    context = build_document_context(tenant, document, features)
    evaluation = score_rules(active_rules, lambda rule: evaluate_document_rule(rule, context))

    with transaction.atomic():
        risk_score, _ = DocumentRiskScore.objects.update_or_create(
            document=document,
            defaults={
                "tenant": tenant,
                "score": evaluation.score,
                "severity": evaluation.severity,
                "triggered_rule_codes": evaluation.triggered_rule_codes,
                "generated_at": timezone.now(),
            },
        )
    trends.store_risk_score_history(
        tenant,
        RiskScoreHistory.EntityType.DOCUMENT,
        document.id,
        evaluation.score,
        evaluation.severity,
        evaluation.triggered_rule_codes,
    )
    logger.info(
        "Document %s scored %s (%s): %s",
        document.id,
        evaluation.score,
        evaluation.severity,
        ",".join(evaluation.triggered_rule_codes) or "-",
    )

    _raise_threshold_alert(
        tenant,
        evaluation,
        "High-risk document",
        f"{document.original_filename} scored {evaluation.score} "
        f"({', '.join(evaluation.triggered_rule_codes)}).",
        document.client_company,
        document,
    )
    return risk_score


# ---------------------------------------------------------------------------
# Company scope
# ---------------------------------------------------------------------------


@dataclass
class CompanyContext:
    document_severities: List[tuple] = field(default_factory=list)
    high_risk_invoice_count: int = 0
    total_invoice_count: int = 0
    duplicate_invoice_count: int = 0
    fraud_patterns: List[fraud.FraudPattern] = field(default_factory=list)

    def has_pattern(self, pattern_type: str) -> bool:
        return any(p.type == pattern_type for p in self.fraud_patterns)


def build_company_context(tenant, company: ClientCompany) -> CompanyContext:
    since = timezone.now() - timedelta(days=settings.RISK_HISTORY_DAYS)
    scores = list(
        DocumentRiskScore.objects.filter(
            tenant=tenant,
            document__client_company=company,
            document__is_deleted=False,
            generated_at__gte=since,
        ).values_list("severity", "generated_at", "document__related_invoice_id")
    )
    context = CompanyContext(
        document_severities=[(severity, generated_at) for severity, generated_at, _ in scores],
        high_risk_invoice_count=len(
            {invoice_id for severity, _, invoice_id in scores if severity == "high" and invoice_id is not None}
        ),
        total_invoice_count=Invoice.objects.filter(tenant=tenant, client_company=company).count(),
    )

    external_ids = Counter(
        Invoice.objects.filter(tenant=tenant, client_company=company)
        .exclude(external_id="")
        .values_list("external_id", flat=True)
    )
    context.duplicate_invoice_count = sum(1 for count in external_ids.values() if count > 1)

    try:
        context.fraud_patterns = fraud.detect_fraud_patterns(tenant, company)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Fraud pattern detection failed for company %s: %s", company.id, exc)
    return context


def _config(rule: RiskRule, key: str, default):
    value = (rule.config or {}).get(key, default)
    return default if value is None else value


def evaluate_company_rule(rule: RiskRule, context: CompanyContext) -> bool:
    code = rule.code
    if code == "COMP_MANY_HIGH_RISK_DOCS":
        threshold = _config(rule, "threshold", 5)
        since = timezone.now() - timedelta(days=_config(rule, "days", 90))
        count = sum(1 for severity, at in context.document_severities if severity == "high" and at >= since)
        return count > threshold
    if code == "COMP_HIGH_RISK_RATIO":
        if context.total_invoice_count == 0:
            return False
        ratio = context.high_risk_invoice_count / context.total_invoice_count
        return ratio > float(_config(rule, "threshold", 0.3))
    if code == "COMP_FREQUENT_DUPLICATES":
        return context.duplicate_invoice_count > _config(rule, "threshold", 3)
    if code == "COMP_BENFORDS_LAW_VIOLATION":
        return context.has_pattern("benford")
    if code == "COMP_CIRCULAR_TRANSACTIONS":
        return context.has_pattern("circular_transactions")
    if code == "COMP_UNUSUAL_VAT_PATTERNS":
        return context.has_pattern("vat_pattern")
    if code == "COMP_DATE_MANIPULATION":
        return context.has_pattern("date_manipulation")
    if code == "COMP_HIGH_FRAUD_PATTERNS":
        return len(context.fraud_patterns) > _config(rule, "threshold", 3)
    return False


def evaluate_client_company(tenant, client_company_id) -> ClientCompanyRiskScore:
    company = ClientCompany.objects.filter(tenant=tenant, id=client_company_id).first()
    if company is None:
        raise NotFoundError("Client company not found.")

    active_rules = rules.load_active_rules(tenant, RiskRule.Scope.COMPANY)
    context = build_company_context(tenant, company)
    evaluation = score_rules(active_rules, lambda rule: evaluate_company_rule(rule, context))

    now = timezone.now()
    with transaction.atomic():
        latest = (
            ClientCompanyRiskScore.objects.select_for_update()
            .filter(tenant=tenant, client_company=company)
            .order_by("-generated_at", "-id")
            .first()
        )
        if latest is not None:
            latest.score = evaluation.score
            latest.severity = evaluation.severity
            latest.triggered_rule_codes = evaluation.triggered_rule_codes
            latest.generated_at = now
            latest.save()
            company_score = latest
        else:
            company_score = ClientCompanyRiskScore.objects.create(
                tenant=tenant,
                client_company=company,
                score=evaluation.score,
                severity=evaluation.severity,
                triggered_rule_codes=evaluation.triggered_rule_codes,
                generated_at=now,
            )

    trends.store_risk_score_history(
        tenant,
        RiskScoreHistory.EntityType.COMPANY,
        company.id,
        evaluation.score,
        evaluation.severity,
        evaluation.triggered_rule_codes,
    )
    logger.info("Company %s scored %s (%s)", company.id, evaluation.score, evaluation.severity)

    _raise_threshold_alert(
        tenant,
        evaluation,
        "High-risk client company",
        f"{company.name} scored {evaluation.score} ({', '.join(evaluation.triggered_rule_codes)}).",
        company,
    )
    return company_score
