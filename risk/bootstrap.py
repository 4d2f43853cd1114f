from decimal import Decimal
from typing import Iterable


# (scope, code, description, weight, default_severity, config)
DEFAULT_RULES = [
    ("document", "INV_DUE_BEFORE_ISSUE", "Due date is before the issue date", Decimal("20"), "high", {}),
    ("document", "INV_TOTAL_MISMATCH", "Invoice total does not match the sum of its lines", Decimal("25"), "high", {}),
    ("document", "VAT_RATE_INCONSISTENCY", "VAT rate is inconsistent with the line amounts", Decimal("15"), "medium", {}),
    ("document", "AMOUNT_DATE_INCONSISTENCY", "Amount and date do not fit the usual pattern", Decimal("10"), "medium", {}),
    ("document", "CHART_MISMATCH", "Posting does not match the chart of accounts", Decimal("10"), "medium", {}),
    ("document", "INV_DUPLICATE_NUMBER", "Invoice number already used by another document", Decimal("30"), "high", {}),
    ("document", "INV_DUPLICATE_INVOICE", "Same amount and counterparty within 30 days", Decimal("25"), "high", {}),
    ("document", "UNUSUAL_COUNTERPARTY", "Counterparty behaviour deviates from its history", Decimal("15"), "medium", {}),
    ("document", "NEW_COUNTERPARTY", "First transaction with this counterparty", Decimal("5"), "low", {}),
    ("document", "BENFORDS_LAW_VIOLATION", "Company amounts deviate from Benford's law", Decimal("15"), "medium", {}),
    ("document", "ROUND_NUMBER_SUSPICIOUS", "Unusually many round amounts", Decimal("10"), "medium", {}),
    ("document", "UNUSUAL_TIMING", "Transactions cluster outside normal hours", Decimal("10"), "medium", {}),
    ("document", "INV_MISSING_TAX_NUMBER", "Required invoice fields are missing", Decimal("15"), "medium", {}),
    ("document", "DOC_PARSING_FAILED", "Document could not be parsed", Decimal("10"), "low", {}),
    ("document", "NEGATIVE_AMOUNT", "Invoice total is negative", Decimal("20"), "high", {}),
    ("document", "HIGH_AMOUNT", "Amount is unusually high", Decimal("10"), "medium", {}),
    ("company", "COMP_MANY_HIGH_RISK_DOCS", "Many high-risk documents recently", Decimal("30"), "high", {"threshold": 5, "days": 90}),
    ("company", "COMP_HIGH_RISK_RATIO", "High share of high-risk invoices", Decimal("25"), "high", {"threshold": 0.3}),
    ("company", "COMP_FREQUENT_DUPLICATES", "Frequent duplicate invoice numbers", Decimal("20"), "medium", {"threshold": 3}),
    ("company", "COMP_BENFORDS_LAW_VIOLATION", "Company amounts deviate from Benford's law", Decimal("15"), "medium", {}),
    ("company", "COMP_CIRCULAR_TRANSACTIONS", "Matching debit/credit movements suggest circular flows", Decimal("20"), "high", {}),
    ("company", "COMP_UNUSUAL_VAT_PATTERNS", "Invoice lines use non-standard VAT rates", Decimal("15"), "medium", {}),
    ("company", "COMP_DATE_MANIPULATION", "Invoice dates look manipulated", Decimal("15"), "medium", {}),
    ("company", "COMP_HIGH_FRAUD_PATTERNS", "Many fraud patterns detected", Decimal("25"), "high", {"threshold": 3}),
]


def seed_default_rules(rules: Iterable[tuple] = DEFAULT_RULES) -> int:
    """
    Ensure the built-in global rules exist.
    Re-runnable; existing rules keep any edited weight or config.
    """
    from .models import RiskRule  # imported here to avoid AppConfig import cycles

    created_count = 0
    for scope, code, description, weight, severity, config in rules:
        _, created = RiskRule.objects.get_or_create(
            tenant=None,
            code=code,
            defaults={
                "scope": scope,
                "description": description,
                "weight": weight,
                "default_severity": severity,
                "config": dict(config),
            },
        )
        if created:
            created_count += 1
    return created_count
