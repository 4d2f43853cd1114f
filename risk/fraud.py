"""
Statistical fraud-pattern checks over a company's ledger.

The checks are deliberately simple heuristics; each returns a result object
with ``is_suspicious`` plus the evidence used to reach it.
"""
from __future__ import annotations

import calendar
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Literal, Optional, Sequence

from django.utils import timezone

from core.models import Invoice, InvoiceLine, Transaction
from core.services.ledger import transaction_amount
from taxes.vat import is_valid_vat_rate


logger = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high"]

BENFORD_MIN_SAMPLE = 20
BENFORD_CHI_SQUARE_CRITICAL = 15.51  # 8 degrees of freedom, p = 0.05
BENFORD_CHI_SQUARE_HIGH = 25.0
BENFORD_EXPECTED = {digit: math.log10(1 + 1 / digit) for digit in range(1, 10)}

ROUND_NUMBER_THRESHOLD = 0.30
OFF_HOURS_THRESHOLD = 0.30
WEEKEND_THRESHOLD = 0.20
MONTH_END_THRESHOLD = 0.40
BUSINESS_HOURS = (9, 18)

LOOKBACK_DAYS = 365


@dataclass
class BenfordResult:
    is_suspicious: bool
    chi_square: float = 0.0
    sample_size: int = 0
    observed: dict = field(default_factory=dict)


@dataclass
class RoundNumberResult:
    is_suspicious: bool
    round_ratio: float = 0.0
    sample_size: int = 0
    roundness: dict = field(default_factory=dict)


@dataclass
class TimingResult:
    is_suspicious: bool
    off_hours_ratio: float = 0.0
    weekend_ratio: float = 0.0
    month_end_ratio: float = 0.0
    reasons: List[str] = field(default_factory=list)


@dataclass
class FraudPattern:
    type: str
    severity: Severity
    description: str
    evidence: dict = field(default_factory=dict)


def first_digit(amount: Decimal) -> Optional[int]:
    amount = abs(Decimal(amount))
    if amount == 0:
        return None
    digits = amount.normalize().as_tuple().digits
    return digits[0] if digits else None


def check_benfords_law(amounts: Iterable[Decimal]) -> BenfordResult:
    digits = [d for d in (first_digit(a) for a in amounts) if d]
    if len(digits) < BENFORD_MIN_SAMPLE:
        return BenfordResult(is_suspicious=False, sample_size=len(digits))

    counts = Counter(digits)
    total = len(digits)
    chi_square = 0.0
    for digit, expected_ratio in BENFORD_EXPECTED.items():
        expected = expected_ratio * total
        chi_square += (counts.get(digit, 0) - expected) ** 2 / expected

    return BenfordResult(
        is_suspicious=chi_square > BENFORD_CHI_SQUARE_CRITICAL,
        chi_square=round(chi_square, 4),
        sample_size=total,
        observed={d: counts.get(d, 0) for d in range(1, 10)},
    )


def roundness(amount: Decimal) -> Optional[str]:
    """Return ``high``/``medium``/``low`` for round whole amounts, else None."""
    amount = abs(Decimal(amount))
    if amount != amount.to_integral_value():
        return None
    whole = int(amount)
    if whole >= 1000 and whole % 1000 == 0:
        return "high"
    if whole >= 100 and whole % 100 == 0:
        return "medium"
    if whole >= 1000 and whole % 10 == 0:
        return "low"
    return None


def check_round_numbers(amounts: Sequence[Decimal]) -> RoundNumberResult:
    amounts = [a for a in amounts if a]
    if not amounts:
        return RoundNumberResult(is_suspicious=False)
    levels = Counter(level for level in (roundness(a) for a in amounts) if level)
    ratio = sum(levels.values()) / len(amounts)
    return RoundNumberResult(
        is_suspicious=ratio > ROUND_NUMBER_THRESHOLD,
        round_ratio=round(ratio, 4),
        sample_size=len(amounts),
        roundness=dict(levels),
    )


def check_unusual_timing(timestamps: Sequence[datetime]) -> TimingResult:
    if not timestamps:
        return TimingResult(is_suspicious=False)
    total = len(timestamps)
    local = [timezone.localtime(ts) if timezone.is_aware(ts) else ts for ts in timestamps]

    off_hours = sum(1 for ts in local if ts.hour < BUSINESS_HOURS[0] or ts.hour >= BUSINESS_HOURS[1])
    weekend = sum(1 for ts in local if ts.weekday() >= 5)
    month_end = sum(1 for ts in local if ts.day > calendar.monthrange(ts.year, ts.month)[1] - 3)

    result = TimingResult(
        is_suspicious=False,
        off_hours_ratio=round(off_hours / total, 4),
        weekend_ratio=round(weekend / total, 4),
        month_end_ratio=round(month_end / total, 4),
    )
    if result.off_hours_ratio > OFF_HOURS_THRESHOLD:
        result.reasons.append("off_hours")
    if result.weekend_ratio > WEEKEND_THRESHOLD:
        result.reasons.append("weekend")
    if result.month_end_ratio > MONTH_END_THRESHOLD:
        result.reasons.append("month_end")
    result.is_suspicious = bool(result.reasons)
    return result


def recent_transactions(tenant, client_company, days: int = LOOKBACK_DAYS) -> List[Transaction]:
    since = timezone.now() - timedelta(days=days)
    return list(
        Transaction.objects.filter(tenant=tenant, client_company=client_company, date__gte=since)
        .prefetch_related("lines")
        .order_by("date", "id")
    )


def _circular_pairs(transactions: List[Transaction]) -> int:
    """Count debit movements mirrored by an equal credit with the same description within a week."""
    credits = defaultdict(list)
    debits = []
    for txn in transactions:
        description = txn.description.strip().lower()
        if not description:
            continue
        for line in txn.lines.all():
            if line.credit:
                credits[(description, line.credit)].append((txn.id, txn.date))
            if line.debit:
                debits.append((description, line.debit, txn.id, txn.date))

    pairs = 0
    for description, amount, txn_id, when in debits:
        for other_id, other_when in credits.get((description, amount), []):
            if other_id != txn_id and abs(other_when - when) <= timedelta(days=7):
                pairs += 1
                break
    return pairs


def detect_fraud_patterns(tenant, client_company) -> List[FraudPattern]:
    patterns: List[FraudPattern] = []
    transactions = recent_transactions(tenant, client_company)
    amounts = [transaction_amount(txn) for txn in transactions]

    benford = check_benfords_law(amounts)
    if benford.is_suspicious:
        patterns.append(
            FraudPattern(
                type="benford",
                severity="high" if benford.chi_square > BENFORD_CHI_SQUARE_HIGH else "medium",
                description=f"First-digit distribution deviates from Benford's law (chi-square {benford.chi_square}).",
                evidence={"chi_square": benford.chi_square, "sample_size": benford.sample_size},
            )
        )

    rounds = check_round_numbers(amounts)
    if rounds.is_suspicious:
        patterns.append(
            FraudPattern(
                type="round_numbers",
                severity="medium",
                description=f"{rounds.round_ratio:.0%} of amounts are round numbers.",
                evidence={"round_ratio": rounds.round_ratio, "roundness": rounds.roundness},
            )
        )

    timing = check_unusual_timing([txn.date for txn in transactions])
    if timing.is_suspicious:
        patterns.append(
            FraudPattern(
                type="unusual_timing",
                severity="medium",
                description="Transactions cluster at unusual times: " + ", ".join(timing.reasons) + ".",
                evidence={
                    "off_hours_ratio": timing.off_hours_ratio,
                    "weekend_ratio": timing.weekend_ratio,
                    "month_end_ratio": timing.month_end_ratio,
                },
            )
        )

    circular = _circular_pairs(transactions)
    if circular >= 3:
        patterns.append(
            FraudPattern(
                type="circular_transactions",
                severity="high",
                description=f"{circular} debit movements are mirrored by identical credits within a week.",
                evidence={"pairs": circular},
            )
        )

    since = timezone.localdate() - timedelta(days=LOOKBACK_DAYS)
    invoices = Invoice.objects.filter(tenant=tenant, client_company=client_company, issue_date__gte=since)

    lines = list(InvoiceLine.objects.filter(invoice__in=invoices).values_list("vat_rate", flat=True))
    if lines:
        invalid = sum(1 for rate in lines if not is_valid_vat_rate(rate))
        if invalid / len(lines) > 0.30:
            patterns.append(
                FraudPattern(
                    type="vat_pattern",
                    severity="medium",
                    description=f"{invalid} of {len(lines)} invoice lines use non-standard VAT rates.",
                    evidence={"invalid_lines": invalid, "total_lines": len(lines)},
                )
            )

    invoice_dates = list(invoices.values_list("issue_date", "due_date"))
    if invoice_dates:
        today = timezone.localdate()
        odd = sum(1 for issue, due in invoice_dates if issue > today or (due is not None and issue > due))
        if odd / len(invoice_dates) > 0.20:
            patterns.append(
                FraudPattern(
                    type="date_manipulation",
                    severity="medium",
                    description=f"{odd} of {len(invoice_dates)} invoices have future or inverted dates.",
                    evidence={"suspicious_invoices": odd, "total_invoices": len(invoice_dates)},
                )
            )

    if patterns:
        logger.info(
            "Detected %s fraud pattern(s) for company %s: %s",
            len(patterns),
            client_company.id,
            ", ".join(p.type for p in patterns),
        )
    return patterns
