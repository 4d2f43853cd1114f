from __future__ import annotations

from dataclasses import asdict, dataclass


UNLIMITED = 10**9


class Plan:
    FREE = "FREE"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"

    choices = [(FREE, "Free"), (PRO, "Pro"), (ENTERPRISE, "Enterprise")]


class UsageMetric:
    CLIENT_COMPANIES = "CLIENT_COMPANIES"
    DOCUMENTS = "DOCUMENTS"
    AI_ANALYSES = "AI_ANALYSES"
    USERS = "USERS"
    SCHEDULED_REPORTS = "SCHEDULED_REPORTS"

    ALL = [CLIENT_COMPANIES, DOCUMENTS, AI_ANALYSES, USERS, SCHEDULED_REPORTS]
    choices = [(m, m.replace("_", " ").title()) for m in ALL]


@dataclass(frozen=True)
class PlanLimits:
    max_client_companies: int
    max_documents_per_month: int
    max_ai_analyses_per_month: int
    max_users: int
    max_scheduled_reports: int

    def for_metric(self, metric: str) -> int:
        return {
            UsageMetric.CLIENT_COMPANIES: self.max_client_companies,
            UsageMetric.DOCUMENTS: self.max_documents_per_month,
            UsageMetric.AI_ANALYSES: self.max_ai_analyses_per_month,
            UsageMetric.USERS: self.max_users,
            UsageMetric.SCHEDULED_REPORTS: self.max_scheduled_reports,
        }[metric]

    def as_dict(self) -> dict:
        return asdict(self)


PLAN_LIMITS = {
    Plan.FREE: PlanLimits(
        max_client_companies=3,
        max_documents_per_month=100,
        max_ai_analyses_per_month=20,
        max_users=3,
        max_scheduled_reports=1,
    ),
    Plan.PRO: PlanLimits(
        max_client_companies=50,
        max_documents_per_month=5000,
        max_ai_analyses_per_month=1000,
        max_users=25,
        max_scheduled_reports=50,
    ),
    Plan.ENTERPRISE: PlanLimits(
        max_client_companies=UNLIMITED,
        max_documents_per_month=UNLIMITED,
        max_ai_analyses_per_month=UNLIMITED,
        max_users=UNLIMITED,
        max_scheduled_reports=UNLIMITED,
    ),
}


def get_plan_limits(plan: str) -> PlanLimits:
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[Plan.FREE])
