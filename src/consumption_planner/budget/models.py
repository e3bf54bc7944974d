"""Grant, budget period, alert and forecast records"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.models import to_plain


class BudgetPeriodType(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    PROJECT_YEAR = "project-year"

    @property
    def months(self) -> int:
        """Nominal length in months"""
        return {"monthly": 1, "quarterly": 3}.get(self.value, 12)


class RolloverPolicy(str, Enum):
    """What happens to unspent budget at the end of a period"""
    STRICT = "strict"
    FLEXIBLE = "flexible"
    FULL = "full"
    NONE = "none"

    @property
    def carryover_share(self) -> float:
        return {"full": 1.0, "flexible": 0.5}.get(self.value, 0.0)


class OveragePolicy(str, Enum):
    BLOCK = "block"
    WARN = "warn"
    ALLOW = "allow"
    APPROVE = "approve"


class GrantStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    COMPLETED = "completed"
    SUSPENDED = "suspended"


class AlertType(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    PROJECTION = "projection"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class GrantBudgetPeriod:
    """One budget period of a grant and its running spend"""
    id: str
    grant_id: str
    period_name: str
    start_date: date
    end_date: date
    allocated_amount: float
    carryover_amount: float = 0.0
    spent_amount: float = 0.0
    committed_amount: float = 0.0
    pending_amount: float = 0.0
    projected_spend: float = 0.0
    warning_threshold: float = 80.0
    critical_threshold: float = 90.0

    @property
    def total_available(self) -> float:
        return self.allocated_amount + self.carryover_amount

    @property
    def remaining_amount(self) -> float:
        return self.total_available - self.spent_amount

    @property
    def utilization_percentage(self) -> float:
        if self.total_available <= 0:
            return 0.0
        return self.spent_amount / self.total_available * 100

    @property
    def length_days(self) -> int:
        return (self.end_date - self.start_date).days

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date

    def days_remaining(self, as_of: date) -> int:
        return max(0, (self.end_date - as_of).days)


@dataclass
class Grant:
    """A time-boxed funding allocation for cloud compute"""
    id: str
    title: str
    funding_agency: str
    principal_investigator: str
    institution: str
    total_budget: float
    cloud_compute_budget: float
    start_date: date
    end_date: date
    project_duration: int  # months
    budget_period_type: BudgetPeriodType = BudgetPeriodType.QUARTERLY
    rollover_policy: RolloverPolicy = RolloverPolicy.NONE
    overage_policy: OveragePolicy = OveragePolicy.WARN
    currency: str = "USD"
    grant_number: Optional[str] = None
    status: GrantStatus = GrantStatus.ACTIVE
    budget_periods: List[GrantBudgetPeriod] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_spent(self) -> float:
        return sum(p.spent_amount for p in self.budget_periods)

    @property
    def monthly_budget(self) -> float:
        return self.cloud_compute_budget / self.project_duration if self.project_duration else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class BudgetAlert:
    """Threshold or projection alert raised by a spending update"""
    id: str
    grant_id: str
    budget_period_id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    threshold: float
    current_utilization: float
    recommended_actions: List[str]
    created_at: datetime
    projected_overage: Optional[float] = None


@dataclass
class MonthlySpend:
    """Observed spend for one month, optionally split by grant"""
    month: date
    total_spent: float
    grant_breakdown: Dict[str, float] = field(default_factory=dict)
    service_breakdown: Dict[str, float] = field(default_factory=dict)

    def for_grant(self, grant_id: str) -> float:
        return self.grant_breakdown.get(grant_id, 0.0)


@dataclass
class ForecastScenario:
    name: str
    probability: float
    projected_spend: float
    description: str
    recommended_actions: List[str] = field(default_factory=list)


@dataclass
class MonthlyProjection:
    month: date
    projected_spend: float
    lower_bound: float
    upper_bound: float


@dataclass
class BudgetRecommendation:
    type: str
    priority: str
    title: str
    description: str
    estimated_savings: float = 0.0
    implementation_effort: str = "medium"
    actions: List[str] = field(default_factory=list)


@dataclass
class BudgetForecast:
    """Projected spend for the current budget period of a grant"""
    grant_id: str
    budget_period_id: str
    generated_at: datetime
    method: str
    average_monthly_spend: float
    spend_variance: float
    remaining_months: int
    projected_total_spend: float
    confidence: float
    will_exceed_budget: bool
    projected_exhaustion_date: Optional[date]
    scenarios: List[ForecastScenario] = field(default_factory=list)
    monthly_projections: List[MonthlyProjection] = field(default_factory=list)
    recommendations: List[BudgetRecommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)
