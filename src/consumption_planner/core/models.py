"""
Domain models shared by the optimizer, the planner and the command line.

Workload descriptions and optimization inputs are frozen dataclasses so a
single optimization run can hand them to worker threads without copying.
Purchase strategies are frozen as well; discount application and constraint
filtering derive new strategies with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

HOURS_PER_MONTH = 720
HOURS_PER_YEAR = 8760


class Priority(str, Enum):
    """Business priority of a workload"""
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class SeasonalityType(str, Enum):
    """Shape of a workload's yearly demand"""
    STEADY = "steady"
    ACADEMIC = "academic"
    GRANT_BASED = "grant-based"
    SEASONAL = "seasonal"
    CUSTOM = "custom"


class BurstFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TimeOfDay(str, Enum):
    BUSINESS_HOURS = "business-hours"
    OFF_HOURS = "off-hours"
    ANYTIME = "anytime"


class PurchaseCategory(str, Enum):
    """Ways of buying compute capacity"""
    RESERVED = "reserved"
    SAVINGS_PLAN = "savings-plan"
    SPOT = "spot"
    ON_DEMAND = "on-demand"


class CommitmentTerm(str, Enum):
    ONE_YEAR = "1yr"
    THREE_YEAR = "3yr"

    @property
    def years(self) -> int:
        return 3 if self is CommitmentTerm.THREE_YEAR else 1


class PaymentOption(str, Enum):
    """Reserved/savings commitment payment options"""
    NO_UPFRONT = "no-upfront"
    PARTIAL_UPFRONT = "partial-upfront"
    ALL_UPFRONT = "all-upfront"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InstanceClass(str, Enum):
    """Instance families the catalog knows how to price"""
    GENERAL_PURPOSE = "general-purpose"
    COMPUTE_OPTIMIZED = "compute-optimized"
    MEMORY_OPTIMIZED = "memory-optimized"
    STORAGE_OPTIMIZED = "storage-optimized"
    GPU_ACCELERATED = "gpu-accelerated"


def to_plain(value: Any) -> Any:
    """Convert dataclasses, enums and dates into JSON-compatible values"""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Workload inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceRequirement:
    """Compute shape needed by one run of a workload"""
    vcpus: float
    memory_gib: float
    gpu_required: bool = False
    storage_gib: float = 0.0
    network_intensive: bool = False

    @property
    def memory_per_vcpu(self) -> float:
        return self.memory_gib / self.vcpus if self.vcpus else 0.0


@dataclass(frozen=True)
class SeasonalPattern:
    type: SeasonalityType = SeasonalityType.STEADY
    peak_months: Tuple[int, ...] = ()
    low_months: Tuple[int, ...] = ()
    peak_multiplier: Optional[float] = None
    description: str = ""

    @property
    def is_steady(self) -> bool:
        return self.type == SeasonalityType.STEADY

    @property
    def multiplier(self) -> float:
        """Average demand multiplier across peak and normal months"""
        if self.is_steady or self.peak_multiplier is None:
            return 1.0
        return (self.peak_multiplier + 1) / 2


@dataclass(frozen=True)
class BurstCapacity:
    enabled: bool = False
    max_concurrent_jobs: int = 1
    burst_duration_hours: float = 0.0
    burst_frequency: BurstFrequency = BurstFrequency.WEEKLY


@dataclass(frozen=True)
class WorkloadPattern:
    """A recurring compute workload"""
    id: str
    name: str
    runs_per_day: float
    avg_duration_hours: float
    days_per_week: float
    requirements: ResourceRequirement
    seasonality: SeasonalPattern = field(default_factory=SeasonalPattern)
    priority: Priority = Priority.NORMAL
    interruptible: bool = False
    burst_capacity: Optional[BurstCapacity] = None
    description: str = ""
    team: Optional[str] = None
    project: Optional[str] = None
    time_of_day: TimeOfDay = TimeOfDay.ANYTIME

    @property
    def is_critical(self) -> bool:
        return self.priority == Priority.CRITICAL

    @property
    def is_predictable(self) -> bool:
        """Critical or non-interruptible work needs committed capacity"""
        return self.is_critical or not self.interruptible

    @property
    def bursts(self) -> bool:
        return self.burst_capacity is not None and self.burst_capacity.enabled

    @property
    def monthly_hours(self) -> float:
        return self.runs_per_day * self.avg_duration_hours * (self.days_per_week / 7) * 30

    @property
    def adjusted_monthly_hours(self) -> float:
        return self.monthly_hours * self.seasonality.multiplier


# ---------------------------------------------------------------------------
# Optimization inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OptimizationConstraints:
    """Caller preferences and hard limits for scenario selection"""
    max_commitment: Optional[CommitmentTerm] = None
    max_upfront_payment: Optional[float] = None
    prioritize_cost: bool = False
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM
    flexibility_required: bool = False
    reliability_required: bool = False
    spot_instances_allowed: bool = True
    min_reserved_percentage: Optional[float] = None
    max_spot_percentage: Optional[float] = None


@dataclass(frozen=True)
class VolumeDiscount:
    threshold: float
    discount: float


@dataclass(frozen=True)
class DiscountProfile:
    """Negotiated pricing: enterprise discount, per-family private pricing, credits"""
    edp_discount: float = 0.0
    ppa_discounts: Dict[str, float] = field(default_factory=dict)
    available_credits: float = 0.0
    monthly_budget: Optional[float] = None
    volume_discounts: Tuple[VolumeDiscount, ...] = ()
    organization_name: Optional[str] = None
    credit_expiration_date: Optional[date] = None

    def ppa_for(self, family: str) -> float:
        return self.ppa_discounts.get(family, 0.0)

    def volume_tier(self, monthly_spend: float) -> Optional[VolumeDiscount]:
        """Highest volume tier whose threshold the spend reaches"""
        reached = [tier for tier in self.volume_discounts if monthly_spend >= tier.threshold]
        return max(reached, key=lambda tier: tier.threshold) if reached else None


# ---------------------------------------------------------------------------
# Strategies and scenarios
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PurchaseStrategy:
    """One capacity purchase line inside a scenario"""
    id: str
    instance_type: str
    quantity: int  # 0 means elastic capacity
    purchase_type: PurchaseCategory
    hourly_cost: float
    estimated_utilization: float  # percent
    purpose: str
    covered_workloads: Tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW
    commitment: Optional[CommitmentTerm] = None
    payment_option: Optional[PaymentOption] = None

    @property
    def instance_family(self) -> str:
        return self.instance_type.split('.')[0]

    @property
    def billed_quantity(self) -> int:
        return max(self.quantity, 1)

    @property
    def monthly_cost(self) -> float:
        return (self.hourly_cost * HOURS_PER_MONTH * self.billed_quantity
                * self.estimated_utilization / 100)

    @property
    def upfront_cost(self) -> float:
        """Cash due at purchase for committed capacity"""
        if self.commitment is None or self.payment_option is None:
            return 0.0
        term_cost = self.hourly_cost * HOURS_PER_YEAR * self.commitment.years * self.billed_quantity
        if self.payment_option == PaymentOption.ALL_UPFRONT:
            return term_cost
        if self.payment_option == PaymentOption.PARTIAL_UPFRONT:
            return term_cost / 2
        return 0.0


@dataclass(frozen=True)
class Scenario:
    """A named purchase mix produced from one archetype"""
    name: str
    description: str
    strategies: Tuple[PurchaseStrategy, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.strategies

    @property
    def monthly_cost(self) -> float:
        return sum(s.monthly_cost for s in self.strategies)

    def of_type(self, category: PurchaseCategory) -> List[PurchaseStrategy]:
        return [s for s in self.strategies if s.purchase_type == category]

    def purchase_types(self) -> List[PurchaseCategory]:
        seen: List[PurchaseCategory] = []
        for strategy in self.strategies:
            if strategy.purchase_type not in seen:
                seen.append(strategy.purchase_type)
        return seen


# ---------------------------------------------------------------------------
# Optimization results
# ---------------------------------------------------------------------------

@dataclass
class ScenarioScore:
    scenario: str
    cost: float
    risk: float
    flexibility: float
    reliability: float
    specialization: float
    bonus: float
    total: float


@dataclass
class CostSavings:
    monthly: float
    percentage: float
    baseline_monthly_cost: float
    optimized_monthly_cost: float

    @property
    def annual(self) -> float:
        return self.monthly * 12

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data['annual'] = self.annual
        return data


@dataclass
class RiskProfile:
    overall_risk: RiskLevel
    spot_interruption_risk: float
    cost_variability_risk: RiskLevel
    commitment_risk: RiskLevel
    spot_capacity_percentage: float = 0.0


@dataclass
class OptimizationMetrics:
    strategies_count: int
    purchase_type_distribution: Dict[str, int]
    average_utilization: float
    risk_distribution: Dict[str, int]


@dataclass
class OptimizationResult:
    """Outcome of one cost optimization run"""
    id: str
    optimal_scenario: str
    optimal_strategy: List[PurchaseStrategy]
    alternative_scenarios: List[Scenario]
    cost_savings: CostSavings
    risk_assessment: RiskProfile
    recommendations: List[str]
    confidence_level: float
    optimization_metrics: OptimizationMetrics
    scenario_scores: List[ScenarioScore] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data['cost_savings'] = self.cost_savings.to_dict()
        return data


@dataclass
class ReservedCost:
    monthly_cost: float = 0.0
    instances: int = 0
    utilization_rate: float = 0.0


@dataclass
class SavingsPlanCost:
    monthly_cost: float = 0.0
    commitment_amount: float = 0.0
    utilization_rate: float = 0.0


@dataclass
class SpotCost:
    monthly_cost: float = 0.0
    estimated_savings: float = 0.0
    interruption_risk: float = 0.0


@dataclass
class OnDemandCost:
    monthly_cost: float = 0.0
    instances: int = 0
    usage: str = "overflow"  # peak, burst or overflow


@dataclass
class CostBreakdown:
    reserved: ReservedCost = field(default_factory=ReservedCost)
    savings_plans: SavingsPlanCost = field(default_factory=SavingsPlanCost)
    spot: SpotCost = field(default_factory=SpotCost)
    on_demand: OnDemandCost = field(default_factory=OnDemandCost)

    @property
    def total_monthly_cost(self) -> float:
        return (self.reserved.monthly_cost + self.savings_plans.monthly_cost
                + self.spot.monthly_cost + self.on_demand.monthly_cost)

    @property
    def total_annual_cost(self) -> float:
        return self.total_monthly_cost * 12

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data['total'] = {
            'monthly_cost': self.total_monthly_cost,
            'annual_cost': self.total_annual_cost,
        }
        return data


@dataclass
class PlanAnalysis:
    total_monthly_cost: float
    savings_amount: float
    savings_percentage: float
    payback_period_months: Optional[float]
    confidence: float


@dataclass
class PlanRisks:
    spot_interruption: float
    under_utilization: float
    over_commitment: float


@dataclass
class ConsumptionPlan:
    """A costed purchase plan for a workload portfolio"""
    id: str
    name: str
    created_at: datetime
    workload_patterns: List[WorkloadPattern]
    planning_horizon: str
    recommended_purchases: List[PurchaseStrategy]
    cost_breakdown: CostBreakdown
    analysis: PlanAnalysis
    risks: PlanRisks
    risk_profile: RiskProfile
    recommendations: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    optimization: Optional[OptimizationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data['cost_breakdown'] = self.cost_breakdown.to_dict()
        if self.optimization is not None:
            data['optimization'] = self.optimization.to_dict()
        return data
