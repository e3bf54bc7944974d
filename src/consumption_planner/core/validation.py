"""Input validation and request document parsing"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..budget.models import BudgetPeriodType, OveragePolicy, RolloverPolicy
from .exceptions import ValidationError as CustomValidationError
from .models import (
    BurstCapacity, BurstFrequency, CommitmentTerm, DiscountProfile,
    OptimizationConstraints, Priority, ResourceRequirement, RiskLevel,
    SeasonalityType, SeasonalPattern, TimeOfDay, VolumeDiscount, WorkloadPattern
)


class Validator:
    """Central validation utility"""

    PLANNING_HORIZONS = ('1yr', '3yr')

    @classmethod
    def validate_workloads(cls, workloads: Sequence[WorkloadPattern]) -> Sequence[WorkloadPattern]:
        """Validate a workload portfolio"""
        if not workloads:
            raise CustomValidationError("At least one workload pattern is required")

        seen = set()
        for workload in workloads:
            if workload.id in seen:
                raise CustomValidationError(f"Duplicate workload id: {workload.id}")
            seen.add(workload.id)
            cls.validate_workload(workload)
        return workloads

    @classmethod
    def validate_workload(cls, workload: WorkloadPattern) -> WorkloadPattern:
        """Validate one workload's frequency, duration and resource fields"""
        checks = {
            'runs_per_day': workload.runs_per_day,
            'avg_duration_hours': workload.avg_duration_hours,
            'days_per_week': workload.days_per_week,
            'vcpus': workload.requirements.vcpus,
            'memory_gib': workload.requirements.memory_gib,
        }
        for name, value in checks.items():
            if value is None or value <= 0:
                raise CustomValidationError(
                    f"Workload {workload.id}: {name} must be positive, got {value}"
                )

        if workload.days_per_week > 7:
            raise CustomValidationError(
                f"Workload {workload.id}: days_per_week cannot exceed 7"
            )

        multiplier = workload.seasonality.peak_multiplier
        if multiplier is not None and multiplier <= 0:
            raise CustomValidationError(
                f"Workload {workload.id}: peak_multiplier must be positive"
            )

        if workload.bursts and workload.burst_capacity.max_concurrent_jobs < 1:
            raise CustomValidationError(
                f"Workload {workload.id}: max_concurrent_jobs must be at least 1"
            )
        return workload

    @classmethod
    def validate_percentage(cls, value: Optional[float], name: str) -> Optional[float]:
        if value is not None and not 0 <= value <= 100:
            raise CustomValidationError(f"{name} must be between 0 and 100: {value}")
        return value

    @classmethod
    def validate_fraction(cls, value: float, name: str) -> float:
        if not 0 <= value < 1:
            raise CustomValidationError(f"{name} must be a fraction in [0, 1): {value}")
        return value

    @classmethod
    def validate_constraints(cls, constraints: OptimizationConstraints) -> OptimizationConstraints:
        cls.validate_percentage(constraints.max_spot_percentage, "max_spot_percentage")
        cls.validate_percentage(constraints.min_reserved_percentage, "min_reserved_percentage")
        if constraints.max_upfront_payment is not None and constraints.max_upfront_payment < 0:
            raise CustomValidationError("max_upfront_payment cannot be negative")
        return constraints

    @classmethod
    def validate_discount_profile(cls, profile: DiscountProfile) -> DiscountProfile:
        cls.validate_fraction(profile.edp_discount, "edp_discount")
        for family, discount in profile.ppa_discounts.items():
            cls.validate_fraction(discount, f"ppa_discounts[{family}]")
        for tier in profile.volume_discounts:
            cls.validate_fraction(tier.discount, "volume discount")
        if profile.available_credits < 0:
            raise CustomValidationError("available_credits cannot be negative")
        return profile

    @classmethod
    def validate_planning_horizon(cls, horizon: str) -> str:
        if horizon not in cls.PLANNING_HORIZONS:
            raise CustomValidationError(
                f"Invalid planning horizon: {horizon} (expected one of {', '.join(cls.PLANNING_HORIZONS)})"
            )
        return horizon

    @classmethod
    def validate_date_range(cls, start_date: Union[str, date], end_date: Union[str, date]) -> tuple:
        """Validate date range"""
        if isinstance(start_date, str):
            start_date = datetime.fromisoformat(start_date).date()
        if isinstance(end_date, str):
            end_date = datetime.fromisoformat(end_date).date()

        if start_date >= end_date:
            raise CustomValidationError("Start date must be before end date")

        return start_date, end_date

    @classmethod
    def validate_grant_terms(cls, total_budget: float, cloud_compute_budget: float,
                             project_duration: int, start_date: date, end_date: date) -> None:
        if cloud_compute_budget <= 0:
            raise CustomValidationError("cloud_compute_budget must be positive")
        if cloud_compute_budget > total_budget:
            raise CustomValidationError("cloud_compute_budget cannot exceed total_budget")
        if project_duration < 1:
            raise CustomValidationError("project_duration must be at least one month")
        cls.validate_date_range(start_date, end_date)

    @classmethod
    def load_document(cls, path: Union[str, Path]) -> Dict[str, Any]:
        """Read a YAML or JSON request document"""
        path = Path(path)
        if not path.exists():
            raise CustomValidationError(f"File does not exist: {path}")

        text = path.read_text(encoding='utf-8')
        try:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise CustomValidationError(f"Could not parse {path}: {e}")

        if not isinstance(data, dict):
            raise CustomValidationError(f"{path} must contain a mapping at the top level")
        return data


# ---------------------------------------------------------------------------
# Request documents
# ---------------------------------------------------------------------------

class RequestValidator(BaseModel):
    """Base class for request documents"""
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)


class ResourceSpec(RequestValidator):
    vcpus: float = Field(gt=0)
    memory_gib: float = Field(gt=0)
    gpu_required: bool = False
    storage_gib: float = Field(default=0, ge=0)
    network_intensive: bool = False


class SeasonalitySpec(RequestValidator):
    type: SeasonalityType = SeasonalityType.STEADY
    peak_months: List[int] = Field(default_factory=list)
    low_months: List[int] = Field(default_factory=list)
    peak_multiplier: Optional[float] = Field(default=None, gt=0)
    description: str = ""


class BurstSpec(RequestValidator):
    enabled: bool = False
    max_concurrent_jobs: int = Field(default=1, ge=1)
    burst_duration_hours: float = Field(default=0, ge=0)
    burst_frequency: BurstFrequency = BurstFrequency.WEEKLY


class WorkloadSpec(RequestValidator):
    id: str = Field(min_length=1)
    name: str
    runs_per_day: float = Field(gt=0)
    avg_duration_hours: float = Field(gt=0)
    days_per_week: float = Field(gt=0, le=7)
    requirements: ResourceSpec
    seasonality: SeasonalitySpec = Field(default_factory=SeasonalitySpec)
    priority: Priority = Priority.NORMAL
    interruptible: bool = False
    burst_capacity: Optional[BurstSpec] = None
    description: str = ""
    team: Optional[str] = None
    project: Optional[str] = None
    time_of_day: TimeOfDay = TimeOfDay.ANYTIME

    def to_pattern(self) -> WorkloadPattern:
        burst = None
        if self.burst_capacity is not None:
            burst = BurstCapacity(**self.burst_capacity.model_dump())
        seasonality = self.seasonality.model_dump()
        seasonality['peak_months'] = tuple(seasonality['peak_months'])
        seasonality['low_months'] = tuple(seasonality['low_months'])
        return WorkloadPattern(
            id=self.id,
            name=self.name,
            runs_per_day=self.runs_per_day,
            avg_duration_hours=self.avg_duration_hours,
            days_per_week=self.days_per_week,
            requirements=ResourceRequirement(**self.requirements.model_dump()),
            seasonality=SeasonalPattern(**seasonality),
            priority=self.priority,
            interruptible=self.interruptible,
            burst_capacity=burst,
            description=self.description,
            team=self.team,
            project=self.project,
            time_of_day=self.time_of_day,
        )


class ConstraintsSpec(RequestValidator):
    max_commitment: Optional[CommitmentTerm] = None
    max_upfront_payment: Optional[float] = Field(default=None, ge=0)
    prioritize_cost: bool = False
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM
    flexibility_required: bool = False
    reliability_required: bool = False
    spot_instances_allowed: bool = True
    min_reserved_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    max_spot_percentage: Optional[float] = Field(default=None, ge=0, le=100)

    def to_constraints(self) -> OptimizationConstraints:
        return OptimizationConstraints(**self.model_dump())


class VolumeDiscountSpec(RequestValidator):
    threshold: float = Field(ge=0)
    discount: float = Field(ge=0, lt=1)


class DiscountSpec(RequestValidator):
    edp_discount: float = Field(default=0, ge=0, lt=1)
    ppa_discounts: Dict[str, float] = Field(default_factory=dict)
    available_credits: float = Field(default=0, ge=0)
    monthly_budget: Optional[float] = Field(default=None, gt=0)
    volume_discounts: List[VolumeDiscountSpec] = Field(default_factory=list)
    organization_name: Optional[str] = None
    credit_expiration_date: Optional[date] = None

    def to_profile(self) -> DiscountProfile:
        data = self.model_dump()
        data['volume_discounts'] = tuple(VolumeDiscount(**tier) for tier in data['volume_discounts'])
        return DiscountProfile(**data)


class PlanRequest(RequestValidator):
    """Document accepted by the optimize and plan commands"""
    name: Optional[str] = None
    planning_horizon: str = Field(default='1yr', pattern='^(1yr|3yr)$')
    workloads: List[WorkloadSpec] = Field(min_length=1)
    constraints: Optional[ConstraintsSpec] = None
    discounts: Optional[DiscountSpec] = None

    @model_validator(mode='after')
    def check_unique_ids(self) -> 'PlanRequest':
        ids = [w.id for w in self.workloads]
        if len(ids) != len(set(ids)):
            raise ValueError("workload ids must be unique")
        return self

    def workload_patterns(self) -> List[WorkloadPattern]:
        return [w.to_pattern() for w in self.workloads]

    def optimization_constraints(self) -> Optional[OptimizationConstraints]:
        return self.constraints.to_constraints() if self.constraints else None

    def discount_profile(self) -> Optional[DiscountProfile]:
        return self.discounts.to_profile() if self.discounts else None


class GrantSpec(RequestValidator):
    id: Optional[str] = None
    title: str
    funding_agency: str
    principal_investigator: str
    institution: str
    total_budget: float = Field(gt=0)
    cloud_compute_budget: float = Field(gt=0)
    start_date: date
    end_date: date
    project_duration: Optional[int] = Field(default=None, ge=1)
    budget_period_type: BudgetPeriodType = BudgetPeriodType.QUARTERLY
    rollover_policy: RolloverPolicy = RolloverPolicy.NONE
    overage_policy: OveragePolicy = OveragePolicy.WARN
    currency: str = 'USD'
    grant_number: Optional[str] = None
    spent_to_date: float = Field(default=0, ge=0)

    @model_validator(mode='after')
    def check_terms(self) -> 'GrantSpec':
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        if self.cloud_compute_budget > self.total_budget:
            raise ValueError("cloud_compute_budget cannot exceed total_budget")
        return self


class MonthlySpendSpec(RequestValidator):
    month: date
    total_spent: float = Field(ge=0)
    grant_breakdown: Dict[str, float] = Field(default_factory=dict)
    service_breakdown: Dict[str, float] = Field(default_factory=dict)


class ForecastRequest(RequestValidator):
    """Document accepted by the budget forecast command"""
    grant: GrantSpec
    history: List[MonthlySpendSpec] = Field(default_factory=list)
    as_of: Optional[date] = None


class DashboardRequest(RequestValidator):
    """Document accepted by the budget dashboard command"""
    grants: List[GrantSpec] = Field(min_length=1)
    history: List[MonthlySpendSpec] = Field(default_factory=list)
    as_of: Optional[date] = None


RequestT = TypeVar('RequestT', bound=BaseModel)


def parse_request(model: Type[RequestT], data: Dict[str, Any]) -> RequestT:
    """Validate a raw document against a request schema"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise CustomValidationError(f"Invalid {model.__name__}: {problems}") from e
