"""
Scenario generation.

Each purchase archetype is a row of ``SCENARIO_TEMPLATES``: a list of
allocation rules saying which share of which hour total goes to which
purchase category, on which instance, at what expected utilization, and
which workloads the capacity serves. The generator turns every enabled
template into a priced ``Scenario``; templates are independent, so they can
be built on a thread pool.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..core.config import get_settings
from ..core.models import (
    HOURS_PER_MONTH, CommitmentTerm, DiscountProfile, InstanceClass,
    OptimizationConstraints, PaymentOption, Priority, PurchaseCategory,
    PurchaseStrategy, RiskLevel, Scenario, WorkloadPattern
)
from ..pricing.catalog import FLEXIBLE_INSTANCE, PricingCatalog, get_default_catalog
from .aggregation import WorkloadAggregate

logger = logging.getLogger(__name__)

WorkloadPredicate = Callable[[WorkloadPattern], bool]
IncludePredicate = Callable[[WorkloadAggregate, float], bool]
InstanceSelector = Union[str, InstanceClass, Callable[[WorkloadAggregate], str]]

# Payment options from most to least cash up front
PAYMENT_LADDER = (
    PaymentOption.ALL_UPFRONT,
    PaymentOption.PARTIAL_UPFRONT,
    PaymentOption.NO_UPFRONT,
)


@dataclass(frozen=True)
class AllocationRule:
    """One purchase line of a scenario template"""
    category: PurchaseCategory
    share: float
    basis: str  # predictable, interruptible, total, gpu or burst
    instance: InstanceSelector
    utilization: float
    risk: RiskLevel
    purpose: str
    eligible: WorkloadPredicate
    include: IncludePredicate
    commitment: Optional[CommitmentTerm] = None
    payment: Optional[PaymentOption] = None
    min_hours: float = 0.0


@dataclass(frozen=True)
class ScenarioTemplate:
    name: str
    description: str
    rules: Tuple[AllocationRule, ...]
    enabled: Callable[[WorkloadAggregate], bool] = lambda aggregate: True


def _any(workload: WorkloadPattern) -> bool:
    return True


def _interruptible(workload: WorkloadPattern) -> bool:
    return workload.interruptible


def _interruptible_or_low(workload: WorkloadPattern) -> bool:
    return workload.interruptible or workload.priority == Priority.LOW


def _critical(workload: WorkloadPattern) -> bool:
    return workload.is_critical


def _critical_or_high(workload: WorkloadPattern) -> bool:
    return workload.priority in (Priority.CRITICAL, Priority.HIGH)


def _steady_non_low(workload: WorkloadPattern) -> bool:
    return not workload.interruptible and workload.priority != Priority.LOW


def _normal(workload: WorkloadPattern) -> bool:
    return workload.priority == Priority.NORMAL


def _gpu(workload: WorkloadPattern) -> bool:
    return workload.requirements.gpu_required


def _gpu_committed(workload: WorkloadPattern) -> bool:
    return _gpu(workload) and _critical_or_high(workload)


def _gpu_interruptible(workload: WorkloadPattern) -> bool:
    return _gpu(workload) and workload.interruptible


def _bursts(workload: WorkloadPattern) -> bool:
    return workload.bursts


def _allocated(aggregate: WorkloadAggregate, hours: float) -> bool:
    return hours > 0


def _has_interruptible(aggregate: WorkloadAggregate, hours: float) -> bool:
    return aggregate.interruptible_hours > 0


def _large_portfolio(aggregate: WorkloadAggregate, hours: float) -> bool:
    return aggregate.total_hours > 500


def _always(aggregate: WorkloadAggregate, hours: float) -> bool:
    return True


def _gpu_reserved_instance(aggregate: WorkloadAggregate) -> str:
    # Above four always-on GPUs a multi-GPU node is cheaper per GPU-hour
    return 'p4d.24xlarge' if aggregate.gpu_hours > 4 * HOURS_PER_MONTH else 'p3.2xlarge'


SCENARIO_TEMPLATES: Tuple[ScenarioTemplate, ...] = (
    ScenarioTemplate(
        name='conservative',
        description='Maximum commitment for predictable cost',
        rules=(
            AllocationRule(
                PurchaseCategory.RESERVED, 0.7, 'predictable', InstanceClass.COMPUTE_OPTIMIZED,
                utilization=90, risk=RiskLevel.LOW,
                purpose='Base capacity with maximum cost predictability',
                eligible=_steady_non_low, include=_allocated,
                commitment=CommitmentTerm.THREE_YEAR, payment=PaymentOption.ALL_UPFRONT,
            ),
            AllocationRule(
                PurchaseCategory.SPOT, 0.2, 'interruptible', InstanceClass.GENERAL_PURPOSE,
                utilization=65, risk=RiskLevel.MEDIUM,
                purpose='Cost-effective capacity for fault-tolerant workloads',
                eligible=_interruptible, include=_has_interruptible,
            ),
            AllocationRule(
                PurchaseCategory.ON_DEMAND, 0.1, 'total', 'm7i.large',
                utilization=25, risk=RiskLevel.LOW,
                purpose='Flexible capacity for unexpected demand',
                eligible=_any, include=_always,
            ),
        ),
    ),
    ScenarioTemplate(
        name='aggressive',
        description='Spot-heavy mix for maximum savings',
        rules=(
            AllocationRule(
                PurchaseCategory.RESERVED, 0.4, 'predictable', InstanceClass.MEMORY_OPTIMIZED,
                utilization=85, risk=RiskLevel.LOW,
                purpose='Minimal base capacity for critical workloads',
                eligible=_critical, include=_allocated,
                commitment=CommitmentTerm.ONE_YEAR, payment=PaymentOption.PARTIAL_UPFRONT,
            ),
            AllocationRule(
                PurchaseCategory.SPOT, 0.5, 'interruptible', InstanceClass.COMPUTE_OPTIMIZED,
                utilization=70, risk=RiskLevel.HIGH,
                purpose='Primary compute capacity for maximum savings',
                eligible=_interruptible_or_low, include=_always,
            ),
            AllocationRule(
                PurchaseCategory.ON_DEMAND, 0.1, 'total', 'c7i.large',
                utilization=30, risk=RiskLevel.LOW,
                purpose='Backup capacity for spot interruptions',
                eligible=_any, include=_always,
            ),
        ),
    ),
    ScenarioTemplate(
        name='balanced',
        description='Mixed commitment balancing savings and flexibility',
        rules=(
            AllocationRule(
                PurchaseCategory.RESERVED, 0.5, 'predictable', InstanceClass.GENERAL_PURPOSE,
                utilization=88, risk=RiskLevel.LOW,
                purpose='Balanced base capacity',
                eligible=_critical_or_high, include=_allocated,
                commitment=CommitmentTerm.ONE_YEAR, payment=PaymentOption.PARTIAL_UPFRONT,
            ),
            AllocationRule(
                PurchaseCategory.SAVINGS_PLAN, 0.15, 'total', FLEXIBLE_INSTANCE,
                utilization=82, risk=RiskLevel.LOW,
                purpose='Flexible commitment for variable workloads',
                eligible=_normal, include=_large_portfolio,
                commitment=CommitmentTerm.ONE_YEAR, payment=PaymentOption.NO_UPFRONT,
            ),
            AllocationRule(
                PurchaseCategory.SPOT, 0.3, 'interruptible', InstanceClass.COMPUTE_OPTIMIZED,
                utilization=68, risk=RiskLevel.MEDIUM,
                purpose='Cost-effective capacity with manageable risk',
                eligible=_interruptible_or_low, include=_always,
            ),
            AllocationRule(
                PurchaseCategory.ON_DEMAND, 0.05, 'total', 'm7i.xlarge',
                utilization=20, risk=RiskLevel.LOW,
                purpose='Emergency capacity and testing',
                eligible=_any, include=_always,
            ),
        ),
    ),
    ScenarioTemplate(
        name='gpu',
        description='GPU-specialized capacity for accelerated workloads',
        enabled=lambda aggregate: aggregate.has_gpu,
        rules=(
            AllocationRule(
                PurchaseCategory.RESERVED, 0.6, 'gpu', _gpu_reserved_instance,
                utilization=85, risk=RiskLevel.LOW,
                purpose='Dedicated GPU capacity for ML training',
                eligible=_gpu_committed, include=_always,
                commitment=CommitmentTerm.ONE_YEAR, payment=PaymentOption.PARTIAL_UPFRONT,
                min_hours=10,
            ),
            AllocationRule(
                PurchaseCategory.SPOT, 0.3, 'gpu', 'p3.2xlarge',
                utilization=60, risk=RiskLevel.HIGH,
                purpose='Cost-effective GPU capacity for fault-tolerant ML jobs',
                eligible=_gpu_interruptible, include=_always,
            ),
            AllocationRule(
                PurchaseCategory.ON_DEMAND, 0.1, 'gpu', 'g5.2xlarge',
                utilization=25, risk=RiskLevel.LOW,
                purpose='On-demand GPU capacity for urgent workloads',
                eligible=_gpu, include=_always,
            ),
        ),
    ),
    ScenarioTemplate(
        name='burst',
        description='Burst-specialized capacity for spiky batch demand',
        enabled=lambda aggregate: aggregate.has_burst,
        rules=(
            AllocationRule(
                PurchaseCategory.RESERVED, 0.3, 'predictable', 'm7i.2xlarge',
                utilization=75, risk=RiskLevel.LOW,
                purpose='Base capacity for burst workloads',
                eligible=_critical, include=_allocated,
                commitment=CommitmentTerm.ONE_YEAR, payment=PaymentOption.NO_UPFRONT,
            ),
            AllocationRule(
                PurchaseCategory.SPOT, 0.6, 'burst', 'c7i.4xlarge',
                utilization=40, risk=RiskLevel.MEDIUM,
                purpose='Scalable burst capacity for batch jobs',
                eligible=_bursts, include=_always,
            ),
            AllocationRule(
                PurchaseCategory.ON_DEMAND, 0.1, 'burst', 'c7i.8xlarge',
                utilization=15, risk=RiskLevel.LOW,
                purpose='Immediate burst capacity for urgent scaling',
                eligible=_bursts, include=_always,
            ),
        ),
    ),
)


def apply_discounts(strategy: PurchaseStrategy, discounts: Optional[DiscountProfile]) -> PurchaseStrategy:
    """Apply enterprise and private pricing discounts to a priced strategy"""
    if discounts is None:
        return strategy

    if strategy.purchase_type == PurchaseCategory.RESERVED and discounts.edp_discount:
        return replace(strategy, hourly_cost=strategy.hourly_cost * (1 - discounts.edp_discount))

    if strategy.purchase_type == PurchaseCategory.ON_DEMAND:
        ppa = discounts.ppa_for(strategy.instance_family)
        if ppa:
            return replace(strategy, hourly_cost=strategy.hourly_cost * (1 - ppa))

    return strategy


class ScenarioGenerator:
    """Builds priced purchase scenarios from workload aggregates"""

    def __init__(self,
                 catalog: Optional[PricingCatalog] = None,
                 templates: Sequence[ScenarioTemplate] = SCENARIO_TEMPLATES,
                 parallel: Optional[bool] = None,
                 max_workers: Optional[int] = None):
        optimization = get_settings().optimization
        self.catalog = catalog or get_default_catalog()
        self.templates = tuple(templates)
        self.parallel = optimization.parallel_scenarios if parallel is None else parallel
        self.max_workers = max_workers or optimization.max_workers

    def generate(self,
                 aggregate: WorkloadAggregate,
                 workloads: Sequence[WorkloadPattern],
                 constraints: Optional[OptimizationConstraints] = None,
                 discounts: Optional[DiscountProfile] = None) -> List[Scenario]:
        """
        Generate one scenario per enabled template.

        Args:
            aggregate: Hour totals of the workload portfolio
            workloads: Workloads the scenarios must cover
            constraints: Caller limits applied while pricing (commitment term, upfront cash)
            discounts: Negotiated discounts applied to reserved and on-demand rates

        Returns:
            Scenarios in template order
        """
        constraints = constraints or OptimizationConstraints()
        templates = [t for t in self.templates if t.enabled(aggregate)]

        if not self.parallel or len(templates) < 2:
            scenarios = [
                self._build_scenario(t, aggregate, workloads, constraints, discounts)
                for t in templates
            ]
        else:
            scenarios = [None] * len(templates)
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(templates))) as executor:
                futures = {
                    executor.submit(
                        self._build_scenario, template, aggregate, workloads, constraints, discounts
                    ): index
                    for index, template in enumerate(templates)
                }
                for future in as_completed(futures):
                    scenarios[futures[future]] = future.result()

        logger.info(f"Generated {len(scenarios)} scenarios: {', '.join(s.name for s in scenarios)}")
        return scenarios

    def _build_scenario(self, template: ScenarioTemplate, aggregate: WorkloadAggregate,
                        workloads: Sequence[WorkloadPattern],
                        constraints: OptimizationConstraints,
                        discounts: Optional[DiscountProfile]) -> Scenario:
        strategies = []
        for rule in template.rules:
            strategy = self._build_strategy(template, rule, aggregate, workloads, constraints, discounts)
            if strategy is not None:
                strategies.append(strategy)

        return Scenario(name=template.name, description=template.description, strategies=tuple(strategies))

    def _build_strategy(self, template: ScenarioTemplate, rule: AllocationRule,
                        aggregate: WorkloadAggregate,
                        workloads: Sequence[WorkloadPattern],
                        constraints: OptimizationConstraints,
                        discounts: Optional[DiscountProfile]) -> Optional[PurchaseStrategy]:
        hours = max(rule.share * aggregate.basis(rule.basis), rule.min_hours)
        if not rule.include(aggregate, hours):
            return None

        # Critical workloads can always fall back to on-demand capacity
        covered = tuple(
            w.id for w in workloads
            if rule.eligible(w) or (rule.category == PurchaseCategory.ON_DEMAND and w.is_critical)
        )

        base = PurchaseStrategy(
            id=f"{template.name}-{rule.category.value}",
            instance_type=self._resolve_instance(rule.instance, aggregate),
            quantity=math.ceil(hours / HOURS_PER_MONTH),
            purchase_type=rule.category,
            hourly_cost=0.0,
            estimated_utilization=rule.utilization,
            purpose=rule.purpose,
            covered_workloads=covered,
            risk_level=rule.risk,
        )

        if rule.commitment is None:
            return self._price(base, discounts)

        commitment = rule.commitment
        if constraints.max_commitment == CommitmentTerm.ONE_YEAR:
            commitment = CommitmentTerm.ONE_YEAR

        start = PAYMENT_LADDER.index(rule.payment or PaymentOption.NO_UPFRONT)
        strategy = base
        for payment in PAYMENT_LADDER[start:]:
            strategy = self._price(replace(base, commitment=commitment, payment_option=payment), discounts)
            if constraints.max_upfront_payment is None or strategy.upfront_cost <= constraints.max_upfront_payment:
                break
        return strategy

    def _price(self, strategy: PurchaseStrategy, discounts: Optional[DiscountProfile]) -> PurchaseStrategy:
        hourly = self.catalog.rate(
            strategy.instance_type, strategy.purchase_type,
            strategy.commitment, strategy.payment_option
        )
        return apply_discounts(replace(strategy, hourly_cost=hourly), discounts)

    def _resolve_instance(self, selector: InstanceSelector, aggregate: WorkloadAggregate) -> str:
        if isinstance(selector, InstanceClass):
            return self.catalog.instance_for_class(selector)
        if callable(selector):
            return selector(aggregate)
        return selector
