"""
Cost accounting for purchase strategies.

Monthly cost of a strategy is its hourly rate times 720 hours times the
billed quantity (elastic strategies bill as one instance), scaled by
expected utilization. Savings are measured against running every workload
on-demand at a per-vCPU baseline rate.
"""

import logging
from typing import Optional, Sequence

from ..core.models import (
    HOURS_PER_MONTH, CostBreakdown, CostSavings, OnDemandCost, PurchaseCategory,
    PurchaseStrategy, ReservedCost, ResourceRequirement, SavingsPlanCost, SpotCost,
    WorkloadPattern
)
from ..pricing.catalog import PricingCatalog, get_default_catalog
from .risk import RiskAssessor, spot_capacity_fraction

logger = logging.getLogger(__name__)


class CostAccountant:
    """Computes strategy costs, baselines, savings and breakdowns"""

    # On-demand USD per vCPU-hour by workload shape
    BASELINE_RATES = {
        'gpu': 3.0,
        'compute': 0.15,
        'memory': 0.12,
        'general': 0.10,
    }

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()

    @staticmethod
    def monthly_cost(strategies: Sequence[PurchaseStrategy]) -> float:
        return sum(s.monthly_cost for s in strategies)

    def baseline_rate(self, requirement: ResourceRequirement) -> float:
        """On-demand rate per vCPU-hour for a requirement"""
        if requirement.gpu_required:
            return self.BASELINE_RATES['gpu']
        if requirement.vcpus >= 16:
            return self.BASELINE_RATES['compute']
        if requirement.memory_per_vcpu > 6:
            return self.BASELINE_RATES['memory']
        return self.BASELINE_RATES['general']

    def baseline_monthly_cost(self, workloads: Sequence[WorkloadPattern]) -> float:
        """Monthly cost of running every workload on-demand"""
        return sum(
            self.baseline_rate(w.requirements) * w.requirements.vcpus * w.adjusted_monthly_hours
            for w in workloads
        )

    def calculate_savings(self, strategies: Sequence[PurchaseStrategy],
                          workloads: Sequence[WorkloadPattern]) -> CostSavings:
        """
        Savings of a strategy set versus the all on-demand baseline.

        Args:
            strategies: Purchase strategies of the chosen scenario
            workloads: Workloads the strategies serve

        Returns:
            CostSavings; savings never go below zero
        """
        baseline = self.baseline_monthly_cost(workloads)
        optimized = self.monthly_cost(strategies)
        monthly = max(0.0, baseline - optimized)
        percentage = monthly / baseline * 100 if baseline > 0 else 0.0

        logger.debug(f"Baseline ${baseline:,.2f}/month, optimized ${optimized:,.2f}/month")
        return CostSavings(
            monthly=monthly,
            percentage=percentage,
            baseline_monthly_cost=baseline,
            optimized_monthly_cost=optimized,
        )

    def cost_breakdown(self, strategies: Sequence[PurchaseStrategy]) -> CostBreakdown:
        """Cost per purchase category"""
        reserved = [s for s in strategies if s.purchase_type == PurchaseCategory.RESERVED]
        savings = [s for s in strategies if s.purchase_type == PurchaseCategory.SAVINGS_PLAN]
        spot = [s for s in strategies if s.purchase_type == PurchaseCategory.SPOT]
        on_demand = [s for s in strategies if s.purchase_type == PurchaseCategory.ON_DEMAND]

        return CostBreakdown(
            reserved=ReservedCost(
                monthly_cost=self.monthly_cost(reserved),
                instances=sum(s.quantity for s in reserved),
                utilization_rate=self._average_utilization(reserved),
            ),
            savings_plans=SavingsPlanCost(
                monthly_cost=self.monthly_cost(savings),
                commitment_amount=sum(s.hourly_cost * HOURS_PER_MONTH * s.billed_quantity for s in savings),
                utilization_rate=self._average_utilization(savings),
            ),
            spot=SpotCost(
                monthly_cost=self.monthly_cost(spot),
                estimated_savings=sum(self._spot_savings(s) for s in spot),
                interruption_risk=min(
                    spot_capacity_fraction(strategies),
                    RiskAssessor.THRESHOLDS['max_interruption_risk']
                ) if spot else 0.0,
            ),
            on_demand=OnDemandCost(
                monthly_cost=self.monthly_cost(on_demand),
                instances=sum(s.quantity for s in on_demand),
                usage='burst' if any('burst' in s.purpose.lower() for s in on_demand) else 'overflow',
            ),
        )

    @staticmethod
    def upfront_cost(strategies: Sequence[PurchaseStrategy]) -> float:
        return sum(s.upfront_cost for s in strategies)

    def payback_period_months(self, strategies: Sequence[PurchaseStrategy],
                              monthly_savings: float) -> Optional[float]:
        """Months of savings needed to recover upfront payments"""
        upfront = self.upfront_cost(strategies)
        if upfront <= 0:
            return 0.0
        if monthly_savings <= 0:
            return None
        return upfront / monthly_savings

    def _spot_savings(self, strategy: PurchaseStrategy) -> float:
        on_demand = self.catalog.rate(strategy.instance_type, PurchaseCategory.ON_DEMAND)
        return ((on_demand - strategy.hourly_cost) * HOURS_PER_MONTH * strategy.billed_quantity
                * strategy.estimated_utilization / 100)

    @staticmethod
    def _average_utilization(strategies: Sequence[PurchaseStrategy]) -> float:
        if not strategies:
            return 0.0
        return sum(s.estimated_utilization for s in strategies) / len(strategies)
