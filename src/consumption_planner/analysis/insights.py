"""Human-readable recommendations, insights and warnings"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..core.models import (
    CostSavings, DiscountProfile, OptimizationMetrics, PurchaseCategory,
    PurchaseStrategy, RiskLevel, WorkloadPattern
)
from .aggregation import WorkloadAggregate

logger = logging.getLogger(__name__)


@dataclass
class PlanNarrative:
    recommendations: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class InsightGenerator:
    """Turns optimization figures into advice"""

    CONFIDENCE_BOUNDS = (60.0, 95.0)

    def optimization_recommendations(self, strategies: Sequence[PurchaseStrategy],
                                     aggregate: WorkloadAggregate) -> List[str]:
        """Advice on the composition of the chosen strategy set"""
        recommendations = []
        count = len(strategies)
        if not count:
            return recommendations

        reserved_share = sum(1 for s in strategies if s.purchase_type == PurchaseCategory.RESERVED) / count * 100
        spot_share = sum(1 for s in strategies if s.purchase_type == PurchaseCategory.SPOT) / count * 100

        if reserved_share > 70:
            recommendations.append(
                'Consider reducing Reserved Instance commitment and adding Spot capacity for cost optimization'
            )
        if spot_share > 60:
            recommendations.append('High Spot usage detected - ensure workloads can handle interruptions')
        if aggregate.has_gpu:
            recommendations.append(
                'GPU workloads identified - consider Reserved Instances for consistent ML training workloads'
            )
        if aggregate.burst_hours > aggregate.predictable_hours:
            recommendations.append(
                'Variable workload pattern - Savings Plans may provide better flexibility than Reserved Instances'
            )
        return recommendations

    def confidence(self, strategies: Sequence[PurchaseStrategy], aggregate: WorkloadAggregate) -> float:
        """Confidence in a recommendation, between 60 and 95"""
        confidence = 80.0
        if aggregate.total_hours > 1000:
            confidence += 10
        if aggregate.has_seasonality:
            confidence += 5
        confidence -= 10 * sum(1 for s in strategies if s.risk_level == RiskLevel.HIGH)

        low, high = self.CONFIDENCE_BOUNDS
        return max(low, min(high, confidence))

    @staticmethod
    def metrics(strategies: Sequence[PurchaseStrategy]) -> OptimizationMetrics:
        count = len(strategies)
        return OptimizationMetrics(
            strategies_count=count,
            purchase_type_distribution=dict(Counter(s.purchase_type.value for s in strategies)),
            average_utilization=sum(s.estimated_utilization for s in strategies) / count if count else 0.0,
            risk_distribution=dict(Counter(s.risk_level.value for s in strategies)),
        )

    def plan_narrative(self, workloads: Sequence[WorkloadPattern],
                       strategies: Sequence[PurchaseStrategy],
                       savings: CostSavings,
                       discounts: Optional[DiscountProfile] = None) -> PlanNarrative:
        """
        Build the narrative attached to a consumption plan.

        Args:
            workloads: Planned workloads
            strategies: Recommended purchases
            savings: Savings against the all on-demand baseline
            discounts: Optional discount profile carrying budget and credits

        Returns:
            PlanNarrative with recommendations, insights and warnings
        """
        narrative = PlanNarrative()

        if savings.percentage > 30:
            narrative.insights.append(
                f"Excellent cost optimization: {savings.percentage:.1f}% savings vs all on-demand"
            )
        elif savings.percentage > 15:
            narrative.insights.append(
                f"Good cost optimization: {savings.percentage:.1f}% savings vs all on-demand"
            )
        else:
            narrative.warnings.append('Limited cost optimization potential with current workload patterns')

        if any(s.purchase_type == PurchaseCategory.SPOT for s in strategies):
            narrative.recommendations.append(
                'Consider implementing checkpointing for spot instance workloads to handle interruptions'
            )
        if any(s.purchase_type == PurchaseCategory.RESERVED for s in strategies):
            narrative.recommendations.append(
                'Monitor reserved instance utilization to ensure >80% usage for optimal ROI'
            )
        if not any(w.interruptible for w in workloads):
            narrative.recommendations.append(
                'Consider making batch workloads interruptible to leverage spot instance savings'
            )
        if any(not w.seasonality.is_steady for w in workloads):
            narrative.insights.append(
                'Seasonal usage patterns detected - consider adjusting capacity during peak/low periods'
            )

        if discounts is not None:
            self._discount_notes(narrative, savings.optimized_monthly_cost, discounts)

        return narrative

    @staticmethod
    def _discount_notes(narrative: PlanNarrative, monthly_cost: float, discounts: DiscountProfile) -> None:
        if discounts.monthly_budget is not None and monthly_cost > discounts.monthly_budget:
            narrative.warnings.append(
                f"Planned spend of ${monthly_cost:,.2f}/month exceeds the monthly budget "
                f"of ${discounts.monthly_budget:,.2f}"
            )

        if discounts.available_credits > 0 and monthly_cost > 0:
            months = discounts.available_credits / monthly_cost
            note = f"Available credits cover {months:.1f} months of planned spend"
            if discounts.credit_expiration_date is not None:
                note += f" (credits expire {discounts.credit_expiration_date.isoformat()})"
            narrative.insights.append(note)

        tier = discounts.volume_tier(monthly_cost)
        if tier is not None:
            narrative.insights.append(
                f"Planned spend qualifies for a {tier.discount * 100:.0f}% volume discount "
                f"(threshold ${tier.threshold:,.0f}/month)"
            )
