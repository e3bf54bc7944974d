"""Risk assessment of purchase strategies"""

import logging
from typing import Sequence

from ..core.models import (
    CommitmentTerm, PlanRisks, PurchaseCategory, PurchaseStrategy, RiskLevel, RiskProfile
)
from .aggregation import WorkloadAggregate

logger = logging.getLogger(__name__)


def spot_capacity_fraction(strategies: Sequence[PurchaseStrategy]) -> float:
    """Share of instance quantity bought on the spot market"""
    total = sum(s.quantity for s in strategies)
    if total <= 0:
        return 0.0
    spot = sum(s.quantity for s in strategies if s.purchase_type == PurchaseCategory.SPOT)
    return spot / total


class RiskAssessor:
    """Grades spot exposure, cost variability and commitment risk"""

    THRESHOLDS = {
        'high_spot_percentage': 50,
        'medium_spot_percentage': 20,
        'variable_cost_percentage': 30,
        'max_interruption_risk': 0.15,
        'reserved_utilization_target': 80,
        'over_commitment_peak': 2.0,
    }

    def assess(self, strategies: Sequence[PurchaseStrategy]) -> RiskProfile:
        fraction = spot_capacity_fraction(strategies)
        percentage = fraction * 100

        if percentage > self.THRESHOLDS['high_spot_percentage']:
            overall = RiskLevel.HIGH
        elif percentage > self.THRESHOLDS['medium_spot_percentage']:
            overall = RiskLevel.MEDIUM
        else:
            overall = RiskLevel.LOW

        variability = (
            RiskLevel.HIGH if percentage > self.THRESHOLDS['variable_cost_percentage'] else RiskLevel.LOW
        )
        commitment = (
            RiskLevel.MEDIUM
            if any(s.commitment == CommitmentTerm.THREE_YEAR for s in strategies)
            else RiskLevel.LOW
        )

        return RiskProfile(
            overall_risk=overall,
            spot_interruption_risk=min(fraction, self.THRESHOLDS['max_interruption_risk']),
            cost_variability_risk=variability,
            commitment_risk=commitment,
            spot_capacity_percentage=percentage,
        )

    def plan_risks(self, strategies: Sequence[PurchaseStrategy],
                   aggregate: WorkloadAggregate, profile: RiskProfile) -> PlanRisks:
        """Probability-style risk figures reported on a consumption plan"""
        reserved = [s for s in strategies if s.purchase_type == PurchaseCategory.RESERVED]
        if not reserved:
            under_utilization = 0.0
        else:
            average = sum(s.estimated_utilization for s in reserved) / len(reserved)
            under_utilization = 0.2 if average < self.THRESHOLDS['reserved_utilization_target'] else 0.05

        over_commitment = (
            0.1 if aggregate.max_peak_multiplier > self.THRESHOLDS['over_commitment_peak'] else 0.05
        )

        return PlanRisks(
            spot_interruption=profile.spot_interruption_risk,
            under_utilization=under_utilization,
            over_commitment=over_commitment,
        )
