"""Multi-criteria scoring and selection of purchase scenarios"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.models import (
    OptimizationConstraints, PurchaseCategory, RiskLevel, Scenario, ScenarioScore
)
from .aggregation import WorkloadAggregate
from .cost import CostAccountant

logger = logging.getLogger(__name__)


class ScenarioScorer:
    """Scores scenarios on cost, risk, flexibility, reliability and specialization"""

    RISK_SCORES = {
        RiskLevel.LOW: 1.0,
        RiskLevel.MEDIUM: 0.7,
        RiskLevel.HIGH: 0.3,
    }

    FLEXIBILITY_SCORES = {
        PurchaseCategory.ON_DEMAND: 1.0,
        PurchaseCategory.SPOT: 0.8,
        PurchaseCategory.SAVINGS_PLAN: 0.6,
        PurchaseCategory.RESERVED: 0.4,
    }

    RELIABILITY_SCORES = {
        PurchaseCategory.RESERVED: 1.0,
        PurchaseCategory.SAVINGS_PLAN: 0.9,
        PurchaseCategory.ON_DEMAND: 0.8,
        PurchaseCategory.SPOT: 0.5,
    }

    SPECIALIZED_FAMILIES = ('p3', 'p4', 'g5', 'c7', 'r7', 'i4')
    SPECIALIZED_PURPOSE = re.compile(r'\b(gpu|burst|ml|scaling)\b', re.IGNORECASE)

    # Bonus for the scenario tailored to the portfolio's dominant need
    SCENARIO_BONUS = {
        'gpu': 20.0,
        'burst': 15.0,
    }

    def __init__(self, accountant: Optional[CostAccountant] = None):
        self.accountant = accountant or CostAccountant()

    @staticmethod
    def weights(constraints: OptimizationConstraints) -> Dict[str, float]:
        return {
            'cost': 0.4 if constraints.prioritize_cost else 0.25,
            'risk': 0.3 if constraints.risk_tolerance == RiskLevel.LOW else 0.15,
            'flexibility': 0.3 if constraints.flexibility_required else 0.15,
            'reliability': 0.3 if constraints.reliability_required else 0.15,
            'specialization': 0.3,
        }

    def score(self, scenario: Scenario, aggregate: WorkloadAggregate,
              constraints: Optional[OptimizationConstraints] = None) -> ScenarioScore:
        """
        Score one scenario.

        Args:
            scenario: Non-empty scenario
            aggregate: Hour totals, used to decide the specialization bonus
            constraints: Preferences that set the criterion weights

        Returns:
            ScenarioScore with sub-scores on a 0-100 scale and the weighted total
        """
        constraints = constraints or OptimizationConstraints()
        strategies = scenario.strategies
        count = len(strategies)

        cost = max(0.0, 100 - self.accountant.monthly_cost(strategies) / 100)
        risk = sum(self.RISK_SCORES[s.risk_level] for s in strategies) / count * 100
        flexibility = sum(self.FLEXIBILITY_SCORES[s.purchase_type] for s in strategies) / count * 100
        reliability = sum(self.RELIABILITY_SCORES[s.purchase_type] for s in strategies) / count * 100
        specialization = self.specialization(scenario)
        bonus = self._bonus(scenario, aggregate)

        weights = self.weights(constraints)
        total = (
            cost * weights['cost']
            + risk * weights['risk']
            + flexibility * weights['flexibility']
            + reliability * weights['reliability']
            + specialization * weights['specialization']
            + bonus
        )

        return ScenarioScore(
            scenario=scenario.name,
            cost=cost,
            risk=risk,
            flexibility=flexibility,
            reliability=reliability,
            specialization=specialization,
            bonus=bonus,
            total=total,
        )

    def specialization(self, scenario: Scenario) -> float:
        score = 50.0
        if any(s.instance_family.startswith(self.SPECIALIZED_FAMILIES) for s in scenario.strategies):
            score += 20
        if any(self.SPECIALIZED_PURPOSE.search(s.purpose) for s in scenario.strategies):
            score += 20
        if len(scenario.purchase_types()) >= 3:
            score += 10
        return min(score, 100.0)

    def select(self, scenarios: Sequence[Scenario], aggregate: WorkloadAggregate,
               constraints: Optional[OptimizationConstraints] = None) -> Tuple[Scenario, List[ScenarioScore]]:
        """Pick the highest scoring scenario; ties go to the earliest generated"""
        scores = [self.score(s, aggregate, constraints) for s in scenarios]

        best = 0
        for index, score in enumerate(scores):
            if score.total > scores[best].total:
                best = index

        logger.info(
            f"Selected scenario {scenarios[best].name} with score {scores[best].total:.2f}"
        )
        return scenarios[best], scores

    def _bonus(self, scenario: Scenario, aggregate: WorkloadAggregate) -> float:
        if scenario.name == 'gpu' and aggregate.has_gpu:
            return self.SCENARIO_BONUS['gpu']
        if scenario.name == 'burst' and aggregate.has_burst:
            return self.SCENARIO_BONUS['burst']
        return 0.0
