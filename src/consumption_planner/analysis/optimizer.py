"""
Cost Optimizer
Finds the purchase mix (reserved, savings commitment, spot, on-demand) that
best serves a workload portfolio. Aggregates workload hours, generates one
scenario per archetype, filters them against constraints, scores the
survivors and reports savings, risk and advice for the winner.
"""

import logging
from typing import List, Optional, Sequence

from ..core.config import get_settings
from ..core.identity import IdGenerator, resolve_id_generator
from ..core.models import (
    DiscountProfile, OptimizationConstraints, OptimizationResult, Scenario, WorkloadPattern
)
from ..core.validation import Validator
from ..pricing.catalog import PricingCatalog, get_default_catalog
from .aggregation import WorkloadAggregate, WorkloadAggregator
from .constraints import ConstraintFilter
from .cost import CostAccountant
from .insights import InsightGenerator
from .risk import RiskAssessor
from .scenarios import ScenarioGenerator
from .scoring import ScenarioScorer

logger = logging.getLogger(__name__)


class CostOptimizer:
    """Chooses a purchase scenario for a workload portfolio"""

    def __init__(self,
                 catalog: Optional[PricingCatalog] = None,
                 id_generator: Optional[IdGenerator] = None,
                 generator: Optional[ScenarioGenerator] = None,
                 max_alternatives: Optional[int] = None):
        """
        Initialize the optimizer.

        Args:
            catalog: Pricing lookup; defaults to the static catalog
            id_generator: Source of result ids; defaults to random ids
            generator: Scenario generator; defaults to one built on the catalog
            max_alternatives: Alternatives reported next to the winner
        """
        self.catalog = catalog or get_default_catalog()
        self.ids = resolve_id_generator(id_generator)
        self.aggregator = WorkloadAggregator(self.catalog)
        self.generator = generator or ScenarioGenerator(self.catalog)
        self.constraint_filter = ConstraintFilter(self.catalog)
        self.accountant = CostAccountant(self.catalog)
        self.scorer = ScenarioScorer(self.accountant)
        self.risk_assessor = RiskAssessor()
        self.insights = InsightGenerator()
        self.max_alternatives = (
            get_settings().optimization.max_alternatives if max_alternatives is None else max_alternatives
        )

    def optimize(self,
                 workloads: Sequence[WorkloadPattern],
                 constraints: Optional[OptimizationConstraints] = None,
                 discounts: Optional[DiscountProfile] = None) -> OptimizationResult:
        """
        Optimize purchases for a workload portfolio.

        Args:
            workloads: Non-empty list of workload patterns
            constraints: Caller preferences and limits
            discounts: Negotiated discounts

        Returns:
            OptimizationResult for the winning scenario

        Raises:
            ValidationError: on an empty or malformed workload list
            ConstraintConflictError: when constraints eliminate every scenario
        """
        constraints = Validator.validate_constraints(constraints or OptimizationConstraints())
        if discounts is not None:
            Validator.validate_discount_profile(discounts)

        aggregate = self.aggregator.aggregate(list(workloads))
        scenarios = self.generator.generate(aggregate, workloads, constraints, discounts)
        candidates = self.constraint_filter.apply(scenarios, constraints)
        chosen, scores = self.scorer.select(candidates, aggregate, constraints)

        return self._build_result(chosen, candidates, scores, aggregate, workloads)

    def _build_result(self, chosen: Scenario, candidates: List[Scenario], scores,
                      aggregate: WorkloadAggregate,
                      workloads: Sequence[WorkloadPattern]) -> OptimizationResult:
        strategies = list(chosen.strategies)
        savings = self.accountant.calculate_savings(strategies, workloads)

        result = OptimizationResult(
            id=self.ids.new_id('opt'),
            optimal_scenario=chosen.name,
            optimal_strategy=strategies,
            alternative_scenarios=self._alternatives(chosen, candidates, scores),
            cost_savings=savings,
            risk_assessment=self.risk_assessor.assess(strategies),
            recommendations=self.insights.optimization_recommendations(strategies, aggregate),
            confidence_level=self.insights.confidence(strategies, aggregate),
            optimization_metrics=self.insights.metrics(strategies),
            scenario_scores=scores,
        )

        logger.info(
            f"Optimization {result.id}: {chosen.name} saves ${savings.monthly:,.2f}/month "
            f"({savings.percentage:.1f}%), confidence {result.confidence_level:.0f}"
        )
        return result

    def _alternatives(self, chosen: Scenario, candidates: List[Scenario], scores) -> List[Scenario]:
        """Runner-up scenarios, best first"""
        ranked = sorted(
            (pair for pair in zip(candidates, scores) if pair[0] is not chosen),
            key=lambda pair: pair[1].total,
            reverse=True,
        )
        return [scenario for scenario, _ in ranked[:self.max_alternatives]]
