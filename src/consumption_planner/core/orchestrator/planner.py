import logging
from dataclasses import replace
from typing import Optional, Sequence

from ...analysis.aggregation import WorkloadAggregator
from ...analysis.cost import CostAccountant
from ...analysis.insights import InsightGenerator
from ...analysis.optimizer import CostOptimizer
from ...analysis.risk import RiskAssessor
from ...pricing.catalog import PricingCatalog, get_default_catalog
from ..config import get_settings
from ..identity import Clock, IdGenerator, resolve_clock, resolve_id_generator
from ..logging import get_performance_logger
from ..models import (
    CommitmentTerm, ConsumptionPlan, DiscountProfile, OptimizationConstraints,
    PlanAnalysis, WorkloadPattern
)
from ..validation import Validator


class ConsumptionPlanOrchestrator:
    """Builds consumption plans from workload portfolios"""

    def __init__(self,
                 catalog: Optional[PricingCatalog] = None,
                 id_generator: Optional[IdGenerator] = None,
                 clock: Optional[Clock] = None,
                 optimizer: Optional[CostOptimizer] = None):
        self.catalog = catalog or get_default_catalog()
        self.ids = resolve_id_generator(id_generator)
        self.clock = resolve_clock(clock)
        self.optimizer = optimizer or CostOptimizer(self.catalog, id_generator=self.ids)
        self.aggregator = WorkloadAggregator(self.catalog)
        self.accountant = CostAccountant(self.catalog)
        self.risk_assessor = RiskAssessor()
        self.insights = InsightGenerator()
        self.logger = logging.getLogger(__name__)

    def generate_plan(self,
                      workloads: Sequence[WorkloadPattern],
                      planning_horizon: Optional[str] = None,
                      constraints: Optional[OptimizationConstraints] = None,
                      discounts: Optional[DiscountProfile] = None,
                      name: Optional[str] = None) -> ConsumptionPlan:
        """Generate a costed consumption plan

        Args:
            workloads: Workloads to plan capacity for
            planning_horizon: "1yr" or "3yr"; a one year horizon caps commitments at one year
            constraints: Optimization constraints
            discounts: Negotiated discounts, budget and credits
            name: Plan name; defaults to a dated name

        Returns:
            ConsumptionPlan
        """
        horizon = Validator.validate_planning_horizon(
            planning_horizon or get_settings().optimization.default_planning_horizon
        )
        constraints = self._horizon_constraints(horizon, constraints or OptimizationConstraints())
        now = self.clock.now()

        with get_performance_logger().timer('generate_plan', plan_horizon=horizon):
            result = self.optimizer.optimize(workloads, constraints, discounts)

            purchases = result.optimal_strategy
            breakdown = self.accountant.cost_breakdown(purchases)
            savings = result.cost_savings
            aggregate = self.aggregator.aggregate(list(workloads))
            narrative = self.insights.plan_narrative(workloads, purchases, savings, discounts)

            plan = ConsumptionPlan(
                id=self.ids.new_id('plan'),
                name=name or f"Consumption Plan - {now.date().isoformat()}",
                created_at=now,
                workload_patterns=list(workloads),
                planning_horizon=horizon,
                recommended_purchases=purchases,
                cost_breakdown=breakdown,
                analysis=PlanAnalysis(
                    total_monthly_cost=breakdown.total_monthly_cost,
                    savings_amount=savings.monthly,
                    savings_percentage=savings.percentage,
                    payback_period_months=self.accountant.payback_period_months(purchases, savings.monthly),
                    confidence=result.confidence_level,
                ),
                risks=self.risk_assessor.plan_risks(purchases, aggregate, result.risk_assessment),
                risk_profile=result.risk_assessment,
                recommendations=result.recommendations + narrative.recommendations,
                insights=narrative.insights,
                warnings=narrative.warnings,
                optimization=result,
            )

        self.logger.info(
            f"Created plan {plan.id} with {len(purchases)} purchases, "
            f"${breakdown.total_monthly_cost:,.2f}/month"
        )
        return plan

    def _horizon_constraints(self, horizon: str,
                             constraints: OptimizationConstraints) -> OptimizationConstraints:
        """Cap commitment length at the planning horizon unless the caller chose one"""
        if horizon == '1yr' and constraints.max_commitment is None:
            return replace(constraints, max_commitment=CommitmentTerm.ONE_YEAR)
        return constraints
