"""Checks a consumption plan against a grant's current budget period"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from ..core.identity import Clock, resolve_clock
from ..core.models import ConsumptionPlan, to_plain
from .ledger import current_period
from .models import Grant, OveragePolicy

logger = logging.getLogger(__name__)


@dataclass
class BudgetRisk:
    type: str
    severity: str
    description: str
    probability: float
    impact: float
    mitigation_strategies: List[str] = field(default_factory=list)


@dataclass
class BudgetImpact:
    """How a plan's monthly cost fits the grant's remaining budget"""
    grant_id: str
    budget_period_id: str
    constraint: str
    plan_monthly_cost: float
    monthly_budget_available: float
    remaining_budget: float
    months_remaining: float
    projected_period_spend: float
    budget_exhaustion_risk: float
    compliance_status: str
    budget_check: str
    risks: List[BudgetRisk] = field(default_factory=list)
    adjustments: List[str] = field(default_factory=list)

    def to_dict(self):
        return to_plain(self)


class BudgetAlignmentAssessor:

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = resolve_clock(clock)

    def assess(self, plan: ConsumptionPlan, grant: Grant, as_of: Optional[date] = None) -> BudgetImpact:
        as_of = as_of or self.clock.now().date()
        period = current_period(grant, as_of)

        months_remaining = max(1.0, period.days_remaining(as_of) / 30)
        remaining = period.remaining_amount
        monthly_available = remaining / months_remaining
        plan_cost = plan.cost_breakdown.total_monthly_cost
        projected = period.spent_amount + plan_cost * months_remaining
        utilization = period.utilization_percentage

        constraint = 'no-overspending' if grant.overage_policy == OveragePolicy.BLOCK else 'approval-required'
        violation = grant.overage_policy == OveragePolicy.BLOCK and utilization > 95

        adjustments = []
        if plan_cost > monthly_available:
            adjustments.append(
                f"Reduce planned spend by ${plan_cost - monthly_available:,.2f}/month "
                f"to stay within {period.period_name}"
            )

        impact = BudgetImpact(
            grant_id=grant.id,
            budget_period_id=period.id,
            constraint=constraint,
            plan_monthly_cost=plan_cost,
            monthly_budget_available=monthly_available,
            remaining_budget=remaining,
            months_remaining=months_remaining,
            projected_period_spend=projected,
            budget_exhaustion_risk=0.8 if projected > period.total_available else 0.2,
            compliance_status='violation' if violation else 'compliant',
            budget_check='pass' if utilization < 100 else 'fail',
            risks=[BudgetRisk(
                type='overspending',
                severity='high' if utilization > 90 else 'medium',
                description='Risk of exceeding allocated budget',
                probability=min(0.9, utilization / 100),
                impact=period.total_available * 0.1,
                mitigation_strategies=[
                    'Increase use of spot instances',
                    'Implement auto-shutdown policies',
                    'Review workload scheduling',
                ],
            )],
            adjustments=adjustments,
        )

        logger.info(
            f"Plan {plan.id} against grant {grant.id}: ${plan_cost:,.2f}/month planned, "
            f"${monthly_available:,.2f}/month available"
        )
        return impact
