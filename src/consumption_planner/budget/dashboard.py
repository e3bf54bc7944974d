"""Portfolio view across grants"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Sequence

import numpy as np

from ..core.models import to_plain
from .ledger import current_period
from .models import Grant, MonthlySpend

logger = logging.getLogger(__name__)


@dataclass
class PeriodSummary:
    total_allocated: float = 0.0
    total_spent: float = 0.0
    utilization_rate: float = 0.0
    days_remaining: int = 0


@dataclass
class UtilizationAnalysis:
    over_utilized_grants: List[str] = field(default_factory=list)
    under_utilized_grants: List[str] = field(default_factory=list)
    average_utilization: float = 0.0
    utilization_variance: float = 0.0
    recommendations: List[str] = field(default_factory=list)


@dataclass
class SpendingTrend:
    month: date
    total_spent: float
    grant_breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass
class UpcomingDeadline:
    grant_id: str
    period_name: str
    end_date: date
    days_remaining: int


@dataclass
class GrantDashboard:
    total_budget: float
    total_spent: float
    total_remaining: float
    current_period: PeriodSummary
    utilization: UtilizationAnalysis
    spending_trends: List[SpendingTrend] = field(default_factory=list)
    threshold_breaches: List[str] = field(default_factory=list)
    upcoming_deadlines: List[UpcomingDeadline] = field(default_factory=list)

    def to_dict(self):
        return to_plain(self)


class GrantDashboardBuilder:
    """Summarizes spend and utilization across grants"""

    THRESHOLDS = {
        'over_utilized': 90.0,
        'under_utilized': 50.0,
        'deadline_days': 30,
    }

    def build(self, grants: Sequence[Grant], recent_spending: Sequence[MonthlySpend],
              as_of: date) -> GrantDashboard:
        """
        Build a dashboard for a set of grants.

        Args:
            grants: Grants with budget periods
            recent_spending: Monthly spend samples, any order
            as_of: Reporting date

        Returns:
            GrantDashboard
        """
        total_budget = sum(g.cloud_compute_budget for g in grants)
        total_spent = sum(g.total_spent for g in grants)

        summary = PeriodSummary()
        analysis = UtilizationAnalysis()
        utilizations = []
        breaches = []
        deadlines = []
        days_left: List[int] = []

        for grant in grants:
            if not grant.budget_periods:
                continue
            period = current_period(grant, as_of)
            utilization = period.utilization_percentage
            utilizations.append(utilization)

            summary.total_allocated += period.total_available
            summary.total_spent += period.spent_amount
            days_left.append(period.days_remaining(as_of))

            if utilization > self.THRESHOLDS['over_utilized']:
                analysis.over_utilized_grants.append(grant.id)
            elif utilization < self.THRESHOLDS['under_utilized']:
                analysis.under_utilized_grants.append(grant.id)

            if utilization >= period.warning_threshold:
                breaches.append(
                    f"{grant.title} {period.period_name} is at {utilization:.1f}% of its budget"
                )

            if period.days_remaining(as_of) <= self.THRESHOLDS['deadline_days']:
                deadlines.append(UpcomingDeadline(
                    grant_id=grant.id,
                    period_name=period.period_name,
                    end_date=period.end_date,
                    days_remaining=period.days_remaining(as_of),
                ))

        if summary.total_allocated > 0:
            summary.utilization_rate = summary.total_spent / summary.total_allocated * 100
        summary.days_remaining = min(days_left) if days_left else 0

        if utilizations:
            analysis.average_utilization = float(np.mean(utilizations))
            analysis.utilization_variance = float(np.var(utilizations))
        if analysis.over_utilized_grants:
            analysis.recommendations.append(
                'Shift interruptible work to spot capacity on over-utilized grants'
            )
        if analysis.under_utilized_grants:
            analysis.recommendations.append(
                'Schedule deferred workloads on under-utilized grants before their periods close'
            )

        trends = [
            SpendingTrend(month=s.month, total_spent=s.total_spent, grant_breakdown=dict(s.grant_breakdown))
            for s in sorted(recent_spending, key=lambda s: s.month)
        ]

        logger.debug(f"Dashboard built for {len(grants)} grants as of {as_of.isoformat()}")
        return GrantDashboard(
            total_budget=total_budget,
            total_spent=total_spent,
            total_remaining=total_budget - total_spent,
            current_period=summary,
            utilization=analysis,
            spending_trends=trends,
            threshold_breaches=breaches,
            upcoming_deadlines=sorted(deadlines, key=lambda d: d.end_date),
        )
