"""
Budget period ledger for grants.

Splits a grant's cloud compute budget into contiguous budget periods,
records spend against the current period and raises threshold and
projection alerts. The ledger holds no state of its own; grants and their
periods are plain records owned by the caller, who must serialize spend
updates per grant.
"""

import logging
import math
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from ..core.config import get_settings
from ..core.exceptions import NotFoundError, ValidationError
from ..core.identity import Clock, IdGenerator, resolve_clock, resolve_id_generator
from ..core.validation import GrantSpec, Validator
from .models import (
    AlertSeverity, AlertType, BudgetAlert, BudgetPeriodType, Grant, GrantBudgetPeriod,
    GrantStatus, MonthlySpend, OveragePolicy, RolloverPolicy
)

logger = logging.getLogger(__name__)

THRESHOLD_ACTIONS = [
    'Review current instance usage and optimize',
    'Consider increasing spot instance utilization',
    'Implement auto-shutdown policies for idle instances',
]

PROJECTION_ACTIONS = [
    'Reassess workload priorities and timeline',
    'Consider delaying non-critical workloads',
    'Explore additional funding sources',
]


def months_between(start: date, end: date) -> int:
    """Whole months from start to end, counting a partial month as one"""
    delta = relativedelta(end, start)
    months = delta.years * 12 + delta.months
    return months + 1 if delta.days > 0 else months


def current_period(grant: Grant, as_of: date) -> GrantBudgetPeriod:
    """
    Budget period containing a date.

    The grant end date resolves to the last period. Any other date outside
    every period, before the grant starts or after it ends, resolves to the
    first period.

    Raises:
        NotFoundError: if the grant has no budget periods
    """
    if not grant.budget_periods:
        raise NotFoundError(f"Grant {grant.id} has no budget periods")

    for period in grant.budget_periods:
        if period.contains(as_of):
            return period

    last = grant.budget_periods[-1]
    if as_of == last.end_date:
        return last
    return grant.budget_periods[0]


class BudgetPeriodLedger:
    """Creates grants, generates budget periods and tracks spending"""

    def __init__(self, id_generator: Optional[IdGenerator] = None, clock: Optional[Clock] = None):
        self.ids = resolve_id_generator(id_generator)
        self.clock = resolve_clock(clock)
        self.budget_settings = get_settings().budget

    def create_grant(self,
                     title: str,
                     funding_agency: str,
                     principal_investigator: str,
                     institution: str,
                     total_budget: float,
                     cloud_compute_budget: float,
                     start_date: date,
                     end_date: date,
                     project_duration: Optional[int] = None,
                     budget_period_type: BudgetPeriodType = BudgetPeriodType.QUARTERLY,
                     rollover_policy: RolloverPolicy = RolloverPolicy.NONE,
                     overage_policy: OveragePolicy = OveragePolicy.WARN,
                     currency: Optional[str] = None,
                     grant_number: Optional[str] = None,
                     grant_id: Optional[str] = None) -> Grant:
        """
        Create a grant and generate its budget periods.

        Args:
            project_duration: Length in months; derived from the dates when omitted
            grant_id: Explicit id; a new one is generated when omitted

        Returns:
            Active grant with budget periods
        """
        duration = project_duration or months_between(start_date, end_date)
        Validator.validate_grant_terms(total_budget, cloud_compute_budget, duration, start_date, end_date)

        now = self.clock.now()
        grant = Grant(
            id=grant_id or self.ids.new_id('grant'),
            title=title,
            funding_agency=funding_agency,
            principal_investigator=principal_investigator,
            institution=institution,
            total_budget=total_budget,
            cloud_compute_budget=cloud_compute_budget,
            start_date=start_date,
            end_date=end_date,
            project_duration=duration,
            budget_period_type=budget_period_type,
            rollover_policy=rollover_policy,
            overage_policy=overage_policy,
            currency=currency or self.budget_settings.default_currency,
            grant_number=grant_number,
            status=GrantStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        grant.budget_periods = self.generate_budget_periods(grant)

        logger.info(
            f"Created grant {grant.id} with {len(grant.budget_periods)} "
            f"{budget_period_type.value} budget periods"
        )
        return grant

    def create_grant_from_spec(self, spec: GrantSpec) -> Grant:
        return self.create_grant(
            title=spec.title,
            funding_agency=spec.funding_agency,
            principal_investigator=spec.principal_investigator,
            institution=spec.institution,
            total_budget=spec.total_budget,
            cloud_compute_budget=spec.cloud_compute_budget,
            start_date=spec.start_date,
            end_date=spec.end_date,
            project_duration=spec.project_duration,
            budget_period_type=spec.budget_period_type,
            rollover_policy=spec.rollover_policy,
            overage_policy=spec.overage_policy,
            currency=spec.currency,
            grant_number=spec.grant_number,
            grant_id=spec.id,
        )

    def generate_budget_periods(self, grant: Grant) -> List[GrantBudgetPeriod]:
        """
        Split a grant's cloud compute budget into contiguous periods.

        Each period is allocated the monthly budget times the months it
        covers, so allocations add up to the full budget. The last period
        ends no later than the grant's end date.
        """
        period_type = grant.budget_period_type
        months_per_period = period_type.months
        count = math.ceil(grant.project_duration / months_per_period)

        periods = []
        start = grant.start_date
        for index in range(count):
            if start >= grant.end_date:
                break

            months = min(months_per_period, grant.project_duration - index * months_per_period)
            end = min(start + relativedelta(months=months), grant.end_date)

            periods.append(GrantBudgetPeriod(
                id=f"{grant.id}-period-{index + 1}",
                grant_id=grant.id,
                period_name=self._period_name(period_type, start, index),
                start_date=start,
                end_date=end,
                allocated_amount=grant.monthly_budget * months,
                warning_threshold=self.budget_settings.warning_threshold,
                critical_threshold=self.budget_settings.critical_threshold,
            ))
            start = end

        return periods

    def current_period(self, grant: Grant, as_of: Optional[date] = None) -> GrantBudgetPeriod:
        return current_period(grant, as_of or self.clock.now().date())

    def update_spending(self, grant: Grant, period: GrantBudgetPeriod, amount: float,
                        as_of: Optional[date] = None) -> List[BudgetAlert]:
        """
        Record spend against a budget period.

        Args:
            grant: Grant owning the period
            period: Period to charge
            amount: Spend to add (negative for refunds)
            as_of: Date of the update; defaults to today

        Returns:
            Alerts raised by the update
        """
        as_of = as_of or self.clock.now().date()

        # Compute everything before touching the period
        spent = period.spent_amount + amount
        if spent < 0:
            raise ValidationError(
                f"Spend update of {amount:.2f} would make {period.period_name} spend negative"
            )
        days_elapsed = max(1, (as_of - period.start_date).days)
        projected = spent / days_elapsed * period.length_days
        available = period.total_available
        utilization = spent / available * 100 if available > 0 else 0.0

        period.spent_amount = spent
        period.projected_spend = projected
        grant.updated_at = self.clock.now()

        alerts = self._check_thresholds(grant, period, utilization, as_of)
        if alerts:
            logger.warning(
                f"Grant {grant.id} {period.period_name}: {len(alerts)} budget alerts at "
                f"{utilization:.1f}% utilization"
            )
        return alerts

    def update_grant_spending(self, grant: Grant, spend: MonthlySpend,
                              as_of: Optional[date] = None) -> List[BudgetAlert]:
        """Apply a grant's share of a month's spend to its current period"""
        period = self.current_period(grant, as_of)
        return self.update_spending(grant, period, spend.for_grant(grant.id), as_of)

    def apply_rollover(self, grant: Grant, period: GrantBudgetPeriod) -> float:
        """Carry unspent budget into the following period per the rollover policy"""
        index = grant.budget_periods.index(period)
        if index + 1 >= len(grant.budget_periods):
            return 0.0

        carry = max(0.0, period.remaining_amount) * grant.rollover_policy.carryover_share
        if carry:
            following = grant.budget_periods[index + 1]
            following.carryover_amount += carry
            logger.info(f"Carried {carry:.2f} from {period.period_name} into {following.period_name}")
        return carry

    def _check_thresholds(self, grant: Grant, period: GrantBudgetPeriod,
                          utilization: float, as_of: date) -> List[BudgetAlert]:
        alerts = []

        if utilization >= period.critical_threshold:
            alerts.append(self._alert(
                grant, period, AlertType.CRITICAL, AlertSeverity.CRITICAL,
                f"Critical: Budget utilization for {period.period_name} has reached {utilization:.1f}%",
                period.critical_threshold, utilization, as_of,
            ))
        elif utilization >= period.warning_threshold:
            alerts.append(self._alert(
                grant, period, AlertType.WARNING, AlertSeverity.MEDIUM,
                f"Budget utilization for {period.period_name} has reached {utilization:.1f}%",
                period.warning_threshold, utilization, as_of,
            ))

        if period.projected_spend > period.total_available:
            alert = self._alert(
                grant, period, AlertType.PROJECTION, AlertSeverity.HIGH,
                f"Projected spending for {period.period_name} may exceed allocated budget",
                period.warning_threshold, utilization, as_of,
            )
            alert.projected_overage = period.projected_spend - period.total_available
            alerts.append(alert)

        return alerts

    def _alert(self, grant: Grant, period: GrantBudgetPeriod, alert_type: AlertType,
               severity: AlertSeverity, message: str, threshold: float,
               utilization: float, as_of: date) -> BudgetAlert:
        actions = list(PROJECTION_ACTIONS if alert_type == AlertType.PROJECTION else THRESHOLD_ACTIONS)
        if period.days_remaining(as_of) > 30:
            actions.append('Spread remaining work across available time')

        return BudgetAlert(
            id=self.ids.new_id('alert'),
            grant_id=grant.id,
            budget_period_id=period.id,
            type=alert_type,
            severity=severity,
            message=message,
            threshold=threshold,
            current_utilization=utilization,
            recommended_actions=actions,
            created_at=self.clock.now(),
        )

    @staticmethod
    def _period_name(period_type: BudgetPeriodType, start: date, index: int) -> str:
        if period_type == BudgetPeriodType.MONTHLY:
            return start.strftime('%b %Y')
        if period_type == BudgetPeriodType.QUARTERLY:
            return f"Q{(start.month - 1) // 3 + 1}-{start.year}"
        if period_type == BudgetPeriodType.ANNUALLY:
            return f"Year-{start.year}"
        return f"Project-Year-{index + 1}"
