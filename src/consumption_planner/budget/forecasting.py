"""
Budget Forecasting
Projects a grant's spend to the end of its current budget period.
Projection models are pluggable: the forecaster only needs a model's
average monthly spend, its variance and a value per future month.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

from ..core.config import get_settings
from ..core.exceptions import InsufficientDataError
from ..core.identity import Clock, resolve_clock
from .ledger import current_period
from .models import (
    BudgetForecast, BudgetRecommendation, ForecastScenario, Grant, GrantBudgetPeriod,
    MonthlyProjection, MonthlySpend
)

logger = logging.getLogger(__name__)


@dataclass
class SpendProjection:
    """Output of a forecast model"""
    method: str
    average_monthly_spend: float
    variance: float
    monthly_values: List[float] = field(default_factory=list)

    @property
    def std_dev(self) -> float:
        return math.sqrt(self.variance)


def spend_frame(history: Sequence[MonthlySpend]) -> pd.DataFrame:
    """History as a month-ordered frame"""
    if not history:
        raise InsufficientDataError("Spend history is empty; at least one month is required")
    frame = pd.DataFrame({
        'month': pd.to_datetime([h.month for h in history]),
        'spent': [float(h.total_spent) for h in history],
    })
    return frame.sort_values('month').reset_index(drop=True)


class ForecastModel(ABC):
    """Projects future monthly spend from history"""

    name = "base"

    @abstractmethod
    def project(self, history: Sequence[MonthlySpend], horizon_months: int) -> SpendProjection:
        """
        Project monthly spend.

        Args:
            history: Observed monthly spend, any order
            horizon_months: Number of future months to project

        Returns:
            SpendProjection

        Raises:
            InsufficientDataError: if history is empty
        """


class TrailingAverageModel(ForecastModel):
    """Flat projection at the mean of the most recent months"""

    name = "trailing-average"

    def __init__(self, window: Optional[int] = None):
        self.window = window or get_settings().budget.forecast_window_months

    def project(self, history: Sequence[MonthlySpend], horizon_months: int) -> SpendProjection:
        recent = spend_frame(history)['spent'].tail(self.window).to_numpy(dtype=float)
        average = float(np.mean(recent))
        return SpendProjection(
            method=self.name,
            average_monthly_spend=average,
            variance=float(np.var(recent)),
            monthly_values=[average] * horizon_months,
        )


class LinearTrendModel(ForecastModel):
    """Least-squares linear trend over the full history"""

    name = "linear-trend"

    def project(self, history: Sequence[MonthlySpend], horizon_months: int) -> SpendProjection:
        spent = spend_frame(history)['spent'].to_numpy(dtype=float)
        if len(spent) < 2:
            return TrailingAverageModel(window=1).project(history, horizon_months)

        x = np.arange(len(spent), dtype=float)
        slope, intercept = np.polyfit(x, spent, 1)
        residuals = spent - (slope * x + intercept)

        future_x = np.arange(len(spent), len(spent) + horizon_months, dtype=float)
        values = np.clip(slope * future_x + intercept, 0, None)
        average = float(values.mean()) if horizon_months else float(max(0.0, slope * x[-1] + intercept))

        logger.debug(f"Linear trend slope {slope:.2f}/month over {len(spent)} months")
        return SpendProjection(
            method=self.name,
            average_monthly_spend=average,
            variance=float(np.var(residuals)),
            monthly_values=[float(v) for v in values],
        )


FORECAST_SCENARIOS = (
    ('Conservative', 0.3, 0.8, 'Spending continues at current reduced rate',
     ['Maintain current optimization strategies']),
    ('Expected', 0.5, 1.0, 'Spending continues at historical average',
     ['Continue monitoring spending patterns']),
    ('High Activity', 0.2, 1.3, 'Increased research activity near deadlines',
     ['Consider additional cost optimization', 'Plan for burst capacity']),
)


class BudgetForecaster:
    """Forecasts spend for a grant's current budget period"""

    CONFIDENCE_FLOOR = 60.0
    INTERVAL_Z = 1.96

    def __init__(self, model: Optional[ForecastModel] = None, clock: Optional[Clock] = None):
        self.model = model or TrailingAverageModel()
        self.clock = resolve_clock(clock)

    def forecast(self, grant: Grant, history: Sequence[MonthlySpend],
                 as_of: Optional[date] = None) -> BudgetForecast:
        """
        Forecast the current period's spend.

        Args:
            grant: Grant with budget periods
            history: Monthly spend samples
            as_of: Forecast date; defaults to today

        Returns:
            BudgetForecast with scenarios, monthly projections and recommendations
        """
        if not history:
            raise InsufficientDataError(f"Cannot forecast grant {grant.id} without spend history")

        as_of = as_of or self.clock.now().date()
        period = current_period(grant, as_of)
        days_left = period.days_remaining(as_of)
        remaining_months = max(0, math.ceil(days_left / 30))

        projection = self.model.project(history, remaining_months)
        average = projection.average_monthly_spend
        projected_total = period.spent_amount + average * remaining_months
        will_exceed = projected_total > period.total_available

        forecast = BudgetForecast(
            grant_id=grant.id,
            budget_period_id=period.id,
            generated_at=self.clock.now(),
            method=projection.method,
            average_monthly_spend=average,
            spend_variance=projection.variance,
            remaining_months=remaining_months,
            projected_total_spend=projected_total,
            confidence=self._confidence(projection),
            will_exceed_budget=will_exceed,
            projected_exhaustion_date=self._exhaustion_date(period, average, as_of) if will_exceed else None,
            scenarios=[
                ForecastScenario(
                    name=name,
                    probability=probability,
                    projected_spend=projected_total * multiplier,
                    description=description,
                    recommended_actions=list(actions),
                )
                for name, probability, multiplier, description, actions in FORECAST_SCENARIOS
            ],
            monthly_projections=self._monthly_projections(projection, as_of),
            recommendations=self._recommendations(period, projected_total, days_left),
        )

        logger.info(
            f"Forecast for grant {grant.id} {period.period_name}: "
            f"{projected_total:,.2f} projected of {period.total_available:,.2f} available"
        )
        return forecast

    def _confidence(self, projection: SpendProjection) -> float:
        if projection.average_monthly_spend <= 0:
            return 100.0
        raw = 100 - projection.variance / projection.average_monthly_spend * 100
        return max(self.CONFIDENCE_FLOOR, min(100.0, raw))

    @staticmethod
    def _exhaustion_date(period: GrantBudgetPeriod, average: float, as_of: date) -> date:
        remaining = period.remaining_amount
        if remaining <= 0 or average <= 0:
            return as_of
        return as_of + timedelta(days=remaining / average * 30)

    def _monthly_projections(self, projection: SpendProjection, as_of: date) -> List[MonthlyProjection]:
        first_of_month = as_of.replace(day=1)
        margin = self.INTERVAL_Z * projection.std_dev
        return [
            MonthlyProjection(
                month=first_of_month + relativedelta(months=offset + 1),
                projected_spend=value,
                lower_bound=max(0.0, value - margin),
                upper_bound=value + margin,
            )
            for offset, value in enumerate(projection.monthly_values)
        ]

    @staticmethod
    def _recommendations(period: GrantBudgetPeriod, projected_total: float,
                         days_left: int) -> List[BudgetRecommendation]:
        recommendations = []

        if projected_total > period.total_available:
            recommendations.append(BudgetRecommendation(
                type='cost-optimization',
                priority='high',
                title='Reduce projected overspending',
                description='Current trajectory will exceed budget allocation',
                estimated_savings=projected_total - period.total_available,
                implementation_effort='medium',
                actions=[
                    'Increase use of spot instances',
                    'Implement auto-shutdown policies',
                    'Review workload scheduling',
                ],
            ))

        if period.utilization_percentage < 50 and days_left < 90:
            recommendations.append(BudgetRecommendation(
                type='capacity-planning',
                priority='medium',
                title='Accelerate research timeline',
                description='Current low utilization suggests capacity for additional work',
                implementation_effort='high',
            ))

        return recommendations
