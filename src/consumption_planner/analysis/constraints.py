"""Applies caller constraints to generated scenarios"""

import logging
import math
from dataclasses import replace
from typing import List, Optional, Sequence

from ..core.exceptions import ConstraintConflictError
from ..core.models import (
    CommitmentTerm, OptimizationConstraints, PurchaseCategory, PurchaseStrategy, Scenario
)
from ..pricing.catalog import PricingCatalog, get_default_catalog

logger = logging.getLogger(__name__)


class ConstraintFilter:
    """Removes or rewrites strategies that violate constraints"""

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()

    def apply(self, scenarios: Sequence[Scenario],
              constraints: Optional[OptimizationConstraints] = None) -> List[Scenario]:
        """
        Filter scenarios against constraints.

        Args:
            scenarios: Generated scenarios, in generation order
            constraints: Caller constraints; None means unconstrained

        Returns:
            Surviving non-empty scenarios in their original order

        Raises:
            ConstraintConflictError: if no scenario survives
        """
        constraints = constraints or OptimizationConstraints()
        surviving = []

        for scenario in scenarios:
            filtered = self.filter_scenario(scenario, constraints)
            if filtered.is_empty:
                logger.debug(f"Scenario {scenario.name} has no strategies left after filtering")
                continue

            if constraints.min_reserved_percentage is not None:
                share = self.reserved_share(filtered)
                if share < constraints.min_reserved_percentage:
                    logger.debug(
                        f"Scenario {scenario.name} reserves {share:.1f}% of capacity, "
                        f"below the required {constraints.min_reserved_percentage:.1f}%"
                    )
                    continue

            surviving.append(filtered)

        if not surviving:
            raise ConstraintConflictError(
                f"Constraints eliminated all {len(scenarios)} candidate scenarios"
            )

        logger.info(f"{len(surviving)} of {len(scenarios)} scenarios satisfy constraints")
        return surviving

    def filter_scenario(self, scenario: Scenario, constraints: OptimizationConstraints) -> Scenario:
        strategies = list(scenario.strategies)

        if not constraints.spot_instances_allowed:
            strategies = [s for s in strategies if s.purchase_type != PurchaseCategory.SPOT]

        if constraints.max_commitment == CommitmentTerm.ONE_YEAR:
            strategies = [
                self._shorten_term(s) if s.commitment == CommitmentTerm.THREE_YEAR else s
                for s in strategies
            ]

        if constraints.max_spot_percentage is not None:
            strategies = self._cap_spot(strategies, constraints.max_spot_percentage)

        return replace(scenario, strategies=tuple(strategies))

    def _shorten_term(self, strategy: PurchaseStrategy) -> PurchaseStrategy:
        """Move a 3yr purchase to 1yr and re-rate it, keeping any discounts already applied"""
        three_year = self.catalog.rate(strategy.instance_type, strategy.purchase_type,
                                       CommitmentTerm.THREE_YEAR, strategy.payment_option)
        one_year = self.catalog.rate(strategy.instance_type, strategy.purchase_type,
                                     CommitmentTerm.ONE_YEAR, strategy.payment_option)
        return replace(
            strategy,
            commitment=CommitmentTerm.ONE_YEAR,
            hourly_cost=strategy.hourly_cost * one_year / three_year,
        )

    @staticmethod
    def _cap_spot(strategies: List[PurchaseStrategy], max_percentage: float) -> List[PurchaseStrategy]:
        total = len(strategies)
        spot_count = sum(1 for s in strategies if s.purchase_type == PurchaseCategory.SPOT)
        if not total or spot_count / total * 100 <= max_percentage:
            return strategies

        allowed = math.floor(max_percentage / 100 * total)
        kept = 0
        result = []
        for strategy in strategies:
            if strategy.purchase_type == PurchaseCategory.SPOT:
                if kept >= allowed:
                    continue
                kept += 1
            result.append(strategy)
        return result

    @staticmethod
    def reserved_share(scenario: Scenario) -> float:
        """Percentage of instance quantity bought as reserved instances"""
        total = sum(s.quantity for s in scenario.strategies)
        if not total:
            return 0.0
        reserved = sum(s.quantity for s in scenario.of_type(PurchaseCategory.RESERVED))
        return reserved / total * 100
