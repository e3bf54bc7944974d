"""Rolls workload patterns up into the monthly hour totals that drive scenario sizing"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.models import Priority, WorkloadPattern
from ..core.validation import Validator
from ..pricing.catalog import PricingCatalog, get_default_catalog

logger = logging.getLogger(__name__)


@dataclass
class WorkloadAggregate:
    """Monthly hour totals for a workload portfolio"""
    total_hours: float = 0.0
    predictable_hours: float = 0.0
    critical_hours: float = 0.0
    interruptible_hours: float = 0.0
    gpu_hours: float = 0.0
    burst_hours: float = 0.0
    burst_workloads: int = 0
    max_peak_multiplier: float = 1.0
    priority_counts: Dict[str, int] = field(
        default_factory=lambda: {p.value: 0 for p in Priority}
    )
    instance_type_distribution: Dict[str, float] = field(default_factory=dict)
    seasonality_factors: Dict[str, float] = field(default_factory=dict)

    @property
    def has_gpu(self) -> bool:
        return self.gpu_hours > 0

    @property
    def has_burst(self) -> bool:
        return self.burst_workloads > 0

    @property
    def has_seasonality(self) -> bool:
        return bool(self.seasonality_factors)

    def basis(self, name: str) -> float:
        """Hour total by attribute name, used by allocation rules"""
        return getattr(self, f"{name}_hours")


class WorkloadAggregator:
    """Computes per-portfolio hour totals from workload patterns"""

    PREDICTABLE_SHARE = 0.8   # share of predictable hours worth committing
    BURST_OVERHEAD = 0.3      # extra capacity carried for burst-enabled workloads

    def __init__(self, catalog: Optional[PricingCatalog] = None):
        self.catalog = catalog or get_default_catalog()

    def aggregate(self, workloads: List[WorkloadPattern]) -> WorkloadAggregate:
        """
        Aggregate workload hours.

        Args:
            workloads: Non-empty list of workload patterns

        Returns:
            WorkloadAggregate with hour totals, priority counts and distributions
        """
        Validator.validate_workloads(workloads)

        result = WorkloadAggregate()
        distribution: Dict[str, float] = defaultdict(float)
        seasonality: Dict[str, float] = defaultdict(float)

        for workload in workloads:
            hours = workload.adjusted_monthly_hours
            result.total_hours += hours

            if workload.is_predictable:
                result.predictable_hours += hours * self.PREDICTABLE_SHARE
            if workload.is_critical:
                result.critical_hours += hours
            if workload.interruptible:
                result.interruptible_hours += hours
            if workload.bursts:
                result.burst_hours += hours * self.BURST_OVERHEAD
                result.burst_workloads += 1
            if workload.requirements.gpu_required:
                result.gpu_hours += hours

            result.priority_counts[workload.priority.value] += 1
            distribution[self.catalog.resolve_instance(workload.requirements)] += hours

            if not workload.seasonality.is_steady:
                seasonality[workload.seasonality.type.value] += hours
                if workload.seasonality.peak_multiplier is not None:
                    result.max_peak_multiplier = max(
                        result.max_peak_multiplier, workload.seasonality.peak_multiplier
                    )

        result.instance_type_distribution = dict(distribution)
        result.seasonality_factors = dict(seasonality)

        logger.debug(
            f"Aggregated {len(workloads)} workloads: {result.total_hours:.1f}h total, "
            f"{result.predictable_hours:.1f}h predictable, {result.gpu_hours:.1f}h GPU"
        )
        return result
