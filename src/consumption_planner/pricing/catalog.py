"""
Pricing and instance catalog.

The optimizer never talks to a cloud price API directly. It asks a
``PricingCatalog`` for hourly rates and for the instance type that suits a
resource requirement. ``StaticPricingCatalog`` carries a published on-demand
price table and the usual commitment discount ratios, which is enough for
planning and keeps the engine usable offline.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..core.exceptions import PricingError
from ..core.models import (
    CommitmentTerm, InstanceClass, PaymentOption, PurchaseCategory, ResourceRequirement
)

logger = logging.getLogger(__name__)

FLEXIBLE_INSTANCE = "flexible"


class PricingCatalog(ABC):
    """Rate and instance lookup consumed by the scenario generator"""

    @abstractmethod
    def rate(self, instance_type: str, category: PurchaseCategory,
             commitment: Optional[CommitmentTerm] = None,
             payment: Optional[PaymentOption] = None) -> float:
        """Hourly cost of one instance bought through the given category"""

    @abstractmethod
    def instance_for_class(self, instance_class: InstanceClass) -> str:
        """Default instance type of an instance class"""

    @abstractmethod
    def classify(self, requirement: ResourceRequirement) -> InstanceClass:
        """Instance class best suited to a requirement"""

    @abstractmethod
    def resolve_instance(self, requirement: ResourceRequirement) -> str:
        """Instance type best suited to a requirement"""


class StaticPricingCatalog(PricingCatalog):
    """Pricing from a fixed on-demand table and discount ratios"""

    # USD per hour, Linux, us-east-1
    ON_DEMAND_RATES = {
        'm7i.large': 0.1008,
        'm7i.xlarge': 0.2016,
        'm7i.2xlarge': 0.4032,
        'm7i.4xlarge': 0.8064,
        'c7i.large': 0.0893,
        'c7i.xlarge': 0.1785,
        'c7i.4xlarge': 0.714,
        'c7i.8xlarge': 1.428,
        'r7i.large': 0.1323,
        'r7i.xlarge': 0.2646,
        'r7i.4xlarge': 1.0584,
        'i4i.large': 0.172,
        'i4i.xlarge': 0.343,
        'g5.2xlarge': 1.212,
        'p3.2xlarge': 3.06,
        'p3.8xlarge': 12.24,
        'p4d.24xlarge': 32.7726,
    }

    RESERVED_DISCOUNT_RATES = {
        'no-upfront_1yr': 0.31,
        'partial-upfront_1yr': 0.34,
        'all-upfront_1yr': 0.36,
        'no-upfront_3yr': 0.53,
        'partial-upfront_3yr': 0.56,
        'all-upfront_3yr': 0.59,
    }

    SAVINGS_PLAN_DISCOUNT_RATES = {
        'no-upfront_1yr': 0.20,
        'partial-upfront_1yr': 0.23,
        'all-upfront_1yr': 0.25,
        'no-upfront_3yr': 0.40,
        'partial-upfront_3yr': 0.44,
        'all-upfront_3yr': 0.47,
    }

    SPOT_DISCOUNT = 0.70

    CLASS_DEFAULTS = {
        InstanceClass.GENERAL_PURPOSE: 'm7i.large',
        InstanceClass.COMPUTE_OPTIMIZED: 'c7i.large',
        InstanceClass.MEMORY_OPTIMIZED: 'r7i.large',
        InstanceClass.STORAGE_OPTIMIZED: 'i4i.large',
        InstanceClass.GPU_ACCELERATED: 'p3.2xlarge',
    }

    # Savings commitments are priced against a general-purpose reference size
    FLEXIBLE_REFERENCE = 'm7i.xlarge'

    THRESHOLDS = {
        'memory_per_vcpu': 6.0,   # GiB per vCPU above which memory-optimized wins
        'compute_vcpus': 16,      # vCPUs at which compute-optimized wins
    }

    def __init__(self, on_demand_rates: Optional[Dict[str, float]] = None):
        self.on_demand_rates = dict(self.ON_DEMAND_RATES)
        if on_demand_rates:
            self.on_demand_rates.update(on_demand_rates)

    def on_demand_rate(self, instance_type: str) -> float:
        if instance_type == FLEXIBLE_INSTANCE:
            instance_type = self.FLEXIBLE_REFERENCE
        try:
            return self.on_demand_rates[instance_type]
        except KeyError:
            raise PricingError(instance_type) from None

    def rate(self, instance_type: str, category: PurchaseCategory,
             commitment: Optional[CommitmentTerm] = None,
             payment: Optional[PaymentOption] = None) -> float:
        """
        Hourly cost of one instance.

        Args:
            instance_type: Catalog instance type, or "flexible" for savings commitments
            category: Purchase category
            commitment: Term for reserved/savings purchases (defaults to 1yr)
            payment: Payment option for reserved/savings purchases (defaults to no upfront)

        Returns:
            Hourly cost in USD
        """
        base = self.on_demand_rate(instance_type)

        if category == PurchaseCategory.ON_DEMAND:
            return base
        if category == PurchaseCategory.SPOT:
            return base * (1 - self.SPOT_DISCOUNT)

        key = self._discount_key(commitment, payment)
        if category == PurchaseCategory.RESERVED:
            return base * (1 - self.RESERVED_DISCOUNT_RATES[key])
        return base * (1 - self.SAVINGS_PLAN_DISCOUNT_RATES[key])

    def instance_for_class(self, instance_class: InstanceClass) -> str:
        return self.CLASS_DEFAULTS[instance_class]

    def classify(self, requirement: ResourceRequirement) -> InstanceClass:
        if requirement.gpu_required:
            return InstanceClass.GPU_ACCELERATED
        if requirement.memory_per_vcpu > self.THRESHOLDS['memory_per_vcpu']:
            return InstanceClass.MEMORY_OPTIMIZED
        if requirement.vcpus >= self.THRESHOLDS['compute_vcpus']:
            return InstanceClass.COMPUTE_OPTIMIZED
        return InstanceClass.GENERAL_PURPOSE

    def resolve_instance(self, requirement: ResourceRequirement) -> str:
        instance_class = self.classify(requirement)
        if instance_class == InstanceClass.COMPUTE_OPTIMIZED:
            # Large jobs land on a size that fits them whole
            return 'c7i.4xlarge'
        return self.instance_for_class(instance_class)

    @staticmethod
    def _discount_key(commitment: Optional[CommitmentTerm],
                      payment: Optional[PaymentOption]) -> str:
        term = (commitment or CommitmentTerm.ONE_YEAR).value
        option = (payment or PaymentOption.NO_UPFRONT).value
        return f"{option}_{term}"


_default_catalog: Optional[StaticPricingCatalog] = None


def get_default_catalog() -> StaticPricingCatalog:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = StaticPricingCatalog()
    return _default_catalog
