"""Tests for scenario generation and constraint filtering"""

import pytest
from dataclasses import replace

from consumption_planner.analysis.aggregation import WorkloadAggregator
from consumption_planner.analysis.constraints import ConstraintFilter
from consumption_planner.analysis.scenarios import ScenarioGenerator, apply_discounts
from consumption_planner.core.exceptions import ConstraintConflictError
from consumption_planner.core.models import (
    BurstCapacity, CommitmentTerm, DiscountProfile, OptimizationConstraints,
    PaymentOption, PurchaseCategory, PurchaseStrategy, RiskLevel, Scenario
)


def _strategy(sid, category, quantity=1, **kwargs):
    return PurchaseStrategy(
        id=sid,
        instance_type=kwargs.pop('instance_type', 'm7i.large'),
        quantity=quantity,
        purchase_type=category,
        hourly_cost=kwargs.pop('hourly_cost', 0.1),
        estimated_utilization=kwargs.pop('estimated_utilization', 80),
        purpose=kwargs.pop('purpose', 'test capacity'),
        **kwargs,
    )


@pytest.fixture
def generator():
    return ScenarioGenerator(parallel=False)


class TestScenarioGenerator:
    """Test ScenarioGenerator"""

    def test_templates_enabled_by_portfolio(self, generator, portfolio):
        """GPU scenario appears only with GPU work, burst only with burst work"""
        aggregate = WorkloadAggregator().aggregate(portfolio)

        scenarios = generator.generate(aggregate, portfolio)

        assert [s.name for s in scenarios] == ['conservative', 'aggressive', 'balanced', 'gpu']

    def test_burst_template(self, generator, genomics_workload):
        bursty = replace(genomics_workload, burst_capacity=BurstCapacity(enabled=True, max_concurrent_jobs=4))
        aggregate = WorkloadAggregator().aggregate([bursty])

        names = [s.name for s in generator.generate(aggregate, [bursty])]

        assert 'burst' in names
        assert 'gpu' not in names

    def test_parallel_generation_keeps_template_order(self, portfolio):
        """Thread pool generation returns the same scenarios as serial generation"""
        aggregate = WorkloadAggregator().aggregate(portfolio)

        serial = ScenarioGenerator(parallel=False).generate(aggregate, portfolio)
        parallel = ScenarioGenerator(parallel=True, max_workers=4).generate(aggregate, portfolio)

        assert parallel == serial

    def test_conservative_scenario(self, generator, portfolio):
        """Conservative commits 70% of predictable hours on 3yr all-upfront terms"""
        aggregate = WorkloadAggregator().aggregate(portfolio)
        conservative = generator.generate(aggregate, portfolio)[0]

        reserved = conservative.of_type(PurchaseCategory.RESERVED)[0]
        assert reserved.id == 'conservative-reserved'
        assert reserved.instance_type == 'c7i.large'
        assert reserved.quantity == 1
        assert reserved.commitment == CommitmentTerm.THREE_YEAR
        assert reserved.payment_option == PaymentOption.ALL_UPFRONT
        assert reserved.hourly_cost == pytest.approx(0.0893 * 0.41)
        assert set(reserved.covered_workloads) == {'gpu-training', 'critical-service'}

        spot = conservative.of_type(PurchaseCategory.SPOT)[0]
        assert spot.covered_workloads == ('genomics',)
        assert spot.risk_level == RiskLevel.MEDIUM

    def test_gpu_scenario(self, generator, portfolio):
        aggregate = WorkloadAggregator().aggregate(portfolio)
        gpu = generator.generate(aggregate, portfolio)[-1]

        assert [s.purchase_type for s in gpu.strategies] == [
            PurchaseCategory.RESERVED, PurchaseCategory.SPOT, PurchaseCategory.ON_DEMAND
        ]
        assert gpu.strategies[0].instance_type == 'p3.2xlarge'
        assert gpu.strategies[0].purpose == 'Dedicated GPU capacity for ML training'
        assert gpu.strategies[2].instance_type == 'g5.2xlarge'

    def test_critical_workloads_covered_on_demand(self, generator, portfolio):
        """Every scenario's on-demand line covers critical workloads"""
        aggregate = WorkloadAggregator().aggregate(portfolio)

        for scenario in generator.generate(aggregate, portfolio):
            on_demand = scenario.of_type(PurchaseCategory.ON_DEMAND)
            assert on_demand, scenario.name
            assert 'critical-service' in on_demand[0].covered_workloads

    def test_one_year_commitment_cap(self, generator, portfolio):
        """A one year cap reprices three year commitments"""
        aggregate = WorkloadAggregator().aggregate(portfolio)
        constraints = OptimizationConstraints(max_commitment=CommitmentTerm.ONE_YEAR)

        scenarios = generator.generate(aggregate, portfolio, constraints)

        for scenario in scenarios:
            for strategy in scenario.strategies:
                assert strategy.commitment != CommitmentTerm.THREE_YEAR
        reserved = scenarios[0].of_type(PurchaseCategory.RESERVED)[0]
        assert reserved.hourly_cost == pytest.approx(0.0893 * 0.64)

    def test_upfront_cap_downgrades_payment(self, generator, portfolio):
        """Payments step down the ladder until upfront cash fits the cap"""
        aggregate = WorkloadAggregator().aggregate(portfolio)
        constraints = OptimizationConstraints(max_upfront_payment=0)

        for scenario in generator.generate(aggregate, portfolio, constraints):
            for strategy in scenario.strategies:
                assert strategy.upfront_cost == 0
                if strategy.commitment is not None:
                    assert strategy.payment_option == PaymentOption.NO_UPFRONT

    def test_discounts_applied(self, portfolio):
        """EDP lowers reserved rates, PPA lowers on-demand rates of its family"""
        aggregate = WorkloadAggregator().aggregate(portfolio)
        generator = ScenarioGenerator(parallel=False)
        plain = generator.generate(aggregate, portfolio)
        discounted = generator.generate(
            aggregate, portfolio, discounts=DiscountProfile(edp_discount=0.1, ppa_discounts={'m7i': 0.2})
        )

        plain_reserved = plain[0].of_type(PurchaseCategory.RESERVED)[0]
        discounted_reserved = discounted[0].of_type(PurchaseCategory.RESERVED)[0]
        assert discounted_reserved.hourly_cost == pytest.approx(plain_reserved.hourly_cost * 0.9)

        plain_od = plain[0].of_type(PurchaseCategory.ON_DEMAND)[0]
        discounted_od = discounted[0].of_type(PurchaseCategory.ON_DEMAND)[0]
        assert discounted_od.hourly_cost == pytest.approx(plain_od.hourly_cost * 0.8)

    def test_apply_discounts_leaves_spot_alone(self):
        spot = _strategy('s', PurchaseCategory.SPOT, hourly_cost=0.05)
        profile = DiscountProfile(edp_discount=0.2, ppa_discounts={'m7i': 0.3})

        assert apply_discounts(spot, profile) is spot
        assert apply_discounts(spot, None) is spot


class TestConstraintFilter:
    """Test ConstraintFilter"""

    def setup_method(self):
        self.filter = ConstraintFilter()
        self.scenario = Scenario(
            name='mixed',
            description='test',
            strategies=(
                _strategy('r', PurchaseCategory.RESERVED, quantity=2,
                          commitment=CommitmentTerm.THREE_YEAR, payment_option=PaymentOption.ALL_UPFRONT),
                _strategy('s1', PurchaseCategory.SPOT, quantity=1),
                _strategy('s2', PurchaseCategory.SPOT, quantity=1),
                _strategy('o', PurchaseCategory.ON_DEMAND, quantity=1),
            ),
        )

    def test_no_constraints(self):
        assert self.filter.apply([self.scenario]) == [self.scenario]

    def test_spot_disallowed(self):
        result = self.filter.apply([self.scenario], OptimizationConstraints(spot_instances_allowed=False))

        assert [s.id for s in result[0].strategies] == ['r', 'o']

    def test_commitment_clamped(self):
        result = self.filter.apply([self.scenario], OptimizationConstraints(max_commitment=CommitmentTerm.ONE_YEAR))

        assert result[0].strategies[0].commitment == CommitmentTerm.ONE_YEAR

    def test_commitment_clamp_reprices(self):
        """A shortened term is charged the 1yr rate, keeping earlier discounts"""
        result = self.filter.apply([self.scenario], OptimizationConstraints(max_commitment=CommitmentTerm.ONE_YEAR))

        reserved = result[0].strategies[0]
        assert reserved.payment_option == PaymentOption.ALL_UPFRONT
        assert reserved.hourly_cost == pytest.approx(0.1 * (1 - 0.36) / (1 - 0.59))
        assert [s.hourly_cost for s in result[0].strategies[1:]] == [0.1, 0.1, 0.1]

    def test_spot_cap_keeps_earliest(self):
        """Spot lines beyond the allowed share are dropped, first ones kept"""
        result = self.filter.apply([self.scenario], OptimizationConstraints(max_spot_percentage=25))

        assert [s.id for s in result[0].strategies] == ['r', 's1', 'o']

    def test_spot_cap_within_limit(self):
        result = self.filter.apply([self.scenario], OptimizationConstraints(max_spot_percentage=50))
        assert len(result[0].strategies) == 4

    def test_min_reserved_percentage(self):
        """Scenarios reserving too little capacity are dropped"""
        assert ConstraintFilter.reserved_share(self.scenario) == pytest.approx(40.0)

        kept = self.filter.apply([self.scenario], OptimizationConstraints(min_reserved_percentage=40))
        assert kept == [self.scenario]

        with pytest.raises(ConstraintConflictError):
            self.filter.apply([self.scenario], OptimizationConstraints(min_reserved_percentage=50))

    def test_empty_scenarios_removed(self):
        spot_only = Scenario('spot-only', 'test', (_strategy('s', PurchaseCategory.SPOT),))

        result = self.filter.apply(
            [spot_only, self.scenario], OptimizationConstraints(spot_instances_allowed=False)
        )

        assert [s.name for s in result] == ['mixed']

    def test_all_eliminated(self):
        spot_only = Scenario('spot-only', 'test', (_strategy('s', PurchaseCategory.SPOT),))

        with pytest.raises(ConstraintConflictError, match="eliminated all 1"):
            self.filter.apply([spot_only], OptimizationConstraints(spot_instances_allowed=False))
