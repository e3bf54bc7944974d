"""Tests for cost accounting, risk assessment and scenario scoring"""

import pytest

from consumption_planner.analysis.aggregation import WorkloadAggregate, WorkloadAggregator
from consumption_planner.analysis.cost import CostAccountant
from consumption_planner.analysis.insights import InsightGenerator
from consumption_planner.analysis.risk import RiskAssessor, spot_capacity_fraction
from consumption_planner.analysis.scoring import ScenarioScorer
from consumption_planner.core.models import (
    CommitmentTerm, CostSavings, DiscountProfile, OptimizationConstraints, PaymentOption,
    PurchaseCategory, PurchaseStrategy, RiskLevel, Scenario, VolumeDiscount
)


def _strategy(sid, category, quantity=1, hourly_cost=0.1, utilization=100, **kwargs):
    return PurchaseStrategy(
        id=sid,
        instance_type=kwargs.pop('instance_type', 'm7i.large'),
        quantity=quantity,
        purchase_type=category,
        hourly_cost=hourly_cost,
        estimated_utilization=utilization,
        purpose=kwargs.pop('purpose', 'test capacity'),
        **kwargs,
    )


class TestPurchaseStrategyCosts:
    """Test strategy cost properties"""

    def test_monthly_cost(self):
        strategy = _strategy('a', PurchaseCategory.ON_DEMAND, quantity=2, hourly_cost=0.5, utilization=50)
        assert strategy.monthly_cost == pytest.approx(0.5 * 720 * 2 * 0.5)

    def test_elastic_quantity_bills_as_one(self):
        strategy = _strategy('a', PurchaseCategory.SPOT, quantity=0, hourly_cost=0.5)
        assert strategy.monthly_cost == pytest.approx(360)

    def test_upfront_cost(self):
        all_upfront = _strategy('a', PurchaseCategory.RESERVED, hourly_cost=0.1,
                                commitment=CommitmentTerm.THREE_YEAR, payment_option=PaymentOption.ALL_UPFRONT)
        partial = _strategy('b', PurchaseCategory.RESERVED, hourly_cost=0.1,
                            commitment=CommitmentTerm.ONE_YEAR, payment_option=PaymentOption.PARTIAL_UPFRONT)
        none = _strategy('c', PurchaseCategory.RESERVED, hourly_cost=0.1,
                         commitment=CommitmentTerm.ONE_YEAR, payment_option=PaymentOption.NO_UPFRONT)

        assert all_upfront.upfront_cost == pytest.approx(0.1 * 8760 * 3)
        assert partial.upfront_cost == pytest.approx(0.1 * 8760 / 2)
        assert none.upfront_cost == 0


class TestCostAccountant:
    """Test CostAccountant"""

    def setup_method(self):
        self.accountant = CostAccountant()

    def test_baseline(self, portfolio):
        """Baseline prices every workload on-demand per vCPU-hour"""
        gpu_hours = 3 * 6 * 6 / 7 * 30
        expected = 0.15 * 16 * 480 + 3.0 * 8 * gpu_hours + 0.10 * 4 * 720

        assert self.accountant.baseline_monthly_cost(portfolio) == pytest.approx(expected)

    def test_calculate_savings(self, critical_service_workload):
        strategies = [_strategy('a', PurchaseCategory.RESERVED, hourly_cost=0.1, utilization=100)]

        savings = self.accountant.calculate_savings(strategies, [critical_service_workload])

        assert savings.baseline_monthly_cost == pytest.approx(288)
        assert savings.optimized_monthly_cost == pytest.approx(72)
        assert savings.monthly == pytest.approx(216)
        assert savings.percentage == pytest.approx(75)
        assert savings.annual == pytest.approx(216 * 12)

    def test_savings_never_negative(self, critical_service_workload):
        strategies = [_strategy('a', PurchaseCategory.ON_DEMAND, quantity=10, hourly_cost=1.0)]

        savings = self.accountant.calculate_savings(strategies, [critical_service_workload])

        assert savings.monthly == 0
        assert savings.percentage == 0

    def test_cost_breakdown(self):
        strategies = [
            _strategy('r', PurchaseCategory.RESERVED, quantity=2, hourly_cost=0.06, utilization=90),
            _strategy('p', PurchaseCategory.SAVINGS_PLAN, quantity=1, hourly_cost=0.16, utilization=80,
                      instance_type='flexible'),
            _strategy('s', PurchaseCategory.SPOT, quantity=1, hourly_cost=0.03024, utilization=50),
            _strategy('o', PurchaseCategory.ON_DEMAND, quantity=1, hourly_cost=0.1008, utilization=20,
                      purpose='Immediate burst capacity'),
        ]

        breakdown = self.accountant.cost_breakdown(strategies)

        assert breakdown.reserved.instances == 2
        assert breakdown.reserved.utilization_rate == 90
        assert breakdown.savings_plans.commitment_amount == pytest.approx(0.16 * 720)
        assert breakdown.spot.estimated_savings == pytest.approx((0.1008 - 0.03024) * 720 * 0.5)
        assert breakdown.spot.interruption_risk == pytest.approx(0.15)
        assert breakdown.on_demand.usage == 'burst'
        assert breakdown.total_monthly_cost == pytest.approx(sum(s.monthly_cost for s in strategies))
        assert breakdown.to_dict()['total']['annual_cost'] == pytest.approx(breakdown.total_monthly_cost * 12)

    def test_payback_period(self):
        strategies = [_strategy('r', PurchaseCategory.RESERVED, hourly_cost=0.1,
                                commitment=CommitmentTerm.ONE_YEAR, payment_option=PaymentOption.ALL_UPFRONT)]

        assert self.accountant.payback_period_months(strategies, 876) == pytest.approx(1.0)
        assert self.accountant.payback_period_months(strategies, 0) is None
        assert self.accountant.payback_period_months([], 100) == 0


class TestRiskAssessor:
    """Test RiskAssessor"""

    def test_spot_fraction_uses_quantity(self):
        strategies = [
            _strategy('r', PurchaseCategory.RESERVED, quantity=3),
            _strategy('s', PurchaseCategory.SPOT, quantity=1),
        ]
        assert spot_capacity_fraction(strategies) == pytest.approx(0.25)
        assert spot_capacity_fraction([]) == 0

    @pytest.mark.parametrize("spot_quantity,expected", [
        (1, RiskLevel.LOW),
        (3, RiskLevel.MEDIUM),
        (7, RiskLevel.HIGH),
    ])
    def test_overall_risk(self, spot_quantity, expected):
        strategies = [
            _strategy('r', PurchaseCategory.RESERVED, quantity=10 - spot_quantity),
            _strategy('s', PurchaseCategory.SPOT, quantity=spot_quantity),
        ]
        assert RiskAssessor().assess(strategies).overall_risk == expected

    def test_assess(self):
        strategies = [
            _strategy('r', PurchaseCategory.RESERVED, quantity=1, commitment=CommitmentTerm.THREE_YEAR),
            _strategy('s', PurchaseCategory.SPOT, quantity=1),
        ]

        profile = RiskAssessor().assess(strategies)

        assert profile.spot_capacity_percentage == pytest.approx(50)
        assert profile.spot_interruption_risk == pytest.approx(0.15)
        assert profile.cost_variability_risk == RiskLevel.HIGH
        assert profile.commitment_risk == RiskLevel.MEDIUM

    def test_plan_risks(self):
        assessor = RiskAssessor()
        aggregate = WorkloadAggregate(max_peak_multiplier=2.5)
        low_util = [_strategy('r', PurchaseCategory.RESERVED, utilization=70)]

        risks = assessor.plan_risks(low_util, aggregate, assessor.assess(low_util))

        assert risks.under_utilization == 0.2
        assert risks.over_commitment == 0.1
        assert risks.spot_interruption == 0

        high_util = [_strategy('r', PurchaseCategory.RESERVED, utilization=90)]
        risks = assessor.plan_risks(high_util, WorkloadAggregate(), assessor.assess(high_util))
        assert risks.under_utilization == 0.05
        assert risks.over_commitment == 0.05


class TestScenarioScorer:
    """Test ScenarioScorer"""

    def setup_method(self):
        self.scorer = ScenarioScorer()

    def test_weights(self):
        default = ScenarioScorer.weights(OptimizationConstraints())
        assert default == {'cost': 0.25, 'risk': 0.15, 'flexibility': 0.15,
                           'reliability': 0.15, 'specialization': 0.3}

        tuned = ScenarioScorer.weights(OptimizationConstraints(
            prioritize_cost=True, risk_tolerance=RiskLevel.LOW,
            flexibility_required=True, reliability_required=True,
        ))
        assert tuned['cost'] == 0.4
        assert tuned['risk'] == 0.3

    def test_score(self):
        scenario = Scenario('plain', 'test', (
            _strategy('o', PurchaseCategory.ON_DEMAND, hourly_cost=1.0, utilization=100),
        ))

        score = self.scorer.score(scenario, WorkloadAggregate())

        assert score.cost == pytest.approx(100 - 720 / 100)
        assert score.risk == 100
        assert score.flexibility == 100
        assert score.reliability == 80
        assert score.specialization == 50
        assert score.bonus == 0
        assert score.total == pytest.approx(
            score.cost * 0.25 + 100 * 0.15 + 100 * 0.15 + 80 * 0.15 + 50 * 0.3
        )

    def test_specialization(self):
        """Specialized families, purpose keywords and purchase variety add up"""
        scenario = Scenario('gpu', 'test', (
            _strategy('r', PurchaseCategory.RESERVED, instance_type='p3.2xlarge',
                      purpose='Dedicated GPU capacity for ML training'),
            _strategy('s', PurchaseCategory.SPOT),
            _strategy('o', PurchaseCategory.ON_DEMAND),
        ))
        assert self.scorer.specialization(scenario) == 100

    def test_purpose_keywords_match_whole_words(self):
        scenario = Scenario('x', 'test', (
            _strategy('o', PurchaseCategory.ON_DEMAND, purpose='Capacity for html rendering'),
        ))
        assert self.scorer.specialization(scenario) == 50

    def test_scenario_bonus(self):
        scenario = Scenario('gpu', 'test', (_strategy('o', PurchaseCategory.ON_DEMAND),))

        assert self.scorer.score(scenario, WorkloadAggregate(gpu_hours=10)).bonus == 20
        assert self.scorer.score(scenario, WorkloadAggregate()).bonus == 0

    def test_select_prefers_first_on_tie(self):
        first = Scenario('first', 'test', (_strategy('a', PurchaseCategory.ON_DEMAND),))
        second = Scenario('second', 'test', (_strategy('b', PurchaseCategory.ON_DEMAND),))

        chosen, scores = self.scorer.select([first, second], WorkloadAggregate())

        assert chosen is first
        assert scores[0].total == scores[1].total

    def test_select_cheapest_when_otherwise_equal(self):
        cheap = Scenario('cheap', 'test', (_strategy('a', PurchaseCategory.ON_DEMAND, hourly_cost=0.1),))
        pricey = Scenario('pricey', 'test', (_strategy('b', PurchaseCategory.ON_DEMAND, hourly_cost=5.0),))

        chosen, _ = self.scorer.select([pricey, cheap], WorkloadAggregate())

        assert chosen is cheap


class TestInsightGenerator:
    """Test InsightGenerator"""

    def setup_method(self):
        self.insights = InsightGenerator()

    def test_confidence_bounds(self, portfolio):
        aggregate = WorkloadAggregator().aggregate(portfolio)
        risky = [_strategy(str(i), PurchaseCategory.SPOT, risk_level=RiskLevel.HIGH) for i in range(5)]

        assert self.insights.confidence([], aggregate) == 95
        assert self.insights.confidence(risky, aggregate) == 60

    def test_optimization_recommendations(self):
        aggregate = WorkloadAggregate(gpu_hours=100, burst_hours=50, predictable_hours=10)
        strategies = [_strategy('s', PurchaseCategory.SPOT)]

        recommendations = self.insights.optimization_recommendations(strategies, aggregate)

        assert 'High Spot usage detected - ensure workloads can handle interruptions' in recommendations
        assert any(r.startswith('GPU workloads identified') for r in recommendations)
        assert any(r.startswith('Variable workload pattern') for r in recommendations)

    def test_metrics(self):
        strategies = [
            _strategy('r', PurchaseCategory.RESERVED, utilization=90),
            _strategy('s', PurchaseCategory.SPOT, utilization=60, risk_level=RiskLevel.HIGH),
        ]

        metrics = InsightGenerator.metrics(strategies)

        assert metrics.strategies_count == 2
        assert metrics.purchase_type_distribution == {'reserved': 1, 'spot': 1}
        assert metrics.average_utilization == 75
        assert metrics.risk_distribution == {'low': 1, 'high': 1}

    def test_plan_narrative_limited_savings(self, critical_service_workload):
        savings = CostSavings(monthly=10, percentage=5, baseline_monthly_cost=200, optimized_monthly_cost=190)

        narrative = self.insights.plan_narrative([critical_service_workload], [], savings)

        assert narrative.warnings == ['Limited cost optimization potential with current workload patterns']
        assert any('interruptible' in r for r in narrative.recommendations)

    def test_plan_narrative_discount_notes(self, genomics_workload):
        savings = CostSavings(monthly=800, percentage=40, baseline_monthly_cost=2000, optimized_monthly_cost=1200)
        discounts = DiscountProfile(
            available_credits=6000,
            monthly_budget=1000,
            volume_discounts=(VolumeDiscount(500, 0.02), VolumeDiscount(1000, 0.05)),
        )

        narrative = self.insights.plan_narrative(
            [genomics_workload], [_strategy('s', PurchaseCategory.SPOT)], savings, discounts
        )

        assert narrative.insights[0] == 'Excellent cost optimization: 40.0% savings vs all on-demand'
        assert any('exceeds the monthly budget' in w for w in narrative.warnings)
        assert 'Available credits cover 5.0 months of planned spend' in narrative.insights
        assert any('5% volume discount' in i for i in narrative.insights)
        assert any('checkpointing' in r for r in narrative.recommendations)
