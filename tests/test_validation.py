"""Tests for validation module"""

import json
import pytest
from dataclasses import replace
from datetime import date

from consumption_planner.budget.models import BudgetPeriodType, OveragePolicy, RolloverPolicy
from consumption_planner.core.exceptions import ValidationError
from consumption_planner.core.models import (
    CommitmentTerm, DiscountProfile, OptimizationConstraints, ResourceRequirement,
    SeasonalPattern, VolumeDiscount
)
from consumption_planner.core.validation import (
    ConstraintsSpec, DiscountSpec, ForecastRequest, GrantSpec, PlanRequest,
    Validator, WorkloadSpec, parse_request
)


class TestValidator:
    """Test Validator class"""

    def test_validate_workloads_rejects_empty(self):
        """An empty portfolio is rejected"""
        with pytest.raises(ValidationError, match="At least one workload pattern is required"):
            Validator.validate_workloads([])

    def test_validate_workloads_rejects_duplicate_ids(self, genomics_workload):
        """Workload ids must be unique"""
        with pytest.raises(ValidationError, match="Duplicate workload id"):
            Validator.validate_workloads([genomics_workload, genomics_workload])

    def test_validate_workload_positive_fields(self, genomics_workload):
        """Frequency, duration and resources must be positive"""
        assert Validator.validate_workload(genomics_workload) is genomics_workload

        with pytest.raises(ValidationError, match="runs_per_day"):
            Validator.validate_workload(replace(genomics_workload, runs_per_day=0))

        with pytest.raises(ValidationError, match="avg_duration_hours"):
            Validator.validate_workload(replace(genomics_workload, avg_duration_hours=-1))

        with pytest.raises(ValidationError, match="vcpus"):
            Validator.validate_workload(replace(
                genomics_workload, requirements=ResourceRequirement(vcpus=0, memory_gib=4)
            ))

    def test_validate_workload_days_per_week(self, genomics_workload):
        """A week has at most seven days"""
        with pytest.raises(ValidationError, match="cannot exceed 7"):
            Validator.validate_workload(replace(genomics_workload, days_per_week=8))

    def test_validate_workload_peak_multiplier(self, genomics_workload):
        """Peak multipliers must be positive"""
        workload = replace(genomics_workload, seasonality=SeasonalPattern(peak_multiplier=0))
        with pytest.raises(ValidationError, match="peak_multiplier"):
            Validator.validate_workload(workload)

    def test_validate_percentage(self):
        """Test percentage validation"""
        assert Validator.validate_percentage(None, "x") is None
        assert Validator.validate_percentage(0, "x") == 0
        assert Validator.validate_percentage(100, "x") == 100

        with pytest.raises(ValidationError):
            Validator.validate_percentage(101, "x")

        with pytest.raises(ValidationError):
            Validator.validate_percentage(-5, "x")

    def test_validate_constraints(self):
        """Constraint percentages are bounded"""
        constraints = OptimizationConstraints(max_spot_percentage=40)
        assert Validator.validate_constraints(constraints) is constraints

        with pytest.raises(ValidationError, match="max_spot_percentage"):
            Validator.validate_constraints(OptimizationConstraints(max_spot_percentage=150))

        with pytest.raises(ValidationError, match="max_upfront_payment"):
            Validator.validate_constraints(OptimizationConstraints(max_upfront_payment=-1))

    def test_validate_discount_profile(self):
        """Discounts are fractions below one"""
        profile = DiscountProfile(edp_discount=0.1, ppa_discounts={"m7i": 0.05})
        assert Validator.validate_discount_profile(profile) is profile

        with pytest.raises(ValidationError, match="edp_discount"):
            Validator.validate_discount_profile(DiscountProfile(edp_discount=1.0))

        with pytest.raises(ValidationError, match="ppa_discounts"):
            Validator.validate_discount_profile(DiscountProfile(ppa_discounts={"c7i": 1.5}))

        with pytest.raises(ValidationError):
            Validator.validate_discount_profile(
                DiscountProfile(volume_discounts=(VolumeDiscount(threshold=1000, discount=-0.1),))
            )

    def test_validate_planning_horizon(self):
        """Only one and three year horizons are supported"""
        assert Validator.validate_planning_horizon("1yr") == "1yr"
        assert Validator.validate_planning_horizon("3yr") == "3yr"

        with pytest.raises(ValidationError, match="Invalid planning horizon"):
            Validator.validate_planning_horizon("5yr")

    def test_validate_date_range(self):
        """Test date range validation"""
        start, end = Validator.validate_date_range("2024-01-01", "2024-12-31")
        assert start == date(2024, 1, 1)
        assert end == date(2024, 12, 31)

        with pytest.raises(ValidationError):
            Validator.validate_date_range(date(2024, 12, 31), date(2024, 1, 1))

    def test_validate_grant_terms(self):
        """Cloud budget must fit inside the total budget"""
        Validator.validate_grant_terms(1000, 500, 12, date(2024, 1, 1), date(2025, 1, 1))

        with pytest.raises(ValidationError, match="cannot exceed"):
            Validator.validate_grant_terms(1000, 1500, 12, date(2024, 1, 1), date(2025, 1, 1))

        with pytest.raises(ValidationError, match="at least one month"):
            Validator.validate_grant_terms(1000, 500, 0, date(2024, 1, 1), date(2025, 1, 1))

    def test_load_document(self, tmp_path):
        """YAML and JSON documents load as mappings"""
        yaml_path = tmp_path / "request.yaml"
        yaml_path.write_text("name: test\nworkloads: []\n")
        assert Validator.load_document(yaml_path) == {"name": "test", "workloads": []}

        json_path = tmp_path / "request.json"
        json_path.write_text(json.dumps({"name": "test"}))
        assert Validator.load_document(json_path) == {"name": "test"}

    def test_load_document_errors(self, tmp_path):
        """Missing, malformed and non-mapping documents are rejected"""
        with pytest.raises(ValidationError, match="does not exist"):
            Validator.load_document(tmp_path / "missing.yaml")

        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(ValidationError, match="Could not parse"):
            Validator.load_document(broken)

        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n- b\n")
        with pytest.raises(ValidationError, match="mapping"):
            Validator.load_document(listing)


class TestRequestModels:
    """Test request document models"""

    def test_workload_spec_to_pattern(self):
        """Workload documents convert to frozen workload patterns"""
        spec = WorkloadSpec(
            id="etl",
            name="Nightly ETL",
            runs_per_day=1,
            avg_duration_hours=3,
            days_per_week=7,
            requirements={"vcpus": 4, "memory_gib": 16},
            seasonality={"type": "seasonal", "peak_months": [11, 12], "peak_multiplier": 2.0},
            burst_capacity={"enabled": True, "max_concurrent_jobs": 4},
            priority="high",
        )

        pattern = spec.to_pattern()

        assert pattern.id == "etl"
        assert pattern.requirements.vcpus == 4
        assert pattern.seasonality.peak_months == (11, 12)
        assert pattern.seasonality.multiplier == pytest.approx(1.5)
        assert pattern.bursts
        assert pattern.priority.value == "high"

    def test_plan_request(self, plan_document):
        """Plan documents produce workloads, constraints and discounts"""
        document = dict(plan_document)
        document["constraints"] = {"max_commitment": "1yr", "spot_instances_allowed": False}
        document["discounts"] = {
            "edp_discount": 0.1,
            "volume_discounts": [{"threshold": 1000, "discount": 0.02}],
        }

        request = parse_request(PlanRequest, document)

        assert [w.id for w in request.workload_patterns()] == ["genomics", "gpu-training", "critical-service"]
        constraints = request.optimization_constraints()
        assert constraints.max_commitment == CommitmentTerm.ONE_YEAR
        assert constraints.spot_instances_allowed is False
        profile = request.discount_profile()
        assert profile.edp_discount == 0.1
        assert profile.volume_discounts == (VolumeDiscount(threshold=1000, discount=0.02),)

    def test_plan_request_without_options(self, plan_document):
        """Constraints and discounts are optional"""
        request = parse_request(PlanRequest, plan_document)

        assert request.optimization_constraints() is None
        assert request.discount_profile() is None

    def test_plan_request_rejects_duplicate_ids(self, plan_document):
        """Workload ids must be unique within a request"""
        document = dict(plan_document)
        document["workloads"] = plan_document["workloads"] + [plan_document["workloads"][0]]

        with pytest.raises(ValidationError, match="unique"):
            parse_request(PlanRequest, document)

    def test_plan_request_rejects_unknown_fields(self, plan_document):
        """Unknown fields are reported with their location"""
        document = dict(plan_document)
        document["workloads"] = [dict(plan_document["workloads"][0], cores=4)]

        with pytest.raises(ValidationError, match="workloads.0.cores"):
            parse_request(PlanRequest, document)

    def test_plan_request_rejects_bad_horizon(self, plan_document):
        with pytest.raises(ValidationError, match="planning_horizon"):
            parse_request(PlanRequest, dict(plan_document, planning_horizon="2yr"))

    def test_constraints_spec_bounds(self):
        """Percentages outside 0-100 fail validation"""
        assert ConstraintsSpec(max_spot_percentage=30).to_constraints().max_spot_percentage == 30

        with pytest.raises(ValidationError):
            parse_request(ConstraintsSpec, {"min_reserved_percentage": 120})

    def test_discount_spec_bounds(self):
        with pytest.raises(ValidationError):
            parse_request(DiscountSpec, {"edp_discount": 1.2})

    def test_grant_spec(self, grant_document):
        """Grant documents validate dates and budgets"""
        request = parse_request(ForecastRequest, grant_document)

        assert request.grant.start_date == date(2024, 1, 1)
        assert request.grant.project_duration is None
        assert len(request.history) == 3
        assert request.as_of == date(2024, 2, 15)

        with pytest.raises(ValidationError, match="cloud_compute_budget"):
            parse_request(GrantSpec, dict(grant_document["grant"], cloud_compute_budget=600000))

        with pytest.raises(ValidationError, match="start_date"):
            parse_request(GrantSpec, dict(grant_document["grant"], end_date="2023-01-01"))

    def test_grant_spec_policies(self, grant_document):
        """Period type and policies parse into their enums and reject unknown values"""
        spec = parse_request(GrantSpec, dict(grant_document["grant"], rollover_policy="flexible",
                                             overage_policy="block", budget_period_type="monthly"))

        assert spec.rollover_policy == RolloverPolicy.FLEXIBLE
        assert spec.overage_policy == OveragePolicy.BLOCK
        assert spec.budget_period_type == BudgetPeriodType.MONTHLY

        for field, value in (("rollover_policy", "sometimes"), ("overage_policy", "ignore"),
                             ("budget_period_type", "weekly")):
            with pytest.raises(ValidationError, match=field):
                parse_request(GrantSpec, dict(grant_document["grant"], **{field: value}))
