"""Pytest configuration and fixtures"""

import pytest
from datetime import date, datetime
import yaml

from consumption_planner.budget.ledger import BudgetPeriodLedger
from consumption_planner.budget.models import BudgetPeriodType
from consumption_planner.core import config as config_module
from consumption_planner.core.config import Settings
from consumption_planner.core.identity import FixedClock, SequentialIdGenerator
from consumption_planner.core.models import (
    Priority, ResourceRequirement, SeasonalityType, SeasonalPattern, WorkloadPattern
)


@pytest.fixture(scope="session")
def test_settings():
    """Create test settings"""
    return Settings(
        environment="test",
        debug=True,
        logging={
            "level": "DEBUG",
            "structured": False,
            "console": False
        },
        optimization={
            "max_alternatives": 2,
            "max_workers": 2
        },
        budget={
            "warning_threshold": 75,
            "critical_threshold": 95
        }
    )


@pytest.fixture
def temp_config_file(tmp_path):
    """Create temporary config file"""
    config = {
        "app_name": "Consumption Planner Test",
        "environment": "test",
        "logging": {
            "level": "warning"
        },
        "optimization": {
            "max_alternatives": 1
        }
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config))
    return path


@pytest.fixture
def fixed_clock():
    """Clock frozen mid-way through the first quarter of 2024"""
    return FixedClock(datetime(2024, 2, 15, 12, 0, 0))


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


@pytest.fixture
def genomics_workload():
    """Interruptible sequencing pipeline with an academic-year peak"""
    return WorkloadPattern(
        id="genomics",
        name="Genome alignment",
        runs_per_day=2,
        avg_duration_hours=8,
        days_per_week=5,
        requirements=ResourceRequirement(vcpus=16, memory_gib=64),
        seasonality=SeasonalPattern(
            type=SeasonalityType.ACADEMIC,
            peak_months=(9, 10, 11),
            peak_multiplier=1.8,
        ),
        interruptible=True,
    )


@pytest.fixture
def gpu_training_workload():
    return WorkloadPattern(
        id="gpu-training",
        name="Model training",
        runs_per_day=3,
        avg_duration_hours=6,
        days_per_week=6,
        requirements=ResourceRequirement(vcpus=8, memory_gib=32, gpu_required=True),
    )


@pytest.fixture
def critical_service_workload():
    return WorkloadPattern(
        id="critical-service",
        name="Lab data portal",
        runs_per_day=24,
        avg_duration_hours=1,
        days_per_week=7,
        requirements=ResourceRequirement(vcpus=4, memory_gib=16),
        priority=Priority.CRITICAL,
    )


@pytest.fixture
def portfolio(genomics_workload, gpu_training_workload, critical_service_workload):
    """Mixed research portfolio: batch, GPU training and an always-on service"""
    return [genomics_workload, gpu_training_workload, critical_service_workload]


@pytest.fixture
def ledger(id_generator, fixed_clock):
    return BudgetPeriodLedger(id_generator=id_generator, clock=fixed_clock)


@pytest.fixture
def sample_grant(ledger):
    """Three year grant with $120,000 of cloud budget in quarterly periods"""
    return ledger.create_grant(
        title="Coastal Ecology Modeling",
        funding_agency="NSF",
        principal_investigator="Dr. Rivera",
        institution="State University",
        total_budget=500000,
        cloud_compute_budget=120000,
        start_date=date(2024, 1, 1),
        end_date=date(2027, 1, 1),
        budget_period_type=BudgetPeriodType.QUARTERLY,
    )


@pytest.fixture
def plan_document():
    """Request document accepted by the optimize and plan commands"""
    return {
        "name": "Lab portfolio",
        "planning_horizon": "1yr",
        "workloads": [
            {
                "id": "genomics",
                "name": "Genome alignment",
                "runs_per_day": 2,
                "avg_duration_hours": 8,
                "days_per_week": 5,
                "requirements": {"vcpus": 16, "memory_gib": 64},
                "seasonality": {"type": "academic", "peak_months": [9, 10, 11], "peak_multiplier": 1.8},
                "interruptible": True,
            },
            {
                "id": "gpu-training",
                "name": "Model training",
                "runs_per_day": 3,
                "avg_duration_hours": 6,
                "days_per_week": 6,
                "requirements": {"vcpus": 8, "memory_gib": 32, "gpu_required": True},
            },
            {
                "id": "critical-service",
                "name": "Lab data portal",
                "runs_per_day": 24,
                "avg_duration_hours": 1,
                "days_per_week": 7,
                "requirements": {"vcpus": 4, "memory_gib": 16},
                "priority": "critical",
            },
        ],
    }


@pytest.fixture
def grant_document():
    """Request document accepted by the budget commands"""
    return {
        "grant": {
            "id": "nsf-ecology",
            "title": "Coastal Ecology Modeling",
            "funding_agency": "NSF",
            "principal_investigator": "Dr. Rivera",
            "institution": "State University",
            "total_budget": 500000,
            "cloud_compute_budget": 120000,
            "start_date": "2024-01-01",
            "end_date": "2027-01-01",
            "budget_period_type": "quarterly",
            "spent_to_date": 4000,
        },
        "history": [
            {"month": "2023-11-01", "total_spent": 1800},
            {"month": "2023-12-01", "total_spent": 2000},
            {"month": "2024-01-01", "total_spent": 2200},
        ],
        "as_of": "2024-02-15",
    }


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests"""
    config_module.settings = None
    yield
    config_module.settings = None
