"""Shared fixtures: a fixed evaluation instant and a builder for trainset snapshots"""
import copy
from datetime import datetime, timedelta, timezone

import pytest

from induction_engine.config import EngineConfig
from induction_engine.models.trainset import Trainset

AS_OF = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)


def trainset_data(trainset_id="KMRL-001", **sections):
    """A fully healthy trainset document; keyword sections are merged over the defaults"""
    cert = {"valid": True, "expires_at": (AS_OF + timedelta(days=30)).isoformat()}
    data = {
        "trainset_id": trainset_id,
        "fitness": {
            "rolling_stock": dict(cert),
            "signalling": dict(cert),
            "telecom": dict(cert),
        },
        "job_cards": {"open_count": 0, "total_count": 10, "critical_count": 0},
        "branding": {"priority": "high", "exposure_achieved": 500.0, "exposure_target": 500.0},
        "mileage": {"current": 50000.0, "target": 50000.0},
        "cleaning": {"scheduled": False, "priority": 4},
        "stabling": {"current_bay": "A1", "optimal_bay": "A1", "shunting_time_minutes": 0.0},
    }
    for section, values in sections.items():
        if isinstance(values, dict) and isinstance(data.get(section), dict):
            data[section].update(copy.deepcopy(values))
        else:
            data[section] = values
    return data


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def make_trainset():
    def _make(trainset_id="KMRL-001", **sections):
        return Trainset.model_validate(trainset_data(trainset_id, **sections))
    return _make


@pytest.fixture
def make_raw():
    return trainset_data
