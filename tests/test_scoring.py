"""Unit tests for the objective scorers and composite score"""
from datetime import timedelta

import pytest

from induction_engine.config import EngineConfig, ObjectiveWeights
from induction_engine.core.errors import DataIntegrityError
from induction_engine.models.optimization import ObjectiveScores
from induction_engine.models.trainset import Mileage, Stabling
from induction_engine.services.scoring import (
    branding_compliance,
    composite_score,
    cost_efficiency,
    fitness_score,
    maintenance_optimization,
    score_trainset,
    service_readiness,
    stabling_efficiency,
)


def test_healthy_trainset_scores_at_ceiling(make_trainset, config, as_of):
    scores = score_trainset(make_trainset(), config, as_of)
    assert scores == ObjectiveScores(
        service_readiness=100.0,
        cost_efficiency=100.0,
        branding_compliance=100.0,
        maintenance_optimization=100.0,
        stabling_efficiency=100.0,
    )
    assert composite_score(scores, config.weights) == 100


def test_service_readiness_penalties(make_trainset, as_of):
    """Each invalid certificate costs 30 and each open job card 10"""
    trainset = make_trainset(
        fitness={"telecom": {"valid": True, "expires_at": (as_of - timedelta(hours=2)).isoformat()}},
        job_cards={"open_count": 2, "total_count": 10},
    )
    assert service_readiness(trainset, as_of) == 50.0


def test_service_readiness_floored_at_zero(make_trainset, as_of):
    expired = {"valid": False, "expires_at": as_of.isoformat()}
    trainset = make_trainset(
        fitness={"rolling_stock": expired, "signalling": expired, "telecom": expired},
        job_cards={"open_count": 5, "total_count": 6},
    )
    assert service_readiness(trainset, as_of) == 0.0


def test_cost_efficiency_blends_shunting_and_mileage(make_trainset, config):
    trainset = make_trainset(
        stabling={"current_bay": "A2", "optimal_bay": "A1", "shunting_time_minutes": 30.0},
        mileage={"current": 52500.0, "target": 50000.0},
    )
    assert cost_efficiency(trainset, config) == 50.0


def test_cost_efficiency_ignores_shunting_when_already_in_optimal_bay(make_trainset, config):
    trainset = make_trainset(stabling={"shunting_time_minutes": 40.0})
    assert cost_efficiency(trainset, config) == 100.0


def test_cost_efficiency_ignores_shunting_after_lost_contention(make_trainset, config):
    """A trainset that keeps its current bay is not charged for the move it never makes"""
    trainset = make_trainset(stabling={"current_bay": "A2", "optimal_bay": "A1", "shunting_time_minutes": 30.0})
    assert cost_efficiency(trainset, config) == 75.0
    assert cost_efficiency(trainset, config, lost_bay_contention=True) == 100.0


def test_cost_efficiency_caps_long_shunts(make_trainset, config):
    trainset = make_trainset(stabling={"current_bay": "A2", "optimal_bay": "A1", "shunting_time_minutes": 90.0})
    assert cost_efficiency(trainset, config) == 50.0


@pytest.mark.parametrize("priority,expected", [("high", 50.0), ("medium", 70.0), ("low", 85.0)])
def test_branding_shortfall_weighted_by_priority(make_trainset, priority, expected):
    """Half the target achieved: high priority loses the most"""
    trainset = make_trainset(branding={"priority": priority, "exposure_achieved": 250.0, "exposure_target": 500.0})
    assert branding_compliance(trainset) == expected


def test_branding_without_target_is_compliant(make_trainset):
    trainset = make_trainset(branding={"exposure_achieved": 0.0, "exposure_target": 0.0})
    assert branding_compliance(trainset) == 100.0


def test_maintenance_penalizes_overdue_cleaning(make_trainset, config):
    overdue = make_trainset(cleaning={"scheduled": False, "priority": 1})
    scheduled = make_trainset(cleaning={"scheduled": True, "priority": 1})
    assert maintenance_optimization(overdue, config) == 60.0
    assert maintenance_optimization(scheduled, config) == 100.0


def test_maintenance_tracks_backlog_trend(make_trainset, config):
    rising = make_trainset(job_cards={"open_count": 2, "total_count": 10, "previous_open_count": 1})
    falling = make_trainset(job_cards={"open_count": 1, "total_count": 10, "previous_open_count": 3})
    assert maintenance_optimization(rising, config) == 81.0
    assert maintenance_optimization(falling, config) == 100.0


def test_falling_backlog_earns_a_bonus(make_trainset, config):
    """Each card cleared since the previous snapshot adds back to the score, up to the ceiling"""
    overdue = {"scheduled": False, "priority": 1}
    cleared = make_trainset(cleaning=overdue, job_cards={"open_count": 3, "total_count": 10, "previous_open_count": 5})
    steady = make_trainset(cleaning=overdue, job_cards={"open_count": 3, "total_count": 10, "previous_open_count": 3})
    assert maintenance_optimization(steady, config) == 54.0
    assert maintenance_optimization(cleared, config) == 64.0


@pytest.mark.parametrize("shunting,expected", [(5.0, 75.0), (15.0, 50.0), (45.0, 25.0)])
def test_stabling_inverse_to_shunting_time(make_trainset, config, shunting, expected):
    trainset = make_trainset(stabling={"current_bay": "B2", "optimal_bay": "A1", "shunting_time_minutes": shunting})
    assert stabling_efficiency(trainset, config) == expected


def test_stabling_after_lost_contention_uses_retained_bay_score(make_trainset):
    trainset = make_trainset(stabling={"current_bay": "B2", "optimal_bay": "A1", "shunting_time_minutes": 20.0})
    assert stabling_efficiency(trainset, EngineConfig(retained_bay_score=35.0), lost_bay_contention=True) == 35.0


def test_composite_is_rounded_weighted_sum(config):
    scores = ObjectiveScores(
        service_readiness=100.0,
        cost_efficiency=50.0,
        branding_compliance=85.0,
        maintenance_optimization=81.0,
        stabling_efficiency=75.0,
    )
    assert composite_score(scores, config.weights) == 78


def test_composite_respects_custom_weights():
    scores = ObjectiveScores(
        service_readiness=40.0,
        cost_efficiency=100.0,
        branding_compliance=100.0,
        maintenance_optimization=100.0,
        stabling_efficiency=100.0,
    )
    weights = ObjectiveWeights(
        service_readiness=1.0,
        cost_efficiency=0.0,
        branding_compliance=0.0,
        maintenance_optimization=0.0,
        stabling_efficiency=0.0,
    )
    assert composite_score(scores, weights) == 40


def test_scoring_is_deterministic(make_trainset, config, as_of):
    trainset = make_trainset(
        job_cards={"open_count": 1, "total_count": 7, "previous_open_count": 0},
        stabling={"current_bay": "B4", "optimal_bay": "A1", "shunting_time_minutes": 12.5},
    )
    assert score_trainset(trainset, config, as_of) == score_trainset(trainset, config, as_of)


def test_missing_field_raises_data_integrity_error(make_trainset, config):
    """Scorers name the trainset and field when an input is absent"""
    trainset = make_trainset().model_copy(
        update={"stabling": Stabling.model_construct(current_bay="B1", optimal_bay="A1", shunting_time_minutes=None)}
    )
    with pytest.raises(DataIntegrityError) as exc_info:
        stabling_efficiency(trainset, config)
    assert exc_info.value.trainset_id == "KMRL-001"
    assert exc_info.value.field == "stabling.shunting_time_minutes"


def test_negative_mileage_raises_data_integrity_error(make_trainset, config):
    trainset = make_trainset().model_copy(update={"mileage": Mileage.model_construct(current=-10.0, target=50000.0)})
    with pytest.raises(DataIntegrityError) as exc_info:
        cost_efficiency(trainset, config)
    assert exc_info.value.field == "mileage.current"


def test_fitness_score_is_share_of_valid_certificates(make_trainset, as_of):
    trainset = make_trainset(
        fitness={"signalling": {"valid": False, "expires_at": (as_of + timedelta(days=3)).isoformat()}}
    )
    assert fitness_score(trainset, as_of) == 67
