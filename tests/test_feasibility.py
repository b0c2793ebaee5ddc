"""Unit tests for the hard-constraint feasibility filter"""
from datetime import timedelta

import pytest

from induction_engine.config import EngineConfig
from induction_engine.models.trainset import Action
from induction_engine.services.feasibility import FeasibilityFilter, feasible_actions


@pytest.fixture
def feasibility(config):
    return FeasibilityFilter(config)


def test_healthy_trainset_allows_every_action(feasibility, make_trainset, as_of):
    """No rule excludes anything for a fully healthy trainset"""
    trainset = make_trainset()
    assert feasibility.feasible_actions(trainset, as_of) == {Action.INDUCT, Action.STANDBY, Action.MAINTENANCE}
    assert feasibility.check_constraints(trainset, as_of) == []


def test_expired_telecom_forces_maintenance(feasibility, make_trainset, as_of):
    """An expired certificate leaves maintenance as the only feasible action"""
    trainset = make_trainset(
        fitness={"telecom": {"valid": True, "expires_at": (as_of - timedelta(hours=1)).isoformat()}}
    )
    assert feasibility.feasible_actions(trainset, as_of) == {Action.MAINTENANCE}
    assert feasibility.blocking_reasons(trainset, as_of) == ["Telecom certificate expired"]


def test_revoked_certificate_forces_maintenance(feasibility, make_trainset, as_of):
    trainset = make_trainset(
        fitness={"signalling": {"valid": False, "expires_at": (as_of + timedelta(days=10)).isoformat()}}
    )
    assert feasibility.feasible_actions(trainset, as_of) == {Action.MAINTENANCE}
    assert feasibility.blocking_reasons(trainset, as_of) == ["Signalling certificate revoked"]


def test_certificate_expiring_at_evaluation_instant_is_invalid(feasibility, make_trainset, as_of):
    trainset = make_trainset(
        fitness={"rolling_stock": {"valid": True, "expires_at": as_of.isoformat()}}
    )
    assert Action.INDUCT not in feasibility.feasible_actions(trainset, as_of)


def test_open_job_cards_block_induct_only(feasibility, make_trainset, as_of):
    """Non-critical open cards above the threshold still allow standby"""
    trainset = make_trainset(job_cards={"open_count": 2, "total_count": 10})
    assert feasibility.feasible_actions(trainset, as_of) == {Action.STANDBY, Action.MAINTENANCE}
    assert feasibility.blocking_reasons(trainset, as_of) == ["2 open job cards above induction limit of 0"]


def test_blocking_threshold_is_configurable(make_trainset, as_of):
    trainset = make_trainset(job_cards={"open_count": 2, "total_count": 10})
    relaxed = FeasibilityFilter(EngineConfig(blocking_job_card_threshold=2))
    assert Action.INDUCT in relaxed.feasible_actions(trainset, as_of)


def test_critical_job_card_forces_maintenance(feasibility, make_trainset, as_of):
    trainset = make_trainset(job_cards={"open_count": 1, "total_count": 10, "critical_count": 1})
    assert feasibility.feasible_actions(trainset, as_of) == {Action.MAINTENANCE}
    rules = [v.rule for v in feasibility.check_constraints(trainset, as_of)]
    assert rules == ["critical_job_cards", "blocking_job_cards"]


def test_maintenance_always_feasible(feasibility, make_trainset, as_of):
    """Even with every rule violated the feasible set is never empty"""
    expired = {"valid": False, "expires_at": (as_of - timedelta(days=1)).isoformat()}
    trainset = make_trainset(
        fitness={"rolling_stock": expired, "signalling": expired, "telecom": expired},
        job_cards={"open_count": 5, "total_count": 5, "critical_count": 3},
    )
    assert feasibility.feasible_actions(trainset, as_of) == {Action.MAINTENANCE}
    assert len(feasibility.check_constraints(trainset, as_of)) == 5


def test_module_level_helper_uses_default_config(make_trainset, as_of):
    trainset = make_trainset(job_cards={"open_count": 1, "total_count": 10})
    assert feasible_actions(trainset, as_of=as_of) == {Action.STANDBY, Action.MAINTENANCE}
