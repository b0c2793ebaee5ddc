"""Unit tests for stabling-bay contention reconciliation"""
import pytest

from induction_engine.config import BayTieBreak, EngineConfig
from induction_engine.services.scoring import score_trainset
from induction_engine.services.stabling import StablingReconciler


@pytest.fixture
def reconciler(config):
    return StablingReconciler(config)


@pytest.fixture
def contended_pair(make_trainset):
    """Two trainsets whose optimal bay is B7"""
    first = make_trainset("KMRL-002", stabling={"current_bay": "A3", "optimal_bay": "B7", "shunting_time_minutes": 5.0})
    second = make_trainset("KMRL-001", stabling={"current_bay": "A4", "optimal_bay": "B7", "shunting_time_minutes": 20.0})
    return first, second


def test_lower_shunting_time_keeps_the_bay(reconciler, contended_pair):
    first, second = contended_pair
    reconciliation = reconciler.reconcile([first, second])

    assert reconciliation.allocations == {"B7": "KMRL-002"}
    assert list(reconciliation.lost_contention) == ["KMRL-001"]
    contention = reconciliation.lost_contention["KMRL-001"]
    assert contention.contended_bay == "B7"
    assert contention.winner_id == "KMRL-002"
    assert contention.retained_bay == "A4"
    assert reconciliation.contended_bays == ["B7"]


def test_loser_stabling_score_reflects_retained_bay(reconciler, contended_pair, config, as_of):
    first, second = contended_pair
    reconciliation = reconciler.reconcile([first, second])

    first_scores = score_trainset(first, config, as_of)
    second_scores = score_trainset(second, config, as_of)
    assert reconciler.rescore(first, first_scores, reconciliation) == first_scores

    rescored = reconciler.rescore(second, second_scores, reconciliation)
    assert rescored.stabling_efficiency == config.retained_bay_score
    # Retaining its current bay costs no shunting
    assert second_scores.cost_efficiency < 100.0
    assert rescored.cost_efficiency == 100.0


def test_trainset_id_tie_break(contended_pair):
    first, second = contended_pair
    reconciler = StablingReconciler(EngineConfig(bay_tie_break=BayTieBreak.TRAINSET_ID))
    reconciliation = reconciler.reconcile([first, second])
    assert reconciliation.allocations["B7"] == "KMRL-001"
    assert "KMRL-002" in reconciliation.lost_contention


def test_trainset_already_in_bay_wins(reconciler, make_trainset):
    """A trainset standing in its optimal bay has no repositioning cost and keeps it"""
    occupant = make_trainset("KMRL-009", stabling={"current_bay": "B7", "optimal_bay": "B7", "shunting_time_minutes": 30.0})
    mover = make_trainset("KMRL-001", stabling={"current_bay": "A1", "optimal_bay": "B7", "shunting_time_minutes": 2.0})
    reconciliation = reconciler.reconcile([mover, occupant])
    assert reconciliation.allocations["B7"] == "KMRL-009"


def test_equal_shunting_time_falls_back_to_trainset_id(reconciler, make_trainset):
    a = make_trainset("KMRL-005", stabling={"current_bay": "A1", "optimal_bay": "C1", "shunting_time_minutes": 10.0})
    b = make_trainset("KMRL-003", stabling={"current_bay": "A2", "optimal_bay": "C1", "shunting_time_minutes": 10.0})
    reconciliation = reconciler.reconcile([a, b])
    assert reconciliation.allocations["C1"] == "KMRL-003"


def test_distinct_bays_have_no_contention(reconciler, make_trainset):
    a = make_trainset("KMRL-001", stabling={"current_bay": "A1", "optimal_bay": "A1"})
    b = make_trainset("KMRL-002", stabling={"current_bay": "A2", "optimal_bay": "A2"})
    reconciliation = reconciler.reconcile([a, b])
    assert reconciliation.lost_contention == {}
    assert reconciliation.contended_bays == []
    assert reconciliation.allocations == {"A1": "KMRL-001", "A2": "KMRL-002"}


def test_shared_occupants_are_not_contention_losers(reconciler, make_trainset, config, as_of):
    """Two trainsets reported in the same bay: neither has another bay to retain"""
    a = make_trainset("KMRL-001", stabling={"current_bay": "A1", "optimal_bay": "A1"})
    b = make_trainset("KMRL-002", stabling={"current_bay": "A1", "optimal_bay": "A1"})
    reconciliation = reconciler.reconcile([b, a])

    assert reconciliation.allocations == {"A1": "KMRL-001"}
    assert reconciliation.lost_contention == {}
    assert reconciliation.contended_bays == []
    assert reconciliation.shared_occupants == {"A1": ["KMRL-002"]}

    scores = score_trainset(b, config, as_of)
    assert reconciler.rescore(b, scores, reconciliation) == scores
    assert scores.stabling_efficiency == 100.0


def test_shared_occupant_does_not_hide_a_real_loser(reconciler, make_trainset):
    occupant = make_trainset("KMRL-001", stabling={"current_bay": "B7", "optimal_bay": "B7"})
    twin = make_trainset("KMRL-002", stabling={"current_bay": "B7", "optimal_bay": "B7"})
    mover = make_trainset("KMRL-003", stabling={"current_bay": "A4", "optimal_bay": "B7", "shunting_time_minutes": 8.0})
    reconciliation = reconciler.reconcile([mover, twin, occupant])

    assert reconciliation.allocations["B7"] == "KMRL-001"
    assert list(reconciliation.lost_contention) == ["KMRL-003"]
    assert reconciliation.shared_occupants == {"B7": ["KMRL-002"]}
