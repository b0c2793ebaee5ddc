"""Tests for the seeded mock fleet generator"""
from induction_engine.models.trainset import Trainset
from induction_engine.services.mock_fleet import MockFleetGenerator, generate_mock_fleet


def test_same_seed_same_fleet(as_of):
    assert generate_mock_fleet(seed=42, as_of=as_of) == generate_mock_fleet(seed=42, as_of=as_of)


def test_generator_is_repeatable(as_of):
    generator = MockFleetGenerator(seed=3, fleet_size=10, as_of=as_of)
    assert generator.generate_raw() == generator.generate_raw()


def test_different_seeds_differ(as_of):
    assert generate_mock_fleet(seed=1, as_of=as_of) != generate_mock_fleet(seed=2, as_of=as_of)


def test_fleet_size_and_ids(as_of):
    fleet = generate_mock_fleet(seed=5, fleet_size=40, as_of=as_of)
    assert len(fleet) == 40
    assert all(isinstance(t, Trainset) for t in fleet)
    assert fleet[0].trainset_id == "KMRL-001"
    assert fleet[-1].trainset_id == "KMRL-040"


def test_operational_mix(as_of):
    """Golden and standby groups keep valid clearances; the critical group fails the safety gate"""
    fleet = generate_mock_fleet(seed=11, fleet_size=25, as_of=as_of)
    golden, standby, critical = fleet[:15], fleet[15:20], fleet[20:]

    assert all(t.fitness.all_valid_at(as_of) and t.job_cards.open_count == 0 for t in golden)
    assert all(t.fitness.all_valid_at(as_of) and t.job_cards.open_count > 0 for t in standby)
    assert all(not t.fitness.all_valid_at(as_of) or t.job_cards.critical_count > 0 for t in critical)


def test_write_snapshot(tmp_path, as_of):
    path = MockFleetGenerator(seed=9, fleet_size=4, as_of=as_of).write_snapshot(tmp_path / "fleet.json")
    assert path.exists()
