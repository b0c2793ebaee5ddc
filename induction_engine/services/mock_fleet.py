# induction_engine/services/mock_fleet.py
import logging
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from induction_engine.models.trainset import CERTIFICATE_TYPES, Trainset, as_utc
from induction_engine.utils.normalization import parse_trainset
from induction_engine.utils.snapshot import dump_snapshot

logger = logging.getLogger(__name__)

DEPOTS = {
    "Aluva": {"prefix": "A", "total_bays": 8},
    "Muttom": {"prefix": "M", "total_bays": 6},
}


class MockFleetGenerator:
    """Generate reproducible fleet snapshots for demos and tests.

    Realistic operational mix:
    - Group A (golden fleet) : 60% -> all clearances valid, few or no open cards
    - Group B (standby)      : 20% -> clearances valid, non-critical open cards
    - Group C (critical)     : 20% -> expired/revoked clearance or critical cards

    The same seed and as_of always produce the same snapshot.
    """

    def __init__(self, seed: Optional[int] = None, fleet_size: int = 25, as_of: Optional[datetime] = None):
        if fleet_size < 0:
            raise ValueError("fleet_size must be non-negative")
        self.seed = seed
        self.fleet_size = fleet_size
        self.as_of = as_utc(as_of) if as_of else datetime.now(timezone.utc)
        self._rng = random.Random(seed)
        self.bays = [
            f"{cfg['prefix']}{n}" for cfg in DEPOTS.values() for n in range(1, cfg["total_bays"] + 1)
        ]
        self.trainset_ids = [f"KMRL-{str(i).zfill(3)}" for i in range(1, fleet_size + 1)]

    def _group_for(self, index: int) -> str:
        golden_count = int(self.fleet_size * 0.6)
        standby_count = int(self.fleet_size * 0.2)
        if index < golden_count:
            return "A"
        if index < golden_count + standby_count:
            return "B"
        return "C"

    def _certificate(self, min_days: int, max_days: int) -> Dict[str, Any]:
        expires = self.as_of + timedelta(days=self._rng.randint(min_days, max_days))
        return {"valid": True, "expires_at": expires.isoformat()}

    def _trainset(self, index: int, trainset_id: str) -> Dict[str, Any]:
        rng = self._rng
        group = self._group_for(index)

        # ---------- Fitness certificates ----------
        fitness = {cert: self._certificate(30, 365) for cert in CERTIFICATE_TYPES}
        critical_cards = 0
        if group == "C":
            # Half the critical fleet fails on clearance, half on critical cards
            if rng.random() < 0.5:
                lapsed = rng.choice(CERTIFICATE_TYPES)
                if rng.random() < 0.5:
                    fitness[lapsed]["valid"] = False
                else:
                    fitness[lapsed]["expires_at"] = (self.as_of - timedelta(days=rng.randint(1, 60))).isoformat()
            else:
                critical_cards = rng.randint(1, 2)
        elif group == "A" and rng.random() < 0.15:
            # Clearance due for renewal within the warning window
            cert = rng.choice(CERTIFICATE_TYPES)
            fitness[cert]["expires_at"] = (self.as_of + timedelta(hours=rng.randint(2, 6))).isoformat()

        # ---------- Job cards ----------
        if group == "A":
            open_cards = 0
        elif group == "B":
            open_cards = rng.randint(1, 3)
        else:
            open_cards = critical_cards + rng.randint(0, 3)
        total_cards = open_cards + rng.randint(2, 12)
        previous_open = max(0, open_cards + rng.randint(-2, 2))

        # ---------- Branding ----------
        priority = rng.choices(["high", "medium", "low"], weights=[0.3, 0.4, 0.3])[0]
        target = float(rng.choice([0, 200, 300, 400, 500]))
        achieved = round(target * rng.uniform(0.6, 1.1), 1) if target else 0.0

        # ---------- Mileage ----------
        mileage_target = float(rng.randint(40, 60) * 1000)
        mileage_current = mileage_target + rng.randint(-6000, 6000)

        # ---------- Stabling ----------
        optimal_bay = rng.choice(self.bays)
        at_optimal = group == "A" and rng.random() < 0.7
        current_bay = optimal_bay if at_optimal else rng.choice(self.bays)
        shunting = 0.0 if current_bay == optimal_bay else float(rng.randint(5, 45))

        return {
            "trainset_id": trainset_id,
            "fitness": fitness,
            "job_cards": {
                "open_count": open_cards,
                "total_count": total_cards,
                "critical_count": critical_cards,
                "previous_open_count": previous_open,
            },
            "branding": {
                "priority": priority,
                "exposure_achieved": achieved,
                "exposure_target": target,
            },
            "mileage": {"current": mileage_current, "target": mileage_target},
            "cleaning": {
                "scheduled": rng.random() < 0.25,
                "priority": rng.randint(1, 5),
            },
            "stabling": {
                "current_bay": current_bay,
                "optimal_bay": optimal_bay,
                "shunting_time_minutes": shunting,
            },
        }

    def generate_raw(self) -> List[Dict[str, Any]]:
        """Raw snapshot documents, in trainset_id order"""
        self._rng = random.Random(self.seed)
        trainsets = [self._trainset(i, trainset_id) for i, trainset_id in enumerate(self.trainset_ids)]
        logger.info(f"Generated mock fleet of {len(trainsets)} trainsets (seed={self.seed})")
        return trainsets

    def generate(self) -> List[Trainset]:
        return [parse_trainset(raw) for raw in self.generate_raw()]

    def write_snapshot(self, path: Union[str, Path]) -> Path:
        return dump_snapshot(self.generate(), path)


def generate_mock_fleet(seed: Optional[int] = None, fleet_size: int = 25, as_of: Optional[datetime] = None) -> List[Trainset]:
    return MockFleetGenerator(seed=seed, fleet_size=fleet_size, as_of=as_of).generate()
