# induction_engine/services/stabling.py
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from induction_engine.config import BayTieBreak, EngineConfig
from induction_engine.models.optimization import ObjectiveScores
from induction_engine.models.trainset import Trainset
from induction_engine.services.scoring import cost_efficiency, stabling_efficiency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BayContention:
    """A trainset that lost its optimal bay and keeps its current one"""
    trainset_id: str
    contended_bay: str
    winner_id: str
    retained_bay: str


@dataclass
class BayReconciliation:
    """Outcome of the bay contention pass"""
    allocations: Dict[str, str] = field(default_factory=dict)       # bay -> trainset_id holding it
    lost_contention: Dict[str, BayContention] = field(default_factory=dict)
    shared_occupants: Dict[str, List[str]] = field(default_factory=dict)  # bay -> other trainsets reported in it

    @property
    def contended_bays(self) -> List[str]:
        return sorted({c.contended_bay for c in self.lost_contention.values()})


class StablingReconciler:
    """
    Single-threaded reconciliation of stabling-bay contention.

    Trainsets are scored independently, so two of them may name the same
    optimal bay. The tie-break rule picks one winner per bay; every other
    claimant that would have to move keeps its current bay and is rescored.
    A claimant already standing in the bay has nothing else to retain, so it
    is never a loser; extra occupants are recorded as a data conflict.
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config

    def _sort_key(self, trainset: Trainset) -> Tuple:
        stabling = trainset.stabling
        if self.config.bay_tie_break == BayTieBreak.TRAINSET_ID:
            # A trainset already standing in the bay keeps it
            return (not stabling.at_optimal_bay, trainset.trainset_id)
        return (stabling.effective_shunting_minutes, trainset.trainset_id)

    def reconcile(self, trainsets: Sequence[Trainset]) -> BayReconciliation:
        claims: Dict[str, List[Trainset]] = defaultdict(list)
        for trainset in trainsets:
            claims[trainset.stabling.optimal_bay].append(trainset)

        reconciliation = BayReconciliation()
        for bay in sorted(claims):
            claimants = sorted(claims[bay], key=self._sort_key)
            winner = claimants[0]
            reconciliation.allocations[bay] = winner.trainset_id

            for loser in claimants[1:]:
                if loser.stabling.at_optimal_bay:
                    reconciliation.shared_occupants.setdefault(bay, []).append(loser.trainset_id)
                    logger.warning(
                        f"Bay {bay} reported as occupied by both {winner.trainset_id} and {loser.trainset_id}"
                    )
                    continue
                reconciliation.lost_contention[loser.trainset_id] = BayContention(
                    trainset_id=loser.trainset_id,
                    contended_bay=bay,
                    winner_id=winner.trainset_id,
                    retained_bay=loser.stabling.current_bay,
                )
                logger.info(
                    f"Bay contention on {bay}: {winner.trainset_id} keeps the bay, "
                    f"{loser.trainset_id} retains {loser.stabling.current_bay}"
                )

        if reconciliation.lost_contention:
            logger.info(
                f"Stabling reconciliation: {len(reconciliation.contended_bays)} contended bays, "
                f"{len(reconciliation.lost_contention)} trainsets retain their current bay"
            )
        return reconciliation

    def rescore(self, trainset: Trainset, scores: ObjectiveScores, reconciliation: BayReconciliation) -> ObjectiveScores:
        """Stabling and cost efficiency after reconciliation.

        A trainset that lost its optimal bay stays where it is, so it pays no
        shunting cost and scores the retained-bay value for stabling.
        """
        if trainset.trainset_id not in reconciliation.lost_contention:
            return scores
        return scores.model_copy(
            update={
                "cost_efficiency": cost_efficiency(trainset, self.config, lost_bay_contention=True),
                "stabling_efficiency": stabling_efficiency(trainset, self.config, lost_bay_contention=True),
            }
        )
