# induction_engine/services/assignment.py
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional
import logging

from induction_engine.config import EngineConfig
from induction_engine.models.optimization import ObjectiveScores, OptimizationResult
from induction_engine.models.trainset import Action, Trainset
from induction_engine.services.feasibility import FeasibilityFilter
from induction_engine.services.scoring import composite_score, fitness_score
from induction_engine.services.stabling import BayContention
from induction_engine.utils.explainability import ExplanationContext, build_constraints, build_reasoning

logger = logging.getLogger(__name__)

# Display order of actions in the feasible set
ACTION_ORDER = {Action.INDUCT: 0, Action.STANDBY: 1, Action.MAINTENANCE: 2}


def choose_action(feasible: FrozenSet[Action], composite: int, config: EngineConfig) -> Action:
    """Induct above threshold, otherwise the least disruptive feasible fallback"""
    if Action.INDUCT in feasible and composite >= config.induction_threshold:
        return Action.INDUCT
    if Action.STANDBY in feasible:
        return Action.STANDBY
    return Action.MAINTENANCE


def assign(
    trainset: Trainset,
    feasible: FrozenSet[Action],
    scores: ObjectiveScores,
    config: EngineConfig,
    as_of: datetime,
    contention: Optional[BayContention] = None,
) -> OptimizationResult:
    """Pick the action for one trainset and explain it.

    ``scores`` must already reflect bay reconciliation. The result is unranked
    (rank 0); rank_results() stamps display positions across the fleet.
    """
    composite = composite_score(scores, config.weights)
    action = choose_action(feasible, composite, config)

    # Final safety gate: the chosen action must be inside the feasible set
    if action not in feasible:
        raise RuntimeError(f"{trainset.trainset_id}: {action.value} chosen outside feasible set")

    ctx = ExplanationContext(
        trainset=trainset,
        scores=scores,
        composite=composite,
        feasible=feasible,
        config=config,
        as_of=as_of,
        contention=contention,
        blocking=tuple(FeasibilityFilter(config).blocking_reasons(trainset, as_of)),
    )

    result = OptimizationResult(
        trainset_id=trainset.trainset_id,
        action=action,
        composite_score=composite,
        scores=scores,
        feasible_actions=tuple(sorted(feasible, key=ACTION_ORDER.get)),
        reasoning=tuple(build_reasoning(ctx)),
        constraints=tuple(build_constraints(ctx)),
        fitness_score=fitness_score(trainset, as_of),
    )
    logger.debug(f"{trainset.trainset_id} -> {action.value} (composite {composite})")
    return result


def rank_results(results: Iterable[OptimizationResult]) -> List[OptimizationResult]:
    """Sort descending by composite score, ties by ascending trainset_id, and stamp ranks.

    Ranking only affects presentation; actions are never changed here.
    """
    ordered = sorted(results, key=lambda r: (-r.composite_score, r.trainset_id))
    return [result.model_copy(update={"rank": position}) for position, result in enumerate(ordered, start=1)]
