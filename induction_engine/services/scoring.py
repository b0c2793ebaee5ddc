# induction_engine/services/scoring.py
"""Objective scorers for trainset induction.

Every scorer is a pure function of one trainset (plus configuration and the
evaluation instant) returning a value in [0, 100]. Identical input always gives
identical output. Inputs that are missing or out of range raise
DataIntegrityError for that trainset.
"""
from datetime import datetime
from typing import Any, Optional
import logging
import math

from induction_engine.config import EngineConfig, ObjectiveWeights
from induction_engine.core.errors import DataIntegrityError
from induction_engine.core.scoring_config import SCORE_CEILING, SCORE_FLOOR, SCORING_WEIGHTS
from induction_engine.models.optimization import ObjectiveScores
from induction_engine.models.trainset import Trainset

logger = logging.getLogger(__name__)


def _clamp(score: float) -> float:
    return round(min(SCORE_CEILING, max(SCORE_FLOOR, score)), 2)


def _require(trainset: Trainset, field: str, value: Any, minimum: float = 0.0, maximum: Optional[float] = None) -> float:
    """Fetch a numeric input, raising DataIntegrityError if missing or out of range"""
    if value is None:
        raise DataIntegrityError("Missing required field", trainset_id=trainset.trainset_id, field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise DataIntegrityError(
            f"Non-numeric value {value!r}", trainset_id=trainset.trainset_id, field=field
        ) from None
    if math.isnan(number) or number < minimum or (maximum is not None and number > maximum):
        bounds = f"[{minimum}, {maximum}]" if maximum is not None else f">= {minimum}"
        raise DataIntegrityError(
            f"Value {value!r} out of range {bounds}", trainset_id=trainset.trainset_id, field=field
        )
    return number


def service_readiness(trainset: Trainset, as_of: datetime) -> float:
    """Ceiling when all certificates are valid and no job cards are open.

    Each invalid certificate and each open job card costs a fixed penalty.
    """
    open_cards = _require(trainset, "job_cards.open_count", trainset.job_cards.open_count)
    invalid_certs = len(trainset.fitness.invalid_at(as_of))

    score = SCORE_CEILING
    score -= SCORING_WEIGHTS["INVALID_CERTIFICATE_PENALTY"] * invalid_certs
    score -= SCORING_WEIGHTS["OPEN_JOB_CARD_PENALTY"] * open_cards
    return _clamp(score)


def cost_efficiency(trainset: Trainset, config: EngineConfig, lost_bay_contention: bool = False) -> float:
    """Lower repositioning cost and tighter mileage balance score higher"""
    shunting = _require(trainset, "stabling.shunting_time_minutes", trainset.stabling.shunting_time_minutes)
    _require(trainset, "mileage.current", trainset.mileage.current)
    _require(trainset, "mileage.target", trainset.mileage.target)

    # Already parked where it will stay: no move to pay for
    if trainset.stabling.at_optimal_bay or lost_bay_contention:
        shunting = 0.0

    shunting_term = 1.0 - min(shunting / SCORING_WEIGHTS["MAX_SHUNTING_MINUTES"], 1.0)
    mileage_term = 1.0 - min(abs(trainset.mileage.variance) / config.mileage_tolerance_km, 1.0)
    return _clamp(SCORE_CEILING * (shunting_term + mileage_term) / 2.0)


def branding_compliance(trainset: Trainset) -> float:
    """Closeness of achieved exposure to target, weighted by branding priority.

    A high-priority trainset under target loses more than a low-priority one.
    """
    branding = trainset.branding
    achieved = _require(trainset, "branding.exposure_achieved", branding.exposure_achieved)
    target = _require(trainset, "branding.exposure_target", branding.exposure_target)
    if target == 0 or achieved >= target:
        return SCORE_CEILING

    deficit_ratio = (target - achieved) / target
    priority_weight = SCORING_WEIGHTS["BRANDING_PRIORITY_WEIGHT"][branding.priority.value]
    return _clamp(SCORE_CEILING * (1.0 - deficit_ratio * priority_weight))


def is_cleaning_due(trainset: Trainset, config: EngineConfig) -> bool:
    priority = _require(trainset, "cleaning.priority", trainset.cleaning.priority, 1, 5)
    return priority <= config.cleaning_due_priority


def maintenance_optimization(trainset: Trainset, config: EngineConfig) -> float:
    """Rewards satisfied cleaning schedules and a shrinking job-card backlog"""
    job_cards = trainset.job_cards
    _require(trainset, "job_cards.total_count", job_cards.total_count)
    if job_cards.open_count > job_cards.total_count:
        raise DataIntegrityError(
            f"open_count ({job_cards.open_count}) exceeds total_count ({job_cards.total_count})",
            trainset_id=trainset.trainset_id,
            field="job_cards",
        )

    score = SCORE_CEILING
    if is_cleaning_due(trainset, config) and not trainset.cleaning.scheduled:
        score -= SCORING_WEIGHTS["CLEANING_OVERDUE_PENALTY"]
    if job_cards.trend > 0:
        score -= SCORING_WEIGHTS["RISING_BACKLOG_PENALTY_PER_CARD"] * job_cards.trend
    elif job_cards.trend < 0:
        score += SCORING_WEIGHTS["FALLING_BACKLOG_BONUS_PER_CARD"] * -job_cards.trend
    score -= SCORING_WEIGHTS["OPEN_RATIO_PENALTY"] * job_cards.open_ratio
    return _clamp(score)


def stabling_efficiency(trainset: Trainset, config: EngineConfig, lost_bay_contention: bool = False) -> float:
    """Ceiling when already in the optimal bay, else inversely proportional to shunting time.

    A trainset that lost its optimal bay to another trainset keeps its current
    bay and scores the configured retained-bay value.
    """
    shunting = _require(trainset, "stabling.shunting_time_minutes", trainset.stabling.shunting_time_minutes)
    if lost_bay_contention:
        return _clamp(config.retained_bay_score)
    if trainset.stabling.at_optimal_bay:
        return SCORE_CEILING

    half = SCORING_WEIGHTS["SHUNTING_HALF_SCORE_MINUTES"]
    return _clamp(SCORE_CEILING * half / (half + shunting))


def score_trainset(trainset: Trainset, config: EngineConfig, as_of: datetime) -> ObjectiveScores:
    """Compute the five objective scores for one trainset (before bay reconciliation)."""
    scores = ObjectiveScores(
        service_readiness=service_readiness(trainset, as_of),
        cost_efficiency=cost_efficiency(trainset, config),
        branding_compliance=branding_compliance(trainset),
        maintenance_optimization=maintenance_optimization(trainset, config),
        stabling_efficiency=stabling_efficiency(trainset, config),
    )
    logger.debug(f"{trainset.trainset_id} scores: {scores.model_dump()}")
    return scores


def composite_score(scores: ObjectiveScores, weights: ObjectiveWeights) -> int:
    """Weighted linear combination of the five scores, rounded to an integer percentage"""
    return int(min(SCORE_CEILING, max(SCORE_FLOOR, round(scores.weighted_sum(weights)))))


def fitness_score(trainset: Trainset, as_of: datetime) -> int:
    """Percentage of the three fitness certificates that are valid"""
    certs = trainset.fitness.items()
    valid = sum(1 for _, cert in certs if cert.is_valid_at(as_of))
    return round(valid / len(certs) * 100)
