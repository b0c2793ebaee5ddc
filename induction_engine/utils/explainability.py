# induction_engine/utils/explainability.py
"""Rule-based reasoning and constraint strings for induction results.

Each string is produced by exactly one named predicate over the trainset
facts, its sub-scores and the run configuration, so every line shown to an
operator can be traced back to a testable condition.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple
import math

from induction_engine.config import EngineConfig
from induction_engine.core.scoring_config import MILEAGE_BALANCE_BAND, REASON_THRESHOLDS
from induction_engine.models.optimization import ObjectiveScores
from induction_engine.models.trainset import Action, BrandingPriority, Trainset
from induction_engine.services.feasibility import CERTIFICATE_LABELS
from induction_engine.services.scoring import is_cleaning_due
from induction_engine.services.stabling import BayContention


@dataclass(frozen=True)
class ExplanationContext:
    trainset: Trainset
    scores: ObjectiveScores
    composite: int
    feasible: frozenset
    config: EngineConfig
    as_of: datetime
    contention: Optional[BayContention] = None
    blocking: Tuple[str, ...] = field(default_factory=tuple)


Rule = Tuple[str, Callable[[ExplanationContext], Optional[str]]]


def _mileage_balanced(ctx: ExplanationContext) -> bool:
    return abs(ctx.trainset.mileage.variance) <= MILEAGE_BALANCE_BAND * ctx.config.mileage_tolerance_km


# ---------------------------------------------------------------------------
# Positive factors
# ---------------------------------------------------------------------------

def _reason_certificates(ctx: ExplanationContext) -> Optional[str]:
    if ctx.trainset.fitness.all_valid_at(ctx.as_of):
        return "All fitness certificates valid"
    return None


def _reason_zero_job_cards(ctx: ExplanationContext) -> Optional[str]:
    if ctx.trainset.job_cards.open_count == 0:
        return "Zero open job cards"
    return None


def _reason_branding(ctx: ExplanationContext) -> Optional[str]:
    branding = ctx.trainset.branding
    if branding.exposure_target <= 0 or not branding.target_met:
        return None
    if branding.priority == BrandingPriority.HIGH:
        return "High branding priority met"
    return "Branding exposure target met"


def _reason_mileage(ctx: ExplanationContext) -> Optional[str]:
    if _mileage_balanced(ctx):
        return "Optimal mileage balance"
    return None


def _reason_cost(ctx: ExplanationContext) -> Optional[str]:
    if ctx.scores.cost_efficiency >= REASON_THRESHOLDS["cost_efficiency"]:
        return "Low repositioning and mileage-balancing cost"
    return None


def _reason_bay(ctx: ExplanationContext) -> Optional[str]:
    if ctx.contention is None and ctx.trainset.stabling.at_optimal_bay:
        return f"Already stabled at optimal bay {ctx.trainset.stabling.optimal_bay}"
    return None


def _reason_cleaning(ctx: ExplanationContext) -> Optional[str]:
    if is_cleaning_due(ctx.trainset, ctx.config) and ctx.trainset.cleaning.scheduled:
        return "Due cleaning is scheduled"
    return None


def _reason_backlog(ctx: ExplanationContext) -> Optional[str]:
    if ctx.trainset.job_cards.trend < 0:
        return f"Job-card backlog trending down ({ctx.trainset.job_cards.trend} since last cycle)"
    return None


def _reason_maintenance(ctx: ExplanationContext) -> Optional[str]:
    if ctx.scores.maintenance_optimization >= REASON_THRESHOLDS["maintenance_optimization"]:
        return "Maintenance plan on track"
    return None


REASON_RULES: List[Rule] = [
    ("certificates_valid", _reason_certificates),
    ("zero_job_cards", _reason_zero_job_cards),
    ("branding_met", _reason_branding),
    ("mileage_balanced", _reason_mileage),
    ("low_cost", _reason_cost),
    ("at_optimal_bay", _reason_bay),
    ("cleaning_scheduled", _reason_cleaning),
    ("backlog_falling", _reason_backlog),
    ("maintenance_on_track", _reason_maintenance),
]


# ---------------------------------------------------------------------------
# Caveats (near misses that did not veto the action)
# ---------------------------------------------------------------------------

def _format_hours(hours: float) -> str:
    if hours < 1:
        return "under 1 hour"
    whole = math.ceil(hours)
    return f"{whole} hour{'s' if whole != 1 else ''}"


def _constraint_expiring_certificates(ctx: ExplanationContext) -> List[str]:
    window = ctx.config.cert_expiry_warning_hours
    messages = []
    for cert_type, cert in ctx.trainset.fitness.items():
        if not cert.is_valid_at(ctx.as_of):
            continue
        remaining = cert.hours_remaining(ctx.as_of)
        if remaining <= window:
            messages.append(f"{CERTIFICATE_LABELS[cert_type]} clearance expires in {_format_hours(remaining)}")
    return messages


def _constraint_cleaning(ctx: ExplanationContext) -> Optional[str]:
    if ctx.trainset.cleaning.scheduled:
        return "Scheduled cleaning required"
    if is_cleaning_due(ctx.trainset, ctx.config):
        return f"Cleaning overdue (priority {ctx.trainset.cleaning.priority}) - no slot scheduled"
    return None


def _constraint_bay(ctx: ExplanationContext) -> Optional[str]:
    stabling = ctx.trainset.stabling
    if ctx.contention is not None:
        return (
            f"Optimal bay {ctx.contention.contended_bay} allocated to {ctx.contention.winner_id}; "
            f"retaining {ctx.contention.retained_bay}"
        )
    if not stabling.at_optimal_bay:
        return (
            f"Bay repositioning needed ({stabling.current_bay} -> {stabling.optimal_bay}, "
            f"{stabling.shunting_time_minutes:g} min shunting)"
        )
    return None


def _constraint_open_cards(ctx: ExplanationContext) -> Optional[str]:
    job_cards = ctx.trainset.job_cards
    if 0 < job_cards.open_count <= ctx.config.blocking_job_card_threshold:
        return f"{job_cards.open_count} non-blocking job card{'s' if job_cards.open_count != 1 else ''} open"
    return None


def _constraint_backlog(ctx: ExplanationContext) -> Optional[str]:
    trend = ctx.trainset.job_cards.trend
    if trend > 0:
        return f"Job-card backlog rising (+{trend} since last cycle)"
    return None


def _constraint_branding(ctx: ExplanationContext) -> Optional[str]:
    branding = ctx.trainset.branding
    if branding.target_met:
        return None
    progress = f"{branding.exposure_achieved:g}/{branding.exposure_target:g}"
    if branding.priority == BrandingPriority.HIGH:
        return f"High-priority branding exposure shortfall ({progress})"
    return f"Branding exposure below target ({progress})"


def _constraint_mileage(ctx: ExplanationContext) -> Optional[str]:
    variance = ctx.trainset.mileage.variance
    if abs(variance) > ctx.config.mileage_tolerance_km:
        direction = "over" if variance > 0 else "under"
        return f"Mileage {abs(variance):,.0f} km {direction} target"
    return None


def _constraint_threshold(ctx: ExplanationContext) -> Optional[str]:
    if Action.INDUCT in ctx.feasible and ctx.composite < ctx.config.induction_threshold:
        return f"Composite score {ctx.composite} below induction threshold {ctx.config.induction_threshold:g}"
    return None


CONSTRAINT_RULES: List[Rule] = [
    ("cleaning", _constraint_cleaning),
    ("bay", _constraint_bay),
    ("open_cards", _constraint_open_cards),
    ("backlog_rising", _constraint_backlog),
    ("branding_shortfall", _constraint_branding),
    ("mileage_out_of_band", _constraint_mileage),
    ("below_threshold", _constraint_threshold),
]


def build_reasoning(ctx: ExplanationContext) -> List[str]:
    reasons = []
    for _, rule in REASON_RULES:
        message = rule(ctx)
        if message:
            reasons.append(message)
    return reasons


def build_constraints(ctx: ExplanationContext) -> List[str]:
    """Blocking reasons first, then expiring clearances, then other caveats"""
    constraints = list(ctx.blocking)
    constraints.extend(_constraint_expiring_certificates(ctx))
    for _, rule in CONSTRAINT_RULES:
        message = rule(ctx)
        if message:
            constraints.append(message)
    return constraints
