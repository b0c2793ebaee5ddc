# induction_engine/services/feasibility.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional
import logging

from induction_engine.config import EngineConfig
from induction_engine.models.trainset import Action, Trainset

logger = logging.getLogger(__name__)

CERTIFICATE_LABELS = {
    "rolling_stock": "Rolling-stock",
    "signalling": "Signalling",
    "telecom": "Telecom",
}

ALL_ACTIONS: FrozenSet[Action] = frozenset(Action)


@dataclass(frozen=True)
class RuleViolation:
    """A hard-constraint hit and the actions it rules out"""
    rule: str
    message: str
    excludes: FrozenSet[Action]


class FeasibilityFilter:
    """Hard-constraint filter deciding which actions are legal for a trainset.

    Each rule returns the violations it finds; an action stays feasible unless
    some violation excludes it. Maintenance is never excluded, so the feasible
    set is never empty.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.constraint_rules: Dict[str, Callable[[Trainset, datetime], List[RuleViolation]]] = {
            "fitness_certificate_expiry": self._check_certificate_expiry,
            "critical_job_cards": self._check_critical_job_cards,
            "blocking_job_cards": self._check_blocking_job_cards,
        }

    def check_constraints(self, trainset: Trainset, as_of: datetime) -> List[RuleViolation]:
        """Check all rules for a single trainset and return violations in rule order."""
        violations: List[RuleViolation] = []
        for rule_func in self.constraint_rules.values():
            violations.extend(rule_func(trainset, as_of))
        return violations

    def feasible_actions(self, trainset: Trainset, as_of: datetime) -> FrozenSet[Action]:
        excluded = set()
        for violation in self.check_constraints(trainset, as_of):
            excluded.update(violation.excludes)
        feasible = (ALL_ACTIONS - excluded) | {Action.MAINTENANCE}

        if feasible == {Action.MAINTENANCE}:
            logger.warning(f"SAFETY FILTER: {trainset.trainset_id} restricted to MAINTENANCE")
        else:
            logger.debug(f"{trainset.trainset_id} feasible actions: {sorted(a.value for a in feasible)}")
        return frozenset(feasible)

    def blocking_reasons(self, trainset: Trainset, as_of: datetime) -> List[str]:
        return [violation.message for violation in self.check_constraints(trainset, as_of)]

    def _check_certificate_expiry(self, trainset: Trainset, as_of: datetime) -> List[RuleViolation]:
        """Any revoked or expired certificate forces maintenance"""
        violations = []
        for cert_type, cert in trainset.fitness.items():
            if cert.is_valid_at(as_of):
                continue
            label = CERTIFICATE_LABELS[cert_type]
            state = "revoked" if not cert.valid else "expired"
            violations.append(
                RuleViolation(
                    rule="fitness_certificate_expiry",
                    message=f"{label} certificate {state}",
                    excludes=frozenset({Action.INDUCT, Action.STANDBY}),
                )
            )
        return violations

    def _check_critical_job_cards(self, trainset: Trainset, as_of: datetime) -> List[RuleViolation]:
        """Critical job cards must be worked off before the trainset is held in reserve"""
        critical = trainset.job_cards.critical_count
        if critical > 0:
            return [
                RuleViolation(
                    rule="critical_job_cards",
                    message=f"{critical} critical job card{'s' if critical != 1 else ''} open",
                    excludes=frozenset({Action.INDUCT, Action.STANDBY}),
                )
            ]
        return []

    def _check_blocking_job_cards(self, trainset: Trainset, as_of: datetime) -> List[RuleViolation]:
        """Open job cards above the blocking threshold keep the trainset out of service"""
        open_cards = trainset.job_cards.open_count
        threshold = self.config.blocking_job_card_threshold
        if open_cards > threshold:
            return [
                RuleViolation(
                    rule="blocking_job_cards",
                    message=f"{open_cards} open job card{'s' if open_cards != 1 else ''} "
                            f"above induction limit of {threshold}",
                    excludes=frozenset({Action.INDUCT}),
                )
            ]
        return []


def feasible_actions(
    trainset: Trainset,
    config: Optional[EngineConfig] = None,
    as_of: Optional[datetime] = None,
) -> FrozenSet[Action]:
    """Actions legal for the trainset at the given instant (defaults to now)."""
    return FeasibilityFilter(config).feasible_actions(trainset, as_of or datetime.now(timezone.utc))
