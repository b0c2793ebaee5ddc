# induction_engine/core/errors.py
from typing import Optional


class InductionEngineError(Exception):
    """Base class for all induction engine errors"""
    pass


class DataIntegrityError(InductionEngineError):
    """A trainset snapshot is missing a required field or carries an out-of-range value.

    Raised per trainset; the orchestrator excludes the offending trainset and
    records it in the run's error list (or fails the run in strict mode).
    """

    def __init__(self, message: str, trainset_id: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.trainset_id = trainset_id
        self.field = field

    def __str__(self) -> str:
        prefix = f"{self.trainset_id}: " if self.trainset_id else ""
        suffix = f" (field: {self.field})" if self.field else ""
        return f"{prefix}{self.message}{suffix}"


class ConfigurationError(InductionEngineError):
    """Engine configuration is invalid (weights, thresholds, tie-break rule)"""
    pass


class RunCancelledError(InductionEngineError):
    """Run was cancelled at a cooperative checkpoint"""

    def __init__(self, run_id: str, evaluated: int, total: int):
        super().__init__(f"Run {run_id} cancelled after {evaluated}/{total} trainsets")
        self.run_id = run_id
        self.evaluated = evaluated
        self.total = total
