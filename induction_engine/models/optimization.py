from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from induction_engine.config import EngineConfig, ObjectiveWeights
from induction_engine.models.trainset import Action


class RunState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class FailureReason(str, Enum):
    CONFIGURATION = "CONFIGURATION"
    DATA_INTEGRITY = "DATA_INTEGRITY"
    CANCELLED = "CANCELLED"
    INTERNAL = "INTERNAL"


class ObjectiveScores(BaseModel):
    """Per-trainset sub-scores, each within [0, 100]"""
    model_config = ConfigDict(frozen=True)

    service_readiness: float = Field(..., ge=0.0, le=100.0)
    cost_efficiency: float = Field(..., ge=0.0, le=100.0)
    branding_compliance: float = Field(..., ge=0.0, le=100.0)
    maintenance_optimization: float = Field(..., ge=0.0, le=100.0)
    stabling_efficiency: float = Field(..., ge=0.0, le=100.0)

    def weighted_sum(self, weights: ObjectiveWeights) -> float:
        w = weights.model_dump()
        return sum(value * w[name] for name, value in self.model_dump().items())


class OptimizationResult(BaseModel):
    """One trainset's decision for a run"""
    model_config = ConfigDict(frozen=True)

    trainset_id: str
    action: Action
    composite_score: int = Field(..., ge=0, le=100)
    scores: ObjectiveScores
    feasible_actions: Tuple[Action, ...]
    reasoning: Tuple[str, ...] = Field(default_factory=tuple, description="Positive factors")
    constraints: Tuple[str, ...] = Field(default_factory=tuple, description="Caveats and blockers")
    fitness_score: int = Field(0, ge=0, le=100, description="Percentage of certificates valid")
    rank: int = Field(0, ge=0, description="1-based display rank; 0 until ranked")


class FleetMetrics(BaseModel):
    """Fleet-wide aggregates of one run's results"""
    model_config = ConfigDict(frozen=True)

    service_readiness: float = Field(..., ge=0.0, le=100.0)
    cost_efficiency: float = Field(..., ge=0.0, le=100.0)
    branding_compliance: float = Field(..., ge=0.0, le=100.0)
    maintenance_optimization: float = Field(..., ge=0.0, le=100.0)
    stabling_efficiency: float = Field(..., ge=0.0, le=100.0)
    overall_score: float = Field(..., ge=0.0, le=100.0)
    timestamp: datetime


class FleetSummary(BaseModel):
    """Fleet-level counts for the dashboard key-metric cards"""
    model_config = ConfigDict(frozen=True)

    total_trainsets: int
    induct_count: int
    standby_count: int
    maintenance_count: int
    excluded_count: int = 0
    ready_for_service_pct: float = Field(0.0, ge=0.0, le=100.0)
    fleet_availability_pct: float = Field(0.0, ge=0.0, le=100.0)
    critical_alerts: int = Field(0, description="Trainsets whose only feasible action is maintenance")
    contended_bays: int = Field(0, description="Optimal bays claimed by more than one trainset")


class RunError(BaseModel):
    model_config = ConfigDict(frozen=True)

    trainset_id: Optional[str] = None
    kind: str
    message: str
    field: Optional[str] = None


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    percent: int = Field(..., ge=0, le=100)
    stage: str


class OptimizationRunResult(BaseModel):
    """Complete, immutable output of one completed run"""
    model_config = ConfigDict(frozen=True)

    run_id: str
    engine_version: str
    generated_at: datetime
    evaluated_at: datetime
    results: Tuple[OptimizationResult, ...]
    metrics: FleetMetrics
    summary: FleetSummary
    errors: Tuple[RunError, ...] = Field(default_factory=tuple)
    config: EngineConfig

    def result_for(self, trainset_id: str) -> Optional[OptimizationResult]:
        for result in self.results:
            if result.trainset_id == trainset_id:
                return result
        return None

    def by_action(self) -> Dict[Action, List[OptimizationResult]]:
        """Results grouped by action, each group in display order"""
        grouped: Dict[Action, List[OptimizationResult]] = {action: [] for action in Action}
        for result in self.results:
            grouped[result.action].append(result)
        return grouped
