# induction_engine/services/orchestrator.py
"""
Run orchestrator for fleet induction planning.

One OptimizationRun evaluates one fleet snapshot: validate configuration,
validate the snapshot, score every trainset on a thread pool, reconcile
stabling-bay contention, assign actions, rank, aggregate fleet metrics and
publish the complete result in one step.
"""
import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

import numpy as np

from induction_engine import __version__
from induction_engine.config import EngineConfig
from induction_engine.core.errors import ConfigurationError, DataIntegrityError, RunCancelledError
from induction_engine.core.scoring_config import OBJECTIVES
from induction_engine.models.optimization import (
    FailureReason,
    FleetMetrics,
    FleetSummary,
    ObjectiveScores,
    OptimizationResult,
    OptimizationRunResult,
    ProgressEvent,
    RunError,
    RunState,
)
from induction_engine.models.trainset import Action, Trainset, as_utc
from induction_engine.services.assignment import assign, rank_results
from induction_engine.services.feasibility import FeasibilityFilter
from induction_engine.services.scoring import score_trainset
from induction_engine.services.stabling import StablingReconciler
from induction_engine.utils.normalization import trainset_id_of, parse_trainset
from induction_engine.utils.snapshot import capture_snapshot

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]

_TRANSITIONS = {
    RunState.IDLE: {RunState.RUNNING, RunState.FAILED},
    RunState.RUNNING: {RunState.COMPLETE, RunState.FAILED},
    RunState.COMPLETE: set(),
    RunState.FAILED: set(),
}

# Progress bands per stage
_SCORING_START = 10
_SCORING_END = 80


@dataclass
class _Evaluation:
    trainset: Trainset
    feasible: Optional[FrozenSet[Action]] = None
    scores: Optional[ObjectiveScores] = None
    error: Optional[DataIntegrityError] = None


def aggregate_metrics(results: Sequence[OptimizationResult], timestamp: datetime) -> FleetMetrics:
    """Fleet means of the five objectives and the composite score (0 for an empty fleet)"""
    if not results:
        return FleetMetrics(**{name: 0.0 for name in OBJECTIVES}, overall_score=0.0, timestamp=timestamp)

    matrix = np.array(
        [[getattr(r.scores, name) for name in OBJECTIVES] for r in results],
        dtype=float,
    )
    means = matrix.mean(axis=0)
    overall = float(np.mean([r.composite_score for r in results]))
    return FleetMetrics(
        **{name: round(float(value), 2) for name, value in zip(OBJECTIVES, means)},
        overall_score=round(overall, 2),
        timestamp=timestamp,
    )


def build_summary(results: Sequence[OptimizationResult], total: int, contended_bays: int = 0) -> FleetSummary:
    """Dashboard counts; percentages are relative to the submitted fleet size"""
    counts = {action: 0 for action in Action}
    for result in results:
        counts[result.action] += 1

    def pct(n: int) -> float:
        return round(n / total * 100, 2) if total else 0.0

    return FleetSummary(
        total_trainsets=total,
        induct_count=counts[Action.INDUCT],
        standby_count=counts[Action.STANDBY],
        maintenance_count=counts[Action.MAINTENANCE],
        excluded_count=total - len(results),
        ready_for_service_pct=pct(counts[Action.INDUCT]),
        fleet_availability_pct=pct(counts[Action.INDUCT] + counts[Action.STANDBY]),
        critical_alerts=sum(1 for r in results if r.feasible_actions == (Action.MAINTENANCE,)),
        contended_bays=contended_bays,
    )


class OptimizationRun:
    """
    A single, non-resumable optimization run.

    Lifecycle: IDLE -> RUNNING -> COMPLETE | FAILED. A configuration error
    fails the run straight from IDLE. The result is only exposed once the run
    is COMPLETE; a failed or cancelled run never exposes partial output.
    """

    def __init__(
        self,
        trainsets: Sequence[Any],
        config: Optional[EngineConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        as_of: Optional[datetime] = None,
    ):
        self.run_id = str(uuid.uuid4())
        self.config = config or EngineConfig()
        self.on_progress = on_progress
        self.as_of = as_utc(as_of) if as_of else None

        self.state = RunState.IDLE
        self.failure_reason: Optional[FailureReason] = None
        self.failure_message: Optional[str] = None
        self.errors: List[RunError] = []
        self.progress = 0
        self.stages: List[ProgressEvent] = []
        self.result: Optional[OptimizationRunResult] = None

        self._trainsets = trainsets
        self._cancel_requested = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation; honoured at the next per-trainset checkpoint"""
        if self.state in (RunState.COMPLETE, RunState.FAILED):
            return
        logger.info(f"Cancellation requested for run {self.run_id}")
        self._cancel_requested = True

    async def execute(self) -> OptimizationRunResult:
        if self.state != RunState.IDLE:
            raise RuntimeError(f"Run {self.run_id} has already been executed (state {self.state.value})")

        try:
            self.config.validate_policy()
        except ConfigurationError as e:
            self._fail(FailureReason.CONFIGURATION, e)
            raise

        self._transition(RunState.RUNNING)
        logger.info(f"Starting optimization run {self.run_id}")
        try:
            return await self._run()
        except RunCancelledError as e:
            self._fail(FailureReason.CANCELLED, e)
            raise
        except DataIntegrityError as e:
            self._fail(FailureReason.DATA_INTEGRITY, e)
            raise
        except Exception as e:
            logger.exception(f"Run {self.run_id} failed unexpectedly")
            self._fail(FailureReason.INTERNAL, e)
            raise

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self) -> OptimizationRunResult:
        as_of = self.as_of or datetime.now(timezone.utc)
        self._emit(0, "Initializing multi-objective optimization engine...")

        snapshot = capture_snapshot(self._trainsets)
        self._emit(5, "Validating fleet snapshot...")
        trainsets = self._validate(snapshot)
        logger.info(f"Run {self.run_id}: {len(trainsets)}/{len(snapshot)} trainsets passed validation")

        evaluations = await self._evaluate_all(trainsets, as_of)
        # Input order, not completion order
        evaluated = [trainset for trainset in trainsets if trainset.trainset_id in evaluations]

        self._emit(85, "Optimizing stabling bay geometry...")
        reconciler = StablingReconciler(self.config)
        reconciliation = reconciler.reconcile(evaluated)

        self._emit(90, "Generating ranked induction recommendations...")
        results = []
        for trainset in evaluated:
            evaluation = evaluations[trainset.trainset_id]
            scores = reconciler.rescore(trainset, evaluation.scores, reconciliation)
            results.append(
                assign(
                    trainset,
                    evaluation.feasible,
                    scores,
                    self.config,
                    as_of,
                    contention=reconciliation.lost_contention.get(trainset.trainset_id),
                )
            )
        ranked = rank_results(results)

        self._emit(95, "Aggregating fleet metrics...")
        generated_at = datetime.now(timezone.utc)
        result = OptimizationRunResult(
            run_id=self.run_id,
            engine_version=__version__,
            generated_at=generated_at,
            evaluated_at=as_of,
            results=tuple(ranked),
            metrics=aggregate_metrics(ranked, generated_at),
            summary=build_summary(ranked, len(snapshot), len(reconciliation.contended_bays)),
            errors=tuple(self.errors),
            config=self.config,
        )

        self._emit(100, "Validation complete - Solution ready")

        # Publish
        self.result = result
        self._transition(RunState.COMPLETE)
        summary = result.summary
        logger.info(
            f"Run {self.run_id} complete: {summary.induct_count} INDUCT, {summary.standby_count} STANDBY, "
            f"{summary.maintenance_count} MAINTENANCE, {summary.excluded_count} excluded"
        )
        return result

    def _validate(self, snapshot: Sequence[Any]) -> List[Trainset]:
        """Parse every entry; invalid or duplicate trainsets are excluded (or fail the run in strict mode)"""
        valid: List[Trainset] = []
        seen = set()
        for raw in snapshot:
            try:
                trainset = parse_trainset(raw)
            except DataIntegrityError as e:
                if e.trainset_id is None:
                    e.trainset_id = trainset_id_of(raw)
                self._reject(e)
                continue

            if trainset.trainset_id in seen:
                self._reject(
                    DataIntegrityError("Duplicate trainset_id", trainset_id=trainset.trainset_id, field="trainset_id")
                )
                continue
            seen.add(trainset.trainset_id)
            valid.append(trainset)
        return valid

    async def _evaluate_all(self, trainsets: List[Trainset], as_of: datetime) -> Dict[str, _Evaluation]:
        """Score trainsets in parallel; results are written only from the event-loop thread"""
        total = len(trainsets)
        evaluations: Dict[str, _Evaluation] = {}
        self._check_cancelled(0, total)
        if not total:
            return evaluations

        feasibility = FeasibilityFilter(self.config)
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="induction")
        futures = [
            loop.run_in_executor(executor, self._evaluate, trainset, feasibility, as_of)
            for trainset in trainsets
        ]
        try:
            for completed, next_done in enumerate(asyncio.as_completed(futures), start=1):
                evaluation = await next_done
                if evaluation.error is not None:
                    self._reject(evaluation.error)
                else:
                    evaluations[evaluation.trainset.trainset_id] = evaluation

                percent = _SCORING_START + (_SCORING_END - _SCORING_START) * completed // total
                self._emit(percent, f"Scoring trainsets ({completed}/{total})")
                self._check_cancelled(completed, total)
        finally:
            for future in futures:
                future.cancel()
            # Queued trainsets are dropped; an in-flight one finishes in the background
            executor.shutdown(wait=False, cancel_futures=True)
        return evaluations

    def _evaluate(self, trainset: Trainset, feasibility: FeasibilityFilter, as_of: datetime) -> _Evaluation:
        """Worker-thread evaluation of one trainset; side-effect free"""
        try:
            feasible = feasibility.feasible_actions(trainset, as_of)
            scores = score_trainset(trainset, self.config, as_of)
        except DataIntegrityError as e:
            return _Evaluation(trainset=trainset, error=e)
        return _Evaluation(trainset=trainset, feasible=feasible, scores=scores)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reject(self, error: DataIntegrityError) -> None:
        if self.config.strict_mode:
            raise error
        logger.warning(f"Excluding trainset from run {self.run_id}: {error}")
        self.errors.append(
            RunError(
                trainset_id=error.trainset_id,
                kind=FailureReason.DATA_INTEGRITY.value,
                message=error.message,
                field=error.field,
            )
        )

    def _check_cancelled(self, evaluated: int, total: int) -> None:
        if self._cancel_requested:
            raise RunCancelledError(self.run_id, evaluated, total)

    def _emit(self, percent: int, stage: str) -> None:
        self.progress = max(self.progress, min(100, percent))
        event = ProgressEvent(percent=self.progress, stage=stage)
        self.stages.append(event)
        logger.debug(f"[{self.progress:3d}%] {stage}")
        if self.on_progress is not None:
            self.on_progress(event)

    def _transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid run state transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _fail(self, reason: FailureReason, error: Exception) -> None:
        if self.state == RunState.IDLE and reason != FailureReason.CONFIGURATION:
            raise RuntimeError(f"Run {self.run_id} cannot fail with {reason.value} before it starts")
        self.result = None
        self.failure_reason = reason
        self.failure_message = str(error)
        self._transition(RunState.FAILED)
        logger.error(f"Run {self.run_id} failed ({reason.value}): {error}")


def run_optimization(
    trainsets: Sequence[Any],
    config: Optional[EngineConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    as_of: Optional[datetime] = None,
) -> OptimizationRunResult:
    """Synchronous convenience wrapper: create a fresh run and execute it"""
    return asyncio.run(OptimizationRun(trainsets, config=config, on_progress=on_progress, as_of=as_of).execute())
