# Trainset Induction Engine
__version__ = "1.0.0"

from induction_engine.config import EngineConfig, ObjectiveWeights, configure_logging, get_engine_config
from induction_engine.core.errors import (
    ConfigurationError,
    DataIntegrityError,
    InductionEngineError,
    RunCancelledError,
)
from induction_engine.models.optimization import OptimizationResult, OptimizationRunResult, RunState
from induction_engine.models.trainset import Action, Trainset
from induction_engine.services.orchestrator import OptimizationRun, run_optimization

__all__ = [
    "__version__",
    "Action",
    "ConfigurationError",
    "DataIntegrityError",
    "EngineConfig",
    "InductionEngineError",
    "ObjectiveWeights",
    "OptimizationResult",
    "OptimizationRun",
    "OptimizationRunResult",
    "RunCancelledError",
    "RunState",
    "Trainset",
    "configure_logging",
    "get_engine_config",
    "run_optimization",
]
