# induction_engine/config.py
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import math
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from induction_engine.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "INDUCTION_"


class BayTieBreak(str, Enum):
    SHUNTING_TIME = "shunting_time"   # lower shunting time wins the contended bay
    TRAINSET_ID = "trainset_id"       # lower trainset_id wins the contended bay


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (INDUCTION_*) and .env"""

    # Ranking & assignment
    induction_threshold: float = Field(default=70.0)
    blocking_job_card_threshold: int = Field(default=0)
    cert_expiry_warning_hours: float = Field(default=6.0)

    # Objective weights (must sum to 1)
    weight_service_readiness: float = Field(default=0.2)
    weight_cost_efficiency: float = Field(default=0.2)
    weight_branding_compliance: float = Field(default=0.2)
    weight_maintenance_optimization: float = Field(default=0.2)
    weight_stabling_efficiency: float = Field(default=0.2)

    # Stabling reconciliation
    bay_tie_break: BayTieBreak = Field(default=BayTieBreak.SHUNTING_TIME)
    retained_bay_score: float = Field(default=50.0)

    # Scoring policy
    cleaning_due_priority: int = Field(default=2)
    mileage_tolerance_km: float = Field(default=5000.0)

    # Run behaviour
    strict_mode: bool = Field(default=False)
    max_workers: int = Field(default=4)
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class ObjectiveWeights(BaseModel):
    """Weights of the five objectives in the composite score"""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "service_readiness": 0.3,
                "cost_efficiency": 0.15,
                "branding_compliance": 0.2,
                "maintenance_optimization": 0.2,
                "stabling_efficiency": 0.15,
            }
        },
    )

    service_readiness: float = 0.2
    cost_efficiency: float = 0.2
    branding_compliance: float = 0.2
    maintenance_optimization: float = 0.2
    stabling_efficiency: float = 0.2

    def total(self) -> float:
        return sum(self.model_dump().values())


class EngineConfig(BaseModel):
    """Immutable per-run configuration.

    Build it directly, or from environment/YAML settings with get_engine_config().
    Call validate_policy() before using it; the orchestrator does this at run start.
    """
    model_config = ConfigDict(frozen=True)

    induction_threshold: float = 70.0
    blocking_job_card_threshold: int = 0
    cert_expiry_warning_hours: float = 6.0
    weights: ObjectiveWeights = Field(default_factory=ObjectiveWeights)
    bay_tie_break: BayTieBreak = BayTieBreak.SHUNTING_TIME
    retained_bay_score: float = 50.0
    cleaning_due_priority: int = 2
    mileage_tolerance_km: float = 5000.0
    strict_mode: bool = False
    max_workers: int = 4

    def validate_policy(self) -> "EngineConfig":
        """Raise ConfigurationError if the configuration cannot drive a run"""
        weights = self.weights.model_dump()
        negative = [name for name, value in weights.items() if value < 0]
        if negative:
            raise ConfigurationError(f"Objective weights must be non-negative: {', '.join(negative)}")

        total = self.weights.total()
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ConfigurationError(f"Objective weights must sum to 1, got {total:.6f}")

        for name in ("induction_threshold", "blocking_job_card_threshold", "retained_bay_score"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ConfigurationError(f"{name} must be within [0, 100], got {value}")

        if self.cert_expiry_warning_hours < 0:
            raise ConfigurationError(
                f"cert_expiry_warning_hours must be non-negative, got {self.cert_expiry_warning_hours}"
            )
        if not 0 <= self.cleaning_due_priority <= 5:
            raise ConfigurationError(
                f"cleaning_due_priority must be within [0, 5], got {self.cleaning_due_priority}"
            )
        if self.mileage_tolerance_km <= 0:
            raise ConfigurationError(
                f"mileage_tolerance_km must be positive, got {self.mileage_tolerance_km}"
            )
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        return self


# Eagerly load .env so settings pick up local overrides
load_dotenv(".env")

# Load defaults from YAML if available
_defaults_path = Path(__file__).parent / "core" / "defaults.yaml"
_defaults: Dict[str, Any] = {}
if _defaults_path.exists():
    try:
        with open(_defaults_path, "r") as f:
            _defaults = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load defaults.yaml: {e}")

# Create settings instance
settings = Settings()

# Override settings with defaults.yaml values if not set in environment
for _key, _value in _defaults.items():
    _field = str(_key).lower()
    if _field not in Settings.model_fields:
        logger.warning(f"Ignoring unknown key in defaults.yaml: {_key}")
        continue
    if os.getenv(f"{ENV_PREFIX}{_field.upper()}") is None:
        setattr(settings, _field, _value)


def get_engine_config(source: Optional[Settings] = None) -> EngineConfig:
    """Build an EngineConfig from the settings layer (env > defaults.yaml > code defaults)."""
    s = source or settings
    try:
        return _engine_config_from(s)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engine settings: {e}") from e


def _engine_config_from(s: Settings) -> EngineConfig:
    return EngineConfig(
        induction_threshold=s.induction_threshold,
        blocking_job_card_threshold=s.blocking_job_card_threshold,
        cert_expiry_warning_hours=s.cert_expiry_warning_hours,
        weights=ObjectiveWeights(
            service_readiness=s.weight_service_readiness,
            cost_efficiency=s.weight_cost_efficiency,
            branding_compliance=s.weight_branding_compliance,
            maintenance_optimization=s.weight_maintenance_optimization,
            stabling_efficiency=s.weight_stabling_efficiency,
        ),
        bay_tie_break=s.bay_tie_break,
        retained_bay_score=s.retained_bay_score,
        cleaning_due_priority=s.cleaning_due_priority,
        mileage_tolerance_km=s.mileage_tolerance_km,
        strict_mode=s.strict_mode,
        max_workers=s.max_workers,
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and services embedding the engine"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
