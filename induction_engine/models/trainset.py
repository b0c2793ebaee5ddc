from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CERTIFICATE_TYPES = ("rolling_stock", "signalling", "telecom")


class Action(str, Enum):
    INDUCT = "INDUCT"
    STANDBY = "STANDBY"
    MAINTENANCE = "MAINTENANCE"


class BrandingPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FitnessCertificate(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool = Field(True, description="Clearance granted by the issuing department")
    expires_at: datetime = Field(..., description="Instant after which the clearance lapses")

    @field_validator("expires_at")
    @classmethod
    def _expires_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def is_valid_at(self, at: datetime) -> bool:
        return self.valid and self.expires_at > as_utc(at)

    def hours_remaining(self, at: datetime) -> float:
        return (self.expires_at - as_utc(at)).total_seconds() / 3600.0


class FitnessCertificates(BaseModel):
    """Rolling-stock, signalling and telecom clearances"""
    model_config = ConfigDict(frozen=True)

    rolling_stock: FitnessCertificate
    signalling: FitnessCertificate
    telecom: FitnessCertificate

    def items(self) -> List[Tuple[str, FitnessCertificate]]:
        return [(name, getattr(self, name)) for name in CERTIFICATE_TYPES]

    def invalid_at(self, at: datetime) -> List[str]:
        """Certificate types that are revoked or expired at the given instant"""
        return [name for name, cert in self.items() if not cert.is_valid_at(at)]

    def all_valid_at(self, at: datetime) -> bool:
        return not self.invalid_at(at)


class JobCards(BaseModel):
    model_config = ConfigDict(frozen=True)

    open_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    critical_count: int = Field(0, ge=0, description="Open cards above the severity threshold")
    previous_open_count: Optional[int] = Field(
        None, ge=0, description="Open cards at the previous planning cycle, for backlog trend"
    )

    @model_validator(mode="after")
    def _check_counts(self) -> "JobCards":
        if self.open_count > self.total_count:
            raise ValueError(
                f"open_count ({self.open_count}) exceeds total_count ({self.total_count})"
            )
        if self.critical_count > self.open_count:
            raise ValueError(
                f"critical_count ({self.critical_count}) exceeds open_count ({self.open_count})"
            )
        return self

    @property
    def open_ratio(self) -> float:
        return self.open_count / self.total_count if self.total_count else 0.0

    @property
    def trend(self) -> int:
        """Change in open cards since the previous cycle (positive = rising backlog)"""
        if self.previous_open_count is None:
            return 0
        return self.open_count - self.previous_open_count


class Branding(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: BrandingPriority = BrandingPriority.LOW
    exposure_achieved: float = Field(..., ge=0)
    exposure_target: float = Field(..., ge=0)

    @property
    def deficit(self) -> float:
        return max(0.0, self.exposure_target - self.exposure_achieved)

    @property
    def target_met(self) -> bool:
        return self.exposure_achieved >= self.exposure_target


class Mileage(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: float = Field(..., ge=0)
    target: float = Field(..., ge=0)

    @property
    def variance(self) -> float:
        return self.current - self.target


class Cleaning(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheduled: bool = False
    priority: int = Field(..., ge=1, le=5, description="1 = most urgent")


class Stabling(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_bay: str = Field(..., min_length=1)
    optimal_bay: str = Field(..., min_length=1)
    shunting_time_minutes: float = Field(..., ge=0)

    @property
    def at_optimal_bay(self) -> bool:
        return self.current_bay == self.optimal_bay

    @property
    def effective_shunting_minutes(self) -> float:
        """No repositioning cost once the trainset already sits in its optimal bay"""
        return 0.0 if self.at_optimal_bay else self.shunting_time_minutes


class Trainset(BaseModel):
    """Complete snapshot of one trainset at optimization time"""
    model_config = ConfigDict(frozen=True)

    trainset_id: str = Field(..., min_length=1)
    fitness: FitnessCertificates
    job_cards: JobCards
    branding: Branding
    mileage: Mileage
    cleaning: Cleaning
    stabling: Stabling
