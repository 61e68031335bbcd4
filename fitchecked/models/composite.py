"""Compositing results and provider attempt records."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProviderRole(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class RiskLevel(str, Enum):
    """How likely a composite is to show distortion."""
    LOW = "low"
    ELEVATED = "elevated"


class CompositeResult(BaseModel):
    """A garment composited onto an avatar."""
    model_config = ConfigDict(frozen=True)

    image_ref: str
    provider_used: ProviderRole
    risk_level: RiskLevel
    created_at: datetime = Field(default_factory=datetime.now)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT_ERROR = "transientError"
    FATAL_ERROR = "fatalError"


class ProviderAttempt(BaseModel):
    """One provider call, kept only for retry decisions and diagnostics."""
    provider: str
    attempt: int
    outcome: AttemptOutcome
    error_detail: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
