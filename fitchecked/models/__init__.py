"""Data models for the try-on engine."""

from .garment import (
    GarmentCategory,
    CategoryMatch,
    CategoryComposition,
    SynthesisPrompt,
    GarmentAsset,
)
from .composite import (
    ProviderRole,
    RiskLevel,
    CompositeResult,
    AttemptOutcome,
    ProviderAttempt,
)
from .avatar import AvatarState
from .workflow import WorkflowStep, ErrorKind, WorkflowSnapshot, WorkflowState

__all__ = [
    "GarmentCategory",
    "CategoryMatch",
    "CategoryComposition",
    "SynthesisPrompt",
    "GarmentAsset",
    "ProviderRole",
    "RiskLevel",
    "CompositeResult",
    "AttemptOutcome",
    "ProviderAttempt",
    "AvatarState",
    "WorkflowStep",
    "ErrorKind",
    "WorkflowSnapshot",
    "WorkflowState",
]
