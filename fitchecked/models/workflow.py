"""Workflow state tracking models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .garment import GarmentAsset
from .composite import CompositeResult


class WorkflowStep(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    PREVIEW = "preview"
    CONFIRMING = "confirming"
    COMPOSITING = "compositing"
    COMPLETE = "complete"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Lets the UI choose between "try again" and "change your description"."""
    VALIDATION = "validation"
    PROVIDER = "provider"


class WorkflowSnapshot(BaseModel):
    """What the UI receives after every transition."""
    step: WorkflowStep
    progress: int
    message: str
    run_id: int
    error_kind: ErrorKind | None = None
    garment_ref: str | None = None
    composite_ref: str | None = None
    risk_level: str | None = None
    reset_required: bool = False
    reset_warning: bool = False


class WorkflowState(BaseModel):
    """The single in-flight try-on run of one user session."""

    user_id: str
    run_id: int = 0
    step: WorkflowStep = WorkflowStep.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    message: str = "Describe a garment to get started"

    # Inputs of the current run
    user_text: str | None = None
    style: str | None = None

    # Results
    garment: GarmentAsset | None = None
    composite: CompositeResult | None = None

    # Status
    error_kind: ErrorKind | None = None
    reset_required: bool = False
    reset_warning: bool = False
    updated_at: datetime = Field(default_factory=datetime.now)

    def advance(self, step: WorkflowStep, progress: int, message: str) -> None:
        """Move to ``step``; progress never goes backwards within a run."""
        self.step = step
        self.progress = max(self.progress, progress)
        self.message = message
        self.updated_at = datetime.now()

    def clear(self, run_id: int) -> None:
        """Discard everything from the previous run."""
        self.run_id = run_id
        self.step = WorkflowStep.IDLE
        self.progress = 0
        self.message = "Describe a garment to get started"
        self.user_text = None
        self.style = None
        self.garment = None
        self.composite = None
        self.error_kind = None
        self.reset_required = False
        self.reset_warning = False
        self.updated_at = datetime.now()

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            step=self.step,
            progress=self.progress,
            message=self.message,
            run_id=self.run_id,
            error_kind=self.error_kind,
            garment_ref=self.garment.image_ref if self.garment else None,
            composite_ref=self.composite.image_ref if self.composite else None,
            risk_level=self.composite.risk_level.value if self.composite else None,
            reset_required=self.reset_required,
            reset_warning=self.reset_warning,
        )
