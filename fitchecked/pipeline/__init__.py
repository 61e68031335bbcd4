"""Try-on orchestration pipeline."""

from .avatar_ledger import AvatarStateLedger
from .compositing_stage import AvatarCompositingStage
from .synthesis_stage import GarmentSynthesisStage
from .workflow import WorkflowController
from .engine import TryOnEngine

__all__ = [
    "AvatarStateLedger",
    "AvatarCompositingStage",
    "GarmentSynthesisStage",
    "WorkflowController",
    "TryOnEngine",
]
