"""Generative virtual try-on orchestration engine."""

from .config import EngineConfig, load_config
from .pipeline import TryOnEngine, WorkflowController

__version__ = "1.0.0"

__all__ = [
    "EngineConfig",
    "load_config",
    "TryOnEngine",
    "WorkflowController",
]
