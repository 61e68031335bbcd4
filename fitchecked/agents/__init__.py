"""Prompt and classification agents for the try-on engine."""

from .category_classifier import CategoryClassifier
from .prompt_composer import PromptComposer

__all__ = [
    "CategoryClassifier",
    "PromptComposer",
]
