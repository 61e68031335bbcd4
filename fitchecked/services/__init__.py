"""External service clients and infrastructure for the try-on engine."""

from .provider_client import (
    ProviderClient,
    ImageSynthesisClient,
    ImageCompositingClient,
    TextGenerationClient,
)
from .image_validator import ImageValidator
from .retry import RetryPolicy, RetryScheduler
from .persistence import PersistenceStore, InMemoryPersistence, JsonFilePersistence

__all__ = [
    "ProviderClient",
    "ImageSynthesisClient",
    "ImageCompositingClient",
    "TextGenerationClient",
    "ImageValidator",
    "RetryPolicy",
    "RetryScheduler",
    "PersistenceStore",
    "InMemoryPersistence",
    "JsonFilePersistence",
]
