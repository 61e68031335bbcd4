"""Text helpers for garment descriptions."""

from .description_cleaner import normalize_description, extract_phrase

__all__ = ["normalize_description", "extract_phrase"]
