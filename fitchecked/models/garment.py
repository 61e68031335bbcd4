"""Garment classification and synthesis models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GarmentCategory(str, Enum):
    """Fixed garment taxonomy."""
    ONE_PIECES = "one-pieces"
    TOPS = "tops"
    BOTTOMS = "bottoms"
    OUTERWEAR = "outerwear"
    FOOTWEAR = "footwear"
    ACCESSORIES = "accessories"


class CategoryMatch(BaseModel):
    """One detected category with the phrase that triggered it."""
    category: GarmentCategory
    search_term: str = Field(description="Short phrase around the matched keyword")
    display_name: str
    priority: int


class CategoryComposition(BaseModel):
    """Result of classifying a garment description."""
    is_multi_piece: bool
    categories: list[CategoryMatch] = Field(default_factory=list)
    fallback_query: str

    @property
    def primary_category(self) -> GarmentCategory | None:
        """Highest-priority category, or None when nothing matched."""
        return self.categories[0].category if self.categories else None


class SynthesisPrompt(BaseModel):
    """Everything the synthesis stage needs to render a standalone garment."""
    prompt: str
    negative_prompt: str
    user_text: str
    style: str
    category: GarmentCategory | None = None
    enriched: bool = False


class GarmentAsset(BaseModel):
    """A synthesized garment image."""
    model_config = ConfigDict(frozen=True)

    image_ref: str
    category: GarmentCategory | None
    prompt_used: str
    created_at: datetime = Field(default_factory=datetime.now)
