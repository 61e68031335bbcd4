"""Prompt Composer - turns a garment description into a synthesis request."""

import asyncio
import logging
from typing import Protocol

from ..models import GarmentCategory, SynthesisPrompt
from .category_classifier import CategoryClassifier

logger = logging.getLogger(__name__)


ENRICHMENT_INSTRUCTIONS = """You are an expert prompt engineer for a text-to-image model that renders single clothing items for a virtual try-on app. Rewrite the user's garment request into one detailed image prompt.

## The image must show:
- ONLY the garment itself, laid flat or on an invisible form
- No person, no model, no body parts, no mannequin
- A clean white background with soft studio lighting
- The whole garment in frame, nothing cropped

## Use the user's details:
Keep the garment type, color, fabric, pattern and fit the user asked for. Add concrete visual detail (fabric texture, stitching, neckline, hem) that fits the requested style. Never change the garment type.

## CRITICAL OUTPUT RULES:
1. Return ONLY the prompt text - nothing else
2. Do NOT ask questions or add commentary
3. Do NOT use markdown formatting
4. Keep it under 80 words"""


QUALITY_MODIFIERS = [
    "product photography",
    "high resolution",
    "professional fashion photography",
    "studio lighting",
    "detailed fabric texture",
    "clean white background",
    "fashion catalog style",
]

GARMENT_ONLY_QUALIFIER = "standalone garment, clothing only, no person wearing it, no model, no mannequin"

STYLE_MODIFIERS = {
    "casual": "casual everyday style, relaxed comfortable fit",
    "formal": "formal business attire, tailored crisp silhouette",
    "trendy": "modern trendy fashion, current season look",
    "vintage": "vintage retro style, classic timeless details",
    "minimalist": "minimalist clean design, simple lines, understated",
    "edgy": "edgy bold statement piece, striking details",
}

BASE_NEGATIVE_TERMS = [
    "person", "body", "model", "mannequin", "face", "hands",
    "distorted", "deformed", "blurry", "low quality",
    "multiple items", "background clutter", "watermark", "text",
]

CATEGORY_NEGATIVE_TERMS = {
    GarmentCategory.ONE_PIECES: ["separate top", "separate pants", "shoes"],
    GarmentCategory.TOPS: ["pants", "trousers", "skirt", "legs", "shoes"],
    GarmentCategory.BOTTOMS: ["shirt", "top", "blouse", "jacket", "torso", "shoes"],
    GarmentCategory.OUTERWEAR: ["pants", "skirt", "legs", "shoes"],
    GarmentCategory.FOOTWEAR: ["clothing", "shirt", "pants", "dress", "feet", "legs"],
    GarmentCategory.ACCESSORIES: ["clothing", "dress", "shirt", "pants"],
}

REFUSAL_PREFIXES = ("i'm sorry", "i am sorry", "i cannot", "i can't", "sorry,")


class TextGenerator(Protocol):
    """Anything with the text-generation provider contract."""

    async def generate(self, text: str, instructions: str) -> str: ...


class PromptComposer:
    """Builds synthesis prompts, enriched by a text provider when one answers.

    Enrichment is best effort: any failure, timeout or unusable answer falls
    through to the deterministic template, so ``compose`` never raises.
    """

    def __init__(
        self,
        text_generator: TextGenerator | None = None,
        classifier: CategoryClassifier | None = None,
        timeout: float = 8.0,
        max_prompt_chars: int = 600,
    ):
        self.text_generator = text_generator
        self.classifier = classifier or CategoryClassifier()
        self.timeout = timeout
        self.max_prompt_chars = max_prompt_chars

    async def compose(self, user_text: str, style: str = "casual") -> SynthesisPrompt:
        """Compose the synthesis prompt for ``user_text`` in ``style``."""
        category = self.classifier.classify(user_text).primary_category
        negative_prompt = self.negative_prompt(category)

        enriched = await self._enrich(user_text, style)
        if enriched:
            prompt = enriched
            if "no person" not in enriched.lower():
                prompt = f"{enriched}, {GARMENT_ONLY_QUALIFIER}"
            logger.info(f"🧠 Enriched prompt: {prompt[:80]}...")
        else:
            prompt = self.compose_simple(user_text, style)

        return SynthesisPrompt(
            prompt=prompt,
            negative_prompt=negative_prompt,
            user_text=user_text,
            style=style,
            category=category,
            enriched=bool(enriched),
        )

    def compose_simple(self, user_text: str, style: str = "casual") -> str:
        """Deterministic prompt without a text provider (fast/fallback use)."""
        style_modifier = STYLE_MODIFIERS.get(style.lower(), f"{style} style")
        return ", ".join([
            user_text.strip(),
            style_modifier,
            *QUALITY_MODIFIERS,
            GARMENT_ONLY_QUALIFIER,
        ])

    def negative_prompt(self, category: GarmentCategory | None) -> str:
        """Terms to exclude, base list plus category-specific ones."""
        terms = list(BASE_NEGATIVE_TERMS)
        for term in CATEGORY_NEGATIVE_TERMS.get(category, []):
            if term not in terms:
                terms.append(term)
        return ", ".join(terms)

    async def _enrich(self, user_text: str, style: str) -> str | None:
        """Ask the text provider for a richer prompt; None when unusable."""
        if self.text_generator is None:
            return None

        request = f"Garment request: {user_text}\nStyle: {style}"
        try:
            answer = await asyncio.wait_for(
                self.text_generator.generate(request, ENRICHMENT_INSTRUCTIONS),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Prompt enrichment timed out after {self.timeout}s, using basic prompt")
            return None
        except Exception as e:
            logger.warning(f"⚠️ Prompt enrichment failed ({e}), using basic prompt")
            return None

        return self._clean_answer(answer)

    def _clean_answer(self, answer) -> str | None:
        if not isinstance(answer, str):
            logger.warning("⚠️ Prompt enrichment returned no text, using basic prompt")
            return None

        text = " ".join(answer.split()).strip().strip('"').strip()
        if not text or len(text) > self.max_prompt_chars:
            logger.warning(f"⚠️ Prompt enrichment returned {len(text)} chars, using basic prompt")
            return None
        if text.lower().startswith(REFUSAL_PREFIXES):
            logger.warning("⚠️ Prompt enrichment refused, using basic prompt")
            return None
        return text
