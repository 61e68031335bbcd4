"""Category Classifier - maps free-text garment descriptions onto the fixed taxonomy."""

import logging

from ..models import CategoryComposition, CategoryMatch, GarmentCategory
from ..utils.description_cleaner import extract_phrase, normalize_description

logger = logging.getLogger(__name__)


# Keyword sets per category, lower priority number wins
CATEGORY_TAXONOMY = {
    GarmentCategory.ONE_PIECES: {
        'keywords': [
            'dress', 'dresses', 'gown', 'maxi dress', 'midi dress', 'mini dress', 'sundress',
            'jumpsuit', 'romper', 'playsuit', 'overall dress', 'shirt dress', 'wrap dress',
            'bathing suit', 'swimsuit', 'bikini', 'swimwear', 'one-piece swim',
        ],
        'display_name': 'Dresses & Jumpsuits',
        'priority': 1,
    },
    GarmentCategory.TOPS: {
        'keywords': [
            'shirt', 'blouse', 'top', 't-shirt', 'tee', 'tank top', 'tank', 'camisole',
            'sweater', 'pullover', 'hoodie', 'crop top', 'tunic', 'polo',
            'button-up', 'button-down', 'henley', 'sweatshirt', 'turtleneck',
            'halter', 'off-shoulder', 'bodysuit',
        ],
        'display_name': 'Tops',
        'priority': 2,
    },
    GarmentCategory.BOTTOMS: {
        'keywords': [
            'pants', 'trousers', 'jeans', 'slacks', 'chinos', 'khakis',
            'skirt', 'shorts', 'leggings', 'joggers', 'sweatpants',
            'culottes', 'palazzo', 'wide-leg', 'skinny jeans', 'bootcut',
        ],
        'display_name': 'Bottoms',
        'priority': 3,
    },
    GarmentCategory.OUTERWEAR: {
        'keywords': [
            'jacket', 'coat', 'blazer', 'cardigan', 'bomber', 'trench',
            'parka', 'peacoat', 'overcoat', 'duster', 'windbreaker',
            'vest', 'puffer', 'leather jacket', 'denim jacket',
        ],
        'display_name': 'Jackets & Coats',
        'priority': 4,
    },
    GarmentCategory.FOOTWEAR: {
        'keywords': [
            'shoes', 'heels', 'boots', 'sneakers', 'sandals', 'flats',
            'pumps', 'loafers', 'mules', 'wedges', 'stilettos',
            'ankle boots', 'knee-high boots', 'booties',
        ],
        'display_name': 'Shoes',
        'priority': 5,
    },
    GarmentCategory.ACCESSORIES: {
        'keywords': [
            'bag', 'purse', 'handbag', 'clutch', 'backpack', 'tote',
            'belt', 'scarf', 'hat', 'jewelry', 'necklace', 'earrings',
            'bracelet', 'watch', 'sunglasses', 'gloves',
        ],
        'display_name': 'Accessories',
        'priority': 6,
    },
}

MAX_CATEGORIES = 4

# Dropped in this order when too many categories remain
OVERFLOW_DROP_ORDER = [GarmentCategory.ACCESSORIES, GarmentCategory.FOOTWEAR]

SEPARATES = {GarmentCategory.TOPS, GarmentCategory.BOTTOMS}


class CategoryClassifier:
    """Deterministic keyword rule engine over a fixed garment taxonomy.

    Pure: no external calls and no randomness, so the same description and
    taxonomy always produce the same composition.
    """

    def __init__(self, taxonomy: dict | None = None):
        self.taxonomy = taxonomy or CATEGORY_TAXONOMY

    def classify(self, description: str) -> CategoryComposition:
        """Detect garment categories in a description and resolve conflicts."""
        text = normalize_description(description)
        detected = []

        for category, config in self.taxonomy.items():
            matched = [kw for kw in config['keywords'] if kw in text]
            if not matched:
                continue
            detected.append(CategoryMatch(
                category=category,
                search_term=extract_phrase(text, matched[0]),
                display_name=config['display_name'],
                priority=config['priority'],
            ))

        categories = self._resolve_conflicts(detected)

        logger.debug(
            f"🔍 Classified {description[:60]!r} as "
            f"{[c.category.value for c in categories] or 'unclassified'}"
        )

        return CategoryComposition(
            is_multi_piece=len(categories) > 1,
            categories=categories,
            fallback_query=description,
        )

    def is_single_item(self, description: str) -> bool:
        """True when the description names exactly one garment category."""
        return len(self.classify(description).categories) == 1

    def _resolve_conflicts(self, categories: list[CategoryMatch]) -> list[CategoryMatch]:
        """Apply the priority rules in order."""
        detected = {c.category for c in categories}

        # Rule 1: a one-piece cannot also be a separate top and bottom
        if GarmentCategory.ONE_PIECES in detected:
            categories = [c for c in categories if c.category not in SEPARATES]
        # Rule 2: separates rule out a one-piece
        elif detected & SEPARATES:
            categories = [c for c in categories if c.category != GarmentCategory.ONE_PIECES]

        # Rule 3: keep clothing over shoes and accessories, then cap
        for dropped in OVERFLOW_DROP_ORDER:
            if len(categories) <= MAX_CATEGORIES:
                break
            categories = [c for c in categories if c.category != dropped]

        # Rule 4: priority order
        categories = sorted(categories, key=lambda c: c.priority)
        return categories[:MAX_CATEGORIES]
