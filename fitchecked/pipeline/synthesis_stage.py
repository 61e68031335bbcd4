"""Garment synthesis stage: prompt in, validated garment image out."""

import logging

from ..agents.category_classifier import CategoryClassifier
from ..models import GarmentAsset, SynthesisPrompt
from ..services.image_validator import ImageValidator
from ..services.provider_client import ImageSynthesisClient
from ..services.retry import RetryPolicy, RetryScheduler

logger = logging.getLogger(__name__)


class GarmentSynthesisStage:
    """Renders a standalone garment image from a composed prompt.

    Raises:
        ExhaustedRetriesError: the provider kept failing transiently
        ProviderError: the provider failed in a way retrying cannot fix
        ValidationError: the returned image is unreachable or not an image
    """

    def __init__(
        self,
        client: ImageSynthesisClient,
        validator: ImageValidator,
        scheduler: RetryScheduler,
        policy: RetryPolicy,
        classifier: CategoryClassifier | None = None,
        image_size: tuple[int, int] = (512, 768),
    ):
        self.client = client
        self.validator = validator
        self.scheduler = scheduler
        self.policy = policy
        self.classifier = classifier or CategoryClassifier()
        self.image_size = image_size

    async def synthesize(self, prompt: SynthesisPrompt) -> GarmentAsset:
        width, height = self.image_size
        logger.info(f"👔 Generating garment: {prompt.user_text[:60]!r}")

        async def attempt() -> str:
            urls = await self.client.generate(
                prompt=prompt.prompt,
                negative_prompt=prompt.negative_prompt,
                width=width,
                height=height,
                num_images=1,
            )
            return urls[0]

        image_ref = await self.scheduler.execute(attempt, self.policy, provider=self.client.name)

        # An unreachable result is not retried with the same inputs
        await self.validator.ensure_image(image_ref, role="garment")

        # Classify the user's words, not the enriched prompt, so the category is stable
        category = self.classifier.classify(prompt.user_text).primary_category

        logger.info(f"✅ Garment generated ({category.value if category else 'unclassified'})")
        return GarmentAsset(
            image_ref=image_ref,
            category=category,
            prompt_used=prompt.prompt,
        )
