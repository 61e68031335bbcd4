"""Avatar compositing stage: primary try-on provider with a conservative fallback."""

import logging

from ..errors import CompositingFailedError, ExhaustedRetriesError, ProviderError
from ..models import (
    AvatarState,
    CompositeResult,
    GarmentAsset,
    GarmentCategory,
    ProviderRole,
    RiskLevel,
)
from ..services.image_validator import ImageValidator
from ..services.provider_client import ImageCompositingClient
from ..services.retry import RetryPolicy, RetryScheduler

logger = logging.getLogger(__name__)


# Region hints understood by the try-on providers
CATEGORY_HINTS = {
    GarmentCategory.ONE_PIECES: "one-pieces",
    GarmentCategory.TOPS: "tops",
    GarmentCategory.OUTERWEAR: "tops",
    GarmentCategory.BOTTOMS: "bottoms",
}


def category_hint(category: GarmentCategory | None) -> str:
    return CATEGORY_HINTS.get(category, "auto")


class AvatarCompositingStage:
    """Places a garment onto an avatar's current image.

    The fallback provider runs with a lower strength so more of the base
    avatar survives; its results are flagged with an elevated risk level.
    """

    def __init__(
        self,
        primary: ImageCompositingClient,
        fallback: ImageCompositingClient,
        validator: ImageValidator,
        scheduler: RetryScheduler,
        primary_policy: RetryPolicy,
        fallback_policy: RetryPolicy,
        primary_strength: float = 0.85,
        fallback_strength: float = 0.55,
    ):
        self.primary = primary
        self.fallback = fallback
        self.validator = validator
        self.scheduler = scheduler
        self.primary_policy = primary_policy
        self.fallback_policy = fallback_policy
        self.primary_strength = primary_strength
        self.fallback_strength = fallback_strength

    async def composite(self, garment: GarmentAsset, avatar: AvatarState) -> CompositeResult:
        """Composite ``garment`` onto ``avatar.current_ref``.

        Raises:
            ValidationError: either input image is unreachable (nothing is retried)
            CompositingFailedError: primary and fallback both failed
        """
        await self.validator.ensure_image(garment.image_ref, role="garment")
        await self.validator.ensure_image(avatar.current_ref, role="avatar")

        hint = category_hint(garment.category)
        logger.info(f"🎨 Compositing garment onto avatar (hint={hint}, change {avatar.change_count + 1})")

        try:
            image_ref = await self._run(
                self.primary, self.primary_policy, garment, avatar, hint, self.primary_strength
            )
            return CompositeResult(
                image_ref=image_ref,
                provider_used=ProviderRole.PRIMARY,
                risk_level=RiskLevel.LOW,
            )
        except (ProviderError, ExhaustedRetriesError) as e:
            primary_error = e
            logger.warning(f"⚠️ Primary compositing failed ({e}), trying fallback provider")

        try:
            image_ref = await self._run(
                self.fallback, self.fallback_policy, garment, avatar, hint, self.fallback_strength
            )
        except (ProviderError, ExhaustedRetriesError) as e:
            logger.error(f"❌ Fallback compositing failed too: {e}")
            raise CompositingFailedError(primary_error, e) from e

        logger.info("✅ Composite produced by fallback provider")
        return CompositeResult(
            image_ref=image_ref,
            provider_used=ProviderRole.FALLBACK,
            risk_level=RiskLevel.ELEVATED,
        )

    async def _run(
        self,
        client: ImageCompositingClient,
        policy: RetryPolicy,
        garment: GarmentAsset,
        avatar: AvatarState,
        hint: str,
        strength: float,
    ) -> str:
        async def attempt() -> str:
            urls = await client.composite(
                source_image_url=avatar.current_ref,
                garment_image_url=garment.image_ref,
                category_hint=hint,
                strength=strength,
            )
            return urls[0]

        return await self.scheduler.execute(attempt, policy, provider=client.name)
