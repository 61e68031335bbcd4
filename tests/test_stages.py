"""Tests for the garment synthesis and avatar compositing stages."""

import httpx
import pytest

from fitchecked.errors import CompositingFailedError, ExhaustedRetriesError, ValidationError
from fitchecked.models import (
    AvatarState,
    GarmentAsset,
    GarmentCategory,
    ProviderRole,
    RiskLevel,
    SynthesisPrompt,
)
from fitchecked.pipeline.compositing_stage import category_hint

from conftest import AVATAR_URL, FALLBACK_URL, PRIMARY_URL, SYNTHESIS_URL, images_response


GARMENT_URL = "https://cdn.test/garments/sundress.png"
COMPOSITE_URL = "https://cdn.test/composites/1.png"


@pytest.fixture
def prompt():
    return SynthesisPrompt(
        prompt="red sundress, product photography, no person wearing it",
        negative_prompt="person, body",
        user_text="red sundress for a beach day",
        style="casual",
        category=GarmentCategory.ONE_PIECES,
    )


@pytest.fixture
def garment():
    return GarmentAsset(
        image_ref=GARMENT_URL,
        category=GarmentCategory.ONE_PIECES,
        prompt_used="red sundress",
    )


@pytest.fixture
def avatar():
    return AvatarState.pristine("user-1", AVATAR_URL)


class TestGarmentSynthesisStage:
    """Tests for prompt-to-garment synthesis."""

    @pytest.mark.asyncio
    async def test_synthesize(self, engine, router, prompt):
        router.queue(SYNTHESIS_URL, images_response(GARMENT_URL))

        asset = await engine.synthesis.synthesize(prompt)

        assert asset.image_ref == GARMENT_URL
        assert asset.category == GarmentCategory.ONE_PIECES
        assert asset.prompt_used == prompt.prompt
        body = router.posts(SYNTHESIS_URL)[0]
        assert body["negative_prompt"] == "person, body"
        assert body["image_size"] == {"width": 512, "height": 768}

    @pytest.mark.asyncio
    async def test_category_from_user_text(self, engine, router, prompt):
        """The enriched prompt may mention other garments; the user's words decide."""
        router.queue(SYNTHESIS_URL, images_response(GARMENT_URL))
        prompt = prompt.model_copy(update={
            "prompt": "flowing dress styled with a denim jacket and sandals",
            "user_text": "denim jacket",
        })

        asset = await engine.synthesis.synthesize(prompt)

        assert asset.category == GarmentCategory.OUTERWEAR

    @pytest.mark.asyncio
    async def test_broken_image_not_retried(self, engine, router, prompt):
        """An unreachable result fails with a validation error after one call."""
        router.queue(SYNTHESIS_URL, images_response(GARMENT_URL))
        router.broken_images.add(GARMENT_URL)

        with pytest.raises(ValidationError) as exc_info:
            await engine.synthesis.synthesize(prompt)

        assert exc_info.value.role == "garment"
        assert len(router.posts(SYNTHESIS_URL)) == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, engine, router, sleep, prompt):
        router.queue(SYNTHESIS_URL, httpx.Response(503), images_response(GARMENT_URL))

        asset = await engine.synthesis.synthesize(prompt)

        assert asset.image_ref == GARMENT_URL
        assert len(router.posts(SYNTHESIS_URL)) == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_outage_exhausts_retries(self, engine, router, prompt):
        router.queue(SYNTHESIS_URL, *[httpx.Response(500) for _ in range(3)])

        with pytest.raises(ExhaustedRetriesError):
            await engine.synthesis.synthesize(prompt)

        assert len(router.posts(SYNTHESIS_URL)) == 3


class TestAvatarCompositingStage:
    """Tests for the primary/fallback compositing chain."""

    @pytest.mark.asyncio
    async def test_primary_success(self, engine, router, garment, avatar):
        router.queue(PRIMARY_URL, images_response(COMPOSITE_URL))

        result = await engine.compositing.composite(garment, avatar)

        assert result.image_ref == COMPOSITE_URL
        assert result.provider_used == ProviderRole.PRIMARY
        assert result.risk_level == RiskLevel.LOW
        assert router.posts(PRIMARY_URL) == [{
            "source_image_url": AVATAR_URL,
            "garment_image_url": GARMENT_URL,
            "category_hint": "one-pieces",
            "strength": 0.85,
        }]
        assert router.posts(FALLBACK_URL) == []

    @pytest.mark.asyncio
    async def test_uses_current_not_original(self, engine, router, garment):
        """Compositing chains on the avatar's latest image."""
        router.queue(PRIMARY_URL, images_response(COMPOSITE_URL))
        avatar = AvatarState(
            user_id="user-1",
            original_ref=AVATAR_URL,
            current_ref="https://cdn.test/composites/0.png",
            change_count=1,
        )

        await engine.compositing.composite(garment, avatar)

        assert router.posts(PRIMARY_URL)[0]["source_image_url"] == "https://cdn.test/composites/0.png"

    @pytest.mark.asyncio
    async def test_fallback_after_primary_exhausted(self, engine, router, garment, avatar):
        """Primary 500 twice -> fallback with lower strength, flagged elevated."""
        router.queue(PRIMARY_URL, httpx.Response(500), httpx.Response(500))
        router.queue(FALLBACK_URL, images_response(COMPOSITE_URL))

        result = await engine.compositing.composite(garment, avatar)

        assert len(router.posts(PRIMARY_URL)) == 2
        assert result.provider_used == ProviderRole.FALLBACK
        assert result.risk_level == RiskLevel.ELEVATED
        assert router.posts(FALLBACK_URL)[0]["strength"] == 0.55

    @pytest.mark.asyncio
    async def test_fallback_after_fatal_primary(self, engine, router, garment, avatar):
        router.queue(PRIMARY_URL, httpx.Response(400, text="unsupported garment"))
        router.queue(FALLBACK_URL, images_response(COMPOSITE_URL))

        result = await engine.compositing.composite(garment, avatar)

        assert len(router.posts(PRIMARY_URL)) == 1
        assert result.provider_used == ProviderRole.FALLBACK

    @pytest.mark.asyncio
    async def test_both_fail(self, engine, router, garment, avatar):
        router.queue(PRIMARY_URL, httpx.Response(500), httpx.Response(500))
        router.queue(FALLBACK_URL, httpx.Response(502))

        with pytest.raises(CompositingFailedError) as exc_info:
            await engine.compositing.composite(garment, avatar)

        assert isinstance(exc_info.value.primary_error, ExhaustedRetriesError)
        assert isinstance(exc_info.value.fallback_error, ExhaustedRetriesError)

    @pytest.mark.asyncio
    async def test_broken_avatar_skips_providers(self, engine, router, garment, avatar):
        router.broken_images.add(AVATAR_URL)

        with pytest.raises(ValidationError) as exc_info:
            await engine.compositing.composite(garment, avatar)

        assert exc_info.value.role == "avatar"
        assert router.posts(PRIMARY_URL) == []
        assert router.posts(FALLBACK_URL) == []

    @pytest.mark.parametrize("category,hint", [
        (GarmentCategory.ONE_PIECES, "one-pieces"),
        (GarmentCategory.TOPS, "tops"),
        (GarmentCategory.OUTERWEAR, "tops"),
        (GarmentCategory.BOTTOMS, "bottoms"),
        (GarmentCategory.FOOTWEAR, "auto"),
        (None, "auto"),
    ])
    def test_category_hint(self, category, hint):
        assert category_hint(category) == hint
