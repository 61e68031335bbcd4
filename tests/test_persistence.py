"""Tests for the persistence collaborators."""

import json
from pathlib import Path

import pytest

from fitchecked.errors import ValidationError
from fitchecked.models import (
    AvatarState,
    CompositeResult,
    GarmentAsset,
    GarmentCategory,
    ProviderRole,
    RiskLevel,
)
from fitchecked.services import InMemoryPersistence, JsonFilePersistence
from fitchecked.services.persistence import ensure_user_id


ORIGINAL = "https://cdn.test/avatars/original.png"


def read_records(directory: Path) -> list[dict]:
    return [json.loads(p.read_text(encoding="utf-8")) for p in sorted(directory.glob("*.json"))]


@pytest.fixture
def garment():
    return GarmentAsset(
        image_ref="https://cdn.test/garments/look.png",
        category=GarmentCategory.TOPS,
        prompt_used="white linen shirt",
    )


@pytest.fixture
def result():
    return CompositeResult(
        image_ref="https://cdn.test/composites/1.png",
        provider_used=ProviderRole.FALLBACK,
        risk_level=RiskLevel.ELEVATED,
    )


class TestInMemoryPersistence:

    @pytest.mark.asyncio
    async def test_avatar_last_write_wins(self):
        store = InMemoryPersistence()
        first = AvatarState.pristine("user-1", ORIGINAL)
        second = first.model_copy(update={"current_ref": "https://cdn.test/c.png", "change_count": 1})

        await store.save_avatar_state(first)
        await store.save_avatar_state(second)

        assert await store.load_avatar_state("user-1") == second
        assert await store.load_avatar_state("user-2") is None


class TestJsonFilePersistence:
    """One directory of JSON records per user."""

    @pytest.mark.asyncio
    async def test_avatar_round_trip(self, tmp_path):
        store = JsonFilePersistence(tmp_path)
        avatar = AvatarState(
            user_id="user-1",
            original_ref=ORIGINAL,
            current_ref="https://cdn.test/composites/3.png",
            change_count=3,
        )

        await store.save_avatar_state(avatar)

        assert (tmp_path / "user-1" / "avatar.json").exists()
        assert await JsonFilePersistence(tmp_path).load_avatar_state("user-1") == avatar

    @pytest.mark.asyncio
    async def test_missing_avatar(self, tmp_path):
        assert await JsonFilePersistence(tmp_path).load_avatar_state("nobody") is None

    @pytest.mark.asyncio
    async def test_corrupt_avatar_raises(self, tmp_path):
        (tmp_path / "user-1").mkdir()
        (tmp_path / "user-1" / "avatar.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError):
            await JsonFilePersistence(tmp_path).load_avatar_state("user-1")

    @pytest.mark.asyncio
    async def test_records_listed(self, tmp_path, garment, result):
        store = JsonFilePersistence(tmp_path)

        await store.save_garment("user-1", garment)
        await store.save_composite("user-1", result)

        garments = read_records(tmp_path / "user-1" / "garments")
        composites = read_records(tmp_path / "user-1" / "composites")
        assert [g["category"] for g in garments] == ["tops"]
        assert composites[0]["provider_used"] == "fallback"
        assert composites[0]["risk_level"] == "elevated"
        assert not (tmp_path / "user-2").exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", ["..", ".", "../escape", "a/b", "", "-x", "bad id!"])
    async def test_unsafe_user_id_rejected(self, tmp_path, garment, user_id):
        root = tmp_path / "out"
        store = JsonFilePersistence(root)

        with pytest.raises(ValidationError):
            await store.save_garment(user_id, garment)
        with pytest.raises(ValidationError):
            await store.load_avatar_state(user_id)
        with pytest.raises(ValidationError):
            await store.save_avatar_state(AvatarState.pristine(user_id, ORIGINAL))

        assert list(tmp_path.iterdir()) == []


class TestEnsureUserId:

    @pytest.mark.parametrize("user_id", ["user-1", "u", "Alice_2.profile"])
    def test_single_segment_accepted(self, user_id):
        assert ensure_user_id(user_id) == user_id

    def test_trailing_newline_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_user_id("user-1\n")

        assert exc_info.value.role == "user"
