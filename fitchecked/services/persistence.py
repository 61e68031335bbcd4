"""Persistence collaborators for garments, composites and avatar state."""

import logging
import re
from pathlib import Path
from typing import Protocol

from ..errors import ValidationError
from ..models import AvatarState, CompositeResult, GarmentAsset

logger = logging.getLogger(__name__)

# One path segment: no separators, no "." or ".."
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def ensure_user_id(user_id: str) -> str:
    """Raise ValidationError unless ``user_id`` is safe to use as a directory name."""
    if not isinstance(user_id, str) or not USER_ID_PATTERN.fullmatch(user_id):
        raise ValidationError(f"Invalid user id: {str(user_id)[:40]!r}", role="user")
    return user_id


class PersistenceStore(Protocol):
    """Storage the engine calls at confirmation and completion boundaries."""

    async def save_garment(self, user_id: str, asset: GarmentAsset) -> None: ...

    async def save_composite(self, user_id: str, result: CompositeResult) -> None: ...

    async def load_avatar_state(self, user_id: str) -> AvatarState | None: ...

    async def save_avatar_state(self, state: AvatarState) -> None: ...


class InMemoryPersistence:
    """Process-local store, last write wins."""

    def __init__(self):
        self.garments: dict[str, list[GarmentAsset]] = {}
        self.composites: dict[str, list[CompositeResult]] = {}
        self.avatars: dict[str, AvatarState] = {}

    async def save_garment(self, user_id: str, asset: GarmentAsset) -> None:
        self.garments.setdefault(user_id, []).append(asset)

    async def save_composite(self, user_id: str, result: CompositeResult) -> None:
        self.composites.setdefault(user_id, []).append(result)

    async def load_avatar_state(self, user_id: str) -> AvatarState | None:
        return self.avatars.get(user_id)

    async def save_avatar_state(self, state: AvatarState) -> None:
        self.avatars[state.user_id] = state


class JsonFilePersistence:
    """One directory of JSON files per user.

    Layout::

        <output_dir>/<user_id>/avatar.json
        <output_dir>/<user_id>/garments/<timestamp>.json
        <output_dir>/<user_id>/composites/<timestamp>.json
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def _user_dir(self, user_id: str) -> Path:
        path = self.output_dir / ensure_user_id(user_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _save_record(self, user_id: str, kind: str, record) -> Path:
        directory = self._user_dir(user_id) / kind
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{record.created_at.strftime('%Y%m%d_%H%M%S_%f')}.json"
        path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        return path

    async def save_garment(self, user_id: str, asset: GarmentAsset) -> None:
        self._save_record(user_id, "garments", asset)

    async def save_composite(self, user_id: str, result: CompositeResult) -> None:
        self._save_record(user_id, "composites", result)

    async def load_avatar_state(self, user_id: str) -> AvatarState | None:
        path = self.output_dir / ensure_user_id(user_id) / "avatar.json"
        if not path.exists():
            return None
        try:
            return AvatarState.model_validate_json(path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.error(f"❌ Corrupt avatar state at {path}: {e}")
            raise

    async def save_avatar_state(self, state: AvatarState) -> None:
        path = self._user_dir(state.user_id) / "avatar.json"
        path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
