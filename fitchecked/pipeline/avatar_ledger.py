"""Avatar drift ledger.

Repeated image-to-image compositing without going back to the original photo
accumulates artifacts. The ledger counts composites applied since the last
reset, flags the avatar once the configured budget is spent, and restores the
original on reset.
"""

import asyncio
import logging
import math
import weakref

from ..models import AvatarState, CompositeResult

logger = logging.getLogger(__name__)


class AvatarStateLedger:
    """Pure state transitions for AvatarState plus one lock per avatar."""

    def __init__(self, max_changes: int = 5, warning_fraction: float = 0.8):
        self.max_changes = max_changes
        self.warning_fraction = warning_fraction
        # Entries go away once no caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def new_avatar(self, user_id: str, original_ref: str) -> AvatarState:
        return AvatarState.pristine(user_id, original_ref, max_changes=self.max_changes)

    def lock_for(self, user_id: str) -> asyncio.Lock:
        """Lock serializing read-modify-write of one avatar's state."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def record_composite(self, avatar: AvatarState, result: CompositeResult) -> AvatarState:
        """Apply a successful composite: new current image, one more change."""
        change_count = avatar.change_count + 1
        reset_required = change_count >= avatar.max_changes

        if reset_required:
            logger.warning(
                f"⚠️ Avatar {avatar.user_id} reached {change_count}/{avatar.max_changes} changes, "
                f"reset to original recommended"
            )

        return avatar.model_copy(update={
            "current_ref": result.image_ref,
            "change_count": change_count,
            "reset_required": reset_required,
        })

    def reset(self, avatar: AvatarState) -> AvatarState:
        """Back to the pristine original."""
        logger.info(f"🔄 Avatar {avatar.user_id} reset to original after {avatar.change_count} change(s)")
        return avatar.model_copy(update={
            "current_ref": avatar.original_ref,
            "change_count": 0,
            "reset_required": False,
        })

    def needs_reset_warning(self, avatar: AvatarState) -> bool:
        """True from ``warning_fraction`` of the budget onwards."""
        # Rounded first so 10 * 0.7 counts as 7, not 7.000000000000001
        threshold = max(1, math.ceil(round(avatar.max_changes * self.warning_fraction, 9)))
        return avatar.change_count >= threshold
