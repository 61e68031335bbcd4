"""Workflow controller: the per-session state machine driving a try-on run.

Flow:
1. start   idle -> generating: compose prompt, synthesize garment -> preview
2. confirm preview -> confirming -> compositing: composite onto avatar -> complete
3. reject  preview -> idle (garment discarded, avatar untouched)
4. restart any -> idle (in-flight results of the old run are ignored when they land)

Failures in generating or compositing end in the error state.
"""

import logging
from typing import Callable

from ..agents.prompt_composer import PromptComposer
from ..errors import ExhaustedRetriesError, ProviderError, ValidationError, WorkflowStateError
from ..models import AvatarState, ErrorKind, WorkflowSnapshot, WorkflowState, WorkflowStep
from ..services.persistence import PersistenceStore
from .avatar_ledger import AvatarStateLedger
from .compositing_stage import AvatarCompositingStage
from .synthesis_stage import GarmentSynthesisStage

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    WorkflowStep.IDLE: {WorkflowStep.GENERATING},
    WorkflowStep.GENERATING: {WorkflowStep.GENERATING, WorkflowStep.PREVIEW, WorkflowStep.ERROR},
    WorkflowStep.PREVIEW: {WorkflowStep.CONFIRMING, WorkflowStep.IDLE},
    WorkflowStep.CONFIRMING: {WorkflowStep.COMPOSITING},
    WorkflowStep.COMPOSITING: {WorkflowStep.COMPLETE, WorkflowStep.ERROR},
    WorkflowStep.COMPLETE: set(),
    WorkflowStep.ERROR: set(),
}

VALIDATION_MESSAGES = {
    "garment": "The generated garment image could not be verified. Try a different description.",
    "avatar": "Your avatar image could not be loaded. Please re-upload or reset your avatar.",
}
PROVIDER_MESSAGE = "The image service is not responding right now. Please try again in a moment."

SnapshotListener = Callable[[WorkflowSnapshot], None]


class WorkflowController:
    """Sequences the try-on stages for one user session.

    Each run carries a ``run_id`` stamp. A stage result is only applied while
    its run is still current, so a response that lands after ``restart`` or
    ``reject`` is dropped instead of leaking into the next run.
    """

    def __init__(
        self,
        user_id: str,
        composer: PromptComposer,
        synthesis: GarmentSynthesisStage,
        compositing: AvatarCompositingStage,
        ledger: AvatarStateLedger,
        persistence: PersistenceStore,
        enforce_reset: bool = False,
    ):
        self.user_id = user_id
        self.composer = composer
        self.synthesis = synthesis
        self.compositing = compositing
        self.ledger = ledger
        self.persistence = persistence
        self.enforce_reset = enforce_reset

        self.state = WorkflowState(user_id=user_id)
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # UI collaborator
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Receive a snapshot after every transition. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def snapshot(self) -> WorkflowSnapshot:
        return self.state.snapshot()

    def _notify(self) -> None:
        snapshot = self.state.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def start(
        self,
        user_text: str,
        style: str = "casual",
        avatar: AvatarState | None = None,
    ) -> WorkflowSnapshot:
        """Generate a garment preview from a description."""
        if self.state.step != WorkflowStep.IDLE:
            raise WorkflowStateError(f"Cannot start while {self.state.step.value}; restart first")
        if not user_text or not user_text.strip():
            raise ValidationError("Please enter a clothing description", role="description")

        if avatar is not None:
            await self._adopt_avatar(avatar)

        run_id = self.state.run_id
        self.state.user_text = user_text.strip()
        self.state.style = style
        self._transition(WorkflowStep.GENERATING, 10, "Generating garment from description...")
        logger.info(f"🚀 [{self.user_id}] Run {run_id} started: {user_text[:60]!r}")

        try:
            prompt = await self.composer.compose(self.state.user_text, style)
            if not self._is_current(run_id):
                return self.snapshot()
            self._transition(WorkflowStep.GENERATING, 30, "Rendering garment image...")

            garment = await self.synthesis.synthesize(prompt)
        except ValidationError as e:
            self._fail(run_id, ErrorKind.VALIDATION, VALIDATION_MESSAGES["garment"], e)
            return self.snapshot()
        except (ProviderError, ExhaustedRetriesError) as e:
            self._fail(run_id, ErrorKind.PROVIDER, PROVIDER_MESSAGE, e)
            return self.snapshot()

        if not self._is_current(run_id):
            return self.snapshot()

        self.state.garment = garment
        self._transition(WorkflowStep.PREVIEW, 50, "Garment ready - confirm to try it on")
        return self.snapshot()

    async def confirm(self) -> WorkflowSnapshot:
        """Accept the previewed garment and composite it onto the avatar."""
        self._require(WorkflowStep.PREVIEW, "confirm")
        run_id = self.state.run_id
        garment = self.state.garment

        self._transition(WorkflowStep.CONFIRMING, 60, "Saving your garment...")
        await self.persistence.save_garment(self.user_id, garment)
        if not self._is_current(run_id):
            return self.snapshot()

        self._transition(WorkflowStep.COMPOSITING, 70, "Applying garment to your avatar...")

        async with self.ledger.lock_for(self.user_id):
            avatar = await self.persistence.load_avatar_state(self.user_id)
            if avatar is None:
                self._fail(
                    run_id, ErrorKind.VALIDATION, VALIDATION_MESSAGES["avatar"],
                    ValidationError("No avatar registered", role="avatar"),
                )
                return self.snapshot()

            if self.enforce_reset and avatar.change_count >= avatar.max_changes:
                avatar = self.ledger.reset(avatar)
                await self.persistence.save_avatar_state(avatar)

            try:
                result = await self.compositing.composite(garment, avatar)
            except ValidationError as e:
                message = VALIDATION_MESSAGES.get(e.role, VALIDATION_MESSAGES["garment"])
                self._fail(run_id, ErrorKind.VALIDATION, message, e)
                return self.snapshot()
            except (ProviderError, ExhaustedRetriesError) as e:
                self._fail(run_id, ErrorKind.PROVIDER, PROVIDER_MESSAGE, e)
                return self.snapshot()

            if not self._is_current(run_id):
                return self.snapshot()

            updated = self.ledger.record_composite(avatar, result)
            await self.persistence.save_avatar_state(updated)
            await self.persistence.save_composite(self.user_id, result)

        self.state.composite = result
        self.state.reset_required = updated.reset_required
        self.state.reset_warning = self.ledger.needs_reset_warning(updated)

        message = "Virtual try-on completed!"
        if updated.reset_required:
            message += (
                f" Your avatar has been edited {updated.change_count} times;"
                " reset it to the original to avoid distortion."
            )
        self._transition(WorkflowStep.COMPLETE, 100, message)
        logger.info(
            f"🎉 [{self.user_id}] Run {run_id} complete via {result.provider_used.value} provider "
            f"({updated.change_count}/{updated.max_changes} changes)"
        )
        return self.snapshot()

    def reject(self) -> WorkflowSnapshot:
        """Discard the previewed garment and go back to idle."""
        self._require(WorkflowStep.PREVIEW, "reject")
        logger.info(f"🔄 [{self.user_id}] Garment rejected, starting over")
        self._new_run()
        return self.snapshot()

    def restart(self) -> WorkflowSnapshot:
        """Abandon whatever is in flight and go back to idle."""
        logger.info(f"🔄 [{self.user_id}] Restart from {self.state.step.value}")
        self._new_run()
        return self.snapshot()

    async def reset_avatar(self) -> AvatarState:
        """Restore the avatar to its original image."""
        async with self.ledger.lock_for(self.user_id):
            avatar = await self.persistence.load_avatar_state(self.user_id)
            if avatar is None:
                raise ValidationError("No avatar registered", role="avatar")
            avatar = self.ledger.reset(avatar)
            await self.persistence.save_avatar_state(avatar)

        self.state.reset_required = False
        self.state.reset_warning = False
        self._notify()
        return avatar

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _adopt_avatar(self, avatar: AvatarState) -> None:
        """Use the caller's avatar unless a stored one already exists."""
        if avatar.user_id != self.user_id:
            raise ValidationError("Avatar belongs to another user", role="avatar")
        async with self.ledger.lock_for(self.user_id):
            if await self.persistence.load_avatar_state(self.user_id) is None:
                await self.persistence.save_avatar_state(avatar)

    def _require(self, step: WorkflowStep, trigger: str) -> None:
        if self.state.step != step:
            raise WorkflowStateError(
                f"Cannot {trigger} while {self.state.step.value} (needs {step.value})"
            )

    def _transition(self, step: WorkflowStep, progress: int, message: str) -> None:
        if step not in ALLOWED_TRANSITIONS[self.state.step]:
            raise WorkflowStateError(f"Illegal transition {self.state.step.value} -> {step.value}")
        self.state.advance(step, progress, message)
        self._notify()

    def _is_current(self, run_id: int) -> bool:
        if run_id == self.state.run_id:
            return True
        logger.info(f"🗑️ [{self.user_id}] Dropping result of cancelled run {run_id}")
        return False

    def _fail(self, run_id: int, kind: ErrorKind, message: str, error: Exception) -> None:
        if not self._is_current(run_id):
            return
        logger.error(f"❌ [{self.user_id}] Run {run_id} failed in {self.state.step.value}: {error}")
        self.state.error_kind = kind
        self._transition(WorkflowStep.ERROR, self.state.progress, message)

    def _new_run(self) -> None:
        self.state.clear(run_id=self.state.run_id + 1)
        self._notify()
