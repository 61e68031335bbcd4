"""Try-on engine: wires configuration into stages and per-user controllers."""

import logging

from ..agents.category_classifier import CategoryClassifier
from ..agents.prompt_composer import PromptComposer, TextGenerator
from ..config import EngineConfig
from ..errors import WorkflowStateError
from ..models import AvatarState, WorkflowStep
from ..services.image_validator import ImageValidator
from ..services.persistence import (
    InMemoryPersistence,
    JsonFilePersistence,
    PersistenceStore,
    ensure_user_id,
)
from ..services.provider_client import (
    ImageCompositingClient,
    ImageSynthesisClient,
    TextGenerationClient,
)
from ..services.retry import RetryPolicy, RetryScheduler
from .avatar_ledger import AvatarStateLedger
from .compositing_stage import AvatarCompositingStage
from .synthesis_stage import GarmentSynthesisStage
from .workflow import WorkflowController

logger = logging.getLogger(__name__)

BUSY_STEPS = {WorkflowStep.GENERATING, WorkflowStep.CONFIRMING, WorkflowStep.COMPOSITING}


def build_text_generator(config: EngineConfig) -> TextGenerator | None:
    """Text provider for prompt enrichment, per ``text_generation.backend``."""
    backend = config.text_generation.backend
    if backend == "none":
        return None
    if backend == "azure":
        # Only pulled in when selected; needs Azure CLI credentials
        from ..services.azure_text_client import AzureTextGenerationClient
        return AzureTextGenerationClient()
    return TextGenerationClient("text-generation", config.text_generation.endpoint)


def build_persistence(config: EngineConfig) -> PersistenceStore:
    if config.persistence == "file":
        return JsonFilePersistence(config.output_dir)
    return InMemoryPersistence()


class TryOnEngine:
    """Owns the shared stages and hands out one WorkflowController per user.

    Every collaborator can be injected; anything not given is built from the
    configuration.
    """

    def __init__(
        self,
        config: EngineConfig,
        persistence: PersistenceStore | None = None,
        synthesis_client: ImageSynthesisClient | None = None,
        primary_client: ImageCompositingClient | None = None,
        fallback_client: ImageCompositingClient | None = None,
        text_generator: TextGenerator | None = None,
        validator: ImageValidator | None = None,
        scheduler: RetryScheduler | None = None,
    ):
        self.config = config
        self.persistence = persistence or build_persistence(config)

        # Initialize services
        self.synthesis_client = synthesis_client or ImageSynthesisClient(
            "image-synthesis", config.synthesis.endpoint
        )
        self.primary_client = primary_client or ImageCompositingClient(
            "compositing-primary", config.compositing.primary
        )
        self.fallback_client = fallback_client or ImageCompositingClient(
            "compositing-fallback", config.compositing.fallback
        )
        self.text_generator = (
            text_generator if text_generator is not None else build_text_generator(config)
        )
        self.validator = validator or ImageValidator()
        self.scheduler = scheduler or RetryScheduler()

        # Initialize agents and stages
        self.classifier = CategoryClassifier()
        self.composer = PromptComposer(
            text_generator=self.text_generator,
            classifier=self.classifier,
            timeout=config.text_generation.timeout,
            max_prompt_chars=config.text_generation.max_prompt_chars,
        )
        self.synthesis = GarmentSynthesisStage(
            client=self.synthesis_client,
            validator=self.validator,
            scheduler=self.scheduler,
            policy=RetryPolicy.from_config(config.synthesis.retry),
            classifier=self.classifier,
            image_size=(config.synthesis.image_width, config.synthesis.image_height),
        )
        self.compositing = AvatarCompositingStage(
            primary=self.primary_client,
            fallback=self.fallback_client,
            validator=self.validator,
            scheduler=self.scheduler,
            primary_policy=RetryPolicy.from_config(config.compositing.primary_retry),
            fallback_policy=RetryPolicy.from_config(config.compositing.fallback_retry),
            primary_strength=config.compositing.primary_strength,
            fallback_strength=config.compositing.fallback_strength,
        )
        self.ledger = AvatarStateLedger(
            max_changes=config.ledger.max_changes,
            warning_fraction=config.ledger.warning_fraction,
        )

        self._controllers: dict[str, WorkflowController] = {}

    def controller_for(self, user_id: str) -> WorkflowController:
        """Get or create the session controller of ``user_id``."""
        ensure_user_id(user_id)
        if user_id not in self._controllers:
            self._controllers[user_id] = WorkflowController(
                user_id=user_id,
                composer=self.composer,
                synthesis=self.synthesis,
                compositing=self.compositing,
                ledger=self.ledger,
                persistence=self.persistence,
                enforce_reset=self.config.ledger.enforce_reset,
            )
        return self._controllers[user_id]

    def end_session(self, user_id: str) -> bool:
        """Drop the session controller of ``user_id``; False if there was none.

        Raises:
            WorkflowStateError: a run is still generating or compositing
        """
        controller = self._controllers.get(user_id)
        if controller is None:
            return False
        if controller.state.step in BUSY_STEPS:
            raise WorkflowStateError(
                f"Cannot end session while {controller.state.step.value}"
            )
        del self._controllers[user_id]
        logger.info(f"👋 Session ended for {user_id}")
        return True

    async def register_avatar(self, user_id: str, original_ref: str) -> AvatarState:
        """Store a new pristine avatar for ``user_id``, replacing any previous one."""
        ensure_user_id(user_id)
        await self.validator.ensure_image(original_ref, role="avatar")
        avatar = self.ledger.new_avatar(user_id, original_ref)
        async with self.ledger.lock_for(user_id):
            await self.persistence.save_avatar_state(avatar)
        logger.info(f"🏠 Avatar registered for {user_id}")
        return avatar

    async def avatar_status(self, user_id: str) -> dict | None:
        """Avatar state plus the early-warning flag, for display."""
        ensure_user_id(user_id)
        avatar = await self.persistence.load_avatar_state(user_id)
        if avatar is None:
            return None
        return {
            **avatar.model_dump(),
            "remaining_changes": avatar.remaining_changes,
            "needs_reset_warning": self.ledger.needs_reset_warning(avatar),
        }

    async def reset_avatar(self, user_id: str) -> AvatarState:
        return await self.controller_for(user_id).reset_avatar()

    async def close(self):
        """Close provider clients."""
        for client in (
            self.synthesis_client,
            self.primary_client,
            self.fallback_client,
            self.text_generator,
            self.validator,
        ):
            if client is not None and hasattr(client, "close"):
                await client.close()
