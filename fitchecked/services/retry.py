"""Bounded retry with backoff, shared by the generation stages."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..config import RetryConfig
from ..errors import ExhaustedRetriesError, ProviderError
from ..models import AttemptOutcome, ProviderAttempt

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a provider call."""
    max_attempts: int = 3
    base_delay: float = 1.0
    delay_growth: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            delay_growth=config.delay_growth,
        )

    def delay_for(self, attempt: int) -> float:
        """Wait before retrying after failed attempt ``attempt`` (1-based).

        With ``delay_growth == 1`` this is ``base_delay * attempt``.
        """
        return self.base_delay * attempt * self.delay_growth ** (attempt - 1)


def is_transient(error: Exception) -> bool:
    """Only provider failures flagged transient are worth another attempt."""
    return isinstance(error, ProviderError) and error.transient


class RetryScheduler:
    """Runs an async action under a RetryPolicy.

    Waiting uses ``asyncio.sleep`` so only the calling workflow is suspended.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._sleep = sleep

    async def execute(
        self,
        action: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        provider: str = "provider",
    ) -> T:
        """Run ``action`` until it succeeds or the policy gives up.

        Fatal errors propagate unchanged after the first failure. When every
        allowed attempt fails transiently, ExhaustedRetriesError wraps the last
        error together with the attempt log.
        """
        attempts: list[ProviderAttempt] = []

        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = await action()
            except Exception as e:
                transient = is_transient(e)
                attempts.append(ProviderAttempt(
                    provider=provider,
                    attempt=attempt,
                    outcome=AttemptOutcome.TRANSIENT_ERROR if transient else AttemptOutcome.FATAL_ERROR,
                    error_detail=str(e),
                ))
                if not transient:
                    raise

                if attempt == policy.max_attempts:
                    logger.error(f"❌ {provider} failed {attempt} time(s), giving up: {e}")
                    raise ExhaustedRetriesError(e, attempts) from e

                delay = policy.delay_for(attempt)
                logger.warning(
                    f"⚠️ {provider} attempt {attempt}/{policy.max_attempts} failed: {e} "
                    f"- retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            attempts.append(ProviderAttempt(
                provider=provider, attempt=attempt, outcome=AttemptOutcome.SUCCESS,
            ))
            if attempt > 1:
                logger.info(f"✅ {provider} succeeded on attempt {attempt}")
            return result
