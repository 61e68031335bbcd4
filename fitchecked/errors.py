"""Error taxonomy for the try-on engine."""

TRANSIENT_STATUS_CODES = {408, 429}


class TryOnError(Exception):
    """Base class for all engine errors."""


class ValidationError(TryOnError):
    """Invalid or unreachable input. Never retried with the same input."""

    def __init__(self, message: str, role: str | None = None):
        super().__init__(message)
        self.role = role


class ProviderError(TryOnError):
    """A generative provider failed or returned nothing usable."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        status_code: int | None = None,
        detail: str | None = None,
        transient: bool | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        self._transient = transient

    @property
    def transient(self) -> bool:
        """Whether retrying the same request could succeed."""
        if self._transient is not None:
            return self._transient
        if self.status_code is None:
            return True  # Network-level failure
        return self.status_code >= 500 or self.status_code in TRANSIENT_STATUS_CODES


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its timeout."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message, provider=provider, transient=True)


class ExhaustedRetriesError(TryOnError):
    """Every attempt allowed by a retry policy failed."""

    def __init__(self, last_error: Exception, attempts: list | None = None):
        self.last_error = last_error
        self.attempts = attempts or []
        super().__init__(
            f"Gave up after {len(self.attempts)} attempt(s): {last_error}"
        )


class CompositingFailedError(ProviderError):
    """Both the primary and the fallback compositing providers failed."""

    def __init__(self, primary_error: Exception, fallback_error: Exception):
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            f"Primary compositing failed ({primary_error}); "
            f"fallback compositing failed ({fallback_error})",
            provider="compositing",
            transient=False,
        )


class WorkflowStateError(TryOnError):
    """A trigger was issued in a state that does not allow it."""
