"""Configuration management for the try-on orchestration engine."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ProviderEndpoint(BaseModel):
    """Connection settings for one generative provider."""
    base_url: str
    path: str = ""
    api_key: str | None = None
    timeout: float = 60.0

    @property
    def url(self) -> str:
        if not self.path:
            return self.base_url.rstrip("/")
        return f"{self.base_url.rstrip('/')}/{self.path.lstrip('/')}"


class RetryConfig(BaseModel):
    """Bounded retry settings for one stage."""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0)
    delay_growth: float = Field(default=1.0, ge=1.0)


class SynthesisConfig(BaseModel):
    """Garment image synthesis settings."""
    endpoint: ProviderEndpoint = Field(
        default_factory=lambda: ProviderEndpoint(
            base_url="https://fal.run",
            path="fal-ai/bytedance/seedream/v4/text-to-image",
            timeout=90.0,
        )
    )
    image_width: int = 512
    image_height: int = 768
    retry: RetryConfig = Field(default_factory=RetryConfig)


class CompositingConfig(BaseModel):
    """Avatar compositing (try-on) settings."""
    primary: ProviderEndpoint = Field(
        default_factory=lambda: ProviderEndpoint(
            base_url="https://api.fashn.ai",
            path="v1/run",
            timeout=120.0,
        )
    )
    fallback: ProviderEndpoint = Field(
        default_factory=lambda: ProviderEndpoint(
            base_url="https://fal.run",
            path="fal-ai/image-apps-v2/virtual-try-on",
            timeout=120.0,
        )
    )
    primary_strength: float = Field(default=0.85, gt=0.0, le=1.0)
    fallback_strength: float = Field(default=0.55, gt=0.0, le=1.0)  # Lower = more of the base avatar kept
    primary_retry: RetryConfig = Field(default_factory=lambda: RetryConfig(max_attempts=2))
    fallback_retry: RetryConfig = Field(default_factory=lambda: RetryConfig(max_attempts=1))


class TextGenerationConfig(BaseModel):
    """Optional prompt enrichment settings."""
    backend: Literal["http", "azure", "none"] = "http"
    endpoint: ProviderEndpoint = Field(
        default_factory=lambda: ProviderEndpoint(
            base_url="http://127.0.0.1:8787",
            path="api/text-generation",
            timeout=8.0,
        )
    )
    timeout: float = 8.0
    max_prompt_chars: int = 600


class LedgerConfig(BaseModel):
    """Avatar drift protection settings."""
    max_changes: int = Field(default=5, ge=1)
    warning_fraction: float = Field(default=0.8, gt=0.0, le=1.0)
    enforce_reset: bool = False  # Reset to the original before compositing once the budget is spent


class EngineConfig(BaseSettings):
    """Main engine configuration."""

    # Persistence
    persistence: Literal["memory", "file"] = "memory"
    output_dir: Path = Path("output/users")

    # Sub-configs
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    compositing: CompositingConfig = Field(default_factory=CompositingConfig)
    text_generation: TextGenerationConfig = Field(default_factory=TextGenerationConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

    class Config:
        env_file = ".env"
        env_prefix = "FITCHECKED_"
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> EngineConfig:
    """Load configuration from environment and defaults."""
    return EngineConfig()
