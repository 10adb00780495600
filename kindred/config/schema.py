"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MemoryConfig(BaseModel):
    """Compaction policy and storage location."""
    data_dir: str = "~/.kindred"
    threshold: int = Field(default=50, ge=1)  # New messages needed before a compaction cycle
    max_context_summaries: int = Field(default=3, ge=0)  # Summaries rendered into prompt context
    backfill_batch_size: int = Field(default=15, ge=1)


class SummarizerConfig(BaseModel):
    """Completion settings used when summarizing a message window."""
    model: str = "groq/llama-3.1-8b-instant"
    temperature: float = 0.3
    max_tokens: int = 512
    timeout_s: float = 30.0  # Bound on the completion call; timeout degrades to fallback summary


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """Configuration for LLM providers."""
    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)


class Config(BaseSettings):
    """Root configuration for kindred."""
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)

    model_config = SettingsConfigDict(
        env_prefix="KINDRED_",
        env_nested_delimiter="__",
    )

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.memory.data_dir).expanduser()

    def get_api_key(self) -> str | None:
        """Get the API key for the provider named by the summarizer model prefix."""
        model = self.summarizer.model
        provider_name = model.split("/")[0] if "/" in model else "groq"
        provider = getattr(self.providers, provider_name, None)
        if provider and provider.api_key:
            return provider.api_key
        return None

    def get_api_base(self) -> str | None:
        """Get API base URL if a provider has a custom base configured."""
        for provider in [self.providers.groq, self.providers.anthropic, self.providers.openai]:
            if provider.api_base:
                return provider.api_base
        return None
