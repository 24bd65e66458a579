"""Configuration loading for discovery and inference settings.

Process-wide settings (API keys, model names, timeouts) come from environment
variables and .env files via pydantic-settings. Per-run knobs (concurrency,
confidence threshold, ...) live in ``DiscoveryConfig`` and can be overridden
for each discovery session. API keys are never logged.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from depscout.exceptions import ConfigError

logger = logging.getLogger(__name__)


class DiscoverySettings(BaseSettings):
    """Process-wide settings for discovery, loaded from the environment.

    Environment Variables:
        OPENAI_API_KEY: OpenAI key (enables the openai provider)
        ANTHROPIC_API_KEY: Anthropic key (enables the anthropic provider)
        OLLAMA_HOST: Ollama server URL (enables the ollama provider)
        GITHUB_TOKEN: Optional token for the GitHub contents API
        OPENAI_MODEL / ANTHROPIC_MODEL / OLLAMA_MODEL: Model identifiers
        LLM_MAX_TOKENS: Maximum tokens in a model response (default: 4096)
        LLM_TEMPERATURE: Response randomness 0.0-2.0 (default: 0.2)
        LLM_TIMEOUT: Model request timeout in seconds (default: 60.0)
        HTTP_TIMEOUT: Registry/GitHub request timeout in seconds (default: 10.0)
        LLMS_TXT_TIMEOUT: Homepage llms.txt fetch timeout (default: 5.0)
        DOC_EXCERPT_CHARS: Documentation excerpt budget per prompt (default: 8000)
        DISCOVERY_CACHE_DIR: Cache directory relative to the project root

    Example:
        >>> settings = DiscoverySettings()  # Loads from environment
        >>> settings = DiscoverySettings(_env_file=".env")
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: SecretStr | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: SecretStr | None = Field(default=None, description="Anthropic API key")
    github_token: SecretStr | None = Field(default=None, description="GitHub API token")
    ollama_host: str | None = Field(default=None, description="Ollama server URL")

    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", description="Claude model")
    ollama_model: str = Field(default="llama3.1", description="Ollama model")

    llm_max_tokens: int = Field(default=4096, ge=1, le=100000, description="Max response tokens")
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Response randomness")
    llm_timeout: float = Field(default=60.0, gt=0, description="Model request timeout (s)")

    http_timeout: float = Field(default=10.0, gt=0, description="Registry/GitHub timeout (s)")
    llms_txt_timeout: float = Field(default=5.0, gt=0, le=5.0, description="llms.txt timeout (s)")
    doc_excerpt_chars: int = Field(default=8000, ge=0, description="Prompt excerpt budget")

    rate_limit_max_retries: int = Field(default=3, ge=1, le=10, description="Retry attempts")
    rate_limit_initial_wait: float = Field(default=1.0, ge=0.001, le=60.0, description="First wait")
    rate_limit_max_wait: float = Field(default=30.0, ge=0.01, le=300.0, description="Max wait")

    discovery_cache_dir: str = Field(
        default=".vibe/dependencies",
        description="Cache directory, relative to the analyzed project",
    )

    def __repr__(self) -> str:
        """Safe representation that never exposes secrets."""
        return (
            f"DiscoverySettings("
            f"openai_model={self.openai_model}, "
            f"anthropic_model={self.anthropic_model}, "
            f"ollama_host={self.ollama_host or 'not set'}, "
            f"llm_timeout={self.llm_timeout}s, "
            f"http_timeout={self.http_timeout}s, "
            f"openai_key={'*****' if self.openai_api_key else 'not set'}, "
            f"anthropic_key={'*****' if self.anthropic_api_key else 'not set'}, "
            f"github_token={'*****' if self.github_token else 'not set'}"
            f")"
        )


class DiscoveryConfig(BaseModel):
    """Per-session discovery configuration.

    Attributes:
        max_concurrency: Upper bound on dependencies discovered at once.
        cache_enabled: Whether results are written to the project cache.
        inference_enabled: Whether AI inference may run when direct discovery fails.
        min_confidence: Rules below this confidence are dropped before caching.
        max_rules_per_package: Multiplied by 10, caps the converted rule set.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_concurrency: int = Field(default=5, ge=1)
    cache_enabled: bool = Field(default=True)
    inference_enabled: bool = Field(default=True)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_rules_per_package: int = Field(default=10, ge=1)

    @property
    def max_converted_rules(self) -> int:
        """Hard cap on converted rules per session."""
        return self.max_rules_per_package * 10

    def merged(self, overrides: dict[str, Any] | None) -> DiscoveryConfig:
        """Return a new config with ``overrides`` applied on top of this one.

        Args:
            overrides: Partial config values; ``None`` values are ignored.

        Returns:
            The merged configuration.

        Raises:
            ConfigError: If an override key is unknown or a value is invalid.
        """
        if not overrides:
            return self
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return DiscoveryConfig.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid discovery config: {e}") from e


@lru_cache
def get_settings() -> DiscoverySettings:
    """Get cached settings singleton.

    To reload, call ``get_settings.cache_clear()`` first.
    """
    settings = DiscoverySettings()
    logger.info("Loaded discovery settings: %s", settings)
    return settings
