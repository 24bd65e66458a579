"""Abstract model client interface for rule inference.

This module defines the base interface that all generative-model providers
must implement, along with Pydantic models for request/response data.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from depscout.config import DiscoverySettings


class LLMClientSettings(BaseModel):
    """Configuration settings for a model client.

    Attributes:
        api_key: Credential for the provider (the server URL for local models).
        model: Model identifier to use for queries.
        max_tokens: Maximum tokens in the response.
        temperature: Response randomness (0.0 to 2.0).
        timeout: Request timeout in seconds.
    """

    api_key: str | None = Field(default=None, description="Provider credential")
    model: str = Field(default="", description="Model identifier")
    max_tokens: int = Field(default=4096, ge=1, le=100000, description="Max response tokens")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Response randomness")
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")

    @classmethod
    def from_settings(
        cls, settings: DiscoverySettings, model: str, api_key: str | None
    ) -> "LLMClientSettings":
        return cls(
            api_key=api_key,
            model=model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
        )


class InferenceQuery(BaseModel):
    """Prompt to send to a model.

    Attributes:
        prompt: The user prompt.
        system_message: Optional system message that sets model behavior.
    """

    prompt: str = Field(description="The formatted prompt string")
    system_message: str | None = Field(default=None, description="System message for the model")


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class InferenceOutput(BaseModel):
    """Raw text returned by a provider, before validation.

    Attributes:
        text: The model's text response.
        model: The model that actually answered.
        usage: Token counters reported by the provider.
    """

    text: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class LLMClient(ABC):
    """Abstract base class for model provider clients.

    All providers (OpenAI, Claude, Ollama) implement this interface so the
    fallback selector can treat them uniformly.

    Example:
        class ClaudeClient(LLMClient):
            async def generate(self, query: InferenceQuery) -> InferenceOutput:
                # Implementation using anthropic SDK
                ...
    """

    provider_name: str = ""

    @abstractmethod
    async def generate(self, query: InferenceQuery) -> InferenceOutput:
        """Send a query and return the model's raw text output.

        Args:
            query: The query containing prompt and system message.

        Returns:
            InferenceOutput with text, model and token usage.

        Raises:
            NotImplementedError: If not overridden by subclass.
            ProviderError: If the call fails (timeout, rate limit, etc.).
        """
        raise NotImplementedError("Subclasses must implement generate()")

    async def aclose(self) -> None:
        """Release network resources held by the client. No-op by default."""
        return None
