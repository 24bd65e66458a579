"""Claude (Anthropic) client implementation.

This module provides the ClaudeClient class for querying Anthropic's Claude API
to generate dependency rules.
"""

import logging

import anthropic
from anthropic import APIConnectionError, APIError, APITimeoutError, RateLimitError

from depscout.exceptions import MissingCredentialError, ProviderError
from depscout.inference.client import (
    InferenceOutput,
    InferenceQuery,
    LLMClient,
    LLMClientSettings,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class ClaudeClient(LLMClient):
    """Client for Anthropic's messages API.

    Example:
        >>> client = ClaudeClient(LLMClientSettings(api_key="sk-ant-..."))
        >>> output = await client.generate(InferenceQuery(
        ...     prompt="Generate rules for httpx",
        ...     system_message="You write library usage rules.",
        ... ))
    """

    provider_name = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, settings: LLMClientSettings) -> None:
        """Initialize the Claude client.

        Args:
            settings: Client settings; ``api_key`` must be set.

        Raises:
            ProviderError: If no API key is provided.
        """
        if not settings.api_key:
            raise MissingCredentialError("Anthropic API key is not configured", "anthropic")
        self._settings = settings
        self._client = anthropic.AsyncAnthropic(
            api_key=settings.api_key,
            timeout=settings.timeout,
            max_retries=0,
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def generate(self, query: InferenceQuery) -> InferenceOutput:
        """Query Claude for rule JSON.

        Raises:
            ProviderError: If the request fails or returns no text block.
        """
        model = self._settings.model or self.DEFAULT_MODEL
        kwargs = {}
        if query.system_message:
            kwargs["system"] = query.system_message

        try:
            logger.debug("Querying Claude model %s", model)
            response = await self._client.messages.create(
                model=model,
                max_tokens=self._settings.max_tokens,
                temperature=self._settings.temperature,
                messages=[{"role": "user", "content": query.prompt}],
                **kwargs,
            )
        except APITimeoutError as e:
            logger.error("Claude API timeout after %s seconds", self._settings.timeout)
            raise ProviderError(f"API request timed out: {e}", "anthropic", "timeout") from e
        except RateLimitError as e:
            logger.warning("Claude API rate limit exceeded")
            raise ProviderError(f"Rate limit exceeded: {e}", "anthropic", "rate_limit") from e
        except APIConnectionError as e:
            logger.error("Claude connection error: %s", e)
            raise ProviderError(f"Connection error: {e}", "anthropic", "network_error") from e
        except APIError as e:
            logger.error("Claude API error: %s", e.message)
            raise ProviderError(f"API error: {e.message}", "anthropic", "api_error") from e

        text_content = ""
        for block in response.content:
            if block.type == "text":
                text_content = block.text
                break

        if not text_content:
            raise ProviderError("Empty response from Claude API", "anthropic", "api_error")

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        return InferenceOutput(
            text=text_content,
            model=response.model,
            usage=TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )
