"""OpenAI client implementation.

This module provides the OpenAIClient class for querying OpenAI's API
to generate dependency rules.
"""

import logging

import openai
from openai import APIConnectionError, APIError, APITimeoutError, RateLimitError

from depscout.exceptions import MissingCredentialError, ProviderError
from depscout.inference.client import (
    InferenceOutput,
    InferenceQuery,
    LLMClient,
    LLMClientSettings,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class OpenAIClient(LLMClient):
    """Client for OpenAI's chat completions API.

    Retries are left to the caller's rate-limit handler, so the SDK's own
    retry loop is disabled.

    Example:
        >>> client = OpenAIClient(LLMClientSettings(api_key="sk-...", model="gpt-4o-mini"))
        >>> output = await client.generate(InferenceQuery(prompt="..."))
        >>> output.usage.total_tokens
        1234
    """

    provider_name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, settings: LLMClientSettings) -> None:
        """Initialize the OpenAI client.

        Args:
            settings: Client settings; ``api_key`` must be set.

        Raises:
            ProviderError: If no API key is provided.
        """
        if not settings.api_key:
            raise MissingCredentialError("OpenAI API key is not configured", "openai")
        self._settings = settings
        self._client = openai.AsyncOpenAI(
            api_key=settings.api_key,
            timeout=settings.timeout,
            max_retries=0,
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def generate(self, query: InferenceQuery) -> InferenceOutput:
        """Query OpenAI with JSON-mode output.

        Raises:
            ProviderError: If the request fails or returns no content.
        """
        model = self._settings.model or self.DEFAULT_MODEL
        messages = []
        if query.system_message:
            messages.append({"role": "system", "content": query.system_message})
        messages.append({"role": "user", "content": query.prompt})

        try:
            logger.debug("Querying OpenAI model %s", model)
            response = await self._client.chat.completions.create(
                model=model,
                max_tokens=self._settings.max_tokens,
                temperature=self._settings.temperature,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except APITimeoutError as e:
            logger.error("OpenAI API timeout after %s seconds", self._settings.timeout)
            raise ProviderError(f"API request timed out: {e}", "openai", "timeout") from e
        except RateLimitError as e:
            logger.warning("OpenAI API rate limit exceeded")
            raise ProviderError(f"Rate limit exceeded: {e}", "openai", "rate_limit") from e
        except APIConnectionError as e:
            logger.error("OpenAI connection error: %s", e)
            raise ProviderError(f"Connection error: {e}", "openai", "network_error") from e
        except APIError as e:
            logger.error("OpenAI API error: %s", e.message)
            raise ProviderError(f"API error: {e.message}", "openai", "api_error") from e

        if not response.choices or not response.choices[0].message.content:
            raise ProviderError("Empty response from OpenAI API", "openai", "api_error")

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return InferenceOutput(
            text=response.choices[0].message.content,
            model=response.model,
            usage=usage,
        )
