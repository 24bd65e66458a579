"""Ollama local model client implementation.

Ollama runs models locally, so the "credential" for this provider is the
server URL: the provider is only used when a host is explicitly configured.
"""

import logging
from typing import Any

import httpx

from depscout.exceptions import MissingCredentialError, ProviderError
from depscout.inference.client import (
    InferenceOutput,
    InferenceQuery,
    LLMClient,
    LLMClientSettings,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class OllamaClient(LLMClient):
    """Client for Ollama's ``/api/generate`` REST endpoint.

    Example:
        >>> client = OllamaClient(LLMClientSettings(api_key="http://localhost:11434"))
        >>> output = await client.generate(InferenceQuery(prompt="..."))
    """

    provider_name = "ollama"
    DEFAULT_MODEL = "llama3.1"

    def __init__(
        self, settings: LLMClientSettings, http_client: httpx.AsyncClient | None = None
    ) -> None:
        """Initialize the Ollama client.

        Args:
            settings: Client settings; ``api_key`` holds the server URL.
            http_client: Optional shared client (mainly for tests).

        Raises:
            ProviderError: If no host is configured.
        """
        if not settings.api_key:
            raise MissingCredentialError("Ollama host is not configured", "ollama")
        self._settings = settings
        self._host = settings.api_key.rstrip("/")
        self._http_client = http_client

    async def generate(self, query: InferenceQuery) -> InferenceOutput:
        """Query Ollama in JSON format mode.

        Raises:
            ProviderError: On connection failure, timeout or HTTP error.
        """
        model = self._settings.model or self.DEFAULT_MODEL
        payload = {
            "model": model,
            "prompt": query.prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self._settings.temperature,
                "num_predict": self._settings.max_tokens,
            },
        }
        if query.system_message:
            payload["system"] = query.system_message

        try:
            logger.debug("Querying Ollama model %s at %s", model, self._host)
            if self._http_client is not None:
                response = await self._http_client.post(
                    f"{self._host}/api/generate", json=payload, timeout=self._settings.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._settings.timeout) as client:
                    response = await client.post(f"{self._host}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            logger.error("Failed to connect to Ollama at %s: %s", self._host, e)
            raise ProviderError(
                f"Cannot connect to Ollama at {self._host}. Ensure Ollama is running.",
                "ollama",
                "network_error",
            ) from e
        except httpx.TimeoutException as e:
            logger.error("Ollama request timed out after %s seconds", self._settings.timeout)
            raise ProviderError(f"Request timed out: {e}", "ollama", "timeout") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Ollama HTTP error: %s", status)
            reason = "rate_limit" if status == 429 else "api_error"
            raise ProviderError(f"HTTP error: {status}", "ollama", reason) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Unexpected Ollama error: {e}", "ollama", "api_error") from e

        return self._parse_response(data, model)

    def _parse_response(self, data: dict[str, Any], model: str) -> InferenceOutput:
        text = data.get("response", "")
        if not text:
            raise ProviderError("Empty response from Ollama API", "ollama", "api_error")
        prompt_tokens = data.get("prompt_eval_count", 0) or 0
        completion_tokens = data.get("eval_count", 0) or 0
        return InferenceOutput(
            text=text,
            model=data.get("model", model),
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
