"""Tests for the OpenAI, Claude and Ollama provider clients."""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from conftest import mock_client

from depscout.exceptions import MissingCredentialError, ProviderError
from depscout.inference import InferenceQuery, LLMClientSettings
from depscout.inference.providers import ClaudeClient, OllamaClient, OpenAIClient

QUERY = InferenceQuery(prompt="Generate rules for httpx", system_message="JSON only")
RULES_JSON = '{"rules": []}'
_REQUEST = httpx.Request("POST", "https://api.example.com")


def _settings(api_key: str | None = "test-key", model: str = "") -> LLMClientSettings:
    return LLMClientSettings(api_key=api_key, model=model, max_tokens=500, timeout=5.0)


@pytest.fixture
def openai_response() -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=RULES_JSON))]
    response.model = "gpt-4o-mini"
    response.usage = MagicMock(prompt_tokens=100, completion_tokens=50, total_tokens=150)
    return response


@pytest.fixture
def anthropic_response() -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(type="text", text=RULES_JSON)]
    response.model = "claude-sonnet-4-20250514"
    response.usage = MagicMock(input_tokens=100, output_tokens=50)
    return response


class TestOpenAIClient:
    """Tests for OpenAIClient."""

    def test_missing_key_raises(self) -> None:
        """A client cannot be built without a key."""
        with pytest.raises(MissingCredentialError) as exc_info:
            OpenAIClient(_settings(api_key=None))
        assert exc_info.value.reason == "no_api_key"

    def test_sdk_retries_disabled(self) -> None:
        """The SDK client is created with its own retries turned off."""
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            OpenAIClient(_settings())
        assert mock_openai.call_args.kwargs["max_retries"] == 0

    @pytest.mark.asyncio
    async def test_aclose_closes_sdk_client(self) -> None:
        """aclose releases the SDK client's connection pool."""
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            mock_openai.return_value.close = AsyncMock()
            client = OpenAIClient(_settings())
            await client.aclose()
        mock_openai.return_value.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate(self, openai_response: MagicMock) -> None:
        """generate sends system and user messages in JSON mode."""
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            create = mock_openai.return_value.chat.completions.create = AsyncMock(
                return_value=openai_response
            )
            output = await OpenAIClient(_settings(model="gpt-4o")).generate(QUERY)

        assert output.text == RULES_JSON
        assert output.usage.total_tokens == 150
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "JSON only"}

    @pytest.mark.asyncio
    async def test_rate_limit_is_classified(self) -> None:
        """SDK rate limit errors become ProviderError(rate_limit)."""
        error = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=_REQUEST), body=None
        )
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create = AsyncMock(side_effect=error)
            with pytest.raises(ProviderError) as exc_info:
                await OpenAIClient(_settings()).generate(QUERY)
        assert exc_info.value.reason == "rate_limit"

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self) -> None:
        """SDK timeouts become ProviderError(timeout)."""
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create = AsyncMock(
                side_effect=openai.APITimeoutError(request=_REQUEST)
            )
            with pytest.raises(ProviderError) as exc_info:
                await OpenAIClient(_settings()).generate(QUERY)
        assert exc_info.value.reason == "timeout"

    @pytest.mark.asyncio
    async def test_empty_content_raises(self, openai_response: MagicMock) -> None:
        """An empty completion is an api_error."""
        openai_response.choices = []
        with patch("depscout.inference.providers.openai.openai.AsyncOpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create = AsyncMock(
                return_value=openai_response
            )
            with pytest.raises(ProviderError) as exc_info:
                await OpenAIClient(_settings()).generate(QUERY)
        assert exc_info.value.reason == "api_error"


class TestClaudeClient:
    """Tests for ClaudeClient."""

    def test_missing_key_raises(self) -> None:
        """A client cannot be built without a key."""
        with pytest.raises(MissingCredentialError) as exc_info:
            ClaudeClient(_settings(api_key=""))
        assert exc_info.value.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_aclose_closes_sdk_client(self) -> None:
        """aclose releases the SDK client's connection pool."""
        with patch("depscout.inference.providers.claude.anthropic.AsyncAnthropic") as mock_anthropic:
            mock_anthropic.return_value.close = AsyncMock()
            client = ClaudeClient(_settings())
            await client.aclose()
        mock_anthropic.return_value.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate(self, anthropic_response: MagicMock) -> None:
        """generate passes the system message separately and sums usage."""
        with patch("depscout.inference.providers.claude.anthropic.AsyncAnthropic") as mock_cls:
            create = mock_cls.return_value.messages.create = AsyncMock(
                return_value=anthropic_response
            )
            output = await ClaudeClient(_settings()).generate(QUERY)

        assert output.text == RULES_JSON
        assert output.model == "claude-sonnet-4-20250514"
        assert output.usage.total_tokens == 150
        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "JSON only"
        assert kwargs["model"] == ClaudeClient.DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_connection_error_is_classified(self) -> None:
        """SDK connection errors become ProviderError(network_error)."""
        with patch("depscout.inference.providers.claude.anthropic.AsyncAnthropic") as mock_cls:
            mock_cls.return_value.messages.create = AsyncMock(
                side_effect=anthropic.APIConnectionError(request=_REQUEST)
            )
            with pytest.raises(ProviderError) as exc_info:
                await ClaudeClient(_settings()).generate(QUERY)
        assert exc_info.value.reason == "network_error"

    @pytest.mark.asyncio
    async def test_no_text_block_raises(self, anthropic_response: MagicMock) -> None:
        """A response without a text block is an api_error."""
        anthropic_response.content = [MagicMock(type="tool_use")]
        with patch("depscout.inference.providers.claude.anthropic.AsyncAnthropic") as mock_cls:
            mock_cls.return_value.messages.create = AsyncMock(return_value=anthropic_response)
            with pytest.raises(ProviderError, match="Empty response"):
                await ClaudeClient(_settings()).generate(QUERY)


class TestOllamaClient:
    """Tests for OllamaClient."""

    def test_missing_host_raises(self) -> None:
        """The host URL is required."""
        with pytest.raises(MissingCredentialError) as exc_info:
            OllamaClient(_settings(api_key=None))
        assert exc_info.value.reason == "no_api_key"

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """generate posts a JSON-format request to /api/generate."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "model": "llama3.1",
                    "response": RULES_JSON,
                    "prompt_eval_count": 20,
                    "eval_count": 10,
                },
            )

        async with mock_client(handler) as http:
            client = OllamaClient(_settings(api_key="http://localhost:11434/"), http_client=http)
            output = await client.generate(QUERY)

        assert str(seen[0].url) == "http://localhost:11434/api/generate"
        assert b'"format":"json"' in seen[0].content.replace(b" ", b"")
        assert output.text == RULES_JSON
        assert output.usage.total_tokens == 30

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limit(self) -> None:
        """HTTP 429 from Ollama is a rate limit."""
        async with mock_client(lambda r: httpx.Response(429)) as http:
            client = OllamaClient(_settings(api_key="http://localhost:11434"), http_client=http)
            with pytest.raises(ProviderError) as exc_info:
                await client.generate(QUERY)
        assert exc_info.value.reason == "rate_limit"

    @pytest.mark.asyncio
    async def test_connection_refused_is_network_error(self) -> None:
        """An unreachable server is a network_error."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with mock_client(handler) as http:
            client = OllamaClient(_settings(api_key="http://localhost:11434"), http_client=http)
            with pytest.raises(ProviderError) as exc_info:
                await client.generate(QUERY)
        assert exc_info.value.reason == "network_error"
