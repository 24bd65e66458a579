"""Provider fallback selection for rule inference.

Providers are tried in a fixed priority order. A provider without a credential
is skipped without any network call; a provider whose call fails, or whose
output does not validate, is recorded and the next one is tried. The first
provider that returns valid rules wins.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field

from depscout.config import DiscoverySettings, get_settings
from depscout.exceptions import MissingCredentialError, ValidationFailedError
from depscout.inference.client import (
    InferenceQuery,
    LLMClient,
    LLMClientSettings,
    TokenUsage,
)
from depscout.inference.providers import ClaudeClient, OllamaClient, OpenAIClient
from depscout.inference.rate_limiter import RateLimitConfig, RateLimitHandler
from depscout.inference.response_parser import RuleResponseParser
from depscout.models import CanonicalRule
from depscout.secret_store import SecretStore

logger = logging.getLogger(__name__)


class FailureReason:
    """Constants for provider failure reasons."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    NETWORK_ERROR = "network_error"
    NO_API_KEY = "no_api_key"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN = "unknown"


def classify_error(error: Exception) -> str:
    """Classify an exception into a failure reason.

    Args:
        error: The exception that occurred.

    Returns:
        A FailureReason constant string.
    """
    reason = getattr(error, "reason", None)
    if isinstance(reason, str) and reason != FailureReason.UNKNOWN:
        return reason

    if isinstance(error, ValidationFailedError):
        return FailureReason.VALIDATION_ERROR
    if isinstance(error, MissingCredentialError):
        return FailureReason.NO_API_KEY

    error_type = type(error).__name__.lower()
    error_msg = str(error).lower()

    # Check for timeout (handles "timeout", "timed out", "TimeoutError", etc.)
    if "timeout" in error_type or "timeout" in error_msg or "timed out" in error_msg:
        return FailureReason.TIMEOUT

    if "ratelimit" in error_type or "rate limit" in error_msg or "rate_limit" in error_msg:
        return FailureReason.RATE_LIMIT

    if any(
        term in error_type or term in error_msg
        for term in ["connection", "network", "socket", "unreachable", "dns"]
    ):
        return FailureReason.NETWORK_ERROR

    if any(
        term in error_msg
        for term in ["api key", "api_key", "apikey", "authentication", "unauthorized"]
    ):
        return FailureReason.NO_API_KEY

    if "validation" in error_type or "validation" in error_msg:
        return FailureReason.VALIDATION_ERROR

    if "api" in error_type or "api" in error_msg:
        return FailureReason.API_ERROR

    return FailureReason.UNKNOWN


ClientFactory = Callable[[LLMClientSettings], LLMClient]


@dataclass(frozen=True)
class ProviderSpec:
    """One entry in the fallback chain.

    Attributes:
        name: Provider name, also the secret store key.
        model: Model identifier to request.
        factory: Builds a client from settings carrying the credential.
    """

    name: str
    model: str
    factory: ClientFactory


class ProviderAttempt(BaseModel):
    provider: str
    reason: str
    error: str


class FallbackOutcome(BaseModel):
    """Result of walking the provider chain.

    Attributes:
        success: Whether some provider returned valid rules.
        provider: The provider that succeeded (None on failure).
        model: The model that answered.
        rules: Validated canonical rules.
        usage: Token counters from the successful call.
        attempts: Failures recorded for providers that were tried.
        skipped: Providers skipped for lack of a credential.
    """

    success: bool
    provider: str | None = None
    model: str | None = None
    rules: list[CanonicalRule] = Field(default_factory=list)
    usage: TokenUsage | None = None
    attempts: list[ProviderAttempt] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def error(self) -> str | None:
        if self.success:
            return None
        if not self.attempts:
            return "No AI provider credentials configured"
        return "; ".join(f"{a.provider}: {a.error}" for a in self.attempts)


def default_providers(settings: DiscoverySettings) -> list[ProviderSpec]:
    """The standard chain: openai, then anthropic, then ollama."""
    return [
        ProviderSpec("openai", settings.openai_model, OpenAIClient),
        ProviderSpec("anthropic", settings.anthropic_model, ClaudeClient),
        ProviderSpec("ollama", settings.ollama_model, OllamaClient),
    ]


@dataclass
class ProviderFallbackSelector:
    """Tries providers in order until one returns valid rules.

    Example:
        >>> selector = ProviderFallbackSelector(secret_store=SecretStore())
        >>> outcome = await selector.generate(query, project_path="/repo")
        >>> outcome.provider
        'anthropic'
    """

    secret_store: SecretStore
    settings: DiscoverySettings = field(default_factory=get_settings)
    providers: list[ProviderSpec] | None = None
    parser: RuleResponseParser = field(default_factory=RuleResponseParser)
    rate_limit_config: RateLimitConfig | None = None

    def __post_init__(self) -> None:
        if self.providers is None:
            self.providers = default_providers(self.settings)
        if self.rate_limit_config is None:
            self.rate_limit_config = RateLimitConfig.from_settings(self.settings)

    @property
    def provider_names(self) -> list[str]:
        return [spec.name for spec in self.providers or []]

    async def generate(
        self, query: InferenceQuery, project_path: str | Path | None = None
    ) -> FallbackOutcome:
        """Walk the provider chain for one query.

        Never raises for provider failures; they are recorded in the outcome.

        Args:
            query: The prompt to send.
            project_path: Project whose secrets are consulted first.

        Returns:
            FallbackOutcome describing the winning provider or every failure.
        """
        attempts: list[ProviderAttempt] = []
        skipped: list[str] = []

        for spec in self.providers or []:
            credential = self.secret_store.get_secret(spec.name, project_path)
            if not credential:
                logger.debug("Skipping provider %s: no credential configured", spec.name)
                skipped.append(spec.name)
                continue

            client_settings = LLMClientSettings.from_settings(
                self.settings, model=spec.model, api_key=credential
            )
            handler = RateLimitHandler(spec.name, self.rate_limit_config)
            client: LLMClient | None = None
            try:
                client = spec.factory(client_settings)
                output = await handler.execute_with_retry(client.generate, query)
                rules = self.parser.parse(output.text)
            except Exception as e:
                reason = classify_error(e)
                logger.warning("Provider %s failed (%s): %s", spec.name, reason, e)
                attempts.append(ProviderAttempt(provider=spec.name, reason=reason, error=str(e)))
                continue
            finally:
                if client is not None:
                    await client.aclose()

            logger.info(
                "Provider %s generated %d rule(s) with %s (%d tokens)",
                spec.name,
                len(rules),
                output.model,
                output.usage.total_tokens,
            )
            return FallbackOutcome(
                success=True,
                provider=spec.name,
                model=output.model,
                rules=rules,
                usage=output.usage,
                attempts=attempts,
                skipped=skipped,
            )

        return FallbackOutcome(success=False, attempts=attempts, skipped=skipped)
