"""Rate limit handling for model provider calls.

Provider calls that fail with a rate limit are retried with exponential
backoff via tenacity; any other failure, or exhausted retries, propagates so
the fallback selector can move on to the next provider.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from depscout.config import DiscoverySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitEvent(BaseModel):
    """Details of a rate limit episode for logging.

    Attributes:
        provider: The provider that triggered the rate limit.
        timestamp: Unix timestamp of the event.
        retry_count: Number of retries attempted.
        wait_time: Total time spent in the episode, in seconds.
        resolved: Whether a retry eventually succeeded.
    """

    provider: str
    timestamp: float = Field(default_factory=time.time)
    retry_count: int = 0
    wait_time: float = 0.0
    resolved: bool = False


class RateLimitConfig(BaseModel):
    """Backoff configuration.

    Attributes:
        max_retries: Maximum number of attempts (1-10).
        initial_wait: Multiplier for the first backoff, in seconds.
        max_wait: Cap on any single backoff, in seconds.
        exponential_base: Base for exponential backoff calculation.
    """

    max_retries: int = Field(default=3, ge=1, le=10)
    initial_wait: float = Field(default=1.0, ge=0.001, le=60.0)
    max_wait: float = Field(default=30.0, ge=0.01, le=300.0)
    exponential_base: float = Field(default=2.0, ge=1.5, le=4.0)

    @classmethod
    def from_settings(cls, settings: DiscoverySettings) -> "RateLimitConfig":
        return cls(
            max_retries=settings.rate_limit_max_retries,
            initial_wait=settings.rate_limit_initial_wait,
            max_wait=settings.rate_limit_max_wait,
        )


def is_rate_limit_exception(error: BaseException) -> bool:
    """Check if an exception indicates a rate limit.

    ``ProviderError`` carries a classified ``reason``; for anything else the
    type name and message are inspected.

    Args:
        error: The exception to check.

    Returns:
        True if this appears to be a rate limit error.
    """
    reason = getattr(error, "reason", None)
    if isinstance(reason, str):
        return reason == "rate_limit"

    error_type = type(error).__name__.lower()
    if "ratelimit" in error_type or "rate_limit" in error_type:
        return True

    error_msg = str(error).lower()
    rate_limit_phrases = [
        "rate limit",
        "rate_limit",
        "too many requests",
        "429",
        "quota exceeded",
    ]
    return any(phrase in error_msg for phrase in rate_limit_phrases)


class RateLimitHandler:
    """Retries async provider calls on rate limits with exponential backoff.

    Example:
        >>> handler = RateLimitHandler(provider="openai")
        >>> output = await handler.execute_with_retry(client.generate, query)
    """

    def __init__(self, provider: str, config: RateLimitConfig | None = None) -> None:
        """Initialize the rate limit handler.

        Args:
            provider: Name of the provider (for logging).
            config: Backoff configuration. Uses defaults if not provided.
        """
        self._provider = provider
        self._config = config or RateLimitConfig()
        self._events: list[RateLimitEvent] = []

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def events(self) -> list[RateLimitEvent]:
        return list(self._events)

    async def execute_with_retry(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Await ``fn`` and retry while it fails with a rate limit.

        Args:
            fn: Coroutine function to call (typically ``client.generate``).
            *args: Positional arguments to pass to fn.
            **kwargs: Keyword arguments to pass to fn.

        Returns:
            The result from fn.

        Raises:
            Exception: The last error from fn once retries are exhausted, or
                any non-rate-limit error immediately.
        """
        event = RateLimitEvent(provider=self._provider)
        start_time = time.monotonic()

        def before_sleep(retry_state: RetryCallState) -> None:
            wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
            event.retry_count = retry_state.attempt_number
            logger.warning(
                "Rate limit hit for %s, attempt %d/%d, waiting %.1fs",
                self._provider,
                retry_state.attempt_number,
                self._config.max_retries,
                wait_time,
            )

        retryer = AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries),
            wait=wait_exponential(
                multiplier=self._config.initial_wait,
                max=self._config.max_wait,
                exp_base=self._config.exponential_base,
            ),
            retry=retry_if_exception(is_rate_limit_exception),
            before_sleep=before_sleep,
            reraise=True,
        )

        try:
            result = await retryer(fn, *args, **kwargs)
        except Exception:
            if event.retry_count > 0:
                event.wait_time = time.monotonic() - start_time
                self._log_event(event)
            raise

        if event.retry_count > 0:
            event.wait_time = time.monotonic() - start_time
            event.resolved = True
            self._log_event(event)
        return result

    def _log_event(self, event: RateLimitEvent) -> None:
        self._events.append(event)
        log_msg = (
            f"Rate limit event: provider={event.provider}, "
            f"retries={event.retry_count}, "
            f"wait_time={event.wait_time:.2f}s, "
            f"resolved={event.resolved}"
        )
        if event.resolved:
            logger.info(log_msg)
        else:
            logger.error(log_msg)
