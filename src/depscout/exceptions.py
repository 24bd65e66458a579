"""Exception hierarchy for depscout.

Probe and provider failures are normally converted into structured results
before they reach the pipeline; these types exist so that each layer can raise
something specific and callers can classify what went wrong.
"""

from __future__ import annotations


class DepscoutError(Exception):
    """Base class for all depscout errors."""


class ConfigError(DepscoutError):
    """Raised when a discovery configuration override is invalid."""


class NetworkError(DepscoutError):
    """Raised when an HTTP call fails (timeout, non-2xx, connection refused).

    Attributes:
        url: The URL that was requested.
        status_code: HTTP status, if a response was received.
    """

    def __init__(self, message: str, url: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ValidationFailedError(DepscoutError):
    """Raised when data (manifest, model output, rule JSON) fails validation."""


class ProviderError(DepscoutError):
    """Raised when a generative-model provider call fails.

    Attributes:
        provider: Name of the provider that failed.
        reason: Classified failure reason (see ``classify_error``).
    """

    def __init__(self, message: str, provider: str, reason: str = "unknown") -> None:
        super().__init__(message)
        self.provider = provider
        self.reason = reason


class MissingCredentialError(ProviderError):
    """Raised when a provider client is built without a configured credential."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message, provider, "no_api_key")


class ManifestScanError(DepscoutError):
    """Raised when a project directory cannot be scanned at all."""


class CacheWriteError(DepscoutError):
    """Raised when a cache artifact cannot be written."""


class SessionStateError(DepscoutError):
    """Raised on an illegal discovery session state transition."""
