"""Rule inference from generative models, with provider fallback."""

from depscout.inference.client import (
    InferenceOutput,
    InferenceQuery,
    LLMClient,
    LLMClientSettings,
    TokenUsage,
)
from depscout.inference.engine import InferenceEngine, InferenceResult
from depscout.inference.fallback import (
    FailureReason,
    FallbackOutcome,
    ProviderFallbackSelector,
    ProviderSpec,
    classify_error,
)
from depscout.inference.prompt_builder import PromptBuilder
from depscout.inference.rate_limiter import RateLimitConfig, RateLimitHandler
from depscout.inference.response_parser import RuleResponseParser

__all__ = [
    "FailureReason",
    "FallbackOutcome",
    "InferenceEngine",
    "InferenceOutput",
    "InferenceQuery",
    "InferenceResult",
    "LLMClient",
    "LLMClientSettings",
    "PromptBuilder",
    "ProviderFallbackSelector",
    "ProviderSpec",
    "RateLimitConfig",
    "RateLimitHandler",
    "RuleResponseParser",
    "TokenUsage",
    "classify_error",
]
