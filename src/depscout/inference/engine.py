"""Inference engine: generates rules for a package from a generative model.

Used only when direct discovery found nothing. The engine fetches a
documentation excerpt (the GitHub README), builds one prompt and hands it to
the provider fallback selector.
"""

import logging
from pathlib import Path
from typing import Literal

import httpx
from pydantic import BaseModel, Field

from depscout.config import DiscoverySettings, get_settings
from depscout.discovery.conversion import to_discovered_rule
from depscout.exceptions import NetworkError
from depscout.github import GitHubClient
from depscout.inference.client import TokenUsage
from depscout.inference.fallback import ProviderAttempt, ProviderFallbackSelector
from depscout.inference.prompt_builder import PromptBuilder
from depscout.models import DiscoveredRule, PackageMetadata, RuleSource
from depscout.registry import extract_github_repo
from depscout.secret_store import SecretStore

logger = logging.getLogger(__name__)


class InferenceResult(BaseModel):
    """Outcome of one inference attempt.

    Attributes:
        method: Always "inference".
        provider: Provider that produced the rules (None on failure).
        model: Model that produced the rules.
        rules: Generated rules, already in discovered-rule form.
        success: Whether any provider returned valid rules.
        error: Explanation when ``success`` is False.
        usage: Token counters from the successful call.
        attempts: Per-provider failures, in chain order.
    """

    method: Literal["inference"] = "inference"
    provider: str | None = None
    model: str | None = None
    rules: list[DiscoveredRule] = Field(default_factory=list)
    success: bool = False
    error: str | None = None
    usage: TokenUsage | None = None
    attempts: list[ProviderAttempt] = Field(default_factory=list)


class InferenceEngine:
    """Generates discovered rules by prompting the provider chain.

    Example:
        >>> engine = InferenceEngine(http_client, SecretStore())
        >>> result = await engine.infer(metadata, project_path="/repo")
        >>> result.success, result.provider
        (True, 'openai')
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        secret_store: SecretStore,
        settings: DiscoverySettings | None = None,
        selector: ProviderFallbackSelector | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        """Initialize the inference engine.

        Args:
            http_client: Shared HTTP client for documentation fetches.
            secret_store: Credential lookup for providers and GitHub.
            settings: Process settings. Loads from environment if not provided.
            selector: Provider chain. Defaults to openai, anthropic, ollama.
            prompt_builder: Prompt formatter. Defaults to the configured excerpt budget.
        """
        self._http = http_client
        self._secret_store = secret_store
        self._settings = settings or get_settings()
        self._selector = selector or ProviderFallbackSelector(
            secret_store=secret_store, settings=self._settings
        )
        self._prompt_builder = prompt_builder or PromptBuilder(self._settings.doc_excerpt_chars)

    @property
    def selector(self) -> ProviderFallbackSelector:
        return self._selector

    def has_credentials(self, project_path: str | Path | None = None) -> bool:
        """Whether any provider in the chain has a credential."""
        return any(
            self._secret_store.get_secret(name, project_path)
            for name in self._selector.provider_names
        )

    async def fetch_documentation(
        self, metadata: PackageMetadata, project_path: str | Path | None = None
    ) -> str:
        """Fetch the README of the package's GitHub repository.

        Returns:
            README text, or "" when there is no repository or the fetch fails.
        """
        repo = extract_github_repo(metadata.repository)
        if repo is None:
            return ""
        github = GitHubClient(
            self._http,
            token=self._secret_store.get_secret("github", project_path),
            timeout=self._settings.http_timeout,
        )
        try:
            return await github.get_readme(*repo)
        except NetworkError as e:
            logger.debug("README fetch failed for %s: %s", metadata.name, e)
            return ""

    async def infer(
        self, metadata: PackageMetadata, project_path: str | Path | None = None
    ) -> InferenceResult:
        """Generate rules for one package.

        Never raises for provider or network failures; they are reported in
        the result.

        Args:
            metadata: The package to generate rules for.
            project_path: Project whose secrets are consulted first.

        Returns:
            InferenceResult with rules on success, or an error message.
        """
        if not self.has_credentials(project_path):
            logger.info("No AI provider configured; skipping inference for %s", metadata.name)
            return InferenceResult(
                success=False,
                error="No AI provider credentials configured",
            )

        excerpt = await self.fetch_documentation(metadata, project_path)
        query = self._prompt_builder.build_query(metadata, excerpt)
        outcome = await self._selector.generate(query, project_path)

        if not outcome.success:
            logger.warning("Inference failed for %s: %s", metadata.name, outcome.error)
            return InferenceResult(success=False, error=outcome.error, attempts=outcome.attempts)

        rules = [to_discovered_rule(r, metadata, RuleSource.INFERENCE) for r in outcome.rules]
        return InferenceResult(
            provider=outcome.provider,
            model=outcome.model,
            rules=rules,
            success=True,
            usage=outcome.usage,
            attempts=outcome.attempts,
        )
