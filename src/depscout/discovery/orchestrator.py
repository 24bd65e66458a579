"""Enhanced discovery: direct probes first, inference only as a fallback."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from depscout.discovery.probes import DirectDiscoveryResult, HomepageProbe, RepositoryProbe
from depscout.inference.engine import InferenceEngine, InferenceResult
from depscout.models import DiscoveredRule, PackageMetadata

logger = logging.getLogger(__name__)


class EnhancedDiscoveryResult(BaseModel):
    """Rules found for one package and how they were found.

    Attributes:
        method: "direct" when a probe succeeded or found rules, else "inference".
        rules: Union of direct rules, or the inferred rules.
        success: Whether the chosen method succeeded.
        results: The individual probe (and inference) results, in order.
    """

    method: Literal["direct", "inference"]
    rules: list[DiscoveredRule] = Field(default_factory=list)
    success: bool
    results: list[DirectDiscoveryResult | InferenceResult] = Field(default_factory=list)


class DiscoveryOrchestrator:
    """Runs both direct probes concurrently and falls back to inference.

    Example:
        >>> orchestrator = DiscoveryOrchestrator(repo_probe, homepage_probe, engine)
        >>> result = await orchestrator.discover(metadata)
        >>> result.method
        'direct'
    """

    def __init__(
        self,
        repository_probe: RepositoryProbe,
        homepage_probe: HomepageProbe,
        inference_engine: InferenceEngine | None = None,
    ) -> None:
        self._repository_probe = repository_probe
        self._homepage_probe = homepage_probe
        self._inference_engine = inference_engine

    async def discover(
        self,
        metadata: PackageMetadata,
        project_path: str | Path | None = None,
        inference_enabled: bool = True,
    ) -> EnhancedDiscoveryResult:
        """Discover rules for one package.

        Args:
            metadata: The package to discover rules for.
            project_path: Project whose secrets are consulted first.
            inference_enabled: When False the inference engine is never called.

        Returns:
            The direct result when any probe succeeded or produced rules,
            otherwise the inference result.
        """
        logger.debug("Starting enhanced discovery for %s", metadata.name)
        repo_result, homepage_result = await asyncio.gather(
            self._repository_probe.probe(metadata, project_path),
            self._homepage_probe.probe(metadata),
        )

        direct_rules = repo_result.rules + homepage_result.rules
        if direct_rules or repo_result.success or homepage_result.success:
            logger.info(
                "Direct discovery for %s found %d rule(s)", metadata.name, len(direct_rules)
            )
            return EnhancedDiscoveryResult(
                method="direct",
                rules=direct_rules,
                success=True,
                results=[repo_result, homepage_result],
            )

        if not inference_enabled or self._inference_engine is None:
            return EnhancedDiscoveryResult(
                method="inference",
                success=False,
                results=[
                    repo_result,
                    homepage_result,
                    InferenceResult(success=False, error="Inference disabled"),
                ],
            )

        inference_result = await self._inference_engine.infer(metadata, project_path)
        logger.info(
            "Inference for %s produced %d rule(s) (success=%s)",
            metadata.name,
            len(inference_result.rules),
            inference_result.success,
        )
        return EnhancedDiscoveryResult(
            method="inference",
            rules=inference_result.rules,
            success=inference_result.success,
            results=[repo_result, homepage_result, inference_result],
        )
