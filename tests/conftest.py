"""Shared fixtures for depscout tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from depscout.config import DiscoverySettings
from depscout.models import (
    DiscoveredRule,
    PackageMetadata,
    RuleContent,
    RuleSource,
    RuleTargeting,
)

Handler = Callable[[httpx.Request], httpx.Response]


class FakeSecretStore:
    """In-memory stand-in for SecretStore with the same lookup interface."""

    def __init__(self, secrets: dict[str, str] | None = None) -> None:
        self.secrets = dict(secrets or {})
        self.lookups: list[str] = []

    def get_secret(self, provider: str, project_path: str | Path | None = None) -> str | None:
        self.lookups.append(provider)
        return self.secrets.get(provider)

    def has_secret(self, provider: str, project_path: str | Path | None = None) -> bool:
        return self.get_secret(provider, project_path) is not None


@pytest.fixture(autouse=True)
def restore_depscout_logger() -> Iterator[None]:
    """Undo configure_logging so later tests keep default propagation."""
    logger = logging.getLogger("depscout")
    yield
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def settings() -> DiscoverySettings:
    """Settings with no credentials, independent of the environment."""
    return DiscoverySettings(
        _env_file=None,
        openai_api_key=None,
        anthropic_api_key=None,
        github_token=None,
        ollama_host=None,
        rate_limit_initial_wait=0.001,
        rate_limit_max_wait=0.01,
    )


@pytest.fixture
def empty_secrets() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def metadata() -> PackageMetadata:
    return PackageMetadata(
        name="left-pad",
        version="1.3.0",
        description="String left pad",
        homepage="https://github.com/left-pad/left-pad#readme",
        repository="https://github.com/left-pad/left-pad",
    )


def make_rule(
    name: str = "Rule",
    package: str = "pkg",
    version: str = "1.0.0",
    confidence: float = 0.8,
    category: str = "general",
    source: RuleSource = RuleSource.INFERENCE,
) -> DiscoveredRule:
    """Build a discovered rule with sensible defaults."""
    return DiscoveredRule(
        name=name,
        description=f"{name} description",
        confidence=confidence,
        source=source,
        package_name=package,
        package_version=version,
        category=category,
        content=RuleContent(markdown=f"# {name}"),
        targeting=RuleTargeting(contexts=["development"]),
    )


def mock_client(handler: Handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def write_package_json(directory: Path, **sections: Any) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps({"name": directory.name, "version": "1.0.0", **sections}))
    return path
