"""Registry metadata resolution for npm and PyPI packages.

Turns a bare ``DependencyRecord`` into ``PackageMetadata`` with a description,
homepage, repository URL and framework hint. Resolution is best-effort: any
registry failure yields metadata built from the record alone.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from depscout.config import DiscoverySettings, get_settings
from depscout.models import DependencyRecord, Ecosystem, PackageMetadata

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
PYPI_REGISTRY_URL = "https://pypi.org/pypi"

_GITHUB_REPO_RE = re.compile(r"github\.com[/:]([^/]+)/([^/\s#?]+)")
_VERSION_PREFIX_RE = re.compile(r"^[\^~>=<!\s]+")
_PINNED_VERSION_RE = re.compile(r"^(?:===?)?\s*(\d[0-9A-Za-z.+!-]*)$")

# Checked in order; the first hit wins
_FRAMEWORK_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("next", ("next", "nextjs")),
    ("react", ("react",)),
    ("vue", ("vue", "nuxt")),
    ("angular", ("angular",)),
    ("svelte", ("svelte",)),
    ("express", ("express",)),
    ("django", ("django",)),
    ("flask", ("flask",)),
    ("fastapi", ("fastapi",)),
    ("testing", ("jest", "mocha", "vitest", "pytest", "testing")),
)


def clean_version(version: str) -> str:
    """Strip range operators from a declared version.

    Example:
        >>> clean_version("^18.2.0")
        '18.2.0'
        >>> clean_version(">=2.0,<3")
        '2.0'
    """
    cleaned = _VERSION_PREFIX_RE.sub("", version).split(",")[0].strip()
    return cleaned or "latest"


def pinned_version(version: str) -> str | None:
    """Return the exact version of a pin (``==3.2.0`` or ``3.2.0``), else None.

    Example:
        >>> pinned_version("==3.2.0")
        '3.2.0'
        >>> pinned_version(">=3.2") is None
        True
    """
    match = _PINNED_VERSION_RE.match(version.strip())
    return match.group(1) if match else None


def extract_github_repo(url: str | None) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from a GitHub URL in any common form.

    Handles ``https://``, ``git+https://``, ``git@github.com:`` and bare
    ``github.com/owner/repo`` forms, with or without a ``.git`` suffix.
    """
    if not url:
        return None
    match = _GITHUB_REPO_RE.search(url)
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    repo = repo.removesuffix(".git")
    if not owner or not repo:
        return None
    return owner, repo


def normalize_repository_url(repository: Any) -> str | None:
    """Normalize an npm ``repository`` field (string or object) to an https URL."""
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not isinstance(repository, str) or not repository:
        return None
    parsed = extract_github_repo(repository)
    if parsed:
        return f"https://github.com/{parsed[0]}/{parsed[1]}"
    if repository.startswith("github:"):
        return f"https://github.com/{repository.removeprefix('github:')}"
    return repository.removeprefix("git+")


def infer_framework(
    name: str, keywords: list[str] | tuple[str, ...] = (), description: str | None = None
) -> str | None:
    """Guess the framework a package belongs to from its name and keywords."""
    haystack = " ".join([name, *keywords, description or ""]).lower()
    tokens = set(re.split(r"[^a-z0-9]+", haystack))
    for framework, needles in _FRAMEWORK_KEYWORDS:
        if any(needle in tokens for needle in needles):
            return framework
    return None


class RegistryResolver:
    """Resolves package metadata from the npm and PyPI registries.

    Example:
        >>> async with httpx.AsyncClient() as http:
        ...     resolver = RegistryResolver(http_client=http)
        ...     metadata = await resolver.resolve(DependencyRecord(name="react"))
        >>> metadata.framework
        'react'
    """

    def __init__(
        self,
        settings: DiscoverySettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client

    async def resolve(self, dependency: DependencyRecord) -> PackageMetadata:
        """Resolve registry metadata for one dependency.

        Args:
            dependency: The consolidated dependency record.

        Returns:
            Enriched metadata, or metadata built from the record on any failure.
        """
        fallback = PackageMetadata.from_dependency(dependency)
        try:
            if dependency.ecosystem == Ecosystem.PYPI:
                pin = pinned_version(dependency.version)
                if pin is not None:
                    url = f"{PYPI_REGISTRY_URL}/{dependency.name}/{pin}/json"
                else:
                    url = f"{PYPI_REGISTRY_URL}/{dependency.name}/json"
                data = await self._get_json(url)
                return self._from_pypi(dependency, data, pin)
            data = await self._get_json(f"{NPM_REGISTRY_URL}/{dependency.name}")
            return self._from_npm(dependency, data)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.debug("Registry lookup failed for %s: %s", dependency.name, e)
            return fallback

    async def _get_json(self, url: str) -> dict[str, Any]:
        if self._http_client is not None:
            response = await self._http_client.get(url, timeout=self._settings.http_timeout)
        else:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout) as client:
                response = await client.get(url)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected registry payload from {url}")
        return data

    def _from_npm(self, dependency: DependencyRecord, data: dict[str, Any]) -> PackageMetadata:
        version = clean_version(dependency.version)
        versions = data.get("versions") or {}
        if version not in versions:
            version = (data.get("dist-tags") or {}).get("latest", version)
        info = versions.get(version) or data

        keywords = tuple(str(k) for k in info.get("keywords") or data.get("keywords") or [])
        description = info.get("description") or data.get("description")
        return PackageMetadata(
            name=dependency.name,
            version=version,
            ecosystem=Ecosystem.NPM,
            description=description,
            homepage=info.get("homepage") or data.get("homepage") or dependency.homepage,
            repository=normalize_repository_url(info.get("repository") or data.get("repository"))
            or dependency.repository,
            framework=dependency.framework
            or infer_framework(dependency.name, keywords, description),
            license=info.get("license") if isinstance(info.get("license"), str) else None,
            keywords=keywords,
        )

    def _from_pypi(
        self, dependency: DependencyRecord, data: dict[str, Any], pin: str | None = None
    ) -> PackageMetadata:
        info = data.get("info") or {}
        project_urls = info.get("project_urls") or {}

        repository = None
        for key in ("Source", "Source Code", "Repository", "GitHub", "Code", "Homepage"):
            candidate = project_urls.get(key)
            if candidate and extract_github_repo(candidate):
                repository = normalize_repository_url(candidate)
                break

        keywords_raw = info.get("keywords") or ""
        keywords = tuple(k.strip() for k in re.split(r"[,\s]+", keywords_raw) if k.strip())
        description = info.get("summary")
        return PackageMetadata(
            name=dependency.name,
            version=pin or info.get("version") or clean_version(dependency.version),
            ecosystem=Ecosystem.PYPI,
            description=description,
            homepage=info.get("home_page") or project_urls.get("Homepage") or dependency.homepage,
            repository=repository or dependency.repository,
            framework=dependency.framework
            or infer_framework(dependency.name, keywords, description),
            license=info.get("license") or None,
            keywords=keywords,
        )
