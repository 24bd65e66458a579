"""Direct discovery probes: look for existing rule artifacts for a package.

The repository probe reads the package's GitHub repository for a ``.vibe``
rules directory and a legacy ``.cursorrules`` file. The homepage probe fetches
``llms.txt`` from the apex domain of the package homepage. Both probes always
return a ``DirectDiscoveryResult``; failures are reported in the result.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from depscout.config import DiscoverySettings, get_settings
from depscout.discovery.conversion import to_discovered_rule
from depscout.exceptions import NetworkError, ValidationFailedError
from depscout.github import GitHubClient, decode_base64_content
from depscout.models import (
    CanonicalRule,
    DiscoveredRule,
    PackageMetadata,
    RuleContent,
    RuleSource,
    RuleTargeting,
    new_rule_id,
)
from depscout.registry import extract_github_repo
from depscout.secret_store import SecretStore
from depscout.tool_parsers import parse_tool_config

logger = logging.getLogger(__name__)

RULES_DIRECTORY = ".vibe"
LEGACY_RULES_FILE = ".cursorrules"
LLMS_TXT_CONFIDENCE = 0.9
USER_AGENT = "depscout-discovery/0.1"

_RULE_LIST_ADAPTER = TypeAdapter(list[CanonicalRule])


class DirectDiscoveryResult(BaseModel):
    """Outcome of one direct probe."""

    method: Literal["direct"] = "direct"
    source: Literal["repository", "homepage"]
    url: str = ""
    rules: list[DiscoveredRule] = Field(default_factory=list)
    success: bool = False
    error: str | None = None


def extract_apex_domain(url: str | None) -> str | None:
    """Return the last two labels of the URL's host.

    Example:
        >>> extract_apex_domain("https://docs.example.com/guide")
        'example.com'
    """
    if not url:
        return None
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    parts = hostname.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


class RepositoryProbe:
    """Looks for rule files in the package's GitHub repository."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        secret_store: SecretStore,
        settings: DiscoverySettings | None = None,
    ) -> None:
        self._http = http_client
        self._secret_store = secret_store
        self._settings = settings or get_settings()

    async def probe(
        self, metadata: PackageMetadata, project_path: str | Path | None = None
    ) -> DirectDiscoveryResult:
        repo = extract_github_repo(metadata.repository)
        if repo is None:
            return DirectDiscoveryResult(source="repository", error="No repository found")

        owner, name = repo
        url = f"https://github.com/{owner}/{name}"
        github = GitHubClient(
            self._http,
            token=self._secret_store.get_secret("github", project_path),
            timeout=self._settings.http_timeout,
        )

        try:
            vibe_dir, cursorrules = await asyncio.gather(
                self._get_or_none(github, owner, name, RULES_DIRECTORY),
                self._get_or_none(github, owner, name, LEGACY_RULES_FILE),
            )
            vibe_rules = await self._parse_rules_directory(github, vibe_dir, metadata)
            legacy_rules = self._parse_legacy_file(cursorrules, metadata)
        except Exception as e:
            logger.warning("Repository probe failed for %s: %s", metadata.name, e)
            return DirectDiscoveryResult(source="repository", url=url, error=str(e))

        rules = vibe_rules + legacy_rules
        logger.debug("Repository probe found %d rule(s) for %s", len(rules), metadata.name)
        return DirectDiscoveryResult(
            source="repository", url=url, rules=rules, success=bool(rules)
        )

    @staticmethod
    async def _get_or_none(github: GitHubClient, owner: str, repo: str, path: str) -> Any:
        try:
            return await github.get_contents(owner, repo, path)
        except NetworkError as e:
            logger.debug("No %s in %s/%s: %s", path, owner, repo, e)
            return None

    async def _parse_rules_directory(
        self, github: GitHubClient, listing: Any, metadata: PackageMetadata
    ) -> list[DiscoveredRule]:
        if not isinstance(listing, list):
            return []
        json_files = [
            item
            for item in listing
            if isinstance(item, dict)
            and item.get("type") == "file"
            and str(item.get("name", "")).endswith(".json")
            and item.get("download_url")
        ]
        per_file = await asyncio.gather(
            *(self._download_rules(github, item["download_url"], metadata) for item in json_files)
        )
        return [rule for rules in per_file for rule in rules]

    @staticmethod
    async def _download_rules(
        github: GitHubClient, download_url: str, metadata: PackageMetadata
    ) -> list[DiscoveredRule]:
        try:
            data = await github.download_json(download_url)
            rules = _RULE_LIST_ADAPTER.validate_python(data)
        except (NetworkError, ValidationError) as e:
            logger.debug("Skipping rules file %s: %s", download_url, e)
            return []
        return [to_discovered_rule(r, metadata, RuleSource.REPOSITORY) for r in rules]

    @staticmethod
    def _parse_legacy_file(entry: Any, metadata: PackageMetadata) -> list[DiscoveredRule]:
        if not isinstance(entry, dict):
            return []
        text = decode_base64_content(entry.get("content"))
        if not text:
            return []
        try:
            rules = parse_tool_config("cursor", text)
        except (ValidationFailedError, ValidationError) as e:
            logger.debug("Could not parse %s for %s: %s", LEGACY_RULES_FILE, metadata.name, e)
            return []
        return [to_discovered_rule(r, metadata, RuleSource.REPOSITORY) for r in rules]


class HomepageProbe:
    """Fetches ``llms.txt`` from the apex domain of the package homepage."""

    def __init__(
        self, http_client: httpx.AsyncClient, settings: DiscoverySettings | None = None
    ) -> None:
        self._http = http_client
        self._settings = settings or get_settings()

    async def probe(self, metadata: PackageMetadata) -> DirectDiscoveryResult:
        if not metadata.homepage:
            return DirectDiscoveryResult(source="homepage", error="No homepage URL found")

        apex = extract_apex_domain(metadata.homepage)
        if not apex:
            return DirectDiscoveryResult(
                source="homepage",
                url=metadata.homepage,
                error="Could not extract apex domain from homepage",
            )

        url = f"https://{apex}/llms.txt"
        content = await self._fetch(url)
        if not content:
            return DirectDiscoveryResult(source="homepage", url=url)
        return DirectDiscoveryResult(
            source="homepage",
            url=url,
            rules=[self._llms_txt_rule(metadata, content, url)],
            success=True,
        )

    async def _fetch(self, url: str) -> str | None:
        try:
            response = await self._http.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": "text/plain"},
                timeout=self._settings.llms_txt_timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.debug("llms.txt fetch failed for %s: %s", url, e)
            return None
        if not response.is_success:
            return None
        text = response.text
        return text if text.strip() else None

    @staticmethod
    def _llms_txt_rule(metadata: PackageMetadata, content: str, url: str) -> DiscoveredRule:
        return DiscoveredRule(
            id=f"llms-txt-{metadata.name}-{new_rule_id()}",
            name=f"{metadata.name} LLM Documentation",
            description=(
                f"Official LLM-optimized documentation for {metadata.name} from its homepage."
            ),
            confidence=LLMS_TXT_CONFIDENCE,
            source=RuleSource.REPOSITORY,
            package_name=metadata.name,
            package_version=metadata.version,
            framework=metadata.framework,
            category="documentation",
            content=RuleContent(
                markdown=f"# {metadata.name} LLM Documentation\n\n**Source:** {url}\n\n---\n\n{content}",
                tags=["documentation", "llms.txt", metadata.name],
            ),
            targeting=RuleTargeting(
                frameworks=[metadata.framework] if metadata.framework else [],
                contexts=["development"],
            ),
        )
