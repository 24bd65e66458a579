"""On-disk cache for discovery sessions and per-package rules.

Layout under the cache root (``{project}/.vibe/dependencies`` by default):

    discovery-session.json
    {package}/{version}/rules.json

Scoped npm packages (``@scope/name``) become nested directories. Rewriting a
package version replaces its ``rules.json``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from depscout.discovery.session import DiscoverySession
from depscout.exceptions import CacheWriteError
from depscout.models import CanonicalRule

logger = logging.getLogger(__name__)

SESSION_FILE = "discovery-session.json"
RULES_FILE = "rules.json"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._@+-]")


def sanitize_path_component(component: str) -> str:
    """Make one path component filesystem-safe.

    Raises:
        CacheWriteError: If the component is empty or a traversal segment.
    """
    cleaned = _UNSAFE_CHARS_RE.sub("_", component.strip())
    if not cleaned or cleaned in (".", ".."):
        raise CacheWriteError(f"Invalid cache path component: {component!r}")
    return cleaned


class DiscoveryCache:
    """Reads and writes discovery artifacts for one project.

    Example:
        >>> cache = DiscoveryCache(Path("/repo/.vibe/dependencies"))
        >>> await cache.write_session(session)
        >>> rules = cache.read_package_rules("left-pad", "1.3.0")
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @classmethod
    def for_project(cls, project_path: str | Path, cache_dir: str) -> DiscoveryCache:
        return cls(Path(project_path) / cache_dir)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def session_path(self) -> Path:
        return self._root / SESSION_FILE

    def package_dir(self, name: str, version: str) -> Path:
        """Directory holding one package version's artifacts."""
        parts = [sanitize_path_component(p) for p in name.split("/")]
        return self._root.joinpath(*parts, sanitize_path_component(version))

    def rules_path(self, name: str, version: str) -> Path:
        return self.package_dir(name, version) / RULES_FILE

    async def write_session(self, session: DiscoverySession) -> Path:
        """Write the full session record.

        Raises:
            CacheWriteError: If the file cannot be written.
        """
        payload = session.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._write_json, self.session_path, payload)
        logger.debug("Cached session %s to %s", session.id, self.session_path)
        return self.session_path

    async def write_package_rules(self, rules: list[CanonicalRule]) -> tuple[list[Path], list[str]]:
        """Write rules grouped into one file per package version.

        Writes run concurrently; a failing write is logged and reported but
        does not stop the others. Rules without package provenance are
        skipped.

        Returns:
            Paths written, and error messages for writes that failed.
        """
        grouped: dict[tuple[str, str], list[CanonicalRule]] = defaultdict(list)
        for rule in rules:
            package = rule.generated.package if rule.generated else None
            if package is None:
                continue
            grouped[(package.name, package.version)].append(rule)

        outcomes = await asyncio.gather(
            *(self._write_one_package(name, version, group) for (name, version), group in grouped.items())
        )

        written = [path for path, error in outcomes if path is not None]
        errors = [error for path, error in outcomes if error is not None]
        logger.info("Cached rules for %d package(s), %d failed", len(written), len(errors))
        return written, errors

    async def _write_one_package(
        self, name: str, version: str, rules: list[CanonicalRule]
    ) -> tuple[Path | None, str | None]:
        try:
            path = self.rules_path(name, version)
            payload = [rule.model_dump(mode="json", by_alias=True) for rule in rules]
            await asyncio.to_thread(self._write_json, path, payload)
        except CacheWriteError as e:
            logger.warning("Failed to cache rules for %s@%s: %s", name, version, e)
            return None, f"Cache write failed for {name}@{version}: {e}"
        return path, None

    def read_package_rules(self, name: str, version: str) -> list[CanonicalRule]:
        """Load cached rules for a package version; empty if none are cached.

        Raises:
            CacheWriteError: If the name or version is not a valid path component.
        """
        path = self.rules_path(name, version)
        if not path.is_file():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [CanonicalRule.model_validate(item) for item in data]
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", path, e)
            return []

    def read_session(self) -> dict[str, Any] | None:
        if not self.session_path.is_file():
            return None
        try:
            return json.loads(self.session_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session cache %s: %s", self.session_path, e)
            return None

    @staticmethod
    def _write_json(path: Path, payload: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise CacheWriteError(f"Failed to write {path}: {e}") from e
