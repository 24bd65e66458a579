"""Tests for the on-disk discovery cache."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import make_rule

from depscout.discovery import DiscoveryCache, DiscoverySession
from depscout.discovery.cache import sanitize_path_component
from depscout.discovery.conversion import to_canonical_rule
from depscout.exceptions import CacheWriteError


def _files(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*") if p.is_file())


class TestSanitizePathComponent:
    """Tests for sanitize_path_component."""

    def test_keeps_safe_names(self) -> None:
        """Typical package names and versions pass through."""
        assert sanitize_path_component("left-pad") == "left-pad"
        assert sanitize_path_component("1.3.0") == "1.3.0"

    def test_replaces_unsafe_characters(self) -> None:
        """Separators and odd characters become underscores."""
        assert sanitize_path_component("a\\b c") == "a_b_c"

    @pytest.mark.parametrize("component", ["", "  ", ".", ".."])
    def test_rejects_traversal_and_empty(self, component: str) -> None:
        """Empty and traversal segments are refused."""
        with pytest.raises(CacheWriteError):
            sanitize_path_component(component)


class TestDiscoveryCache:
    """Tests for DiscoveryCache."""

    def test_layout(self, tmp_path: Path) -> None:
        """Paths follow {root}/{package}/{version}/rules.json."""
        cache = DiscoveryCache.for_project(tmp_path, ".vibe/dependencies")
        root = tmp_path / ".vibe" / "dependencies"
        assert cache.session_path == root / "discovery-session.json"
        assert cache.rules_path("left-pad", "1.3.0") == root / "left-pad" / "1.3.0" / "rules.json"
        assert cache.package_dir("@types/node", "20.0.0") == root / "@types" / "node" / "20.0.0"

    def test_rejects_traversal_in_package_name(self, tmp_path: Path) -> None:
        """A package name cannot escape the cache root."""
        with pytest.raises(CacheWriteError):
            DiscoveryCache(tmp_path).package_dir("../../etc", "1.0.0")

    @pytest.mark.asyncio
    async def test_writes_rules_grouped_by_package(self, tmp_path: Path) -> None:
        """Rules for one package version share one file."""
        cache = DiscoveryCache(tmp_path)
        rules = [
            to_canonical_rule(make_rule("A", package="react", version="18.2.0")),
            to_canonical_rule(make_rule("B", package="react", version="18.2.0")),
            to_canonical_rule(make_rule("C", package="@scope/pkg", version="1.0.0")),
        ]

        written, errors = await cache.write_package_rules(rules)

        assert errors == []
        assert len(written) == 2
        stored = json.loads(cache.rules_path("react", "18.2.0").read_text())
        assert [r["metadata"]["name"] for r in stored] == ["A", "B"]
        assert "includeFiles" in stored[0]["application"]
        assert cache.rules_path("@scope/pkg", "1.0.0").is_file()
        assert [r.metadata.name for r in cache.read_package_rules("react", "18.2.0")] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_rewrite_is_idempotent(self, tmp_path: Path) -> None:
        """Writing the same rules twice leaves the same files with the same content."""
        cache = DiscoveryCache(tmp_path)
        rules = [to_canonical_rule(make_rule("A", package="left-pad", version="1.3.0"))]

        await cache.write_package_rules(rules)
        first = {p: p.read_text() for p in _files(tmp_path)}
        await cache.write_package_rules(rules)
        second = {p: p.read_text() for p in _files(tmp_path)}

        assert first == second

    @pytest.mark.asyncio
    async def test_failed_write_is_reported(self, tmp_path: Path) -> None:
        """A failing package write is reported while others still land."""
        cache = DiscoveryCache(tmp_path)
        rules = [
            to_canonical_rule(make_rule("Bad", package="..", version="1.0.0")),
            to_canonical_rule(make_rule("Good", package="left-pad", version="1.3.0")),
        ]

        written, errors = await cache.write_package_rules(rules)

        assert written == [cache.rules_path("left-pad", "1.3.0")]
        assert len(errors) == 1
        assert errors[0].startswith("Cache write failed for ..@1.0.0")

    @pytest.mark.asyncio
    async def test_os_error_becomes_cache_write_error(self, tmp_path: Path) -> None:
        """Filesystem errors surface as CacheWriteError."""
        cache = DiscoveryCache(tmp_path)
        session = DiscoverySession(project_path=str(tmp_path))
        with patch.object(Path, "write_text", side_effect=PermissionError("read-only")):
            with pytest.raises(CacheWriteError):
                await cache.write_session(session)

    @pytest.mark.asyncio
    async def test_session_round_trip(self, tmp_path: Path) -> None:
        """The session file holds the full session record."""
        cache = DiscoveryCache(tmp_path)
        session = DiscoverySession(project_path=str(tmp_path))
        session.complete()

        await cache.write_session(session)

        data = cache.read_session()
        assert data is not None
        assert data["id"] == session.id
        assert data["status"] == "completed"

    def test_reads_nothing_when_empty(self, tmp_path: Path) -> None:
        """Missing files read as empty."""
        cache = DiscoveryCache(tmp_path)
        assert cache.read_package_rules("left-pad", "1.3.0") == []
        assert cache.read_session() is None
