"""Manifest scanning and dependency consolidation.

Finds package manifests (package.json, requirements.txt, pyproject.toml) in a
project tree and turns them into ``ManifestParseResult`` records, then merges
those into one deduplicated dependency list.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from depscout.exceptions import ManifestScanError, ValidationFailedError
from depscout.models import (
    DependencyRecord,
    DependencyType,
    Ecosystem,
    ManifestMetadata,
    ManifestParseResult,
)

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset(
    {
        "node_modules",
        "dist",
        "build",
        "out",
        "target",
        "__pycache__",
        "coverage",
        "vendor",
        "venv",
        "site-packages",
    }
)

NPM_LOCK_FILES = ("package-lock.json", "npm-shrinkwrap.json", "yarn.lock", "pnpm-lock.yaml")
PYTHON_LOCK_FILES = ("poetry.lock", "uv.lock", "Pipfile.lock", "pdm.lock")

_NPM_SECTIONS = (
    ("dependencies", DependencyType.PRODUCTION),
    ("devDependencies", DependencyType.DEVELOPMENT),
    ("peerDependencies", DependencyType.PEER),
    ("optionalDependencies", DependencyType.OPTIONAL),
)

# name, optional [extras], optional version specifier; stops at ';' markers
_REQUIREMENT_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(?P<spec>[^;#]*)"
)


def _calculate_confidence(dependency_count: int, lock_file_exists: bool) -> float:
    confidence = 0.8
    if dependency_count > 0:
        confidence += 0.1
    if lock_file_exists:
        confidence += 0.1
    return min(round(confidence, 2), 1.0)


def parse_requirement(line: str) -> tuple[str, str] | None:
    """Parse a PEP 508-ish requirement line into ``(name, version)``.

    Returns None for blank lines, comments, options (``-r``, ``--index-url``)
    and URL/path requirements.

    Example:
        >>> parse_requirement("httpx[http2]>=0.27 ; python_version >= '3.11'")
        ('httpx', '>=0.27')
    """
    stripped = line.strip()
    if not stripped or stripped.startswith(("#", "-")) or "://" in stripped:
        return None
    match = _REQUIREMENT_RE.match(stripped)
    if not match:
        return None
    spec = match.group("spec").strip().replace(" ", "")
    return match.group("name"), spec or "latest"


class ManifestScanner:
    """Scans a project directory for dependency manifests.

    Directories are walked up to ``max_depth`` levels deep; vendored, build
    and hidden directories are skipped. A manifest that fails to parse is
    logged and skipped rather than failing the scan.

    Example:
        >>> scanner = ManifestScanner()
        >>> results = scanner.scan("/path/to/project")
        >>> [r.manifest_type for r in results]
        ['npm', 'pypi']
    """

    DEFAULT_MAX_DEPTH = 3

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._max_depth = max_depth
        self._parsers: dict[str, Callable[[Path], ManifestParseResult]] = {
            "package.json": self._parse_package_json,
            "requirements.txt": self._parse_requirements_txt,
            "pyproject.toml": self._parse_pyproject,
        }

    @property
    def supported_files(self) -> list[str]:
        return list(self._parsers)

    def scan(self, project_path: str | Path) -> list[ManifestParseResult]:
        """Find and parse every supported manifest under ``project_path``.

        Args:
            project_path: Root directory of the project.

        Returns:
            Parse results in a deterministic (sorted path) order.

        Raises:
            ManifestScanError: If ``project_path`` is not a readable directory.
        """
        root = Path(project_path)
        if not root.is_dir():
            raise ManifestScanError(f"Project path is not a directory: {project_path}")

        manifest_files: list[Path] = []
        self._scan_directory(root, manifest_files, depth=0)

        results: list[ManifestParseResult] = []
        for manifest_path in sorted(manifest_files):
            result = self.parse_manifest(manifest_path)
            if result is not None:
                results.append(result)

        logger.info("Found %d valid manifest(s) in %s", len(results), root)
        return results

    def parse_manifest(self, manifest_path: Path) -> ManifestParseResult | None:
        """Parse a single manifest, returning None if unsupported or invalid."""
        parser = self._parsers.get(manifest_path.name)
        if parser is None:
            return None
        try:
            return parser(manifest_path)
        except (OSError, ValueError, ValidationFailedError) as e:
            logger.warning("Failed to parse %s: %s", manifest_path, e)
            return None

    def _scan_directory(self, directory: Path, found: list[Path], depth: int) -> None:
        if depth >= self._max_depth:
            return
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            logger.warning("Could not scan directory %s: %s", directory, e)
            return

        for entry in entries:
            if entry.is_file() and entry.name in self._parsers:
                found.append(entry)
            elif entry.is_dir() and not self._should_ignore(entry.name):
                self._scan_directory(entry, found, depth + 1)

    @staticmethod
    def _should_ignore(dir_name: str) -> bool:
        return dir_name in IGNORED_DIRS or dir_name.startswith(".")

    @staticmethod
    def _lock_file_exists(manifest_path: Path, candidates: tuple[str, ...]) -> bool:
        return any((manifest_path.parent / name).exists() for name in candidates)

    def _parse_package_json(self, manifest_path: Path) -> ManifestParseResult:
        try:
            data: Any = json.loads(manifest_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationFailedError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationFailedError("package.json must contain a JSON object")

        dependencies: list[DependencyRecord] = []
        for section, dep_type in _NPM_SECTIONS:
            for name, version in (data.get(section) or {}).items():
                dependencies.append(
                    DependencyRecord(
                        name=name,
                        version=str(version),
                        ecosystem=Ecosystem.NPM,
                        dependency_type=dep_type,
                        source=str(manifest_path),
                    )
                )

        lock_file_exists = self._lock_file_exists(manifest_path, NPM_LOCK_FILES)
        return ManifestParseResult(
            manifest_type="npm",
            manifest_path=str(manifest_path),
            project_name=data.get("name"),
            project_version=data.get("version"),
            dependencies=dependencies,
            metadata=ManifestMetadata(
                package_manager="npm",
                lock_file_exists=lock_file_exists,
                confidence=_calculate_confidence(len(dependencies), lock_file_exists),
            ),
        )

    def _parse_requirements_txt(self, manifest_path: Path) -> ManifestParseResult:
        dep_type = (
            DependencyType.DEVELOPMENT
            if "dev" in manifest_path.stem or "test" in manifest_path.stem
            else DependencyType.PRODUCTION
        )
        dependencies = [
            DependencyRecord(
                name=name,
                version=version,
                ecosystem=Ecosystem.PYPI,
                dependency_type=dep_type,
                source=str(manifest_path),
            )
            for line in manifest_path.read_text(encoding="utf-8").splitlines()
            if (parsed := parse_requirement(line)) is not None
            for name, version in [parsed]
        ]
        return self._python_result(manifest_path, "pip", dependencies)

    def _parse_pyproject(self, manifest_path: Path) -> ManifestParseResult:
        try:
            data = tomllib.loads(manifest_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValidationFailedError(f"Invalid TOML: {e}") from e

        project = data.get("project", {})
        dependencies: list[DependencyRecord] = []

        def add(requirements: list[str], dep_type: DependencyType) -> None:
            for requirement in requirements:
                parsed = parse_requirement(requirement)
                if parsed is None:
                    continue
                dependencies.append(
                    DependencyRecord(
                        name=parsed[0],
                        version=parsed[1],
                        ecosystem=Ecosystem.PYPI,
                        dependency_type=dep_type,
                        source=str(manifest_path),
                    )
                )

        add(project.get("dependencies", []), DependencyType.PRODUCTION)
        for requirements in project.get("optional-dependencies", {}).values():
            add(requirements, DependencyType.OPTIONAL)

        result = self._python_result(manifest_path, "pip", dependencies)
        return result.model_copy(
            update={
                "project_name": project.get("name"),
                "project_version": project.get("version"),
            }
        )

    def _python_result(
        self, manifest_path: Path, package_manager: str, dependencies: list[DependencyRecord]
    ) -> ManifestParseResult:
        lock_file_exists = self._lock_file_exists(manifest_path, PYTHON_LOCK_FILES)
        return ManifestParseResult(
            manifest_type="pypi",
            manifest_path=str(manifest_path),
            dependencies=dependencies,
            metadata=ManifestMetadata(
                package_manager=package_manager,
                lock_file_exists=lock_file_exists,
                confidence=_calculate_confidence(len(dependencies), lock_file_exists),
            ),
        )


def consolidate_dependencies(results: list[ManifestParseResult]) -> list[DependencyRecord]:
    """Merge manifest results into a deduplicated dependency list.

    Dependencies are keyed by ecosystem and name. When the same package is
    declared more than once, the first declaration wins unless a later one
    upgrades a development dependency to a production one. Output order
    follows first appearance.

    Args:
        results: Parse results from ``ManifestScanner.scan``.

    Returns:
        Consolidated dependency records.
    """
    consolidated: dict[tuple[Ecosystem, str], DependencyRecord] = {}
    for result in results:
        for dep in result.dependencies:
            key = (dep.ecosystem, dep.name.lower())
            existing = consolidated.get(key)
            if existing is None or (
                existing.dependency_type == DependencyType.DEVELOPMENT
                and dep.dependency_type == DependencyType.PRODUCTION
            ):
                consolidated[key] = dep
    return list(consolidated.values())
