"""Data model for dependency records, discovered rules and canonical rules.

Canonical rules are serialized with camelCase keys (``excludeFiles``,
``reviewRequired``) so that cache files and rule files published in
dependency repositories share one on-disk format; both snake_case and
camelCase are accepted on input.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def new_rule_id() -> str:
    """Generate a fresh rule identifier."""
    return str(uuid.uuid4())


class Ecosystem(StrEnum):
    """Package ecosystems the scanner and registry resolver understand."""

    NPM = "npm"
    PYPI = "pypi"


class DependencyType(StrEnum):
    """How a dependency is declared in its manifest."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    PEER = "peer"
    OPTIONAL = "optional"


class DependencyRecord(BaseModel):
    """A consolidated dependency detected in a project manifest.

    Attributes:
        name: Package name, including any npm scope (``@scope/name``).
        version: Declared version or version range.
        ecosystem: Package ecosystem the dependency belongs to.
        repository: Source repository URL, when the manifest declares one.
        homepage: Project homepage URL, when known.
        framework: Framework hint (react, django, ...), when known.
        dependency_type: Production, development, peer or optional.
        source: Path of the manifest that declared the dependency.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str = Field(default="latest")
    ecosystem: Ecosystem = Field(default=Ecosystem.NPM)
    repository: str | None = None
    homepage: str | None = None
    framework: str | None = None
    dependency_type: DependencyType = Field(default=DependencyType.PRODUCTION)
    source: str = Field(default="")

    @property
    def key(self) -> str:
        """Identity of the dependency as ``name@version``."""
        return f"{self.name}@{self.version}"


class ManifestMetadata(BaseModel):
    """Facts about how a manifest was parsed."""

    package_manager: str
    lock_file_exists: bool = False
    parsed_at: str = Field(default_factory=utc_now_iso)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class ManifestParseResult(BaseModel):
    """Dependencies extracted from a single manifest file."""

    manifest_type: str
    manifest_path: str
    project_name: str | None = None
    project_version: str | None = None
    dependencies: list[DependencyRecord] = Field(default_factory=list)
    metadata: ManifestMetadata


class PackageMetadata(BaseModel):
    """Registry-enriched description of a dependency, the input to discovery."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    ecosystem: Ecosystem = Ecosystem.NPM
    description: str | None = None
    homepage: str | None = None
    repository: str | None = None
    framework: str | None = None
    license: str | None = None
    keywords: tuple[str, ...] = ()

    @classmethod
    def from_dependency(cls, dependency: DependencyRecord) -> PackageMetadata:
        """Build metadata from a dependency record alone (no registry data)."""
        return cls(
            name=dependency.name,
            version=dependency.version,
            ecosystem=dependency.ecosystem,
            homepage=dependency.homepage,
            repository=dependency.repository,
            framework=dependency.framework,
        )


class RuleSource(StrEnum):
    """Where a discovered rule came from."""

    REPOSITORY = "repository"
    INFERENCE = "inference"


class RuleExample(BaseModel):
    title: str = "Code Example"
    code: str
    language: str = ""


class RuleContent(BaseModel):
    markdown: str
    examples: list[RuleExample] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class RuleTargeting(BaseModel):
    languages: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)


class DiscoveredRule(BaseModel):
    """Provider-agnostic discovery output, before canonicalization.

    ``confidence`` encodes trust: rule files found verbatim in a repository
    default to 0.95, homepage ``llms.txt`` documents to 0.9 and model-generated
    rules to 0.8.
    """

    id: str = Field(default_factory=new_rule_id)
    name: str
    description: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    source: RuleSource
    package_name: str
    package_version: str
    framework: str | None = None
    category: str = "general"
    content: RuleContent
    targeting: RuleTargeting = Field(default_factory=RuleTargeting)
    discovered_at: str = Field(default_factory=utc_now_iso)

    @property
    def package_key(self) -> str:
        return f"{self.package_name}@{self.package_version}"


# Canonical rule representation

RuleContext = Literal["development", "testing", "debugging", "refactoring"]
ToolName = Literal["cursor", "windsurf", "claude", "copilot", "codeium", "cody", "tabnine"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CanonicalRuleMetadata(_CamelModel):
    name: str = Field(min_length=1)
    description: str = ""
    source: Literal["manual", "auto-generated", "dependency", "tool-sync"] = "auto-generated"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    created: str = Field(default_factory=utc_now_iso)
    updated: str = Field(default_factory=utc_now_iso)
    version: str = "1.0.0"


class CanonicalTargeting(_CamelModel):
    languages: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    dependencies: list[str] | None = None
    contexts: list[RuleContext] = Field(default_factory=list)


class CanonicalExample(_CamelModel):
    code: str
    language: str = ""
    description: str = ""
    before: str | None = None
    after: str | None = None


class CanonicalContent(_CamelModel):
    markdown: str
    examples: list[CanonicalExample] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    priority: Literal["low", "medium", "high"] = "medium"


class CanonicalCompatibility(_CamelModel):
    tools: list[ToolName] = Field(default_factory=list)
    formats: dict[str, str] = Field(default_factory=dict)


class CanonicalApplication(_CamelModel):
    mode: Literal["always", "context", "manual"] = "always"
    conditions: list[str] = Field(default_factory=list)
    exclude_files: list[str] = Field(default_factory=list)
    include_files: list[str] = Field(default_factory=list)


class GeneratedPackage(_CamelModel):
    name: str
    version: str


class GeneratedInfo(_CamelModel):
    """Provenance of an auto-generated rule."""

    auto: bool = False
    source: str | None = None
    from_tool: str | None = None
    package: GeneratedPackage | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    review_required: bool = False
    reviewed: bool = False


class CanonicalRule(_CamelModel):
    """Persisted rule representation handed to downstream rule sync.

    Example:
        >>> rule = CanonicalRule(
        ...     metadata=CanonicalRuleMetadata(name="Use hooks"),
        ...     content=CanonicalContent(markdown="# Hooks"),
        ... )
        >>> rule.generated is None
        True
    """

    id: str = Field(default_factory=new_rule_id)
    metadata: CanonicalRuleMetadata
    targeting: CanonicalTargeting = Field(default_factory=CanonicalTargeting)
    content: CanonicalContent
    compatibility: CanonicalCompatibility = Field(default_factory=CanonicalCompatibility)
    application: CanonicalApplication = Field(default_factory=CanonicalApplication)
    generated: GeneratedInfo | None = None

    @property
    def package_key(self) -> str | None:
        """``name@version`` of the originating package, if recorded."""
        if self.generated is None or self.generated.package is None:
            return None
        return f"{self.generated.package.name}@{self.generated.package.version}"
