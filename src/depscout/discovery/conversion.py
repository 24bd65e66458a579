"""Conversion between discovered and canonical rules, and rule prioritization.

Everything in this module is pure and synchronous.
"""

from __future__ import annotations

from depscout.config import DiscoveryConfig
from depscout.models import (
    CanonicalApplication,
    CanonicalCompatibility,
    CanonicalContent,
    CanonicalExample,
    CanonicalRule,
    CanonicalRuleMetadata,
    CanonicalTargeting,
    DiscoveredRule,
    GeneratedInfo,
    GeneratedPackage,
    PackageMetadata,
    RuleContent,
    RuleExample,
    RuleSource,
    RuleTargeting,
)

CATEGORY_PRIORITY: dict[str, int] = {
    "framework": 10,
    "language": 9,
    "testing": 8,
    "build": 7,
    "tooling": 6,
    "documentation": 5,
}

DEFAULT_CONFIDENCE: dict[RuleSource, float] = {
    RuleSource.REPOSITORY: 0.95,
    RuleSource.INFERENCE: 0.8,
}

_VALID_CONTEXTS = frozenset({"development", "testing", "debugging", "refactoring"})


def prioritize_rules(rules: list[DiscoveredRule]) -> list[DiscoveredRule]:
    """Order rules by confidence, then category, and drop duplicates.

    The sort is stable, so ties keep their discovery order. A rule whose
    ``(name, package_name)`` pair was already seen is dropped.

    Example:
        >>> [r.name for r in prioritize_rules(rules)]
        ['Hooks', 'Testing', 'Docs']
    """
    ordered = sorted(
        rules,
        key=lambda r: (-r.confidence, -CATEGORY_PRIORITY.get(r.category, 0)),
    )
    seen: set[tuple[str, str]] = set()
    unique: list[DiscoveredRule] = []
    for rule in ordered:
        key = (rule.name, rule.package_name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(rule)
    return unique


def to_discovered_rule(
    rule: CanonicalRule, metadata: PackageMetadata, source: RuleSource
) -> DiscoveredRule:
    """Wrap a canonical rule (from a repository or a model) as a discovered rule.

    An absent or zero confidence gets the default for ``source``.
    """
    confidence = DEFAULT_CONFIDENCE[source]
    if "confidence" in rule.metadata.model_fields_set and rule.metadata.confidence:
        confidence = rule.metadata.confidence

    return DiscoveredRule(
        id=rule.id,
        name=rule.metadata.name,
        description=rule.metadata.description,
        confidence=confidence,
        source=source,
        package_name=metadata.name,
        package_version=metadata.version,
        framework=metadata.framework,
        category="configuration" if source == RuleSource.REPOSITORY else "ai-generated",
        content=RuleContent(
            markdown=rule.content.markdown,
            examples=[
                RuleExample(
                    title=example.description or "Code Example",
                    code=example.code,
                    language=example.language,
                )
                for example in rule.content.examples
            ],
            tags=list(rule.content.tags),
        ),
        targeting=RuleTargeting(
            languages=list(rule.targeting.languages),
            frameworks=list(rule.targeting.frameworks),
            files=list(rule.targeting.files),
            contexts=list(rule.targeting.contexts) or ["development"],
        ),
    )


def to_canonical_rule(rule: DiscoveredRule) -> CanonicalRule:
    """Map a discovered rule into the canonical shape with auto-generated provenance."""
    return CanonicalRule(
        id=rule.id,
        metadata=CanonicalRuleMetadata(
            name=rule.name,
            description=rule.description,
            source="auto-generated",
            confidence=rule.confidence,
            created=rule.discovered_at,
            updated=rule.discovered_at,
            version="1.0.0",
        ),
        targeting=CanonicalTargeting(
            languages=list(rule.targeting.languages),
            frameworks=list(rule.targeting.frameworks),
            files=list(rule.targeting.files),
            contexts=[c for c in rule.targeting.contexts if c in _VALID_CONTEXTS],
        ),
        content=CanonicalContent(
            markdown=rule.content.markdown,
            examples=[
                CanonicalExample(code=ex.code, language=ex.language, description=ex.title)
                for ex in rule.content.examples
            ],
            tags=list(rule.content.tags),
            priority="medium",
        ),
        compatibility=CanonicalCompatibility(tools=["cursor"]),
        application=CanonicalApplication(
            mode="context",
            include_files=list(rule.targeting.files),
        ),
        generated=GeneratedInfo(
            auto=True,
            source=rule.source.value,
            package=GeneratedPackage(name=rule.package_name, version=rule.package_version),
            confidence=rule.confidence,
            reviewed=False,
        ),
    )


def convert_rules(rules: list[DiscoveredRule], config: DiscoveryConfig) -> list[CanonicalRule]:
    """Filter by confidence, cap the count and convert to canonical rules.

    Args:
        rules: Prioritized discovered rules.
        config: Session configuration (``min_confidence``, rule cap).

    Returns:
        Canonical rules, in input order.
    """
    eligible = [r for r in rules if r.confidence >= config.min_confidence]
    return [to_canonical_rule(r) for r in eligible[: config.max_converted_rules]]
