"""Parsers for single-file AI tool configurations (.cursorrules, .windsurfrules).

These files are free-form markdown. Each top-level heading becomes one
``CanonicalRule``; text before the first heading becomes a "General Rules"
rule. Languages, frameworks, tags and priority are inferred from keywords.
"""

from __future__ import annotations

import logging
import re
from typing import Literal

from depscout.exceptions import ValidationFailedError
from depscout.models import (
    CanonicalApplication,
    CanonicalCompatibility,
    CanonicalContent,
    CanonicalExample,
    CanonicalRule,
    CanonicalRuleMetadata,
    CanonicalTargeting,
    RuleContext,
)

logger = logging.getLogger(__name__)

SUPPORTED_TOOLS = ("cursor", "windsurf", "markdown")

_SECTION_SPLIT_RE = re.compile(r"(?=^#+\s+)", re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r"```(\w+)?\n(.*?)```", re.DOTALL)
_FILE_PATTERN_RE = re.compile(r"\*\*?/?[\w*/]*\.\w+")

_LANGUAGE_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"\btypescript\b|\btsx?\b", "typescript"),
    (r"\bjavascript\b|\bjsx?\b", "javascript"),
    (r"\bpython\b", "python"),
    (r"\brust\b", "rust"),
    (r"\bgolang\b|\bgo\b", "go"),
    (r"\bjava\b", "java"),
    (r"\bhtml\b", "html"),
    (r"\bcss\b", "css"),
    (r"\bsql\b", "sql"),
    (r"\bbash\b|\bshell\b", "shell"),
)

_FRAMEWORKS = (
    "react", "vue", "angular", "svelte", "nextjs", "nuxt",
    "express", "fastify", "django", "flask", "fastapi", "rails",
)

_TAGS = (
    "best-practices", "conventions", "style", "formatting", "performance",
    "security", "testing", "documentation", "architecture", "patterns",
)

_CONTEXTS: tuple[RuleContext, ...] = ("development", "testing", "debugging", "refactoring")


def parse_tool_config(tool: str, text: str) -> list[CanonicalRule]:
    """Parse a tool configuration file into canonical rules.

    Args:
        tool: Tool kind ("cursor", "windsurf" or "markdown").
        text: Raw file contents.

    Returns:
        One rule per markdown section; empty for blank input.

    Raises:
        ValidationFailedError: If ``tool`` is not supported.
    """
    if tool not in SUPPORTED_TOOLS:
        raise ValidationFailedError(f"Unsupported tool config format: {tool}")

    rules: list[CanonicalRule] = []
    for section in _SECTION_SPLIT_RE.split(text):
        if not section.strip():
            continue
        header, _, body = section.partition("\n")
        header = header.strip()
        if not header.startswith("#"):
            rules.append(_rule_from_section("General Rules", section.strip(), tool))
            continue
        body = body.strip()
        if body:
            rules.append(_rule_from_section(header.lstrip("#").strip(), body, tool))

    if not rules and text.strip():
        rules.append(_rule_from_section(f"{tool.title()} Rules", text.strip(), tool))

    logger.debug("Parsed %d rule(s) from %s configuration", len(rules), tool)
    return rules


def _rule_from_section(title: str, body: str, tool: str) -> CanonicalRule:
    lowered = body.lower()
    tools: list[Literal["cursor", "windsurf"]] = (
        ["windsurf"] if tool == "windsurf" else ["cursor"]
    )
    return CanonicalRule(
        metadata=CanonicalRuleMetadata(
            name=title or "Untitled",
            description=_extract_description(body),
            source="tool-sync",
            confidence=0.8,
        ),
        targeting=CanonicalTargeting(
            languages=[lang for pattern, lang in _LANGUAGE_PATTERNS if re.search(pattern, lowered)],
            frameworks=[fw for fw in _FRAMEWORKS if fw in lowered],
            files=sorted(set(_FILE_PATTERN_RE.findall(body))),
            contexts=[ctx for ctx in _CONTEXTS if ctx in lowered],
        ),
        content=CanonicalContent(
            markdown=body,
            examples=[
                CanonicalExample(
                    code=code.strip(),
                    language=language or "text",
                    description=f"Example {language or 'text'} code",
                )
                for language, code in _CODE_BLOCK_RE.findall(body)
                if code.strip()
            ],
            tags=[tag for tag in _TAGS if tag in lowered or tag.replace("-", " ") in lowered],
            priority=_infer_priority(lowered),
        ),
        compatibility=CanonicalCompatibility(tools=tools, formats={tools[0]: body}),
        application=CanonicalApplication(mode="always"),
    )


def _extract_description(body: str) -> str:
    first_paragraph = body.split("\n\n")[0].strip()
    if first_paragraph and len(first_paragraph) < 200:
        return first_paragraph
    first_sentence = re.split(r"[.!?]", body)[0].strip()
    if first_sentence and len(first_sentence) < 150:
        return f"{first_sentence}."
    return body[:100] + ("..." if len(body) > 100 else "")


def _infer_priority(lowered: str) -> Literal["low", "medium", "high"]:
    if any(word in lowered for word in ("critical", "must", "required")):
        return "high"
    if any(word in lowered for word in ("should", "recommend", "prefer")):
        return "medium"
    return "low"
