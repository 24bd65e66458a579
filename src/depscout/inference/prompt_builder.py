"""Prompt builder for rule inference.

Formats package metadata and a documentation excerpt into a single structured
prompt asking the model for a JSON list of canonical rules.
"""

from depscout.inference.client import InferenceQuery
from depscout.models import PackageMetadata


class PromptBuilder:
    """Builds rule-generation prompts from package metadata.

    The documentation excerpt is truncated to ``max_excerpt_chars`` to bound
    prompt cost.

    Example:
        >>> builder = PromptBuilder(max_excerpt_chars=8000)
        >>> query = builder.build_query(metadata, readme_text)
        >>> "**Name:** httpx" in query.prompt
        True
    """

    DEFAULT_MAX_EXCERPT_CHARS = 8000

    SYSTEM_MESSAGE = (
        "You are an expert-level software developer and technical writer creating "
        "rules for an AI pair programming assistant. You respond with JSON only."
    )

    RESPONSE_FORMAT_INSTRUCTIONS = """
Respond with a JSON object of the form {"rules": [ ... ]} where each rule has:
- metadata: {"name": str, "description": str, "confidence": number 0-1}
- targeting: {"languages": [str], "frameworks": [str], "files": [glob], "contexts": \
["development" | "testing" | "debugging" | "refactoring"]}
- content: {"markdown": str, "examples": [{"code": str, "language": str, \
"description": str}], "tags": [str], "priority": "low" | "medium" | "high"}
Do not include any text outside the JSON object."""

    def __init__(self, max_excerpt_chars: int = DEFAULT_MAX_EXCERPT_CHARS) -> None:
        self._max_excerpt_chars = max_excerpt_chars

    @property
    def max_excerpt_chars(self) -> int:
        return self._max_excerpt_chars

    def build_prompt(self, metadata: PackageMetadata, excerpt: str) -> str:
        """Build the user prompt for one package.

        Args:
            metadata: Package name, version, description and homepage.
            excerpt: Documentation text (usually the README); may be empty.

        Returns:
            The formatted prompt string.
        """
        excerpt = excerpt[: self._max_excerpt_chars]
        sections = [
            "Generate a set of rules that give high-quality, actionable guidance "
            "for using the following library.",
            "",
            "**Package Information:**",
            f"- **Name:** {metadata.name}",
            f"- **Version:** {metadata.version}",
            f"- **Description:** {metadata.description or 'No description available'}",
            f"- **Homepage:** {metadata.homepage or 'No homepage available'}",
            "",
            "**Documentation Excerpt:**",
            "```",
            excerpt or "No documentation available",
            "```",
            "",
            "**Instructions:**",
            "1. Read the package information and documentation to understand the "
            "library's purpose, key features and primary use cases.",
            "2. Create 3 to 5 rules, each covering a distinct aspect of the library: "
            "best practices, common patterns, installation and setup, integration "
            "with other tools or frameworks, and pitfalls to avoid.",
            "3. Structure each rule's markdown like a short documentation page with "
            "headings, a usage code example and a list of guidelines.",
            self.RESPONSE_FORMAT_INSTRUCTIONS,
        ]
        return "\n".join(sections)

    def build_query(self, metadata: PackageMetadata, excerpt: str) -> InferenceQuery:
        return InferenceQuery(
            prompt=self.build_prompt(metadata, excerpt),
            system_message=self.SYSTEM_MESSAGE,
        )
