"""Response parser that validates model output as a list of canonical rules.

Model output may be a bare JSON array, an object with a ``rules`` key, or
either of those wrapped in a markdown code block or surrounded by prose.
"""

import json
import logging
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from depscout.exceptions import ValidationFailedError
from depscout.models import CanonicalRule

logger = logging.getLogger(__name__)

_RULE_LIST_ADAPTER = TypeAdapter(list[CanonicalRule])


class RuleResponseParser:
    """Parses and validates rule arrays from model responses.

    Unlike a lenient parser, invalid output is never turned into partial
    data: any structural or schema problem raises, so the caller can treat
    the response as a provider failure.

    Example:
        >>> parser = RuleResponseParser()
        >>> rules = parser.parse(model_text)  # {"rules": [...]} with 3 to 5 rules
        >>> rules[0].metadata.name
        'Hooks'
    """

    MIN_RULES = 3
    MAX_RULES = 5

    def __init__(self, min_rules: int = MIN_RULES, max_rules: int = MAX_RULES) -> None:
        self._min_rules = min_rules
        self._max_rules = max_rules

    def parse(self, text: str) -> list[CanonicalRule]:
        """Parse model text into validated canonical rules.

        Args:
            text: Raw text response from a model.

        Returns:
            Between ``min_rules`` and ``max_rules`` validated rules.

        Raises:
            ValidationFailedError: If the text is empty, not JSON, not a rule
                array, fails schema validation or has the wrong rule count.
        """
        if not text or not text.strip():
            raise ValidationFailedError("Empty response from model")

        json_text = self._extract_json(text)
        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            raise ValidationFailedError(f"Invalid JSON: {e}") from e

        items = self._unwrap(data)
        if not self._min_rules <= len(items) <= self._max_rules:
            raise ValidationFailedError(
                f"Expected {self._min_rules}-{self._max_rules} rules, got {len(items)}"
            )

        try:
            return _RULE_LIST_ADAPTER.validate_python(items)
        except ValidationError as e:
            logger.debug("Rule schema validation failed: %s", e)
            raise ValidationFailedError(f"Rule schema validation failed: {e}") from e

    @staticmethod
    def _unwrap(data: Any) -> list[Any]:
        if isinstance(data, dict):
            data = data.get("rules")
        if not isinstance(data, list):
            raise ValidationFailedError("Expected a JSON array of rules")
        return data

    def _extract_json(self, text: str) -> str:
        """Extract JSON from potentially wrapped text.

        Handles raw JSON, ```json blocks, bare ``` blocks and JSON embedded
        in surrounding text.
        """
        match = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
        if match:
            extracted = match.group(1).strip()
            if extracted.startswith(("{", "[")):
                return extracted

        stripped = text.strip()
        if stripped.startswith(("{", "[")):
            return stripped

        # Whichever structure opens first wins
        starts = [(text.find(c), c) for c in "[{" if text.find(c) != -1]
        for _, open_char in sorted(starts):
            close_char = "]" if open_char == "[" else "}"
            found = self._find_balanced_json(text, open_char, close_char)
            if found:
                return found
        return stripped

    def _find_balanced_json(self, text: str, open_char: str, close_char: str) -> str | None:
        """Find the first balanced JSON structure in text.

        Args:
            text: Text to search.
            open_char: Opening character ('{' or '[').
            close_char: Closing character ('}' or ']').

        Returns:
            Extracted JSON string or None if not found.
        """
        start = text.find(open_char)
        if start == -1:
            return None

        depth = 0
        in_string = False
        escape = False

        for i, char in enumerate(text[start:], start):
            if escape:
                escape = False
                continue
            if char == "\\":
                escape = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if char == open_char:
                depth += 1
            elif char == close_char:
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]

        return None
