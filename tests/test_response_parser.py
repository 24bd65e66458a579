"""Tests for the rule response parser module."""

import json

import pytest

from depscout.exceptions import ValidationFailedError
from depscout.inference import RuleResponseParser


def _rule(name: str = "Use hooks") -> dict:
    return {
        "metadata": {"name": name, "description": "Hooks guidance", "confidence": 0.7},
        "targeting": {"languages": ["typescript"], "contexts": ["development"]},
        "content": {"markdown": f"# {name}", "tags": ["react"], "priority": "high"},
    }


def _rules(count: int = 3) -> list[dict]:
    return [_rule(f"Rule {i}") for i in range(count)]


@pytest.fixture
def parser() -> RuleResponseParser:
    return RuleResponseParser()


class TestRuleResponseParser:
    """Tests for successful parsing."""

    def test_parse_rules_object(self, parser: RuleResponseParser) -> None:
        """An object with a rules key is accepted."""
        rules = parser.parse(json.dumps({"rules": [_rule("A"), _rule("B"), _rule("C")]}))
        assert [r.metadata.name for r in rules] == ["A", "B", "C"]
        assert rules[0].metadata.confidence == 0.7
        assert rules[0].content.priority == "high"

    def test_parse_bare_array(self, parser: RuleResponseParser) -> None:
        """A bare JSON array is accepted."""
        rules = parser.parse(json.dumps(_rules(4)))
        assert len(rules) == 4

    def test_parse_json_code_block(self, parser: RuleResponseParser) -> None:
        """JSON inside a ```json block is extracted."""
        text = f"Here are the rules:\n```json\n{json.dumps({'rules': _rules()})}\n```\n"
        assert parser.parse(text)[0].metadata.name == "Rule 0"

    def test_parse_json_with_surrounding_text(self, parser: RuleResponseParser) -> None:
        """JSON embedded in prose is extracted."""
        text = f"Sure! {json.dumps(_rules(5))} Hope this helps."
        assert len(parser.parse(text)) == 5

    def test_parse_camel_case_fields(self, parser: RuleResponseParser) -> None:
        """camelCase keys from the on-disk format are accepted."""
        rules = _rules()
        rules[0]["application"] = {"mode": "context", "includeFiles": ["src/**/*.tsx"]}
        parsed = parser.parse(json.dumps(rules))[0]
        assert parsed.application.include_files == ["src/**/*.tsx"]

    def test_custom_bounds(self) -> None:
        """The accepted rule count can be widened."""
        rules = RuleResponseParser(min_rules=1).parse(json.dumps([_rule()]))
        assert len(rules) == 1


class TestRuleResponseParserErrors:
    """Tests for rejected model output."""

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_empty_response(self, parser: RuleResponseParser, text: str) -> None:
        """Empty output is rejected."""
        with pytest.raises(ValidationFailedError, match="Empty"):
            parser.parse(text)

    def test_invalid_json(self, parser: RuleResponseParser) -> None:
        """Unparseable text is rejected."""
        with pytest.raises(ValidationFailedError, match="Invalid JSON"):
            parser.parse("I cannot help with that.")

    def test_not_a_rule_array(self, parser: RuleResponseParser) -> None:
        """An object without a rules list is rejected."""
        with pytest.raises(ValidationFailedError, match="array"):
            parser.parse('{"answer": "no"}')

    def test_too_many_rules(self, parser: RuleResponseParser) -> None:
        """More than five rules is rejected."""
        with pytest.raises(ValidationFailedError, match="3-5"):
            parser.parse(json.dumps(_rules(6)))

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_too_few_rules(self, parser: RuleResponseParser, count: int) -> None:
        """Fewer than three rules is rejected."""
        with pytest.raises(ValidationFailedError, match=f"got {count}"):
            parser.parse(json.dumps({"rules": _rules(count)}))

    def test_schema_violation(self, parser: RuleResponseParser) -> None:
        """Rules missing required fields are rejected as a whole."""
        bad = {"metadata": {"name": "No content"}}
        with pytest.raises(ValidationFailedError, match="schema"):
            parser.parse(json.dumps([*_rules(2), bad]))

    def test_out_of_range_confidence(self, parser: RuleResponseParser) -> None:
        """Confidence outside [0, 1] fails validation."""
        rules = _rules()
        rules[0]["metadata"]["confidence"] = 1.5
        with pytest.raises(ValidationFailedError):
            parser.parse(json.dumps(rules))
