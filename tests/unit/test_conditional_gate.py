"""
Unit tests for the conditional gate tool.
"""

import re

import pytest

from datahive_worker.core.exceptions import ConditionFailedError, ToolValidationError
from datahive_worker.tools.conditional_gate import OPERATORS, ConditionalGateTool, evaluate

EMAIL_PATTERN = r"^[\w.-]+@([\w-]+\.)+[\w-]{2,4}$"


class TestEvaluate:
    """Operator semantics."""

    @pytest.mark.parametrize(
        "value,operator,expected,result",
        [
            ("a", "EQUALS", "a", True),
            ("a", "EQUALS", "b", False),
            (1, "EQUALS", "1", False),
            ("a", "NOT_EQUALS", "b", True),
            ("a", "NOT_EQUALS", "a", False),
            ("hello world", "CONTAINS", "world", True),
            ("hello world", "CONTAINS", "moon", False),
            ("hello world", "NOT_CONTAINS", "moon", True),
            ("hello world", "NOT_CONTAINS", "world", False),
            (100, "GREATER_THAN", 50, True),
            ("10", "GREATER_THAN", 5, True),
            (5, "GREATER_THAN", 5, False),
            (1, "LESS_THAN", 2, True),
            (2, "LESS_THAN", 1, False),
            (5, "GREATER_THAN_OR_EQUAL", 5, True),
            (4, "GREATER_THAN_OR_EQUAL", 5, False),
            (5, "LESS_THAN_OR_EQUAL", 5, True),
            (6, "LESS_THAN_OR_EQUAL", 5, False),
            ("test@example.com", "MATCHES_PATTERN", EMAIL_PATTERN, True),
            ("not-an-email", "MATCHES_PATTERN", EMAIL_PATTERN, False),
            ("", "IS_EMPTY", None, True),
            ("x", "IS_EMPTY", None, False),
            ("x", "IS_NOT_EMPTY", None, True),
            ([], "IS_NOT_EMPTY", None, False),
        ],
    )
    def test_operators(self, value, operator, expected, result):
        assert evaluate(value, operator, expected) is result

    def test_every_operator_is_covered(self):
        assert len(OPERATORS) == 11

    @pytest.mark.parametrize("value", [None, "", [], {}])
    def test_empty_values(self, value):
        """Test null, empty string, empty list and empty mapping count as empty."""
        assert evaluate(value, "IS_EMPTY") is True

    @pytest.mark.parametrize("value", [0, False, " ", [None]])
    def test_non_empty_values(self, value):
        """Test zero and false are not empty."""
        assert evaluate(value, "IS_EMPTY") is False

    def test_unparseable_numbers_never_compare_true(self):
        """Test non-numeric text behaves like NaN."""
        assert evaluate("abc", "GREATER_THAN", 5) is False
        assert evaluate("abc", "LESS_THAN", 5) is False
        assert evaluate("abc", "GREATER_THAN_OR_EQUAL", 5) is False
        assert evaluate(None, "LESS_THAN_OR_EQUAL", 5) is False

    def test_empty_string_is_zero(self):
        assert evaluate("", "LESS_THAN", 1) is True

    def test_case_insensitive_comparison(self):
        """Test caseSensitive=false lowercases both sides."""
        assert evaluate("Hello", "EQUALS", "hello", case_sensitive=False) is True
        assert evaluate("Hello", "EQUALS", "hello") is False
        assert evaluate("Hello World", "CONTAINS", "WORLD", case_sensitive=False) is True
        assert evaluate("ABC", "MATCHES_PATTERN", "^abc$", case_sensitive=False) is True
        assert evaluate("ABC", "MATCHES_PATTERN", "^abc$") is False

    def test_pattern_is_searched_not_anchored(self):
        assert evaluate("order 12345 shipped", "MATCHES_PATTERN", r"\d{5}") is True

    def test_contains_requires_strings(self):
        with pytest.raises(ToolValidationError, match="requires string value"):
            evaluate(123, "CONTAINS", "1")
        with pytest.raises(ToolValidationError, match="requires string expected"):
            evaluate("123", "NOT_CONTAINS", 1)

    def test_invalid_regex(self):
        with pytest.raises(ToolValidationError, match="Invalid regex pattern"):
            evaluate("x", "MATCHES_PATTERN", "([")

    def test_unsupported_operator(self):
        with pytest.raises(ToolValidationError, match="Unsupported operator: BETWEEN"):
            evaluate(1, "BETWEEN", 2)


@pytest.mark.asyncio
class TestConditionalGateTool:
    """Gate behavior inside a pipeline."""

    @pytest.fixture
    def gate(self):
        return ConditionalGateTool()

    async def test_pass_continues(self, gate, context):
        """Test a passing condition returns True and continues."""
        result = await gate.execute(
            {"rule": {"value": "test", "operator": "EQUALS", "expected": "test"}}, context
        )

        assert result.result is True
        assert result.should_continue is True

    async def test_failure_without_throw_stops(self, gate, context):
        """Test throwOnFailure=false stops the pipeline instead of raising."""
        result = await gate.execute(
            {"rule": {"value": "a", "operator": "EQUALS", "expected": "b", "throwOnFailure": False}},
            context,
        )

        assert result.result is False
        assert result.should_continue is False

    async def test_failure_throws_by_default(self, gate, context):
        """Test the generated message quotes value and expected as JSON."""
        with pytest.raises(ConditionFailedError) as exc_info:
            await gate.execute(
                {"rule": {"value": "a", "operator": "EQUALS", "expected": "b"}}, context
            )

        assert str(exc_info.value) == 'Condition failed: "a" EQUALS "b"'

    async def test_custom_error_message(self, gate, context):
        with pytest.raises(ConditionFailedError, match="Invalid email format"):
            await gate.execute(
                {
                    "rule": {
                        "value": "nope",
                        "operator": "MATCHES_PATTERN",
                        "expected": EMAIL_PATTERN,
                        "errorMessage": "Invalid email format",
                    }
                },
                context,
            )

    async def test_invalid_pattern_raises_even_without_throw(self, gate, context):
        """Test configuration errors are not turned into a silent stop."""
        with pytest.raises(ToolValidationError):
            await gate.execute(
                {"rule": {"value": "x", "operator": "MATCHES_PATTERN", "expected": "([", "throwOnFailure": False}},
                context,
            )


class TestConditionalGateValidation:
    """Parameter validation messages."""

    @pytest.fixture
    def gate(self):
        return ConditionalGateTool()

    @pytest.mark.parametrize(
        "params,message",
        [
            ({}, "Missing required parameter: rule"),
            ({"rule": {"value": 1}}, "Missing required rule property: operator"),
            ({"rule": {"value": 1, "operator": "BETWEEN"}}, "Invalid operator 'BETWEEN'"),
            ({"rule": {"operator": "EQUALS", "expected": 1}}, "Missing required rule property: value"),
            ({"rule": {"value": 1, "operator": "EQUALS"}}, "Operator 'EQUALS' requires 'expected' property"),
            ({"rule": {"value": 1, "operator": "CONTAINS", "expected": "1"}}, "requires string value"),
            ({"rule": {"value": "x", "operator": "MATCHES_PATTERN", "expected": "(["}}, "Invalid regex pattern"),
        ],
    )
    def test_rejects(self, gate, params, message):
        with pytest.raises(ToolValidationError, match=re.escape(message)):
            gate.validate(params)

    def test_unary_operator_needs_no_expected(self, gate):
        assert gate.validate({"rule": {"value": None, "operator": "IS_EMPTY"}}) is True

    def test_invalid_operator_lists_valid_ones(self, gate):
        with pytest.raises(ToolValidationError) as exc_info:
            gate.validate({"rule": {"value": 1, "operator": "BETWEEN"}})

        assert "IS_NOT_EMPTY" in str(exc_info.value)

    def test_metadata_lists_operators(self, gate):
        metadata = gate.metadata()

        assert metadata["name"] == "conditional-gate"
        assert metadata["operators"] == list(OPERATORS)
        assert metadata["examples"]
