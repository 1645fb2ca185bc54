"""
Conditional Gate Tool

Validates a value against a rule and decides whether the pipeline goes on.

Example step:

    - use: conditional-gate
      rule:
        value: "{{ vars.email }}"
        operator: MATCHES_PATTERN
        expected: "^[\\w.-]+@([\\w-]+\\.)+[\\w-]{2,4}$"
        caseSensitive: false
        throwOnFailure: true
        errorMessage: Invalid email format
"""

import json
import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from datahive_worker.core.exceptions import ConditionFailedError, ToolValidationError
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool


class Operator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    MATCHES_PATTERN = "MATCHES_PATTERN"
    IS_EMPTY = "IS_EMPTY"
    IS_NOT_EMPTY = "IS_NOT_EMPTY"


OPERATORS = tuple(op.value for op in Operator)

# Operators that only look at ``value``
UNARY_OPERATORS = {Operator.IS_EMPTY, Operator.IS_NOT_EMPTY}
STRING_OPERATORS = {Operator.CONTAINS, Operator.NOT_CONTAINS}


def _dump(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def _to_number(value: Any) -> float:
    """Numeric coercion; anything unparseable becomes NaN (never compares true)."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            return float(stripped)
        except ValueError:
            return math.nan
    return math.nan


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) == 0
    return False


def _check_string_operands(operator: Operator, value: Any, expected: Any) -> None:
    if not isinstance(value, str):
        raise ToolValidationError(
            f"{operator.value} operator requires string value, got {type(value).__name__}"
        )
    if not isinstance(expected, str):
        raise ToolValidationError(
            f"{operator.value} operator requires string expected, got {type(expected).__name__}"
        )


def _compile_pattern(expected: Any, case_sensitive: bool) -> re.Pattern:
    if not isinstance(expected, str):
        raise ToolValidationError(
            f"MATCHES_PATTERN operator requires regex pattern string, got {type(expected).__name__}"
        )
    try:
        return re.compile(expected, 0 if case_sensitive else re.IGNORECASE)
    except re.error as e:
        raise ToolValidationError(f"Invalid regex pattern '{expected}': {e}") from e


def evaluate(value: Any, operator: str, expected: Any = None, case_sensitive: bool = True) -> bool:
    """Evaluate one condition.

    Raises:
        ToolValidationError: Unknown operator, non-string operands for
            CONTAINS/NOT_CONTAINS, or an unusable regex pattern
    """
    try:
        op = Operator(operator)
    except ValueError:
        raise ToolValidationError(f"Unsupported operator: {operator}") from None

    def normalize(val: Any) -> Any:
        if not case_sensitive and isinstance(val, str):
            return val.lower()
        return val

    left = normalize(value)
    right = normalize(expected)

    if op is Operator.EQUALS:
        return left == right
    if op is Operator.NOT_EQUALS:
        return left != right
    if op in STRING_OPERATORS:
        _check_string_operands(op, value, expected)
        found = right in left
        return found if op is Operator.CONTAINS else not found
    if op is Operator.GREATER_THAN:
        return _to_number(value) > _to_number(expected)
    if op is Operator.LESS_THAN:
        return _to_number(value) < _to_number(expected)
    if op is Operator.GREATER_THAN_OR_EQUAL:
        return _to_number(value) >= _to_number(expected)
    if op is Operator.LESS_THAN_OR_EQUAL:
        return _to_number(value) <= _to_number(expected)
    if op is Operator.MATCHES_PATTERN:
        pattern = _compile_pattern(expected, case_sensitive)
        return pattern.search(str(value)) is not None
    if op is Operator.IS_EMPTY:
        return is_empty(value)
    return not is_empty(value)


class ConditionalGateTool(Tool):
    """Gate a pipeline on a single condition."""

    description = "Validates data against conditions and controls flow execution"

    def __init__(self) -> None:
        super().__init__("conditional-gate")

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        rule = params["rule"]
        value = rule.get("value")
        operator = rule.get("operator")
        expected = rule.get("expected")
        case_sensitive = rule.get("caseSensitive", True)
        throw_on_failure = rule.get("throwOnFailure", True)
        error_message = rule.get("errorMessage")

        log = self.get_logger(context)
        log.debug("Testing condition", value=value, operator=operator, expected=expected)

        passed = evaluate(value, operator, expected, case_sensitive)

        if not passed:
            message = error_message or (
                f"Condition failed: {_dump(value)} {operator} {_dump(expected)}"
            )
            if throw_on_failure:
                raise ConditionFailedError(message)

            log.warning("Condition failed, stopping pipeline", reason=message)
            return ToolResult(result=False, should_continue=False)

        log.info("Condition passed", operator=operator)
        return ToolResult(result=True, should_continue=True)

    def validate(self, params: dict[str, Any]) -> bool:
        if not params or not params.get("rule"):
            raise ToolValidationError("Missing required parameter: rule")

        rule = params["rule"]
        if not isinstance(rule, Mapping):
            raise ToolValidationError("Parameter 'rule' must be a mapping")

        operator = rule.get("operator")
        if not operator:
            raise ToolValidationError("Missing required rule property: operator")

        if operator not in OPERATORS:
            raise ToolValidationError(
                f"Invalid operator '{operator}'. Valid operators: {', '.join(OPERATORS)}"
            )

        if "value" not in rule:
            raise ToolValidationError("Missing required rule property: value")

        op = Operator(operator)
        if op not in UNARY_OPERATORS and "expected" not in rule:
            raise ToolValidationError(f"Operator '{operator}' requires 'expected' property")

        if op in STRING_OPERATORS:
            _check_string_operands(op, rule["value"], rule["expected"])
        elif op is Operator.MATCHES_PATTERN:
            _compile_pattern(rule["expected"], rule.get("caseSensitive", True))

        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "operators": list(OPERATORS),
            "parameters": {
                "rule": {"type": "object", "required": True, "description": "Validation rule"},
            },
            "examples": [
                {
                    "description": "Check if value equals expected",
                    "rule": {"value": "test", "operator": "EQUALS", "expected": "test"},
                },
                {
                    "description": "Check if email matches pattern",
                    "rule": {
                        "value": "test@example.com",
                        "operator": "MATCHES_PATTERN",
                        "expected": r"^[\w.-]+@([\w-]+\.)+[\w-]{2,4}$",
                    },
                },
                {
                    "description": "Check if value is not empty",
                    "rule": {"value": "some value", "operator": "IS_NOT_EMPTY"},
                },
                {
                    "description": "Check if number is greater than threshold",
                    "rule": {"value": 100, "operator": "GREATER_THAN", "expected": 50},
                },
            ],
        }
