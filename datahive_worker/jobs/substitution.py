"""
Variable substitution for step definitions.

Placeholders look like ``{{ vars.<key> }}``. Strings, lists/tuples and
mappings are walked recursively; mapping keys are never substituted and any
other value is returned as is. Substitution is a single pass: values that
themselves contain placeholders are not expanded again.

A placeholder embedded in surrounding text renders its value the way JSON
would: true, false, null, and JSON arrays and objects. Strings and numbers
appear as they are.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

import structlog

logger = structlog.get_logger()

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*vars\.(.*?)\s*\}\}")


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, list, tuple, dict)):
        return json.dumps(value, default=str)
    return str(value)


def _substitute_string(text: str, variables: Mapping[str, Any]) -> Any:
    # A string that is exactly one known placeholder keeps the variable's type
    whole = PLACEHOLDER_PATTERN.fullmatch(text)
    if whole:
        key = whole.group(1).strip()
        if "}}" not in key and key in variables:
            return variables[key]

    def _replace(match: re.Match) -> str:
        key = match.group(1).strip()
        if key in variables:
            return _render(variables[key])
        logger.warning("Variable not found", variable=key)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def substitute(target: Any, variables: Mapping[str, Any]) -> Any:
    """Return ``target`` with every ``{{ vars.<key> }}`` placeholder resolved.

    Args:
        target: String, sequence, mapping or any other value
        variables: Flat name -> value mapping

    Returns:
        A value of the same shape as ``target``. Unknown keys leave the
        placeholder untouched (a warning is logged).
    """
    if isinstance(target, str):
        return _substitute_string(target, variables)
    if isinstance(target, list):
        return [substitute(item, variables) for item in target]
    if isinstance(target, tuple):
        return tuple(substitute(item, variables) for item in target)
    if isinstance(target, Mapping):
        return {key: substitute(value, variables) for key, value in target.items()}
    return target


def find_placeholders(target: Any) -> set[str]:
    """Collect every variable name referenced by ``target``."""
    if isinstance(target, str):
        return {m.group(1).strip() for m in PLACEHOLDER_PATTERN.finditer(target)}
    if isinstance(target, (list, tuple)):
        found: set[str] = set()
        for item in target:
            found |= find_placeholders(item)
        return found
    if isinstance(target, Mapping):
        found = set()
        for value in target.values():
            found |= find_placeholders(value)
        return found
    return set()
