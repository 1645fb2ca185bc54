"""
Rule documents: the YAML carried in ``job.ruleCollection.yamlRules``.

    steps:
      - use: fetch
        url: https://api.example/search?q={{ vars.q }}
      - use: conditional-gate
        rule: {value: ..., operator: IS_NOT_EMPTY}
"""

from typing import Any

import yaml

from datahive_worker.core.exceptions import RuleDocumentError


def parse_rule_document(text: str | None) -> list[dict[str, Any]]:
    """Parse a rule document into its ordered list of steps.

    An empty document, or one without ``steps``, has no steps.

    Raises:
        RuleDocumentError: Invalid YAML, or ``steps`` is not a list of mappings
    """
    if not text or not text.strip():
        return []

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleDocumentError(f"Invalid rule document: {e}") from e

    if document is None:
        return []
    if not isinstance(document, dict):
        raise RuleDocumentError("Rule document must be a mapping with a 'steps' list")

    steps = document.get("steps")
    if steps is None:
        return []
    if not isinstance(steps, list):
        raise RuleDocumentError("'steps' must be a list")

    for index, step in enumerate(steps, start=1):
        if not isinstance(step, dict):
            raise RuleDocumentError(f"Step {index} must be a mapping, got {type(step).__name__}")

    return steps
