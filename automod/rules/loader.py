"""Load rule sets from YAML files.

A rule file holds a top-level ``rules`` list; each entry uses the same shape
``RuleStore`` persists::

    name: default-spam
    rules:
      - name: Spam keywords
        trigger_type: KEYWORD_MATCH
        target_types: [POST, COMMENT]
        conditions:
          - {type: KEYWORD, operator: CONTAINS, value: spam}
        actions:
          - {type: FLAG}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from automod.exceptions import ValidationError
from automod.rules.models import Rule
from automod.rules.validator import validate_rule


def read_rule_drafts(path: str | Path) -> list[dict[str, Any]]:
    """Return the raw rule dicts from a YAML rule file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        raise ValidationError([f"{path}: expected a list of rules or a 'rules' key"])
    drafts = data.get("rules", [])
    if not isinstance(drafts, list):
        raise ValidationError([f"{path}: 'rules' must be a list"])
    return drafts


def load_rules(path: str | Path) -> list[Rule]:
    """Load and validate every rule in a YAML file.

    Errors from all rules are collected and raised together, each prefixed
    with the rule's position and name.
    """
    rules: list[Rule] = []
    errors: list[str] = []
    for index, draft in enumerate(read_rule_drafts(path), start=1):
        result = validate_rule(draft)
        if not result.is_valid:
            label = (draft.get("name") if isinstance(draft, dict) else None) or "unnamed"
            errors.extend(f"rule {index} ({label}): {e}" for e in result.errors)
            continue
        rules.append(Rule.from_dict(draft))

    if errors:
        raise ValidationError(errors)
    return rules
