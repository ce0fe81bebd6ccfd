#!/usr/bin/env python3
"""
Authored rules validation script for the UI Rules layer.
This script reports causes and effects the rule engine would ignore.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List

import yaml

from service_ui_rules.app.rules.models import Condition, ConditionOperator, parse_effect

VALID_OPERATORS = {operator.value for operator in ConditionOperator}


def load_rules(rules_path: Path) -> Any:
    """Load a JSON or YAML rules document."""
    text = rules_path.read_text(encoding="utf-8")
    if rules_path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def validate_rule(rule: Any, index: int) -> List[str]:
    """Validate a single authored rule."""
    errors = []

    if not isinstance(rule, dict):
        return [f"rule #{index}: not an object"]

    label = rule.get("name") or f"#{index}"
    if not rule.get("name"):
        errors.append(f"rule #{index}: missing name")

    if "active" in rule and not isinstance(rule["active"], bool):
        errors.append(f"rule {label}: active must be a boolean, got {rule['active']!r}")

    causes = rule.get("causes") or []
    if not isinstance(causes, list):
        errors.append(f"rule {label}: causes must be a list")
        causes = []

    for position, raw_cause in enumerate(causes):
        cause = Condition.from_raw(raw_cause)
        if cause.path is None:
            errors.append(f"rule {label}: cause {position} has neither field nor dataSource/path")
        if cause.operator not in VALID_OPERATORS:
            errors.append(f"rule {label}: cause {position} has unknown operator {cause.operator!r}")
        if cause.operator in ("in", "nin") and not isinstance(cause.value, list):
            errors.append(f"rule {label}: cause {position} uses {cause.operator} without a list value")

    effects = rule.get("effects") or []
    if not isinstance(effects, list):
        errors.append(f"rule {label}: effects must be a list")
        effects = []

    for position, raw_effect in enumerate(effects):
        effect = parse_effect(raw_effect)
        if effect is None:
            action = raw_effect.get("action") if isinstance(raw_effect, dict) else None
            errors.append(f"rule {label}: effect {position} ({action!r}) would be dropped")
            continue
        if getattr(effect, "action", None) == "replaceTabs":
            if effect.section != "tabs":
                errors.append(f"rule {label}: effect {position} replaceTabs needs section 'tabs'")
            for directive in effect.data.value:
                if directive.position == 0:
                    errors.append(f"rule {label}: effect {position} targets the protected start tab")

    return errors


def validate_document(document: Any) -> List[str]:
    """Validate a rules document: a list of rules or ``{"rules": [...]}``."""
    if isinstance(document, dict):
        document = document.get("rules")
    if not isinstance(document, list):
        return ["document must be a list of rules or an object with a 'rules' list"]

    errors = []
    names = set()
    for index, rule in enumerate(document):
        errors.extend(validate_rule(rule, index))
        name = rule.get("name") if isinstance(rule, dict) else None
        if name:
            if name in names:
                errors.append(f"rule {name}: duplicate name")
            names.add(name)
    return errors


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate authored UI rules files.")
    parser.add_argument("files", nargs="+", type=Path, help="JSON or YAML rules files")
    return parser.parse_args()


def main():
    """Main function to validate rules files."""
    args = _parse_args()
    print("Validating rules...")

    total_errors = 0

    for rules_path in args.files:
        try:
            document = load_rules(rules_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(f"❌ {rules_path}: could not be read ({e})")
            total_errors += 1
            continue

        errors = validate_document(document)

        if errors:
            print(f"❌ {rules_path}: {len(errors)} validation errors")
            for error in errors:
                print(f"   - {error}")
            total_errors += len(errors)
        else:
            print(f"✅ {rules_path}: rules are valid")

    print(f"\nValidation complete: {total_errors} total errors")

    if total_errors == 0:
        print("All rules files are valid!")
        return 0
    else:
        print("Some rules files have validation errors")
        return 1


if __name__ == "__main__":
    sys.exit(main())
