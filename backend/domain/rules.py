"""Structural parsing and serialization of allocation rules.

Rules arrive either from the manual builder or from the text generator, so
the payload is untrusted. Parsing only checks shape; task ids and group
names are not checked against the loaded datasets because rules may be
written before any upload.
"""

from __future__ import annotations

from typing import Any, Mapping

from backend.domain.models import CoRunRule, LoadLimitRule, Rule, SlotRestrictionRule


class RuleValidationError(Exception):
    """Raised when a payload does not match any known rule shape."""


RULE_TYPES = ("coRun", "slot-restriction", "load-limit")
GROUP_TYPES = ("client", "worker")


def _require_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise RuleValidationError(f"'{key}' must be a non-empty string")
    return value.strip()


def _require_count(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RuleValidationError(f"'{key}' must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise RuleValidationError(f"'{key}' must be a whole number")
    if value < 1:
        raise RuleValidationError(f"'{key}' must be >= 1")
    return int(value)


def _parse_co_run(payload: Mapping[str, Any]) -> CoRunRule:
    tasks = payload.get("tasks")
    if not isinstance(tasks, (list, tuple)) or not tasks:
        raise RuleValidationError("'tasks' must be a non-empty list of task ids")
    task_ids: list[str] = []
    for task in tasks:
        if not isinstance(task, str) or not task.strip():
            raise RuleValidationError("'tasks' entries must be non-empty strings")
        task_ids.append(task.strip())
    return CoRunRule(tasks=tuple(task_ids))


def _parse_slot_restriction(payload: Mapping[str, Any]) -> SlotRestrictionRule:
    group_type = payload.get("groupType")
    if group_type not in GROUP_TYPES:
        raise RuleValidationError("'groupType' must be 'client' or 'worker'")
    return SlotRestrictionRule(
        group_type=group_type,
        group=_require_text(payload, "group"),
        min_common_slots=_require_count(payload, "minCommonSlots"),
    )


def _parse_load_limit(payload: Mapping[str, Any]) -> LoadLimitRule:
    return LoadLimitRule(
        group=_require_text(payload, "group"),
        max_slots_per_phase=_require_count(payload, "maxSlotsPerPhase"),
    )


def parse_rule(payload: Any) -> Rule:
    """Build a rule from an untrusted mapping or raise ``RuleValidationError``."""
    if not isinstance(payload, Mapping):
        raise RuleValidationError("Rule must be a JSON object")
    rule_type = payload.get("type")
    if rule_type == "coRun":
        return _parse_co_run(payload)
    if rule_type == "slot-restriction":
        return _parse_slot_restriction(payload)
    if rule_type == "load-limit":
        return _parse_load_limit(payload)
    raise RuleValidationError(
        f"Unknown rule type {rule_type!r}; expected one of {', '.join(RULE_TYPES)}"
    )


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    """Wire form of a rule, matching the shape ``parse_rule`` accepts."""
    if isinstance(rule, CoRunRule):
        return {"type": rule.type, "tasks": list(rule.tasks)}
    if isinstance(rule, SlotRestrictionRule):
        return {
            "type": rule.type,
            "groupType": rule.group_type,
            "group": rule.group,
            "minCommonSlots": rule.min_common_slots,
        }
    if isinstance(rule, LoadLimitRule):
        return {
            "type": rule.type,
            "group": rule.group,
            "maxSlotsPerPhase": rule.max_slots_per_phase,
        }
    raise TypeError(f"Unsupported rule variant: {type(rule).__name__}")


def describe_rule(rule: Rule) -> str:
    if isinstance(rule, CoRunRule):
        return f"Tasks {', '.join(rule.tasks)} must run together"
    if isinstance(rule, SlotRestrictionRule):
        return (
            f"{rule.group_type.capitalize()} group {rule.group} needs at least "
            f"{rule.min_common_slots} common slots"
        )
    if isinstance(rule, LoadLimitRule):
        return f"Worker group {rule.group} is limited to {rule.max_slots_per_phase} slots per phase"
    raise TypeError(f"Unsupported rule variant: {type(rule).__name__}")
