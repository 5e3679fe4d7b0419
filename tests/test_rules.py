"""Tests for structural rule parsing and the rule list contract."""

from __future__ import annotations

import pytest

from backend.domain.models import CoRunRule, LoadLimitRule, SlotRestrictionRule
from backend.domain.rules import RuleValidationError, describe_rule, parse_rule, rule_to_dict
from backend.services.workspace_service import WorkspaceService


# --- Accepted shapes ---

def test_co_run_rule_is_accepted() -> None:
    rule = parse_rule({"type": "coRun", "tasks": ["T1", "T2"]})
    assert rule == CoRunRule(tasks=("T1", "T2"))


def test_co_run_rule_may_reference_unknown_tasks() -> None:
    """Rules are shape-checked only; datasets may not be loaded yet."""
    rule = parse_rule({"type": "coRun", "tasks": ["T_DOES_NOT_EXIST"]})
    assert rule.tasks == ("T_DOES_NOT_EXIST",)


def test_slot_restriction_rule_is_accepted() -> None:
    rule = parse_rule(
        {"type": "slot-restriction", "groupType": "worker", "group": "DevTeamA", "minCommonSlots": 3}
    )
    assert rule == SlotRestrictionRule(group_type="worker", group="DevTeamA", min_common_slots=3)


def test_load_limit_rule_accepts_integral_float() -> None:
    rule = parse_rule({"type": "load-limit", "group": "DevTeamA", "maxSlotsPerPhase": 2.0})
    assert rule == LoadLimitRule(group="DevTeamA", max_slots_per_phase=2)


# --- Rejected shapes ---

@pytest.mark.parametrize(
    "payload",
    [
        {"type": "bogus"},
        {},
        {"type": "coRun"},
        {"type": "coRun", "tasks": []},
        {"type": "coRun", "tasks": "T1,T2"},
        {"type": "coRun", "tasks": ["T1", 2]},
        {"type": "slot-restriction", "groupType": "team", "group": "A", "minCommonSlots": 1},
        {"type": "slot-restriction", "groupType": "client", "minCommonSlots": 1},
        {"type": "slot-restriction", "groupType": "client", "group": "A", "minCommonSlots": "3"},
        {"type": "load-limit", "group": "A", "maxSlotsPerPhase": 0},
        {"type": "load-limit", "group": "A", "maxSlotsPerPhase": 1.5},
        {"type": "load-limit", "group": "A", "maxSlotsPerPhase": True},
        {"type": "load-limit", "group": " ", "maxSlotsPerPhase": 2},
        ["coRun"],
        None,
    ],
)
def test_malformed_rule_is_rejected(payload) -> None:
    with pytest.raises(RuleValidationError):
        parse_rule(payload)


# --- Serialization ---

def test_rule_to_dict_matches_accepted_wire_shape() -> None:
    payloads = [
        {"type": "coRun", "tasks": ["T1", "T2"]},
        {"type": "slot-restriction", "groupType": "client", "group": "Tier1", "minCommonSlots": 3},
        {"type": "load-limit", "group": "DevTeamA", "maxSlotsPerPhase": 2},
    ]
    for payload in payloads:
        assert rule_to_dict(parse_rule(payload)) == payload


def test_describe_rule_mentions_group() -> None:
    rule = parse_rule({"type": "load-limit", "group": "DevTeamA", "maxSlotsPerPhase": 2})
    assert "DevTeamA" in describe_rule(rule)


# --- Rule list ---

def test_add_rule_appends_in_order_and_allows_duplicates() -> None:
    service = WorkspaceService()
    payload = {"type": "coRun", "tasks": ["T1", "T2"]}
    service.add_rule(payload)
    service.add_rule({"type": "load-limit", "group": "G", "maxSlotsPerPhase": 1})
    service.add_rule(payload)
    assert [rule.type for rule in service.list_rules()] == ["coRun", "load-limit", "coRun"]


def test_rejected_rule_leaves_list_unchanged() -> None:
    service = WorkspaceService()
    service.add_rule({"type": "coRun", "tasks": ["T1", "T2"]})
    with pytest.raises(RuleValidationError):
        service.add_rule({"type": "bogus"})
    assert len(service.list_rules()) == 1


def test_clear_rules_reports_removed_count() -> None:
    service = WorkspaceService()
    service.add_rule({"type": "coRun", "tasks": ["T1"]})
    service.add_rule({"type": "coRun", "tasks": ["T2"]})
    assert service.clear_rules() == 2
    assert service.list_rules() == []
