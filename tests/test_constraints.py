"""Tests for prioritization weight validation.

Covers the key, type and range branches in validate_weight().
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from backend.domain.constraints import validate_weight, validate_weights
from backend.utils.config import get_settings


# --- Baseline pass ---

def test_valid_weights_pass() -> None:
    assert validate_weights({"fulfillment": 70, "fairness": 20}) == {"fulfillment": 70, "fairness": 20}


def test_weights_need_not_sum_to_hundred() -> None:
    assert validate_weights({"fulfillment": 100, "fairness": 100}) == {"fulfillment": 100, "fairness": 100}


def test_partial_update_is_allowed() -> None:
    assert validate_weights({"fairness": 0}) == {"fairness": 0}


# --- Range ---

@pytest.mark.parametrize("value", [0, 100])
def test_range_boundaries_are_valid(value: int) -> None:
    assert validate_weight("fulfillment", value) == value


@pytest.mark.parametrize("value", [-1, 101])
def test_out_of_range_raises(value: int) -> None:
    with pytest.raises(ValueError):
        validate_weight("fulfillment", value)


# --- Type ---

@pytest.mark.parametrize("value", [50.5, "50", None, True])
def test_non_integer_raises(value) -> None:
    with pytest.raises(ValueError):
        validate_weight("fairness", value)


# --- Key ---

def test_unknown_key_raises() -> None:
    with pytest.raises(ValueError, match="Unknown weight"):
        validate_weights({"fulfillment": 50, "speed": 10})


def test_configured_bounds_are_respected() -> None:
    settings = replace(get_settings(), weight_max=10)
    with pytest.raises(ValueError):
        validate_weight("fulfillment", 11, settings)
    assert validate_weight("fulfillment", 10, settings) == 10
