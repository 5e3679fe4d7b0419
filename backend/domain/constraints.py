"""Domain-level validation rules for prioritization weights."""

from __future__ import annotations

from typing import Any, Mapping

from backend.utils.config import Settings, get_settings


def validate_weight(name: str, value: Any, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if name not in settings.priority_weight_keys:
        raise ValueError(
            f"Unknown weight {name!r}; expected one of {', '.join(settings.priority_weight_keys)}"
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if not settings.weight_min <= value <= settings.weight_max:
        raise ValueError(
            f"{name} must be between {settings.weight_min} and {settings.weight_max}"
        )
    return value


def validate_weights(
    weights: Mapping[str, Any],
    settings: Settings | None = None,
) -> dict[str, int]:
    """Validate every entry before any is applied; weights need not sum to anything."""
    settings = settings or get_settings()
    return {name: validate_weight(name, value, settings) for name, value in weights.items()}
