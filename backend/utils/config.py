"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str = "Data Alchemist"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    priority_level_min: int = 1
    priority_level_max: int = 5
    task_duration_min: int = 1

    priority_weight_keys: tuple[str, ...] = ("fulfillment", "fairness")
    default_weights: dict[str, int] = field(
        default_factory=lambda: {"fulfillment": 50, "fairness": 50}
    )
    weight_min: int = 0
    weight_max: int = 100

    max_upload_rows: int = 50_000
    upload_extensions: tuple[str, ...] = (".csv", ".xlsx")

    generator_api_key: str | None = None
    generator_model: str = "gemini-1.5-flash"
    generator_temperature: float = 0.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        default_weights={
            "fulfillment": _env_int("DEFAULT_FULFILLMENT_WEIGHT", 50),
            "fairness": _env_int("DEFAULT_FAIRNESS_WEIGHT", 50),
        },
        max_upload_rows=_env_int("MAX_UPLOAD_ROWS", defaults.max_upload_rows),
        generator_api_key=os.getenv("GOOGLE_API_KEY") or None,
        generator_model=os.getenv("GENERATOR_MODEL", defaults.generator_model),
    )
