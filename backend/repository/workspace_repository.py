"""Repository layer holding the single-session workspace state in memory."""

from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Any, Optional, Sequence

from backend.domain.models import DatasetKind, Record, Rule, ValidationError
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """Point-in-time copy of everything a validation pass or export needs."""

    clients: tuple[dict[str, Any], ...]
    workers: tuple[dict[str, Any], ...]
    tasks: tuple[dict[str, Any], ...]
    rules: tuple[Rule, ...]
    weights: dict[str, int]
    validation_errors: tuple[ValidationError, ...]


class WorkspaceRepository:
    """Owns datasets, rules and weights for one user session.

    All reads return copies and all writes replace whole values, so callers
    never observe a half-applied update. The lock serializes writers coming
    from concurrent HTTP handlers.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._lock = RLock()
        self._datasets: dict[DatasetKind, list[dict[str, Any]]] = {
            kind: [] for kind in DatasetKind
        }
        self._rules: list[Rule] = []
        self._weights: dict[str, int] = dict(self._settings.default_weights)
        self._validation_errors: list[ValidationError] = []

    def get_dataset(self, kind: DatasetKind) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(record) for record in self._datasets[kind]]

    def replace_dataset(self, kind: DatasetKind, records: Sequence[Record]) -> int:
        """Swap in a new dataset wholesale; re-uploads never merge."""
        copied = [dict(record) for record in records]
        with self._lock:
            self._datasets[kind] = copied
        logger.info("Replaced %s dataset with %d records", kind.value, len(copied))
        return len(copied)

    def clear_dataset(self, kind: DatasetKind) -> None:
        self.replace_dataset(kind, [])

    def update_cell(
        self,
        kind: DatasetKind,
        row_index: int,
        field: str,
        value: Any,
    ) -> dict[str, Any]:
        with self._lock:
            records = self._datasets[kind]
            if not 0 <= row_index < len(records):
                raise IndexError(
                    f"Row {row_index} is out of range for {kind.value} ({len(records)} rows)"
                )
            updated = dict(records[row_index])
            updated[field] = value
            self._datasets[kind] = [
                updated if index == row_index else record
                for index, record in enumerate(records)
            ]
            return dict(updated)

    def list_rules(self) -> list[Rule]:
        with self._lock:
            return list(self._rules)

    def append_rule(self, rule: Rule) -> int:
        """Append as-is; identical rules may coexist."""
        with self._lock:
            self._rules = [*self._rules, rule]
            return len(self._rules)

    def clear_rules(self) -> int:
        with self._lock:
            removed = len(self._rules)
            self._rules = []
        return removed

    def get_weights(self) -> dict[str, int]:
        with self._lock:
            return dict(self._weights)

    def set_weights(self, weights: dict[str, int]) -> dict[str, int]:
        with self._lock:
            self._weights = {**self._weights, **weights}
            return dict(self._weights)

    def set_validation_errors(self, errors: Sequence[ValidationError]) -> None:
        with self._lock:
            self._validation_errors = list(errors)

    def get_validation_errors(self) -> list[ValidationError]:
        with self._lock:
            return list(self._validation_errors)

    def snapshot(self) -> WorkspaceSnapshot:
        with self._lock:
            return WorkspaceSnapshot(
                clients=tuple(dict(record) for record in self._datasets[DatasetKind.CLIENTS]),
                workers=tuple(dict(record) for record in self._datasets[DatasetKind.WORKERS]),
                tasks=tuple(dict(record) for record in self._datasets[DatasetKind.TASKS]),
                rules=tuple(self._rules),
                weights=dict(self._weights),
                validation_errors=tuple(self._validation_errors),
            )
