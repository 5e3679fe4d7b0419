"""Domain models for dataset validation, allocation rules and filters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Mapping, Union


# One spreadsheet row. Columns vary by upload, so fields are read on demand.
Record = Mapping[str, Any]


class DatasetKind(str, Enum):
    CLIENTS = "clients"
    WORKERS = "workers"
    TASKS = "tasks"

    @property
    def id_field(self) -> str:
        return _ID_FIELDS[self]


_ID_FIELDS = {
    DatasetKind.CLIENTS: "ClientID",
    DatasetKind.WORKERS: "WorkerID",
    DatasetKind.TASKS: "TaskID",
}

ID_FIELDS: tuple[str, ...] = tuple(_ID_FIELDS.values())


@dataclass(frozen=True)
class ValidationError:
    """A single data-quality violation tied to one record and one field."""

    entity_id: str
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "entityId": self.entity_id,
            "field": self.field,
            "message": self.message,
        }


@dataclass(frozen=True)
class CoRunRule:
    tasks: tuple[str, ...]
    type: Literal["coRun"] = "coRun"


@dataclass(frozen=True)
class SlotRestrictionRule:
    group_type: Literal["client", "worker"]
    group: str
    min_common_slots: int
    type: Literal["slot-restriction"] = "slot-restriction"


@dataclass(frozen=True)
class LoadLimitRule:
    group: str
    max_slots_per_phase: int
    type: Literal["load-limit"] = "load-limit"


Rule = Union[CoRunRule, SlotRestrictionRule, LoadLimitRule]


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    CONTAINS = "contains"


@dataclass(frozen=True)
class FilterClause:
    field: str
    operator: FilterOperator
    value: str | float | int


@dataclass(frozen=True)
class Filter:
    """Conjunction of clauses evaluated against one dataset."""

    target: DatasetKind
    clauses: tuple[FilterClause, ...] = ()
