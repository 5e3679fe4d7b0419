"""Structured dataset filters: parsing untrusted payloads and applying them."""

from __future__ import annotations

import math
import operator
from typing import Any, Callable, Iterable, Mapping

from backend.domain.coercion import coerce_number, coerce_text, split_tokens
from backend.domain.models import DatasetKind, Filter, FilterClause, FilterOperator, Record


class FilterValidationError(Exception):
    """Raised when a filter payload is malformed or uses an unknown operator."""


_NUMERIC_COMPARATORS: dict[FilterOperator, Callable[[float, float], bool]] = {
    FilterOperator.GT: operator.gt,
    FilterOperator.LT: operator.lt,
    FilterOperator.GTE: operator.ge,
    FilterOperator.LTE: operator.le,
}


def _parse_clause(index: int, payload: Any) -> FilterClause:
    if not isinstance(payload, Mapping):
        raise FilterValidationError(f"filters[{index}] must be an object")

    field = payload.get("field")
    if not isinstance(field, str) or not field.strip():
        raise FilterValidationError(f"filters[{index}].field must be a non-empty string")

    raw_operator = payload.get("operator")
    try:
        clause_operator = FilterOperator(raw_operator)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in FilterOperator)
        raise FilterValidationError(
            f"filters[{index}].operator {raw_operator!r} is not one of: {allowed}"
        ) from exc

    value = payload.get("value")
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise FilterValidationError(f"filters[{index}].value must be a string or number")
    if isinstance(value, float) and not math.isfinite(value):
        raise FilterValidationError(f"filters[{index}].value must be a finite number")

    return FilterClause(field=field.strip(), operator=clause_operator, value=value)


def parse_filter(payload: Any) -> Filter:
    """Build a ``Filter`` from an untrusted mapping; the whole filter is rejected on any bad clause."""
    if not isinstance(payload, Mapping):
        raise FilterValidationError("Filter must be a JSON object")

    try:
        target = DatasetKind(payload.get("target"))
    except ValueError as exc:
        allowed = ", ".join(kind.value for kind in DatasetKind)
        raise FilterValidationError(f"target must be one of: {allowed}") from exc

    clauses = payload.get("filters", [])
    if clauses is None:
        clauses = []
    if not isinstance(clauses, (list, tuple)):
        raise FilterValidationError("filters must be a list")

    return Filter(
        target=target,
        clauses=tuple(_parse_clause(index, clause) for index, clause in enumerate(clauses)),
    )


def _values_equal(cell: Any, expected: Any) -> bool:
    cell_number = coerce_number(cell)
    expected_number = coerce_number(expected)
    if cell_number is not None and expected_number is not None:
        return cell_number == expected_number
    return coerce_text(cell) == coerce_text(expected)


def clause_matches(record: Record, clause: FilterClause) -> bool:
    cell = record.get(clause.field)

    if clause.operator is FilterOperator.EQ:
        return _values_equal(cell, clause.value)
    if clause.operator is FilterOperator.NEQ:
        return not _values_equal(cell, clause.value)
    if clause.operator is FilterOperator.CONTAINS:
        return coerce_text(clause.value).strip() in split_tokens(cell)

    comparator = _NUMERIC_COMPARATORS[clause.operator]
    cell_number = coerce_number(cell)
    expected_number = coerce_number(clause.value)
    if cell_number is None or expected_number is None:
        return False
    return comparator(cell_number, expected_number)


def apply_filter(records: Iterable[Record], dataset_filter: Filter) -> list[Record]:
    """Rows satisfying every clause, in their original order."""
    return [
        record
        for record in records
        if all(clause_matches(record, clause) for clause in dataset_filter.clauses)
    ]


def filter_to_dict(dataset_filter: Filter) -> dict[str, Any]:
    return {
        "target": dataset_filter.target.value,
        "filters": [
            {
                "field": clause.field,
                "operator": clause.operator.value,
                "value": clause.value,
            }
            for clause in dataset_filter.clauses
        ],
    }
