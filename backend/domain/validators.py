"""Field-level and cross-dataset validation over client, worker and task rows.

Every validator is a pure function of its input rows. Malformed cells are
reported as ``ValidationError`` values; nothing in this module raises on
bad data.
"""

from __future__ import annotations

import json
from typing import Iterable, Sequence

from backend.domain.coercion import coerce_number, coerce_text, split_tokens
from backend.domain.models import DatasetKind, Record, ValidationError
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

CLIENT_ID_FIELD = DatasetKind.CLIENTS.id_field
WORKER_ID_FIELD = DatasetKind.WORKERS.id_field
TASK_ID_FIELD = DatasetKind.TASKS.id_field


def find_duplicate_ids(records: Iterable[Record], id_field: str) -> set[str]:
    """Return identifier values that occur more than once."""
    seen: set[str] = set()
    duplicates: set[str] = set()
    for record in records:
        identifier = coerce_text(record.get(id_field))
        if identifier in seen:
            duplicates.add(identifier)
        else:
            seen.add(identifier)
    return duplicates


def validate_duplicate_ids(
    records: Sequence[Record],
    id_field: str,
) -> list[ValidationError]:
    """Flag every row whose identifier is shared, the first occurrence included."""
    duplicates = find_duplicate_ids(records, id_field)
    if not duplicates:
        return []
    errors: list[ValidationError] = []
    for record in records:
        identifier = coerce_text(record.get(id_field))
        if identifier in duplicates:
            errors.append(
                ValidationError(
                    entity_id=identifier,
                    field=id_field,
                    message=f"Duplicate {id_field} '{identifier}' found. IDs must be unique.",
                )
            )
    return errors


def validate_client_priority(
    clients: Sequence[Record],
    settings: Settings | None = None,
) -> list[ValidationError]:
    settings = settings or get_settings()
    lower, upper = settings.priority_level_min, settings.priority_level_max
    errors: list[ValidationError] = []
    for client in clients:
        raw = client.get("PriorityLevel")
        priority = coerce_number(raw)
        if priority is None or not lower <= priority <= upper:
            errors.append(
                ValidationError(
                    entity_id=coerce_text(client.get(CLIENT_ID_FIELD)),
                    field="PriorityLevel",
                    message=(
                        f"PriorityLevel must be a number between {lower} and {upper}. "
                        f"Found: '{coerce_text(raw)}'"
                    ),
                )
            )
    return errors


def _json_parse_failure(text: str) -> str | None:
    """Return why ``text`` is not well-formed JSON, or None when it is."""
    if not text.strip():
        return "is empty"

    def _reject_constant(token: str) -> None:
        raise ValueError(f"non-standard constant {token}")

    try:
        json.loads(text, parse_constant=_reject_constant)
    except ValueError as exc:
        return str(exc)
    return None


def validate_client_attributes_json(clients: Sequence[Record]) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for client in clients:
        reason = _json_parse_failure(coerce_text(client.get("AttributesJSON")))
        if reason is not None:
            errors.append(
                ValidationError(
                    entity_id=coerce_text(client.get(CLIENT_ID_FIELD)),
                    field="AttributesJSON",
                    message=f"AttributesJSON is not valid JSON ({reason}).",
                )
            )
    return errors


def validate_task_duration(
    tasks: Sequence[Record],
    settings: Settings | None = None,
) -> list[ValidationError]:
    settings = settings or get_settings()
    minimum = settings.task_duration_min
    errors: list[ValidationError] = []
    for task in tasks:
        raw = task.get("Duration")
        duration = coerce_number(raw)
        if duration is None or duration < minimum:
            errors.append(
                ValidationError(
                    entity_id=coerce_text(task.get(TASK_ID_FIELD)),
                    field="Duration",
                    message=(
                        f"Duration must be a number greater than or equal to {minimum}. "
                        f"Found: '{coerce_text(raw)}'"
                    ),
                )
            )
    return errors


def validate_unknown_task_references(
    clients: Sequence[Record],
    tasks: Sequence[Record],
) -> list[ValidationError]:
    """One error per requested task id that no task row carries."""
    known_task_ids = {coerce_text(task.get(TASK_ID_FIELD)) for task in tasks}
    errors: list[ValidationError] = []
    for client in clients:
        client_id = coerce_text(client.get(CLIENT_ID_FIELD))
        for task_id in dict.fromkeys(split_tokens(client.get("RequestedTaskIDs"))):
            if task_id not in known_task_ids:
                errors.append(
                    ValidationError(
                        entity_id=client_id,
                        field="RequestedTaskIDs",
                        message=f"Requested TaskID '{task_id}' does not exist in the tasks data.",
                    )
                )
    return errors


def validate_skill_coverage(
    workers: Sequence[Record],
    tasks: Sequence[Record],
) -> list[ValidationError]:
    """One error per required skill that no worker lists."""
    available_skills: set[str] = set()
    for worker in workers:
        available_skills.update(split_tokens(worker.get("Skills")))

    errors: list[ValidationError] = []
    for task in tasks:
        task_id = coerce_text(task.get(TASK_ID_FIELD))
        for skill in dict.fromkeys(split_tokens(task.get("RequiredSkills"))):
            if skill not in available_skills:
                errors.append(
                    ValidationError(
                        entity_id=task_id,
                        field="RequiredSkills",
                        message=f"Required skill '{skill}' is not covered by any worker.",
                    )
                )
    return errors


def run_all_validators(
    clients: Sequence[Record],
    workers: Sequence[Record],
    tasks: Sequence[Record],
    settings: Settings | None = None,
) -> list[ValidationError]:
    """Full re-scan of the three datasets in a fixed, deterministic order."""
    settings = settings or get_settings()

    client_errors = [
        *validate_client_priority(clients, settings),
        *validate_duplicate_ids(clients, CLIENT_ID_FIELD),
        *validate_client_attributes_json(clients),
    ]
    worker_errors = validate_duplicate_ids(workers, WORKER_ID_FIELD)
    task_errors = [
        *validate_duplicate_ids(tasks, TASK_ID_FIELD),
        *validate_task_duration(tasks, settings),
    ]
    cross_dataset_errors = [
        *validate_unknown_task_references(clients, tasks),
        *validate_skill_coverage(workers, tasks),
    ]

    errors = [*client_errors, *worker_errors, *task_errors, *cross_dataset_errors]
    logger.info(
        "Validation complete: %d errors across %d clients, %d workers, %d tasks",
        len(errors),
        len(clients),
        len(workers),
        len(tasks),
    )
    return errors


def group_errors_by_cell(
    errors: Iterable[ValidationError],
) -> dict[tuple[str, str], list[str]]:
    """Index messages by ``(entity_id, field)`` for per-cell highlighting."""
    grouped: dict[tuple[str, str], list[str]] = {}
    for error in errors:
        grouped.setdefault((error.entity_id, error.field), []).append(error.message)
    return grouped


def errors_for_dataset(
    errors: Iterable[ValidationError],
    kind: DatasetKind,
) -> list[ValidationError]:
    """Errors whose field belongs to rows of ``kind``."""
    fields = _DATASET_ERROR_FIELDS[kind]
    return [error for error in errors if error.field in fields]


_DATASET_ERROR_FIELDS = {
    DatasetKind.CLIENTS: frozenset({"ClientID", "PriorityLevel", "AttributesJSON", "RequestedTaskIDs"}),
    DatasetKind.WORKERS: frozenset({"WorkerID"}),
    DatasetKind.TASKS: frozenset({"TaskID", "Duration", "RequiredSkills"}),
}
