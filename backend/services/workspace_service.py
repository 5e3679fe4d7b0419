"""Workspace orchestration: datasets -> validation, rules, weights and search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from backend.domain.coercion import coerce_text, record_identifier
from backend.domain.constraints import validate_weights
from backend.domain.filters import apply_filter, parse_filter
from backend.domain.models import DatasetKind, Filter, Record, Rule, ValidationError
from backend.domain.rules import RuleValidationError, parse_rule
from backend.domain.validators import errors_for_dataset, group_errors_by_cell, run_all_validators
from backend.repository.workspace_repository import WorkspaceRepository
from backend.services.ingestion_service import TabularIngestionService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class WorkspaceValidationError(Exception):
    """Raised when a workspace operation receives invalid input."""


@dataclass(frozen=True)
class SearchResult:
    filter: Filter
    records: list[Record]
    total_records: int


class WorkspaceService:
    """Coordinates upload -> validate -> rules/weights -> search for one session.

    Validation is recomputed from the full datasets after every mutation;
    nothing is diffed or cached between passes.
    """

    def __init__(
        self,
        repository: Optional[WorkspaceRepository] = None,
        ingestion_service: Optional[TabularIngestionService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or WorkspaceRepository(self._settings)
        self._ingestion_service = ingestion_service or TabularIngestionService(self._settings)

    # --- datasets -------------------------------------------------------

    def get_dataset(self, kind: DatasetKind) -> list[dict[str, Any]]:
        return self._repository.get_dataset(kind)

    def load_dataset(self, kind: DatasetKind, records: Sequence[Record]) -> list[ValidationError]:
        self._repository.replace_dataset(kind, records)
        return self.validate()

    def upload_dataset(self, kind: DatasetKind, filename: str, content: bytes) -> list[ValidationError]:
        records = self._ingestion_service.parse(filename, content)
        return self.load_dataset(kind, records)

    def remove_dataset(self, kind: DatasetKind) -> list[ValidationError]:
        self._repository.clear_dataset(kind)
        return self.validate()

    def edit_cell(
        self,
        kind: DatasetKind,
        row_index: int,
        field: str,
        value: Any,
    ) -> tuple[dict[str, Any], list[ValidationError]]:
        if not field or not field.strip():
            raise WorkspaceValidationError("field must be a non-empty column name")
        try:
            updated = self._repository.update_cell(kind, row_index, field.strip(), value)
        except IndexError as exc:
            raise WorkspaceValidationError(str(exc)) from exc
        return updated, self.validate()

    def schemas(self) -> dict[str, list[str]]:
        """Column names per dataset, in first-seen order."""
        result: dict[str, list[str]] = {}
        for kind in DatasetKind:
            columns: dict[str, None] = {}
            for record in self._repository.get_dataset(kind):
                columns.update(dict.fromkeys(record))
            result[kind.value] = list(columns)
        return result

    # --- validation -----------------------------------------------------

    def validate(self) -> list[ValidationError]:
        snapshot = self._repository.snapshot()
        errors = run_all_validators(
            snapshot.clients,
            snapshot.workers,
            snapshot.tasks,
            self._settings,
        )
        self._repository.set_validation_errors(errors)
        return errors

    def get_validation_errors(self) -> list[ValidationError]:
        return self._repository.get_validation_errors()

    def errors_for(self, kind: DatasetKind) -> dict[tuple[str, str], list[str]]:
        return group_errors_by_cell(
            errors_for_dataset(self._repository.get_validation_errors(), kind)
        )

    def flagged_fields(self, kind: DatasetKind) -> list[list[str]]:
        """Per row, the columns that carry at least one error."""
        by_cell = self.errors_for(kind)
        flagged: list[list[str]] = []
        for record in self._repository.get_dataset(kind):
            entity_id = record_identifier(record)
            flagged.append([field for field in record if (entity_id, field) in by_cell])
        return flagged

    # --- rules ----------------------------------------------------------

    def add_rule(self, payload: Any) -> Rule:
        try:
            rule = parse_rule(payload)
        except RuleValidationError as exc:
            logger.warning("Rejected rule payload: %s", exc)
            raise
        count = self._repository.append_rule(rule)
        logger.info("Added %s rule (%d total)", rule.type, count)
        return rule

    def list_rules(self) -> list[Rule]:
        return self._repository.list_rules()

    def clear_rules(self) -> int:
        return self._repository.clear_rules()

    def rule_options(self) -> dict[str, list[str]]:
        """Values a rule builder can offer: group tags and task ids."""

        def _distinct(kind: DatasetKind, field: str) -> list[str]:
            values = (coerce_text(record.get(field)) for record in self._repository.get_dataset(kind))
            return list(dict.fromkeys(value for value in values if value))

        return {
            "client_groups": _distinct(DatasetKind.CLIENTS, "GroupTag"),
            "worker_groups": _distinct(DatasetKind.WORKERS, "WorkerGroup"),
            "task_ids": _distinct(DatasetKind.TASKS, DatasetKind.TASKS.id_field),
        }

    # --- weights --------------------------------------------------------

    def get_weights(self) -> dict[str, int]:
        return self._repository.get_weights()

    def set_weights(self, weights: Mapping[str, Any]) -> dict[str, int]:
        try:
            validated = validate_weights(weights, self._settings)
        except ValueError as exc:
            raise WorkspaceValidationError(str(exc)) from exc
        return self._repository.set_weights(validated)

    # --- search ---------------------------------------------------------

    def search(self, payload: Any) -> SearchResult:
        dataset_filter = parse_filter(payload)
        records = self._repository.get_dataset(dataset_filter.target)
        matched = apply_filter(records, dataset_filter)
        logger.info(
            "Search on %s matched %d of %d records",
            dataset_filter.target.value,
            len(matched),
            len(records),
        )
        return SearchResult(filter=dataset_filter, records=matched, total_records=len(records))
