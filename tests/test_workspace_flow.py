from __future__ import annotations

import json
from dataclasses import replace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.rules_controller import router as rules_router
from backend.controllers.search_controller import router as search_router
from backend.controllers.workspace_controller import router as workspace_router
from backend.repository.workspace_repository import WorkspaceRepository
from backend.services.generator_service import GeneratorService
from backend.services.ingestion_service import TabularIngestionService
from backend.services.workspace_service import WorkspaceService
from backend.utils.config import get_settings


CLIENTS = [
    {"ClientID": "C1", "PriorityLevel": 3, "RequestedTaskIDs": "T1,T3", "AttributesJSON": "{}", "GroupTag": "Tier1"},
    {"ClientID": "C2", "PriorityLevel": 7, "RequestedTaskIDs": "T2", "AttributesJSON": "{bad", "GroupTag": "Tier2"},
]
WORKERS = [
    {"WorkerID": "W1", "Skills": "java, sql", "WorkerGroup": "DevTeamA"},
    {"WorkerID": "W2", "Skills": "python", "WorkerGroup": "DevTeamB"},
]
TASKS = [
    {"TaskID": "T1", "Duration": 5, "RequiredSkills": "java"},
    {"TaskID": "T2", "Duration": 2, "RequiredSkills": "python,rust"},
]


class StubModel:
    def __init__(self) -> None:
        self.replies: list[str] = []

    def generate_content(self, prompt: str):
        reply = self.replies.pop(0)

        class _Reply:
            text = reply

        return _Reply()


def _build_test_app(model: StubModel | None) -> FastAPI:
    get_settings.cache_clear()
    settings = replace(get_settings(), generator_api_key=None)
    repository = WorkspaceRepository(settings)
    workspace_service = WorkspaceService(
        repository=repository,
        ingestion_service=TabularIngestionService(settings),
        settings=settings,
    )

    app = FastAPI()
    app.include_router(workspace_router)
    app.include_router(rules_router)
    app.include_router(search_router)
    app.state.repository = repository
    app.state.workspace_service = workspace_service
    app.state.generator_service = GeneratorService(settings=settings, model=model)
    return app


@pytest.fixture
def model() -> StubModel:
    return StubModel()


@pytest.fixture
def client(model: StubModel) -> TestClient:
    client = TestClient(_build_test_app(model))
    for name, records in (("clients", CLIENTS), ("workers", WORKERS), ("tasks", TASKS)):
        response = client.put(f"/datasets/{name}", json={"records": records})
        assert response.status_code == 200, response.text
    return client


# --- Datasets and validation ---

def test_health_reports_app_name() -> None:
    response = TestClient(_build_test_app(None)).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_validation_report_covers_all_datasets(client: TestClient) -> None:
    response = client.get("/validation")
    assert response.status_code == 200
    body = response.json()

    fields = [(error["entityId"], error["field"]) for error in body["errors"]]
    assert fields == [
        ("C2", "PriorityLevel"),
        ("C2", "AttributesJSON"),
        ("C1", "RequestedTaskIDs"),
        ("T2", "RequiredSkills"),
    ]
    assert body["error_count"] == 4


def test_dataset_view_flags_error_cells(client: TestClient) -> None:
    body = client.get("/datasets/clients").json()
    assert [record["ClientID"] for record in body["records"]] == ["C1", "C2"]
    assert body["error_fields"] == [["RequestedTaskIDs"], ["PriorityLevel", "AttributesJSON"]]


def test_dataset_errors_grouped_per_cell(client: TestClient) -> None:
    body = client.get("/validation/tasks").json()
    assert body["cells"] == [
        {"entityId": "T2", "field": "RequiredSkills", "messages": [
            "Required skill 'rust' is not covered by any worker."
        ]},
    ]


def test_unknown_dataset_name_is_rejected(client: TestClient) -> None:
    assert client.get("/datasets/projects").status_code == 422


def test_cell_edit_revalidates_workspace(client: TestClient) -> None:
    response = client.patch(
        "/datasets/clients/cells",
        json={"row_index": 1, "field": "PriorityLevel", "value": "4"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["record"]["PriorityLevel"] == "4"
    assert "PriorityLevel" not in {error["field"] for error in body["errors"]}


def test_cell_edit_out_of_range_row_is_rejected(client: TestClient) -> None:
    response = client.patch(
        "/datasets/clients/cells",
        json={"row_index": 9, "field": "PriorityLevel", "value": 2},
    )
    assert response.status_code == 400


def test_removing_dataset_changes_cross_checks(client: TestClient) -> None:
    body = client.delete("/datasets/tasks").json()
    references = [error for error in body["errors"] if error["field"] == "RequestedTaskIDs"]
    assert len(references) == 3


def test_csv_upload_replaces_dataset(client: TestClient) -> None:
    content = b"TaskID,Duration,RequiredSkills\nT1,1,java\nT1,0,python\n"
    response = client.post(
        "/datasets/tasks/upload",
        files={"file": ("tasks.csv", content, "text/csv")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["records_loaded"] == 2
    assert [error["field"] for error in body["errors"] if error["entityId"] == "T1"] == [
        "TaskID",
        "TaskID",
        "Duration",
    ]


def test_upload_with_bad_extension_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/datasets/tasks/upload",
        files={"file": ("tasks.json", b"[]", "application/json")},
    )
    assert response.status_code == 400
    assert len(client.get("/datasets/tasks").json()["records"]) == 2


def test_schemas_list_columns_in_first_seen_order(client: TestClient) -> None:
    body = client.get("/schemas").json()
    assert body["tasks"] == ["TaskID", "Duration", "RequiredSkills"]
    assert body["workers"] == ["WorkerID", "Skills", "WorkerGroup"]


# --- Rules ---

def test_rule_builder_options(client: TestClient) -> None:
    body = client.get("/rules/options").json()
    assert body == {
        "client_groups": ["Tier1", "Tier2"],
        "worker_groups": ["DevTeamA", "DevTeamB"],
        "task_ids": ["T1", "T2"],
    }


def test_add_and_clear_rules(client: TestClient) -> None:
    response = client.post("/rules", json={"type": "coRun", "tasks": ["T1", "T2"]})
    assert response.status_code == 201
    assert response.json()["rule"] == {"type": "coRun", "tasks": ["T1", "T2"]}

    rejected = client.post("/rules", json={"type": "bogus"})
    assert rejected.status_code == 422
    assert len(client.get("/rules").json()["rules"]) == 1

    assert client.delete("/rules").json() == {"removed": 1}
    assert client.get("/rules").json()["rules"] == []


def test_generated_rule_is_appended(client: TestClient, model: StubModel) -> None:
    model.replies.append(
        "```json\n" + json.dumps({"type": "load-limit", "group": "DevTeamA", "maxSlotsPerPhase": 2}) + "\n```"
    )
    response = client.post("/rules/generate", json={"rule_text": "DevTeamA max 2 per phase"})
    assert response.status_code == 201
    assert response.json()["rule"]["maxSlotsPerPhase"] == 2
    assert len(client.get("/rules").json()["rules"]) == 1


def test_generated_garbage_leaves_rules_unchanged(client: TestClient, model: StubModel) -> None:
    model.replies.extend(["I cannot help with that", json.dumps({"type": "unknown-kind"})])

    assert client.post("/rules/generate", json={"rule_text": "anything"}).status_code == 502
    assert client.post("/rules/generate", json={"rule_text": "anything"}).status_code == 422
    assert client.get("/rules").json()["rules"] == []


def test_generation_without_configured_model_is_unavailable() -> None:
    client = TestClient(_build_test_app(None))
    response = client.post("/rules/generate", json={"rule_text": "T1 with T2"})
    assert response.status_code == 503


# --- Weights ---

def test_weights_default_and_update(client: TestClient) -> None:
    assert client.get("/weights").json() == {"weights": {"fulfillment": 50, "fairness": 50}}

    response = client.put("/weights", json={"weights": {"fairness": 80}})
    assert response.status_code == 200
    assert response.json() == {"weights": {"fulfillment": 50, "fairness": 80}}


def test_invalid_weight_update_is_atomic(client: TestClient) -> None:
    response = client.put("/weights", json={"weights": {"fulfillment": 10, "fairness": 101}})
    assert response.status_code == 400
    assert client.get("/weights").json()["weights"]["fulfillment"] == 50


# --- Search ---

def test_structured_search(client: TestClient) -> None:
    response = client.post(
        "/search",
        json={"target": "tasks", "filters": [{"field": "Duration", "operator": "gte", "value": 3}]},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["matched_count"] == 1
    assert body["total_records"] == 2
    assert body["records"][0]["TaskID"] == "T1"


def test_search_with_unknown_operator_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/search",
        json={"target": "tasks", "filters": [{"field": "Duration", "operator": "~", "value": 3}]},
    )
    assert response.status_code == 422


def test_generated_search(client: TestClient, model: StubModel) -> None:
    model.replies.append(
        json.dumps({"target": "workers", "filters": [{"field": "Skills", "operator": "contains", "value": "sql"}]})
    )
    response = client.post("/search/generate", json={"query": "workers who know sql"})
    assert response.status_code == 200
    body = response.json()
    assert body["target"] == "workers"
    assert [record["WorkerID"] for record in body["records"]] == ["W1"]


def test_search_with_non_finite_value_is_rejected(client: TestClient) -> None:
    body = '{"target": "tasks", "filters": [{"field": "Duration", "operator": "gt", "value": NaN}]}'
    response = client.post("/search", content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 422
