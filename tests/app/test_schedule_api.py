from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from fastapi.testclient import TestClient

from adapters.filesystem.snapshot_repository import FileSystemScheduleSnapshotRepository
from app.config import AppSettings, StorageSettings
from app.web_main import create_app
from tests.helpers.schedule_fixtures import at, payload_json


def _client(settings: AppSettings) -> TestClient:
    return TestClient(create_app(settings))


def _create(client: TestClient, name: str, start: float, end: float, **extra: object) -> str:
    response = client.post("/api/schedules", json=payload_json(name, start, end, **extra))
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_create_get_and_delete_roundtrip(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    schedule_id = _create(client, "Morning Lecture", 8, 10, level=1, exclusive=True)

    response = client.get(f"/api/schedules/{schedule_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Morning Lecture"
    assert body["level"] == 1
    assert body["exclusive"] is True

    assert client.delete(f"/api/schedules/{schedule_id}").json() == {"deleted": schedule_id}
    missing = client.get(f"/api/schedules/{schedule_id}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "ScheduleNotFound"


def test_rule_violations_map_to_status_codes(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    parent = _create(client, "Term", 0, 10, exclusive=True)

    clash = client.post("/api/schedules", json=payload_json("Clash", 5, 6))
    assert clash.status_code == 409
    assert clash.json()["error"] == "TimeRangeOverlaps"

    outside = client.post(
        "/api/schedules", json=payload_json("Early", -1, 5, level=1, parents=[parent])
    )
    assert outside.status_code == 422
    assert outside.json()["error"] == "TimeRangeExceedsParent"

    orphan = client.post(
        "/api/schedules", json=payload_json("Orphan", 1, 2, level=1, parents=["ghost"])
    )
    assert orphan.status_code == 404
    assert orphan.json()["schedule_id"] == "ghost"


def test_malformed_payload_is_rejected_before_registry(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    response = client.post("/api/schedules", json={"name": "x", "start": "not a time"})
    assert response.status_code == 422
    assert client.get("/api/schedules").json() == []


def test_query_filters_and_orders(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    _create(client, "Lab Work", 14, 17, level=2)
    _create(client, "chem LAB", 9, 10, level=2)
    _create(client, "Lab meeting", 9, 10, level=1)

    response = client.get("/api/schedules", params={"level": 2, "name": "lab"})
    assert [item["name"] for item in response.json()] == ["chem LAB", "Lab Work"]

    windowed = client.get(
        "/api/schedules", params={"start": at(15).isoformat(), "stop": at(16).isoformat()}
    )
    assert [item["name"] for item in windowed.json()] == ["Lab Work"]


def test_add_parents_endpoint(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    child = _create(client, "Lecture", 1, 2, level=2)
    parent = _create(client, "Week", 0, 10, level=1)

    response = client.post(f"/api/schedules/{child}/parents", json={"parents": [parent]})
    assert response.status_code == 200
    assert response.json()["parents"] == [parent]
    assert client.get(f"/api/schedules/{parent}").json()["children"] == [child]


def test_layout_endpoint_uses_settings_and_overrides(app_settings: AppSettings) -> None:
    client = _client(app_settings)
    ids = [
        _create(client, name, start, end)
        for name, start, end in [("A", 0, 2), ("B", 1, 3), ("C", 2, 4)]
    ]

    plan = client.get("/api/layout").json()
    assert plan["mode"] == "cluster_aggregate"
    assert [plan["lane_assignment"][sid]["column"] for sid in ids] == [0, 1, 0]
    assert plan["clusters"][0]["columns"] == 2

    capped = client.get(
        "/api/layout", params={"mode": "fixed_lane_cap", "max_lanes_per_level": 1}
    ).json()
    assert capped["overflow"]["0"]["count"] == 1

    segments = client.get("/api/segments").json()
    assert {segment["schedule_id"] for segment in segments} == set(ids)


def test_mutations_are_persisted_and_reloaded(
    app_settings: AppSettings, snapshot_path: Path
) -> None:
    client = _client(app_settings)
    schedule_id = _create(client, "Lab", 1, 2)

    stored = FileSystemScheduleSnapshotRepository().load_all(snapshot_path)
    assert [schedule.id for schedule in stored] == [schedule_id]

    reloaded = _client(app_settings)
    assert reloaded.get(f"/api/schedules/{schedule_id}").status_code == 200


def test_autosave_can_be_disabled(
    app_settings_factory: Callable[..., AppSettings], snapshot_path: Path
) -> None:
    settings = app_settings_factory(
        storage=StorageSettings(snapshot_path=snapshot_path, autosave=False)
    )
    client = _client(settings)
    _create(client, "Lab", 1, 2)

    assert not snapshot_path.exists()
