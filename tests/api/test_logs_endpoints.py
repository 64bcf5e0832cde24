# Audit log endpoints: writing, access control, filters, summaries and cleanup.

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from logs_service.app.main import app
from tests.api.support import admin_headers, auth_headers


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).replace(tzinfo=None).isoformat()


def write_log(client, headers=None, **fields):
    payload = {"service": "UsersService", "level": "INFO", "message": "hello", **fields}
    response = client.post("/api/logs", json=payload, headers=headers or auth_headers())
    assert response.status_code == 201, response.text
    return response.json()


def test_create_log_stamps_caller_and_uppercases_level(client) -> None:
    entry = write_log(client, level="warning", request_id="req-1")

    assert entry["level"] == "WARNING"
    assert entry["username"] == "alice"
    assert entry["request_id"] == "req-1"
    assert entry["timestamp"] is not None


def test_create_log_requires_token_and_valid_values(client) -> None:
    payload = {"service": "UsersService", "level": "INFO", "message": "hello"}
    assert client.post("/api/logs", json=payload).status_code == 401

    bad_service = {**payload, "service": "BillingService"}
    assert client.post("/api/logs", json=bad_service, headers=auth_headers()).status_code == 422
    bad_level = {**payload, "level": "LOUD"}
    assert client.post("/api/logs", json=bad_level, headers=auth_headers()).status_code == 422


def test_reading_all_logs_is_admin_only(client) -> None:
    entry = write_log(client)

    assert client.get("/api/logs", headers=auth_headers()).status_code == 403
    assert len(client.get("/api/logs", headers=admin_headers()).json()) == 1
    assert client.get(f"/api/logs/{entry['id']}", headers=auth_headers()).status_code == 403
    assert client.get(f"/api/logs/{entry['id']}", headers=admin_headers()).json()["message"] == "hello"
    assert client.get("/api/logs/9999", headers=admin_headers()).status_code == 404


def test_search_is_scoped_to_own_username_for_non_admins(client) -> None:
    write_log(client, message="alice did a thing")
    write_log(client, headers=auth_headers(subject_id=2, username="bob"), message="bob did a thing")

    mine = client.get("/api/logs/search", params={"username": "bob"}, headers=auth_headers())
    assert [entry["message"] for entry in mine.json()] == ["alice did a thing"]

    bobs = client.get("/api/logs/search", params={"username": "bob"}, headers=admin_headers())
    assert [entry["message"] for entry in bobs.json()] == ["bob did a thing"]

    text = client.get("/api/logs/search", params={"search_text": "did a"}, headers=admin_headers())
    assert len(text.json()) == 2

    assert client.get("/api/logs/search", params={"page_size": 1001}, headers=admin_headers()).status_code == 400
    assert client.get("/api/logs/search", params={"level": "LOUD"}, headers=admin_headers()).status_code == 400


def test_my_logs(client) -> None:
    write_log(client)
    write_log(client, headers=auth_headers(subject_id=2, username="bob"))

    mine = client.get("/api/logs/my-logs", headers=auth_headers()).json()
    assert [entry["username"] for entry in mine] == ["alice"]


def test_filter_by_service_and_level(client) -> None:
    write_log(client, service="ProductsService", level="ERROR")
    write_log(client, service="PaymentsService", level="info")

    by_service = client.get("/api/logs/service/ProductsService", headers=admin_headers())
    assert [entry["level"] for entry in by_service.json()] == ["ERROR"]

    by_level = client.get("/api/logs/level/info", headers=admin_headers())
    assert [entry["service"] for entry in by_level.json()] == ["PaymentsService"]

    assert client.get("/api/logs/service/BillingService", headers=admin_headers()).status_code == 400
    assert client.get("/api/logs/level/LOUD", headers=admin_headers()).status_code == 400
    assert client.get("/api/logs/service/ProductsService", headers=auth_headers()).status_code == 403


def test_summary_counts_window(client) -> None:
    write_log(client, level="ERROR")
    write_log(client, level="ERROR", service="PaymentsService")
    write_log(client, level="WARNING")
    write_log(client, level="INFO")
    write_log(client, level="DEBUG", timestamp=days_ago(10))

    response = client.get("/api/logs/summary", headers=admin_headers())

    assert response.status_code == 200
    summary = response.json()
    assert summary["total_logs"] == 4
    assert summary["error_count"] == 2
    assert summary["warning_count"] == 1
    assert summary["info_count"] == 1
    assert summary["service_counts"] == {"UsersService": 3, "PaymentsService": 1}
    assert summary["level_counts"] == {"ERROR": 2, "WARNING": 1, "INFO": 1}

    assert client.get("/api/logs/summary", headers=auth_headers()).status_code == 403


def test_stats_group_by_day(client) -> None:
    write_log(client, level="ERROR")
    write_log(client, level="ERROR")
    write_log(client, level="INFO", timestamp=days_ago(3))

    stats = client.get("/api/logs/stats", headers=admin_headers()).json()

    assert [(row["level"], row["count"]) for row in stats] == [("INFO", 1), ("ERROR", 2)]
    assert stats[0]["date"] < stats[1]["date"]


def test_count(client) -> None:
    write_log(client, level="ERROR")
    write_log(client, level="INFO")

    assert client.get("/api/logs/count", headers=admin_headers()).json()["count"] == 2
    assert client.get("/api/logs/count", params={"level": "error"}, headers=admin_headers()).json() == {
        "count": 1,
        "service": None,
        "level": "ERROR",
    }
    assert client.get("/api/logs/count", headers=auth_headers()).status_code == 403


def test_cleanup_only_removes_logs_older_than_a_day(client) -> None:
    write_log(client, message="ancient", timestamp=days_ago(40))
    write_log(client, message="recent")

    too_recent = client.delete("/api/logs/cleanup", params={"before_date": days_ago(0)}, headers=admin_headers())
    assert too_recent.status_code == 400
    assert too_recent.json()["details"] == {"field": "before_date"}

    response = client.delete("/api/logs/cleanup", params={"before_date": days_ago(2)}, headers=admin_headers())
    assert response.status_code == 200
    assert response.json()["deleted"] == 1

    remaining = client.get("/api/logs", headers=admin_headers()).json()
    assert [entry["message"] for entry in remaining] == ["recent"]

    assert client.delete("/api/logs/cleanup", params={"before_date": days_ago(2)}, headers=auth_headers()).status_code == 403


def test_services_and_levels_are_public(client) -> None:
    assert client.get("/api/logs/services").json() == {
        "services": ["UsersService", "ProductsService", "PaymentsService", "LogsService"]
    }
    assert client.get("/api/logs/levels").json()["levels"][0] == "TRACE"
