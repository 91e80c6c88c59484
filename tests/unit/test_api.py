from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from catalog.api.app import create_app
from catalog.config import Settings
from catalog.infrastructure.store import SqliteRecordStore

UPSERT_URL = "/api/records/bulk_upsert"
UNAUTHORIZED = {"error": "Unauthorized - Invalid or missing API token"}


def _upsert(client: TestClient, headers: dict, records: list) -> dict:
    response = client.post(UPSERT_URL, json={"records": records}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthentication:
    def test_missing_token_is_rejected(self, client: TestClient) -> None:
        response = client.post(UPSERT_URL, json={"records": [{"key": "A"}]})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_wrong_token_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/records", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED

    def test_non_bearer_scheme_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/records", headers={"Authorization": "Basic test-token"})

        assert response.status_code == 401

    def test_unconfigured_token_is_a_server_error(
        self, api_settings: Settings, sqlite_store: SqliteRecordStore
    ) -> None:
        settings = api_settings.model_copy(update={"api_token": None})
        with TestClient(create_app(settings, sqlite_store)) as unconfigured:
            response = unconfigured.get(
                "/api/records", headers={"Authorization": "Bearer anything"}
            )

        assert response.status_code == 500
        assert response.json() == {"error": "API not configured"}

    def test_rejected_batch_writes_nothing(
        self, client: TestClient, sqlite_store: SqliteRecordStore
    ) -> None:
        client.post(UPSERT_URL, json={"records": [{"key": "A"}]})

        assert sqlite_store.count() == 0


class TestBulkUpsert:
    def test_creates_records(self, client: TestClient, auth_headers: dict) -> None:
        body = _upsert(
            client, auth_headers, [{"key": "A", "priority": 3, "score": 75}, {"key": "B", "priority": 5}]
        )

        assert body["success"] is True
        assert body["created_count"] == 2
        assert body["updated_count"] == 0
        assert [item["key"] for item in body["created"]] == ["A", "B"]

    def test_updates_existing_record(self, client: TestClient, auth_headers: dict) -> None:
        _upsert(client, auth_headers, [{"key": "X", "score": 50}])

        body = _upsert(client, auth_headers, [{"key": "X", "score": 90}])

        assert body["created_count"] == 0
        assert body["updated_count"] == 1
        listing = client.get("/api/records", headers=auth_headers).json()
        assert listing["records"][0]["score"] == 90.0

    def test_invalid_item_returns_422_with_index(
        self, client: TestClient, auth_headers: dict, sqlite_store: SqliteRecordStore
    ) -> None:
        response = client.post(
            UPSERT_URL,
            json={"records": [{"key": "Good"}, {"key": ""}, {"key": "Good2"}]},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json() == {
            "success": False,
            "errors": [{"index": 1, "key": "", "errors": ["Key can't be blank"]}],
        }
        assert sqlite_store.count() == 0

    def test_type_errors_are_reported_per_item(self, client: TestClient, auth_headers: dict) -> None:
        response = client.post(
            UPSERT_URL,
            json={"records": [{"key": "A", "score": "lots"}]},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["errors"] == ["Score is not a number"]

    def test_unknown_attributes_are_ignored(
        self, client: TestClient, auth_headers: dict, sqlite_store: SqliteRecordStore
    ) -> None:
        _upsert(client, auth_headers, [{"key": "A", "id": 500, "owner": "someone"}])

        record = sqlite_store.list_records()[0]
        assert record.id != 500

    def test_missing_records_parameter_is_malformed(
        self, client: TestClient, auth_headers: dict
    ) -> None:
        response = client.post(UPSERT_URL, json={"rows": []}, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Malformed request"
        assert body["details"]

    def test_non_object_items_are_malformed(self, client: TestClient, auth_headers: dict) -> None:
        response = client.post(UPSERT_URL, json={"records": ["A"]}, headers=auth_headers)

        assert response.status_code == 400

    def test_success_with_info_logging_returns_201(
        self,
        client: TestClient,
        auth_headers: dict,
        sqlite_store: SqliteRecordStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level(logging.INFO)

        response = client.post(
            UPSERT_URL, json={"records": [{"key": "A", "score": 75}]}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["created_count"] == 1
        assert sqlite_store.count() == 1
        assert "[BATCH COMMITTED]" in caplog.messages

    def test_empty_batch_succeeds(self, client: TestClient, auth_headers: dict) -> None:
        body = _upsert(client, auth_headers, [])

        assert body == {
            "success": True,
            "created_count": 0,
            "updated_count": 0,
            "created": [],
            "updated": [],
        }


class TestListing:
    def _seed(self, client: TestClient, headers: dict) -> None:
        _upsert(
            client,
            headers,
            [
                {"key": "e", "score": 50, "status": "completed", "category": "ui_pattern"},
                {"key": "a", "score": 10, "status": "new", "category": "ui_pattern"},
                {"key": "c", "score": 30, "status": "new", "category": "data_pattern"},
                {"key": "b", "score": 20, "complexity": 2, "speed": 3},
                {"key": "d", "score": 40, "status": "archived"},
            ],
        )

    def test_api_listing_filters(self, client: TestClient, auth_headers: dict) -> None:
        self._seed(client, auth_headers)

        by_status = client.get("/api/records?status=new", headers=auth_headers).json()
        by_category = client.get(
            "/api/records?category=ui_pattern", headers=auth_headers
        ).json()
        limited = client.get("/api/records?limit=2", headers=auth_headers).json()

        assert by_status["success"] is True
        assert sorted(r["key"] for r in by_status["records"]) == ["a", "b", "c"]
        assert sorted(r["key"] for r in by_category["records"]) == ["a", "e"]
        assert limited["count"] == 2

    def test_api_listing_unknown_filter_values_match_nothing(
        self, client: TestClient, auth_headers: dict
    ) -> None:
        self._seed(client, auth_headers)

        response = client.get("/api/records?status=done", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "records": []}
        assert client.get("/api/records?category=misc", headers=auth_headers).json()["count"] == 0

    def test_api_listing_limit_uses_leading_integer(
        self, client: TestClient, auth_headers: dict
    ) -> None:
        self._seed(client, auth_headers)

        def count(limit: str) -> int:
            response = client.get(f"/api/records?limit={limit}", headers=auth_headers)
            assert response.status_code == 200
            return response.json()["count"]

        assert count("3abc") == 3
        assert count("abc") == 0
        assert count("-4") == 0
        assert count("") == 5

    def test_records_carry_average_metrics(self, client: TestClient, auth_headers: dict) -> None:
        self._seed(client, auth_headers)

        records = client.get("/api/records", headers=auth_headers).json()["records"]
        by_key = {r["key"]: r for r in records}

        assert by_key["b"]["average_metrics"] == 2.5
        assert by_key["a"]["average_metrics"] is None

    def test_public_listing_orders_by_key_with_percentiles(
        self, client: TestClient, auth_headers: dict
    ) -> None:
        self._seed(client, auth_headers)

        body = client.get("/records").json()

        assert [r["key"] for r in body["records"]] == ["a", "b", "c", "d", "e"]
        score_markers = body["percentiles"]["score"]
        assert score_markers["0"] == 10.0
        assert score_markers["50"] == 30.0
        assert score_markers["100"] == 50.0
        assert "priority" not in body["percentiles"]
        ranks = {r["key"]: r["percentile_ranks"] for r in body["records"]}
        assert ranks["a"]["score"] == 0
        assert ranks["e"]["score"] == 85

    def test_show_record(self, client: TestClient, auth_headers: dict) -> None:
        created = _upsert(client, auth_headers, [{"key": "A", "score": 5}])["created"][0]

        response = client.get(f"/records/{created['id']}")

        assert response.status_code == 200
        assert response.json()["key"] == "A"

    def test_show_missing_record(self, client: TestClient) -> None:
        response = client.get("/records/12345")

        assert response.status_code == 404
        assert response.json() == {"error": "Record not found"}


class TestOperationalEndpoints:
    def test_up(self, client: TestClient) -> None:
        assert client.get("/up").json() == {"status": "ok"}

    def test_metrics_open_outside_production(
        self, client: TestClient, auth_headers: dict
    ) -> None:
        _upsert(client, auth_headers, [{"key": "A"}, {"key": "B", "status": "archived"}])

        response = client.get("/api/metrics")

        assert response.status_code == 200
        body = response.json()
        assert body["health"] == {"database": True}
        assert body["custom"]["records"] == {"total": 2, "by_status": {"archived": 1, "new": 1}}

    def test_metrics_require_token_in_production(
        self, api_settings: Settings, sqlite_store: SqliteRecordStore
    ) -> None:
        settings = api_settings.model_copy(
            update={"app_env": "production", "metrics_api_token": "metrics-secret"}
        )
        with TestClient(create_app(settings, sqlite_store)) as production:
            denied = production.get("/api/metrics")
            allowed = production.get(
                "/api/metrics", headers={"Authorization": "Bearer metrics-secret"}
            )

        assert denied.status_code == 401
        assert denied.json() == {"error": "Unauthorized"}
        assert allowed.status_code == 200
        assert allowed.json()["environment"] == "production"

    def test_unhandled_errors_return_json_500(
        self, api_settings: Settings, sqlite_store: SqliteRecordStore, auth_headers: dict
    ) -> None:
        class BrokenStore(SqliteRecordStore):
            def list_records(self, **kwargs):
                raise RuntimeError("scan failed")

        broken = BrokenStore(sqlite_store.path)
        with TestClient(create_app(api_settings, broken), raise_server_exceptions=False) as c:
            response = c.get("/api/records", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
