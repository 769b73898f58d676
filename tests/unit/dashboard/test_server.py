"""
Unit tests for the dashboard JSON API.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from supabase_compliance_checker.core.config import AIConfig, LogStoreConfig
from supabase_compliance_checker.core.errors import SupabaseApiError
from supabase_compliance_checker.dashboard.server import ALL_FAILED_MESSAGE, create_app
from supabase_compliance_checker.integrations.assistant import SecurityAssistant
from supabase_compliance_checker.integrations.supabase_api import RawResponse
from supabase_compliance_checker.reporting.compliance_log import ComplianceLogStore

PAYLOAD = {
    "projectRef": "abcdefghijklmnop",
    "serviceRoleKey": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.service",
    "personalAccessToken": "sbp_test_token",
    "userEmail": "admin@example.com",
}

STORED_LOG = {
    "id": 3,
    "user_email": "admin@example.com",
    "check_type": "RLS",
    "project_ref": "abcdefghijklmnop",
    "status": "fail",
    "response_data": {"success": True},
    "total_items": 3,
    "compliant_items": 2,
    "compliance_rate": 67,
    "error_message": None,
    "setup_title": None,
    "note": None,
    "created_at": "2024-05-01T10:00:00+00:00",
}


@pytest.fixture
def store_client():
    client = MagicMock()
    client.insert = AsyncMock(side_effect=lambda table, row: {**row, "id": 1})
    client.select = AsyncMock(return_value=[STORED_LOG])
    return client


@pytest.fixture
def chat_client():
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Turn on PITR."))]
    )
    return client


@pytest.fixture
def app(minimal_config, mock_rest_client, mock_management_client, store_client, chat_client):
    app = create_app(
        config=minimal_config,
        rest_client_factory=lambda credentials: mock_rest_client,
        management_client_factory=lambda credentials: mock_management_client,
        log_store=ComplianceLogStore(LogStoreConfig(), client=store_client),
        assistant=SecurityAssistant(AIConfig(), client=chat_client),
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def logged_rows(store_client):
    return [call.args[1] for call in store_client.insert.await_args_list]


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        body = response.get_json()

        assert response.status_code == 200
        assert body["status"] == "ok"
        assert body["has_openai"] is True
        assert body["log_store_configured"] is True
        assert "python_version" in body["environment"]


class TestCheckEndpoints:
    """Tests for the single-check endpoints."""

    def test_users(self, client, store_client):
        response = client.post("/api/compliance/users", json=PAYLOAD)
        body = response.get_json()

        assert response.status_code == 200
        assert body["summary"]["compliance_rate"] == 67
        assert len(body["data"]) == 3

        (row,) = logged_rows(store_client)
        assert row["check_type"] == "MFA"
        assert row["status"] == "fail"
        assert row["total_items"] == 3
        assert row["compliant_items"] == 2

    def test_tables(self, client):
        response = client.post("/api/compliance/tables", json=PAYLOAD)

        assert response.status_code == 200
        assert response.get_json()["summary"]["total_tables"] == 3

    def test_projects(self, client, store_client):
        response = client.post("/api/compliance/projects", json=PAYLOAD)
        body = response.get_json()

        assert response.status_code == 200
        assert body["data"][0]["pitr_enabled"] is True
        assert logged_rows(store_client)[0]["status"] == "pass"

    @pytest.mark.parametrize("path", ["users", "tables"])
    def test_missing_credentials(self, client, store_client, path):
        response = client.post(f"/api/compliance/{path}", json={"userEmail": "admin@example.com"})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Project reference and service role key are required"}
        store_client.insert.assert_not_called()

    def test_numeric_project_ref(self, client, mock_rest_client):
        payload = {**PAYLOAD, "projectRef": 12345}

        response = client.post("/api/compliance/tables", json=payload)

        assert response.status_code == 200

    def test_array_body(self, client):
        response = client.post("/api/compliance/users", json=[PAYLOAD])

        assert response.status_code == 400
        assert response.get_json() == {"error": "Project reference and service role key are required"}

    def test_projects_missing_token(self, client):
        payload = {k: v for k, v in PAYLOAD.items() if k != "personalAccessToken"}

        response = client.post("/api/compliance/projects", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Project reference and personal access token are required"

    def test_invalid_key_is_logged(self, client, mock_rest_client, store_client):
        mock_rest_client.list_users = AsyncMock(
            side_effect=SupabaseApiError("Invalid JWT", upstream_status=401)
        )

        response = client.post("/api/compliance/users", json=PAYLOAD)

        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid project reference or service role key"}
        (row,) = logged_rows(store_client)
        assert row["status"] == "fail"
        assert row["error_message"] == "Invalid project reference or service role key"

    def test_setup_required(self, client, mock_rest_client, store_client):
        mock_rest_client.rpc = AsyncMock(side_effect=SupabaseApiError("missing", upstream_status=404))

        response = client.post("/api/compliance/tables", json=PAYLOAD)
        body = response.get_json()

        assert response.status_code == 200
        assert body["setup_required"] is True
        (row,) = logged_rows(store_client)
        assert row["setup_title"] == "SQL Function Setup Required"
        assert row["status"] == "fail"

    def test_not_logged_without_email(self, client, store_client):
        payload = {k: v for k, v in PAYLOAD.items() if k != "userEmail"}

        response = client.post("/api/compliance/tables", json=payload)

        assert response.status_code == 200
        store_client.insert.assert_not_called()

    def test_log_failure_does_not_fail_request(self, client, store_client):
        store_client.insert = AsyncMock(side_effect=SupabaseApiError("down", upstream_status=503))

        response = client.post("/api/compliance/tables", json=PAYLOAD)

        assert response.status_code == 200

    def test_unexpected_error(self, client, mock_rest_client):
        mock_rest_client.rpc = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.post("/api/compliance/tables", json=PAYLOAD)

        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}


class TestRunAll:
    """Tests for the combined run endpoint."""

    def test_all_checks(self, client, store_client):
        response = client.post("/api/compliance/run", json=PAYLOAD)
        body = response.get_json()

        assert response.status_code == 200
        assert body["success"] is True
        assert set(body["results"]) == {"RLS", "MFA", "PITR"}
        assert body["errors"] == {}
        assert "error" not in body
        assert sorted(row["check_type"] for row in logged_rows(store_client)) == ["MFA", "PITR", "RLS"]

    def test_partial_failure(self, client, mock_rest_client):
        mock_rest_client.list_users = AsyncMock(
            side_effect=SupabaseApiError("Invalid JWT", upstream_status=401)
        )

        body = client.post("/api/compliance/run", json=PAYLOAD).get_json()

        assert body["success"] is True
        assert body["errors"] == {"MFA": "Invalid project reference or service role key"}
        assert set(body["results"]) == {"RLS", "PITR"}

    def test_all_failed(self, client):
        body = client.post("/api/compliance/run", json={}).get_json()

        assert body["success"] is False
        assert body["error"] == ALL_FAILED_MESSAGE
        assert set(body["errors"]) == {"RLS", "MFA", "PITR"}

    def test_missing_access_token_not_logged(self, client, store_client, mock_management_client):
        payload = {k: v for k, v in PAYLOAD.items() if k != "personalAccessToken"}

        body = client.post("/api/compliance/run", json=payload).get_json()

        assert body["errors"] == {"PITR": "Project reference and personal access token are required"}
        mock_management_client.get_database_backups.assert_not_called()
        assert sorted(row["check_type"] for row in logged_rows(store_client)) == ["MFA", "RLS"]

    def test_non_object_body(self, client, store_client):
        response = client.post("/api/compliance/run", json=["abc", "key"])
        body = response.get_json()

        assert response.status_code == 200
        assert body["success"] is False
        store_client.insert.assert_not_called()


class TestConnectionTest:
    def test_masks_key(self, client):
        response = client.post("/api/compliance/test", json=PAYLOAD)
        body = response.get_json()

        assert body["success"] is True
        assert body["status"] == 200
        assert body["url"] == "https://abcdefghijklmnop.supabase.co/rest/v1/"
        assert body["headers"]["apikey"] == "eyJhbGciOiJIUzI1NiIs..."
        assert PAYLOAD["serviceRoleKey"] not in str(body)

    def test_rejected_key(self, client, mock_rest_client):
        mock_rest_client.probe = AsyncMock(
            return_value=RawResponse(status=401, reason="Unauthorized", text='{"message":"Invalid API key"}')
        )

        body = client.post("/api/compliance/test", json=PAYLOAD).get_json()

        assert body["success"] is False
        assert body["statusText"] == "Unauthorized"

    def test_missing_credentials(self, client):
        response = client.post("/api/compliance/test", json={"projectRef": "abc"})

        assert response.status_code == 400


class TestLogs:
    """Tests for the compliance log endpoints."""

    def test_get_logs(self, client, store_client):
        response = client.get(
            "/api/compliance/logs?email=admin@example.com&checkType=RLS&status=fail&limit=5"
        )
        body = response.get_json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["count"] == 1
        assert body["data"][0]["compliance_rate"] == 67
        kwargs = store_client.select.await_args.kwargs
        assert kwargs["filters"] == {
            "user_email": "admin@example.com",
            "check_type": "RLS",
            "status": "fail",
        }
        assert kwargs["limit"] == 5

    def test_get_logs_requires_email(self, client):
        response = client.get("/api/compliance/logs")

        assert response.status_code == 400
        assert response.get_json() == {"error": "User email is required"}

    def test_get_logs_invalid_check_type(self, client):
        response = client.get("/api/compliance/logs?email=a@example.com&checkType=SSO")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid checkType. Must be one of: RLS, MFA, PITR"

    def test_get_logs_invalid_limit(self, client):
        response = client.get("/api/compliance/logs?email=a@example.com&limit=ten")

        assert response.status_code == 400

    def test_get_logs_store_not_configured(self, minimal_config):
        app = create_app(
            config=minimal_config,
            assistant=SecurityAssistant(AIConfig()),
        )

        response = app.test_client().get("/api/compliance/logs?email=a@example.com")

        assert response.status_code == 500
        assert response.get_json() == {"error": "Logging database configuration missing"}

    def test_create_log(self, client, store_client):
        response = client.post("/api/compliance/logs", json={
            "userEmail": "admin@example.com",
            "checkType": "PITR",
            "projectRef": "abc",
            "status": "pass",
            "responseData": {"success": True},
            "totalItems": 1,
            "compliantItems": 1,
            "complianceRate": 100,
        })
        body = response.get_json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["id"] == 1
        assert body["data"]["compliance_rate"] == 100

    def test_create_log_missing_fields(self, client):
        response = client.post("/api/compliance/logs", json={"userEmail": "admin@example.com"})

        assert response.status_code == 400
        assert response.get_json()["error"].startswith("Missing required fields")

    @pytest.mark.parametrize(
        "field,value,message",
        [
            ("checkType", "SSO", "Invalid checkType. Must be one of: RLS, MFA, PITR"),
            ("status", "maybe", "Invalid status. Must be either pass or fail"),
        ],
    )
    def test_create_log_invalid_values(self, client, field, value, message):
        payload = {
            "userEmail": "admin@example.com",
            "checkType": "RLS",
            "projectRef": "abc",
            "status": "pass",
            "responseData": {"success": True},
        }
        payload[field] = value

        response = client.post("/api/compliance/logs", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == message


class TestChat:
    """Tests for the chat endpoint."""

    def test_chat(self, client, chat_client):
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "PITR?"}]})

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Turn on PITR."}

    def test_chat_requires_messages(self, client):
        response = client.post("/api/chat", json={})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Messages array is required"}

    def test_chat_not_configured(self, minimal_config, store_client):
        app = create_app(
            config=minimal_config,
            log_store=ComplianceLogStore(LogStoreConfig(), client=store_client),
            assistant=SecurityAssistant(AIConfig()),
        )

        response = app.test_client().post(
            "/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}
        )

        assert response.status_code == 500
        assert response.get_json() == {"error": "OpenAI API key not configured"}
