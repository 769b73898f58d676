"""
Pytest configuration and shared fixtures for the Supabase Compliance Checker.
"""

from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from supabase_compliance_checker.core.config import AIConfig, Config, LogStoreConfig
from supabase_compliance_checker.core.check import CheckContext, Credentials
from supabase_compliance_checker.core.errors import SupabaseApiError
from supabase_compliance_checker.integrations.supabase_api import RawResponse


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def minimal_config() -> Config:
    """Create a minimal valid configuration with nothing configured."""
    return Config()


@pytest.fixture
def full_config() -> Config:
    """Create a fully configured Config object."""
    return Config(
        log_store=LogStoreConfig(
            url="https://logs.supabase.co",
            service_role_key=SecretStr("eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.logs"),
        ),
        ai=AIConfig(openai_api_key=SecretStr("sk-test-key")),
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        project_ref="abcdefghijklmnop",
        service_role_key="eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.service",
        personal_access_token="sbp_test_token",
        user_email="admin@example.com",
    )


# ============================================================================
# Supabase API Fakes
# ============================================================================

SAMPLE_USERS: List[Dict[str, Any]] = [
    {"id": "11111111-1111-1111-1111-111111111111", "email": "alice@example.com", "created_at": "2024-01-01T00:00:00Z"},
    {"id": "22222222-2222-2222-2222-222222222222", "email": "bob@example.com", "created_at": "2024-01-02T00:00:00Z"},
    {"id": "33333333-3333-3333-3333-333333333333", "email": "carol@example.com", "created_at": "2024-01-03T00:00:00Z"},
]

SAMPLE_TABLES: List[Dict[str, Any]] = [
    {"schema": "public", "table": "profiles", "rls_enabled": True, "status": "pass"},
    {"schema": "public", "table": "orders", "rls_enabled": True, "status": "pass"},
    {"schema": "public", "table": "audit", "rls_enabled": False, "status": "fail"},
]


def mfa_row(enabled: bool) -> List[Dict[str, Any]]:
    """Rows returned by get_user_mfa_status for one user."""
    factors = [{"id": "f1", "factor_type": "totp", "status": "verified"}] if enabled else []
    return [{"user_id": "x", "mfa_enabled": enabled, "factor_count": len(factors), "factors": factors}]


@pytest.fixture
def mock_rest_client():
    """Fake SupabaseRestClient answering for three users and three tables."""
    client = MagicMock()
    client.base_url = "https://abcdefghijklmnop.supabase.co"
    client.list_users = AsyncMock(return_value=SAMPLE_USERS[:1])
    client.list_all_users = AsyncMock(return_value=list(SAMPLE_USERS))

    enabled_users = {SAMPLE_USERS[0]["id"], SAMPLE_USERS[1]["id"]}

    async def rpc(function, params=None):
        if function == "get_user_mfa_status":
            return mfa_row(params["target_user_id"] in enabled_users)
        if function == "check_table_rls_status":
            return list(SAMPLE_TABLES)
        raise SupabaseApiError("Could not find the function", upstream_status=404)

    client.rpc = AsyncMock(side_effect=rpc)
    client.insert = AsyncMock(side_effect=lambda table, row: {**row, "id": 1, "created_at": "2024-05-01T10:00:00+00:00"})
    client.select = AsyncMock(return_value=[])
    client.probe = AsyncMock(return_value=RawResponse(status=200, reason="OK", text="{}"))
    return client


@pytest.fixture
def mock_management_client():
    """Fake ManagementApiClient reporting PITR enabled."""
    client = MagicMock()
    client.get_database_backups = AsyncMock(
        return_value={"region": "us-east-1", "pitr_enabled": True, "walg_enabled": True, "backups": []}
    )
    return client


@pytest.fixture
def check_context(minimal_config, credentials, mock_rest_client, mock_management_client) -> CheckContext:
    """Create a check context wired to the fake clients."""
    return CheckContext(
        config=minimal_config,
        credentials=credentials,
        rest_client=mock_rest_client,
        management_client=mock_management_client,
    )


@pytest.fixture
def mock_db_connection():
    """Mock database connection."""
    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.close = AsyncMock()
    return conn
