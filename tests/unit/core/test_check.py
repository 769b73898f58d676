"""
Unit tests for core.check module.
"""

from unittest.mock import AsyncMock, patch

import pytest

from supabase_compliance_checker.core.check import (
    BaseCheck,
    CheckContext,
    CompositeCheck,
    Credentials,
)
from supabase_compliance_checker.core.errors import InvalidCredentialsError, MissingCredentialsError
from supabase_compliance_checker.integrations.supabase_api import (
    ManagementApiClient,
    SupabaseRestClient,
)
from supabase_compliance_checker.reporting.models import (
    CheckResponse,
    CheckType,
    RLSSummary,
)


class PassingCheck(BaseCheck):
    """Check that always succeeds."""

    name = "passing_check"
    check_type = CheckType.RLS

    async def run(self) -> CheckResponse:
        self.validate_credentials()
        return CheckResponse(
            check_type=self.check_type,
            success=True,
            data=[],
            summary=RLSSummary(compliance_rate=100),
        )


class RejectedCheck(BaseCheck):
    """Check whose credentials are rejected."""

    name = "rejected_check"
    check_type = CheckType.MFA

    async def run(self) -> CheckResponse:
        raise InvalidCredentialsError()


class CrashingCheck(BaseCheck):
    """Check that fails with an unexpected error."""

    name = "crashing_check"
    check_type = CheckType.PITR

    async def run(self) -> CheckResponse:
        raise RuntimeError("boom")


class TestCredentials:
    """Tests for Credentials."""

    def test_from_payload(self):
        credentials = Credentials.from_payload({
            "projectRef": " abc ",
            "serviceRoleKey": "key",
            "personalAccessToken": "",
            "userEmail": "a@example.com",
        })

        assert credentials.project_ref == "abc"
        assert credentials.service_role_key == "key"
        assert credentials.personal_access_token is None
        assert credentials.user_email == "a@example.com"

    def test_from_empty_payload(self):
        credentials = Credentials.from_payload(None)

        assert credentials.project_ref == ""
        assert credentials.service_role_key == ""

    def test_from_non_object_payload(self):
        credentials = Credentials.from_payload(["abc", "key"])

        assert credentials.project_ref == ""
        assert credentials.user_email is None

    def test_non_string_values_coerced(self):
        credentials = Credentials.from_payload({"projectRef": 12345, "serviceRoleKey": " key "})

        assert credentials.project_ref == "12345"
        assert credentials.service_role_key == "key"


class TestCheckContext:
    """Tests for CheckContext."""

    def test_unique_check_ids(self, minimal_config, credentials):
        first = CheckContext(config=minimal_config, credentials=credentials)
        second = CheckContext(config=minimal_config, credentials=credentials)

        assert first.check_id.startswith("check_")
        assert first.check_id != second.check_id

    def test_lazy_clients(self, minimal_config, credentials):
        context = CheckContext(config=minimal_config, credentials=credentials)

        rest = context.get_rest_client()
        management = context.get_management_client()

        assert isinstance(rest, SupabaseRestClient)
        assert rest.base_url == "https://abcdefghijklmnop.supabase.co"
        assert context.get_rest_client() is rest
        assert isinstance(management, ManagementApiClient)

    @pytest.mark.asyncio
    async def test_open_without_url_is_noop(self, minimal_config, credentials):
        context = CheckContext(config=minimal_config, credentials=credentials)

        await context.open_db_connection()

        assert context.db_connection is None

    @pytest.mark.asyncio
    async def test_open_and_close_db_connection(self, minimal_config, credentials, mock_db_connection):
        credentials.database_url = "postgresql://postgres@localhost/postgres"
        context = CheckContext(config=minimal_config, credentials=credentials)

        with patch("asyncpg.connect", AsyncMock(return_value=mock_db_connection)):
            await context.open_db_connection()

        assert context.db_connection is mock_db_connection
        await context.close_db_connection()
        mock_db_connection.close.assert_awaited_once()
        assert context.db_connection is None


class TestBaseCheck:
    """Tests for BaseCheck."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, minimal_config):
        context = CheckContext(config=minimal_config, credentials=Credentials(project_ref="abc"))

        with pytest.raises(MissingCredentialsError) as exc_info:
            await PassingCheck(context).run()

        assert exc_info.value.message == "Project reference and service role key are required"

    def test_logger_name(self, check_context):
        check = PassingCheck(check_context)

        assert check.logger.name == "supabase_compliance.passing_check"

    def test_log_prefixes_check_id(self, check_context, caplog):
        check = PassingCheck(check_context)

        with caplog.at_level("INFO", logger="supabase_compliance"):
            check.log("hello")

        assert f"[{check_context.check_id}] hello" in caplog.text


class TestCompositeCheck:
    """Tests for CompositeCheck."""

    @pytest.mark.asyncio
    async def test_failures_do_not_cancel_others(self, check_context):
        checks = [PassingCheck(check_context), RejectedCheck(check_context), CrashingCheck(check_context)]

        report = await CompositeCheck(check_context, checks).run_all()

        assert report.project_ref == "abcdefghijklmnop"
        assert report.results[CheckType.RLS].success is True
        assert report.errors[CheckType.MFA] == "Invalid project reference or service role key"
        assert report.errors[CheckType.PITR] == "Internal server error"
        assert report.all_failed is False
        assert report.has_failures() is True

    @pytest.mark.asyncio
    async def test_all_failed(self, check_context):
        checks = [RejectedCheck(check_context), CrashingCheck(check_context)]

        report = await CompositeCheck(check_context, checks).run_all()

        assert report.results == {}
        assert report.all_failed is True

    @pytest.mark.asyncio
    async def test_missing_credentials_kept_apart(self, minimal_config):
        context = CheckContext(config=minimal_config, credentials=Credentials(project_ref="abc"))
        checks = [PassingCheck(context), RejectedCheck(context)]

        report = await CompositeCheck(context, checks).run_all()

        assert report.errors[CheckType.RLS] == "Project reference and service role key are required"
        assert report.missing_credentials == [CheckType.RLS]
        assert report.loggable_errors() == {
            CheckType.MFA: "Invalid project reference or service role key"
        }
