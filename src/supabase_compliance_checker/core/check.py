"""
Base check class and check context for all compliance checks.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import asyncpg

from supabase_compliance_checker.core.config import Config
from supabase_compliance_checker.core.errors import ComplianceError, MissingCredentialsError
from supabase_compliance_checker.integrations.supabase_api import (
    ManagementApiClient,
    SupabaseRestClient,
)
from supabase_compliance_checker.reporting.models import (
    CheckResponse,
    CheckType,
    ComplianceReport,
)


@dataclass
class Credentials:
    """Credentials a caller submits for the project under test."""

    project_ref: str = ""
    service_role_key: str = ""
    personal_access_token: Optional[str] = None
    user_email: Optional[str] = None
    database_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "Credentials":
        """Build credentials from a camelCase JSON request body."""
        if not isinstance(payload, dict):
            payload = {}

        def text(key: str) -> str:
            value = payload.get(key)
            return str(value).strip() if value is not None else ""

        return cls(
            project_ref=text("projectRef"),
            service_role_key=text("serviceRoleKey"),
            personal_access_token=text("personalAccessToken") or None,
            user_email=text("userEmail") or None,
        )


@dataclass
class CheckContext:
    """
    Context passed to all checks containing configuration, credentials and
    the API clients they share.
    """

    config: Config
    credentials: Credentials
    check_id: str = field(default_factory=lambda: f"check_{uuid.uuid4().hex[:12]}")
    rest_client: Optional[SupabaseRestClient] = None
    management_client: Optional[ManagementApiClient] = None
    db_connection: Optional[asyncpg.Connection] = None

    def get_rest_client(self) -> SupabaseRestClient:
        """Client for the project's own APIs, created on first use."""
        if self.rest_client is None:
            self.rest_client = SupabaseRestClient.for_project(
                self.credentials.project_ref,
                self.credentials.service_role_key,
                url_template=self.config.project_url_template,
                timeout=self.config.request_timeout,
            )
        return self.rest_client

    def get_management_client(self) -> ManagementApiClient:
        if self.management_client is None:
            self.management_client = ManagementApiClient(
                self.credentials.personal_access_token or "",
                base_url=self.config.management_api_url,
                timeout=self.config.request_timeout,
            )
        return self.management_client

    async def open_db_connection(self) -> None:
        """Connect to the project database when a connection URL was supplied."""
        if self.db_connection is not None or not self.credentials.database_url:
            return
        self.db_connection = await asyncpg.connect(
            dsn=self.credentials.database_url, timeout=self.config.request_timeout
        )

    async def close_db_connection(self) -> None:
        if self.db_connection is not None:
            await self.db_connection.close()
            self.db_connection = None


class BaseCheck(ABC):
    """
    Abstract base class for all compliance checks.

    All checks must implement run() which returns the JSON response of the
    matching dashboard endpoint. Checks can be run independently or together
    through CompositeCheck.
    """

    # Check metadata (to be overridden by subclasses)
    name: str = "base_check"
    description: str = "Base check class"
    check_type: CheckType = CheckType.RLS

    def __init__(self, context: CheckContext):
        self.context = context
        self.config = context.config
        self.credentials = context.credentials
        self.logger = logging.getLogger(f"supabase_compliance.{self.name}")

    def validate_credentials(self) -> None:
        """
        Raise if the credentials this check needs are missing.

        Raises:
            MissingCredentialsError: project reference or service role key missing
        """
        if not self.credentials.project_ref or not self.credentials.service_role_key:
            raise MissingCredentialsError(
                "Project reference and service role key are required"
            )

    @abstractmethod
    async def run(self) -> CheckResponse:
        """
        Run the check against the project.

        Returns:
            CheckResponse with per-item results and a summary, or setup
            instructions when a helper function is missing

        Raises:
            ComplianceError: when the check cannot be performed
        """

    def log(self, message: str, level: str = "INFO") -> None:
        """Log a message prefixed with the check id."""
        self.logger.log(
            getattr(logging, level.upper(), logging.INFO),
            f"[{self.context.check_id}] {message}",
        )


class CompositeCheck:
    """
    Runs several checks concurrently and collects every outcome.

    A failing check never cancels the others.
    """

    def __init__(self, context: CheckContext, checks: List[BaseCheck]):
        self.context = context
        self.checks = checks
        self.logger = logging.getLogger("supabase_compliance.composite")

    async def run_all(self) -> ComplianceReport:
        """
        Run all checks and aggregate their responses.

        Returns:
            ComplianceReport with a response or an error message per check
        """
        report = ComplianceReport(project_ref=self.context.credentials.project_ref)

        outcomes = await asyncio.gather(
            *(check.run() for check in self.checks), return_exceptions=True
        )

        for check, outcome in zip(self.checks, outcomes):
            if isinstance(outcome, ComplianceError):
                check.log(f"Check failed: {outcome.message}", level="WARNING")
                report.errors[check.check_type] = outcome.message
                if isinstance(outcome, MissingCredentialsError):
                    report.missing_credentials.append(check.check_type)
            elif isinstance(outcome, BaseException):
                self.logger.error(
                    f"{check.name} crashed", exc_info=(type(outcome), outcome, outcome.__traceback__)
                )
                report.errors[check.check_type] = "Internal server error"
            else:
                report.results[check.check_type] = outcome

        return report


__all__ = [
    "Credentials",
    "CheckContext",
    "BaseCheck",
    "CompositeCheck",
]
