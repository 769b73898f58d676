"""
Compliance result classification and the compliance_logs store.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Union

from supabase_compliance_checker.core.config import LogStoreConfig
from supabase_compliance_checker.core.errors import (
    ComplianceError,
    LogStoreNotConfiguredError,
    SupabaseApiError,
)
from supabase_compliance_checker.core.utils import compliance_rate
from supabase_compliance_checker.integrations.supabase_api import SupabaseRestClient
from supabase_compliance_checker.reporting.models import (
    CheckResponse,
    CheckStatus,
    CheckType,
    ComplianceLog,
)

logger = logging.getLogger("supabase_compliance.logs")

_TOTAL_KEYS = ("total_tables", "total_users", "total_projects")
_COMPLIANT_KEYS = ("rls_enabled", "mfa_enabled", "pitr_enabled")


class SummaryData(NamedTuple):
    total_items: int
    compliant_items: int
    compliance_rate: int


def _as_dict(response: Union[CheckResponse, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(response, CheckResponse):
        return response.to_dict()
    return response or {}


def determine_compliance_status(response: Union[CheckResponse, Dict[str, Any]]) -> CheckStatus:
    """
    Classify a check response as pass or fail.

    Successful responses pass when their compliance rate is 100, or, without a
    rate, when no item failed. Setup requests and errors always fail.
    """
    body = _as_dict(response)
    if body.get("success") is not True:
        return CheckStatus.FAIL

    summary = body.get("summary")
    if isinstance(summary, dict) and summary.get("compliance_rate") is not None:
        return CheckStatus.from_bool(summary["compliance_rate"] == 100)

    data = body.get("data")
    if isinstance(data, list):
        has_failures = any(
            isinstance(item, dict) and item.get("status") == CheckStatus.FAIL.value
            for item in data
        )
        return CheckStatus.from_bool(not has_failures)

    return CheckStatus.PASS


def _first_truthy(mapping: Dict[str, Any], keys: tuple) -> int:
    for key in keys:
        if mapping.get(key):
            return int(mapping[key])
    return 0


def extract_summary_data(response: Union[CheckResponse, Dict[str, Any]]) -> SummaryData:
    """Item counts and compliance rate of a response, from its summary or its data."""
    body = _as_dict(response)

    summary = body.get("summary")
    if isinstance(summary, dict) and summary:
        return SummaryData(
            total_items=_first_truthy(summary, _TOTAL_KEYS),
            compliant_items=_first_truthy(summary, _COMPLIANT_KEYS),
            compliance_rate=int(summary.get("compliance_rate") or 0),
        )

    data = body.get("data")
    if isinstance(data, list):
        total = len(data)
        compliant = sum(
            1 for item in data
            if isinstance(item, dict) and item.get("status") == CheckStatus.PASS.value
        )
        return SummaryData(total, compliant, compliance_rate(compliant, total))

    return SummaryData(0, 0, 0)


def build_compliance_log(
    user_email: str,
    check_type: CheckType,
    project_ref: str,
    response: Union[CheckResponse, Dict[str, Any]],
    error_message: Optional[str] = None,
) -> ComplianceLog:
    """Turn a check outcome into a compliance_logs row."""
    body = _as_dict(response)
    summary = extract_summary_data(body)
    instructions = body.get("instructions") if body.get("setup_required") else None

    return ComplianceLog(
        user_email=user_email,
        check_type=check_type,
        project_ref=project_ref,
        status=determine_compliance_status(body),
        response_data=body,
        total_items=summary.total_items,
        compliant_items=summary.compliant_items,
        compliance_rate=summary.compliance_rate,
        error_message=error_message or body.get("error"),
        setup_title=instructions.get("title") if isinstance(instructions, dict) else None,
        note=body.get("note"),
    )


class ComplianceLogStore:
    """Reads and writes compliance_logs rows in the logging Supabase project."""

    def __init__(
        self,
        config: LogStoreConfig,
        client: Optional[SupabaseRestClient] = None,
        timeout: float = 10.0,
    ):
        self.config = config
        self._client = client
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self._client is not None or self.config.is_configured

    def _get_client(self) -> SupabaseRestClient:
        if self._client is None:
            if not self.config.is_configured:
                raise LogStoreNotConfiguredError()
            self._client = SupabaseRestClient(
                self.config.url,
                self.config.service_role_key.get_secret_value(),
                timeout=self.timeout,
            )
        return self._client

    async def insert(self, log: ComplianceLog) -> ComplianceLog:
        """
        Store a log row.

        Raises:
            LogStoreNotConfiguredError: no logging project configured
            ComplianceError: the insert was rejected
        """
        client = self._get_client()
        try:
            row = await client.insert(self.config.table, log.to_row())
        except SupabaseApiError as e:
            logger.error(f"Error creating compliance log: {e.message}")
            raise ComplianceError("Failed to create compliance log") from e
        return ComplianceLog.model_validate(row) if row else log

    async def query(
        self,
        user_email: str,
        check_type: Optional[CheckType] = None,
        project_ref: Optional[str] = None,
        status: Optional[CheckStatus] = None,
        limit: int = 50,
    ) -> List[ComplianceLog]:
        """
        Most recent logs of a user, newest first.

        Raises:
            LogStoreNotConfiguredError: no logging project configured
            ComplianceError: the query was rejected
        """
        filters = {"user_email": user_email}
        if check_type:
            filters["check_type"] = CheckType(check_type).value
        if project_ref:
            filters["project_ref"] = project_ref
        if status:
            filters["status"] = CheckStatus(status).value

        client = self._get_client()
        try:
            rows = await client.select(
                self.config.table, filters=filters, order="created_at.desc", limit=limit
            )
        except SupabaseApiError as e:
            logger.error(f"Error fetching compliance logs: {e.message}")
            raise ComplianceError("Failed to fetch compliance logs") from e
        return [ComplianceLog.model_validate(row) for row in rows]


async def log_compliance_result(
    store: ComplianceLogStore,
    user_email: str,
    check_type: CheckType,
    project_ref: str,
    response: Union[CheckResponse, Dict[str, Any]],
    error_message: Optional[str] = None,
) -> Optional[ComplianceLog]:
    """
    Record a check outcome.

    Logging never fails the check that produced the outcome: errors are
    logged and None is returned.
    """
    log = build_compliance_log(user_email, check_type, project_ref, response, error_message)
    try:
        stored = await store.insert(log)
    except ComplianceError as e:
        logger.error(f"Failed to log compliance result for {user_email} {check_type.value}: {e.message}")
        return None
    logger.info(f"Logged compliance result for {user_email} {check_type.value}")
    return stored


__all__ = [
    "SummaryData",
    "determine_compliance_status",
    "extract_summary_data",
    "build_compliance_log",
    "ComplianceLogStore",
    "log_compliance_result",
]
