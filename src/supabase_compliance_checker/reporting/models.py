"""
Pydantic models for compliance check results and log records.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CheckType(str, Enum):
    """The three compliance checks."""

    RLS = "RLS"
    MFA = "MFA"
    PITR = "PITR"


class CheckStatus(str, Enum):
    """Outcome of a single item or of a whole check."""

    PASS = "pass"
    FAIL = "fail"

    @classmethod
    def from_bool(cls, passed: bool) -> "CheckStatus":
        return cls.PASS if passed else cls.FAIL


class UserCompliance(BaseModel):
    """MFA state of one auth user."""

    id: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    mfa_enabled: bool = False
    status: CheckStatus = CheckStatus.FAIL
    mfa_factors_count: Optional[int] = None
    mfa_factors: Optional[List[Dict[str, Any]]] = None


class TableCompliance(BaseModel):
    """RLS state of one table."""

    model_config = ConfigDict(populate_by_name=True)

    schema_name: str = Field("public", alias="schema")
    table: str
    rls_enabled: bool = False
    status: CheckStatus = CheckStatus.FAIL


class ProjectCompliance(BaseModel):
    """PITR state of one project."""

    id: str
    name: str
    pitr_enabled: bool = False
    backup_retention_days: int = 7
    status: CheckStatus = CheckStatus.FAIL


class MFASummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_users: int = 0
    mfa_enabled: int = 0
    mfa_disabled: int = 0
    compliance_rate: int = 0


class RLSSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_tables: int = 0
    rls_enabled: int = 0
    rls_disabled: int = 0
    compliance_rate: int = 0


class PITRSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_projects: int = 0
    pitr_enabled: int = 0
    pitr_disabled: int = 0
    compliance_rate: int = 0


class SetupInstructions(BaseModel):
    """Copy-paste instructions for installing a helper SQL function."""

    title: str
    description: str
    sql: str
    steps: List[str] = Field(default_factory=list)


ComplianceItem = Union[UserCompliance, TableCompliance, ProjectCompliance]
Summary = Union[MFASummary, RLSSummary, PITRSummary]


class CheckResponse(BaseModel):
    """
    JSON body returned by a check endpoint.

    Either a result (success, data, summary, note) or a request to install a
    helper function first (setup_required, instructions).
    """

    check_type: Optional[CheckType] = Field(None, exclude=True)
    success: Optional[bool] = None
    data: Optional[List[ComplianceItem]] = None
    summary: Optional[Summary] = None
    note: Optional[str] = None
    setup_required: Optional[bool] = None
    instructions: Optional[SetupInstructions] = None

    @classmethod
    def setup(cls, check_type: CheckType, instructions: SetupInstructions) -> "CheckResponse":
        return cls(check_type=check_type, setup_required=True, instructions=instructions)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation, with unset fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ComplianceLog(BaseModel):
    """One row of the compliance_logs table."""

    id: Optional[int] = None
    user_email: str
    check_type: CheckType
    project_ref: str
    status: CheckStatus
    response_data: Any
    total_items: int = 0
    compliant_items: int = 0
    compliance_rate: int = 0
    error_message: Optional[str] = None
    setup_title: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        """Columns to insert; id and created_at are assigned by the database."""
        return self.model_dump(mode="json", exclude={"id", "created_at"})


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ComplianceReport(BaseModel):
    """Aggregated outcome of running every check against one project."""

    project_ref: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: Dict[CheckType, CheckResponse] = Field(default_factory=dict)
    errors: Dict[CheckType, str] = Field(default_factory=dict)
    # Checks that never ran because their credentials were not supplied
    missing_credentials: List[CheckType] = Field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """True when no check produced a usable result."""
        return not any(r.success for r in self.results.values())

    def loggable_errors(self) -> Dict[CheckType, str]:
        """Errors of checks that actually ran against the project."""
        return {
            check_type: message
            for check_type, message in self.errors.items()
            if check_type not in self.missing_credentials
        }

    def status_of(self, check_type: CheckType) -> CheckStatus:
        from supabase_compliance_checker.reporting.compliance_log import (
            determine_compliance_status,
        )

        response = self.results.get(check_type)
        if response is None:
            return CheckStatus.FAIL
        return determine_compliance_status(response.to_dict())

    def has_failures(self) -> bool:
        return any(self.status_of(check_type) == CheckStatus.FAIL for check_type in CheckType)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_ref": self.project_ref,
            "generated_at": self.generated_at.isoformat(),
            "results": {k.value: v.to_dict() for k, v in self.results.items()},
            "errors": {k.value: v for k, v in self.errors.items()},
        }
