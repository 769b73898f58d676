"""
Reporting module for check results and compliance logs.
"""

from supabase_compliance_checker.reporting.models import (
    ChatMessage,
    CheckResponse,
    CheckStatus,
    CheckType,
    ComplianceLog,
    ComplianceReport,
    MFASummary,
    PITRSummary,
    ProjectCompliance,
    RLSSummary,
    SetupInstructions,
    TableCompliance,
    UserCompliance,
)
from supabase_compliance_checker.reporting.compliance_log import (
    ComplianceLogStore,
    determine_compliance_status,
    extract_summary_data,
    log_compliance_result,
)

__all__ = [
    "ChatMessage",
    "CheckResponse",
    "CheckStatus",
    "CheckType",
    "ComplianceLog",
    "ComplianceReport",
    "MFASummary",
    "PITRSummary",
    "ProjectCompliance",
    "RLSSummary",
    "SetupInstructions",
    "TableCompliance",
    "UserCompliance",
    "ComplianceLogStore",
    "determine_compliance_status",
    "extract_summary_data",
    "log_compliance_result",
]
