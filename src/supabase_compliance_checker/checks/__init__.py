"""
Compliance checks for Supabase Compliance Checker.

Each check answers one dashboard endpoint: MFA for users, RLS for tables
and PITR for the project.
"""

from typing import List

from ..core.check import BaseCheck, CheckContext
from .mfa_check import MFACheck
from .pitr_check import PITRCheck
from .rls_check import RLSCheck

ALL_CHECKS = [MFACheck, RLSCheck, PITRCheck]


def create_checks(context: CheckContext) -> List[BaseCheck]:
    """Instantiate every check for one project."""
    return [check_class(context) for check_class in ALL_CHECKS]


__all__ = [
    "MFACheck",
    "RLSCheck",
    "PITRCheck",
    "ALL_CHECKS",
    "create_checks",
]
