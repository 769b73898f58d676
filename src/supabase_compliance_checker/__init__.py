"""
Supabase Compliance Checker - security compliance checks for hosted Supabase projects.

This package provides:
- MFA enablement checks for every auth user
- RLS enablement checks for public tables
- PITR backup status checks via the Management API
- Compliance logging to a Supabase table
- A JSON dashboard API and a Supabase security chat assistant
"""

__version__ = "1.0.0"
__author__ = "Supabase Compliance Checker Contributors"
__license__ = "MIT"

# Export main classes for convenient imports
from supabase_compliance_checker.core.check import BaseCheck, CheckContext, Credentials
from supabase_compliance_checker.reporting.models import CheckResponse, CheckStatus, CheckType

__all__ = [
    "__version__",
    "BaseCheck",
    "CheckContext",
    "Credentials",
    "CheckResponse",
    "CheckStatus",
    "CheckType",
]
