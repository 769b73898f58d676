"""
Core module for the Supabase Compliance Checker.
Contains configuration, errors, the check base classes and utilities.
"""

from supabase_compliance_checker.core.config import Config, load_config
from supabase_compliance_checker.core.errors import (
    ComplianceError,
    InvalidCredentialsError,
    MissingCredentialsError,
)
from supabase_compliance_checker.core.utils import (
    compliance_rate,
    get_environment_info,
    mask_secret,
    project_url,
)
from supabase_compliance_checker.core.check import (
    BaseCheck,
    CheckContext,
    CompositeCheck,
    Credentials,
)

__all__ = [
    "Config",
    "load_config",
    "ComplianceError",
    "InvalidCredentialsError",
    "MissingCredentialsError",
    "compliance_rate",
    "get_environment_info",
    "mask_secret",
    "project_url",
    "BaseCheck",
    "CheckContext",
    "CompositeCheck",
    "Credentials",
]
