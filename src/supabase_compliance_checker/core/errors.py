"""
Exception types raised by checks, clients and the dashboard.

Every error carries the HTTP status the dashboard answers with, so handlers
can turn any ComplianceError into a JSON error response.
"""

from typing import Optional


class ComplianceError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class MissingCredentialsError(ComplianceError):
    status_code = 400


class InvalidRequestError(ComplianceError):
    status_code = 400


class InvalidCredentialsError(ComplianceError):
    status_code = 401

    def __init__(self, message: str = "Invalid project reference or service role key"):
        super().__init__(message)


class LogStoreNotConfiguredError(ComplianceError):
    status_code = 500

    def __init__(self, message: str = "Logging database configuration missing"):
        super().__init__(message)


class UpstreamError(ComplianceError):
    """A third-party API answered with an error."""

    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: int = 0,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.upstream_status = upstream_status
        self.code = code


class SupabaseApiError(UpstreamError):
    """Non-2xx answer (or transport failure) from a Supabase API."""

    @property
    def is_auth_error(self) -> bool:
        return self.upstream_status in (401, 403)


class AssistantError(ComplianceError):
    """Chat assistant failure, already mapped to a caller-facing status."""
