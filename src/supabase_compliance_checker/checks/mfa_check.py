"""
MFA Check

Reports, for every auth user of a project, whether at least one verified MFA
factor is enrolled. Factor data comes from the get_user_mfa_status helper
function, which reads auth.mfa_factors on the check's behalf.
"""

import asyncio
from typing import Any, Dict, List

from ..core.check import BaseCheck
from ..core.errors import ComplianceError, InvalidCredentialsError, SupabaseApiError
from ..core.utils import compliance_rate
from ..reporting.models import (
    CheckResponse,
    CheckStatus,
    CheckType,
    MFASummary,
    UserCompliance,
)
from .setup_sql import MFA_FUNCTION, MFA_SETUP


class MFACheck(BaseCheck):
    """Check that every user has multi-factor authentication enabled."""

    name = "mfa_check"
    description = "Checks MFA enrollment of every auth user"
    check_type = CheckType.MFA

    MAX_CONCURRENT_LOOKUPS = 10

    async def run(self) -> CheckResponse:
        self.validate_credentials()
        client = self.context.get_rest_client()

        # A one-user listing proves the key is a valid service role key
        try:
            await client.list_users(page=1, per_page=1)
        except SupabaseApiError as e:
            self.log(f"Key validation failed: {e.message}", level="WARNING")
            raise InvalidCredentialsError() from e

        try:
            users = await client.list_all_users(per_page=self.config.users_page_size)
        except SupabaseApiError as e:
            self.log(f"Error fetching users: {e.message}", level="ERROR")
            raise ComplianceError(f"Failed to fetch users: {e.message}") from e

        if users:
            try:
                await client.rpc(MFA_FUNCTION, {"target_user_id": users[0]["id"]})
            except SupabaseApiError as e:
                self.log(f"{MFA_FUNCTION} unavailable: {e.message}", level="INFO")
                return CheckResponse.setup(self.check_type, MFA_SETUP)

        limit = asyncio.Semaphore(self.MAX_CONCURRENT_LOOKUPS)
        user_compliance = list(
            await asyncio.gather(*(self._check_user(user, limit) for user in users))
        )

        enabled = sum(1 for u in user_compliance if u.mfa_enabled)
        summary = MFASummary(
            total_users=len(user_compliance),
            mfa_enabled=enabled,
            mfa_disabled=len(user_compliance) - enabled,
            compliance_rate=compliance_rate(enabled, len(user_compliance)),
        )

        return CheckResponse(
            check_type=self.check_type,
            success=True,
            data=user_compliance,
            summary=summary,
            note=f"MFA status checked using custom SQL function for {len(user_compliance)} users.",
        )

    async def _check_user(self, user: Dict[str, Any], limit: asyncio.Semaphore) -> UserCompliance:
        """MFA state of one user; lookup errors count as MFA disabled."""
        base = {
            "id": user["id"],
            "email": user.get("email"),
            "created_at": user.get("created_at"),
        }
        try:
            async with limit:
                rows = await self.context.get_rest_client().rpc(
                    MFA_FUNCTION, {"target_user_id": user["id"]}
                )
        except SupabaseApiError as e:
            self.log(f"Error fetching MFA factors for user {user.get('email')}: {e.message}")
            return UserCompliance(**base, mfa_enabled=False, status=CheckStatus.FAIL)

        row = _first_row(rows)
        mfa_enabled = bool(row.get("mfa_enabled"))
        return UserCompliance(
            **base,
            mfa_enabled=mfa_enabled,
            status=CheckStatus.from_bool(mfa_enabled),
            mfa_factors_count=row.get("factor_count") or 0,
            mfa_factors=row.get("factors") or [],
        )


def _first_row(rows: Any) -> Dict[str, Any]:
    """The function returns a set of rows; only the first is meaningful."""
    if isinstance(rows, list):
        return rows[0] if rows else {}
    if isinstance(rows, dict):
        return rows
    return {}


__all__: List[str] = ["MFACheck"]
