"""
RLS (Row Level Security) Check

Reports whether Row Level Security is enabled on every table of the public
schema. Table state comes from the check_table_rls_status helper function,
or straight from pg_tables when a database connection is available.
"""

from typing import Any, Dict, List

import asyncpg

from ..core.check import BaseCheck
from ..core.errors import ComplianceError, InvalidCredentialsError, SupabaseApiError
from ..core.utils import compliance_rate
from ..reporting.models import (
    CheckResponse,
    CheckStatus,
    CheckType,
    RLSSummary,
    TableCompliance,
)
from .setup_sql import RLS_FUNCTION, RLS_SETUP

TABLES_QUERY = """
SELECT
    schemaname,
    tablename,
    rowsecurity
FROM pg_tables
WHERE schemaname = 'public'
  AND tablename NOT LIKE 'pg\\_%'
  AND tablename NOT LIKE '\\_realtime\\_%'
ORDER BY tablename;
"""


class RLSCheck(BaseCheck):
    """Check that every public table has Row Level Security enabled."""

    name = "rls_check"
    description = "Checks RLS enablement of public tables"
    check_type = CheckType.RLS

    async def run(self) -> CheckResponse:
        self.validate_credentials()

        if self.context.db_connection is not None:
            tables = await self._introspect_tables(self.context.db_connection)
        else:
            try:
                rows = await self.context.get_rest_client().rpc(RLS_FUNCTION)
            except SupabaseApiError as e:
                if e.is_auth_error:
                    raise InvalidCredentialsError() from e
                self.log(f"{RLS_FUNCTION} unavailable: {e.message}", level="INFO")
                return CheckResponse.setup(self.check_type, RLS_SETUP)
            tables = [self._parse_row(row) for row in rows or []]

        enabled = sum(1 for t in tables if t.rls_enabled)
        summary = RLSSummary(
            total_tables=len(tables),
            rls_enabled=enabled,
            rls_disabled=len(tables) - enabled,
            compliance_rate=compliance_rate(enabled, len(tables)),
        )

        return CheckResponse(
            check_type=self.check_type,
            success=True,
            data=tables,
            summary=summary,
            note=f"RLS status checked using custom SQL function for {len(tables)} tables.",
        )

    @staticmethod
    def _parse_row(row: Dict[str, Any]) -> TableCompliance:
        rls_enabled = bool(row.get("rls_enabled"))
        return TableCompliance(
            schema_name=row.get("schema") or "public",
            table=row.get("table") or "unknown",
            rls_enabled=rls_enabled,
            status=CheckStatus.from_bool(rls_enabled),
        )

    async def _introspect_tables(self, conn: asyncpg.Connection) -> List[TableCompliance]:
        """Read RLS flags from pg_tables directly."""
        try:
            rows = await conn.fetch(TABLES_QUERY)
        except asyncpg.PostgresError as e:
            self.log(f"Failed to read pg_tables: {e}", level="ERROR")
            raise ComplianceError(f"Failed to read table metadata: {e}") from e

        return [
            self._parse_row(
                {
                    "schema": row["schemaname"],
                    "table": row["tablename"],
                    "rls_enabled": row["rowsecurity"],
                }
            )
            for row in rows
        ]


__all__ = ["RLSCheck"]
