"""
PITR (Point in Time Recovery) Check

Reads a project's backup settings from the Supabase Management API. The
project fails unless PITR is reported as enabled.
"""

from typing import Any, Dict

from ..core.check import BaseCheck
from ..core.errors import MissingCredentialsError, SupabaseApiError
from ..reporting.models import (
    CheckResponse,
    CheckStatus,
    CheckType,
    PITRSummary,
    ProjectCompliance,
)

DEFAULT_RETENTION_DAYS = 7


class PITRCheck(BaseCheck):
    """Check that point in time recovery is enabled for the project."""

    name = "pitr_check"
    description = "Checks PITR backup status through the Management API"
    check_type = CheckType.PITR

    def validate_credentials(self) -> None:
        if not self.credentials.project_ref or not self.credentials.personal_access_token:
            raise MissingCredentialsError(
                "Project reference and personal access token are required"
            )

    async def run(self) -> CheckResponse:
        self.validate_credentials()
        project_ref = self.credentials.project_ref

        project = ProjectCompliance(
            id=project_ref,
            name=f"Project {project_ref}",
            pitr_enabled=False,
            backup_retention_days=DEFAULT_RETENTION_DAYS,
            status=CheckStatus.FAIL,
        )

        try:
            backups = await self.context.get_management_client().get_database_backups(project_ref)
        except SupabaseApiError as e:
            self.log(f"Could not fetch PITR status from Management API: {e.message}", level="WARNING")
        else:
            if isinstance(backups, dict):
                project = self._apply_backup_settings(project, backups)
            else:
                self.log(
                    f"Unexpected backups response of type {type(backups).__name__}, assuming PITR disabled",
                    level="WARNING",
                )

        pitr_enabled = 1 if project.pitr_enabled else 0
        summary = PITRSummary(
            total_projects=1,
            pitr_enabled=pitr_enabled,
            pitr_disabled=1 - pitr_enabled,
            compliance_rate=100 if project.pitr_enabled else 0,
        )

        return CheckResponse(
            check_type=self.check_type,
            success=True,
            data=[project],
            summary=summary,
            note="PITR status checked via Management API",
        )

    @staticmethod
    def _apply_backup_settings(
        project: ProjectCompliance, backups: Dict[str, Any]
    ) -> ProjectCompliance:
        """Merge the backups endpoint answer into the default project record."""
        # Older answers nest the settings under "database"
        settings = backups.get("database") if isinstance(backups.get("database"), dict) else backups
        pitr_enabled = bool(settings.get("pitr_enabled"))
        try:
            retention = int(settings.get("backup_retention_days") or DEFAULT_RETENTION_DAYS)
        except (TypeError, ValueError):
            retention = DEFAULT_RETENTION_DAYS
        return project.model_copy(
            update={
                "pitr_enabled": pitr_enabled,
                "backup_retention_days": retention,
                "status": CheckStatus.from_bool(pitr_enabled),
            }
        )


__all__ = ["PITRCheck"]
