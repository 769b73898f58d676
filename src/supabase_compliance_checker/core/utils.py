"""
Shared utility functions for the Supabase Compliance Checker.
"""

import asyncio
import math
import platform
import sys
from typing import Dict

import asyncpg


async def check_database_connection(database_url: str, timeout: float = 5) -> bool:
    """
    Test if we can connect to the database.

    Args:
        database_url: postgresql:// connection URL
        timeout: Connection timeout in seconds

    Returns:
        True if connection successful, False otherwise
    """
    try:
        conn = await asyncpg.connect(dsn=database_url, timeout=timeout)
    except (
        OSError,
        ValueError,
        asyncio.TimeoutError,
        asyncpg.PostgresError,
        asyncpg.InterfaceError,
    ):
        return False
    await conn.close()
    return True


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def compliance_rate(compliant: int, total: int) -> int:
    """
    Percentage of compliant items, rounded to a whole number.

    Args:
        compliant: Number of passing items
        total: Number of checked items

    Returns:
        0 when nothing was checked, otherwise round(compliant / total * 100)
    """
    if total <= 0:
        return 0
    return round_half_up(compliant / total * 100)


def project_url(project_ref: str, template: str = "https://{ref}.supabase.co") -> str:
    """Build the API URL of a hosted project from its reference."""
    return template.format(ref=project_ref).rstrip("/")


def mask_secret(secret: str, visible: int = 20) -> str:
    """
    Mask a key for echoing back to a caller.

    Args:
        secret: Secret string to mask
        visible: Number of leading characters to keep

    Returns:
        Leading characters followed by "..." (e.g., "eyJhbGciOiJIUzI1NiIs...")
    """
    return f"{secret[:visible]}..."


def get_environment_info() -> Dict[str, str]:
    """
    Get information about the current environment.

    Returns:
        Dictionary with Python version, OS, etc.
    """
    return {
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "os": platform.system(),
        "os_version": platform.release(),
        "architecture": platform.machine(),
    }


__all__ = [
    "check_database_connection",
    "round_half_up",
    "compliance_rate",
    "project_url",
    "mask_secret",
    "get_environment_info",
]
