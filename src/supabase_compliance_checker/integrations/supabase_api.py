"""
Async clients for the Supabase APIs the checks talk to.

- SupabaseRestClient: a project's GoTrue admin API and PostgREST, authenticated
  with its service role key
- ManagementApiClient: the Supabase Management API, authenticated with a
  personal access token
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from supabase_compliance_checker.core.errors import SupabaseApiError
from supabase_compliance_checker.core.utils import project_url

logger = logging.getLogger("supabase_compliance.api")


@dataclass
class RawResponse:
    """Status and body of an upstream call, returned without raising."""

    status: int
    reason: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        if not self.text:
            return None
        return json.loads(self.text)


def _error_message(text: str, fallback: str) -> str:
    """Pull the human readable message out of a Supabase error body."""
    try:
        body = json.loads(text) if text else None
    except ValueError:
        return text or fallback
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return text or fallback


async def send_request(
    method: str,
    url: str,
    headers: Dict[str, str],
    timeout: float,
    params: Optional[Dict[str, Any]] = None,
    json_body: Any = None,
) -> RawResponse:
    """
    Issue one HTTP request.

    Raises:
        SupabaseApiError: on transport failures (status 0)
    """
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.request(
                method, url, headers=headers, params=params, json=json_body
            ) as response:
                text = await response.text()
                return RawResponse(
                    status=response.status,
                    reason=response.reason or "",
                    text=text,
                )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"{method} {url} failed: {e!r}")
        raise SupabaseApiError(f"Request to {url} failed: {e}") from e


def _raise_for_status(raw: RawResponse) -> Any:
    if not raw.ok:
        raise SupabaseApiError(
            _error_message(raw.text, raw.reason or f"HTTP {raw.status}"),
            upstream_status=raw.status,
        )
    try:
        return raw.json()
    except ValueError as e:
        raise SupabaseApiError(f"Malformed JSON response: {e}", upstream_status=raw.status) from e


class SupabaseRestClient:
    """Client for one project's auth admin API and PostgREST."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def for_project(
        cls,
        project_ref: str,
        service_role_key: str,
        url_template: str = "https://{ref}.supabase.co",
        timeout: float = 10.0,
    ) -> "SupabaseRestClient":
        return cls(project_url(project_ref, url_template), service_role_key, timeout=timeout)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _call(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = self.headers
        if extra_headers:
            headers.update(extra_headers)
        raw = await send_request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            timeout=self.timeout,
            params=params,
            json_body=json_body,
        )
        return _raise_for_status(raw)

    async def list_users(self, page: int = 1, per_page: int = 50) -> List[Dict[str, Any]]:
        """One page of auth users (GoTrue admin API)."""
        body = await self._call(
            "GET", "/auth/v1/admin/users", params={"page": page, "per_page": per_page}
        )
        if isinstance(body, dict):
            return body.get("users") or []
        return body or []

    async def list_all_users(self, per_page: int = 1000) -> List[Dict[str, Any]]:
        """Every auth user, following pages until a short page is returned."""
        users: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = await self.list_users(page=page, per_page=per_page)
            users.extend(batch)
            if len(batch) < per_page:
                return users
            page += 1

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a Postgres function exposed through PostgREST."""
        return await self._call("POST", f"/rest/v1/rpc/{function}", json_body=params or {})

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Read rows from a table.

        Args:
            table: Table name
            filters: Column equality filters
            order: PostgREST order clause, e.g. "created_at.desc"
            limit: Maximum number of rows
        """
        params: Dict[str, Any] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return await self._call("GET", f"/rest/v1/{table}", params=params) or []

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored."""
        rows = await self._call(
            "POST",
            f"/rest/v1/{table}",
            json_body=row,
            extra_headers={"Prefer": "return=representation"},
        )
        if isinstance(rows, list):
            return rows[0] if rows else {}
        return rows or {}

    async def probe(self) -> RawResponse:
        """GET the PostgREST root without raising on error statuses."""
        return await send_request(
            "GET", f"{self.base_url}/rest/v1/", headers=self.headers, timeout=self.timeout
        )


class ManagementApiClient:
    """Client for the Supabase Management API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.supabase.com",
        timeout: float = 10.0,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_database_backups(self, project_ref: str) -> Dict[str, Any]:
        """Backup settings of a project, including whether PITR is enabled."""
        raw = await send_request(
            "GET",
            f"{self.base_url}/v1/projects/{project_ref}/database/backups",
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        return _raise_for_status(raw) or {}


__all__ = [
    "RawResponse",
    "send_request",
    "SupabaseRestClient",
    "ManagementApiClient",
]
