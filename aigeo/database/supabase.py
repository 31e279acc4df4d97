"""
Supabase Client

Async Supabase client (supabase-py) using the service-role key. Queries
are built with the postgrest query builder and run through execute(),
which maps postgrest errors onto SupabaseError:

    db = await SupabaseClient.connect(url, key)
    rows = await db.execute(
        db.table("gsc_timeseries")
        .select("*")
        .eq("property_url", url)
        .gte("date", start)
        .lte("date", end)
        .order("date")
    )
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, AsyncClientOptions, acreate_client

logger = logging.getLogger(__name__)

MISSING_TABLE_CODES = ("42P01", "PGRST205")
UNAVAILABLE_CODES = ("PGRST000", "PGRST001", "PGRST002", "PGRST003")


def status_for_code(code: Optional[str]) -> int:
    """HTTP status PostgREST answers with for an error code."""
    code = str(code or "")
    if code.isdigit():
        return int(code)
    if code in MISSING_TABLE_CODES:
        return 404
    if code == "23505":
        return 409
    if code in UNAVAILABLE_CODES:
        return 503
    if code.startswith("PGRST3"):
        return 401
    if code.startswith(("PGRST", "22", "23", "42")):
        return 400
    return 500


class SupabaseError(Exception):
    """Custom exception for Supabase errors."""

    def __init__(self, message: str, status_code: int = None, code: str = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.response = response

    @classmethod
    def from_api_error(cls, error: APIError) -> "SupabaseError":
        return cls(
            error.message or "Supabase request failed",
            status_code=status_for_code(error.code),
            code=error.code,
            response={"message": error.message, "code": error.code, "details": error.details, "hint": error.hint},
        )

    @property
    def is_missing_table(self) -> bool:
        """True when the target table has not been migrated yet."""
        if self.code in MISSING_TABLE_CODES:
            return True
        message = str(self).lower()
        return "does not exist" in message or "could not find the table" in message


class SupabaseNotConfigured(Exception):
    """SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing."""


class SupabaseClient:
    """
    Repository-facing wrapper around supabase's AsyncClient.

    Usage:
        db = await SupabaseClient.connect(url, key)
        try:
            rows = await db.execute(db.table("audit_results").select("*").eq("audit_date", day))
        finally:
            await db.close()
    """

    def __init__(self, client: AsyncClient):
        self.client = client
        self._closed = False

    @classmethod
    async def connect(cls, url: str, service_key: str, timeout: float = 30.0) -> "SupabaseClient":
        """
        Create the async Supabase client.

        Args:
            url: Project URL (https://<ref>.supabase.co)
            service_key: Service-role key
            timeout: PostgREST request timeout in seconds
        """
        if not url or not service_key:
            raise SupabaseNotConfigured(
                "Supabase not configured. Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY."
            )
        options = AsyncClientOptions(
            postgrest_client_timeout=timeout,
            auto_refresh_token=False,
            persist_session=False,
        )
        client = await acreate_client(url.rstrip("/"), service_key, options=options)
        return cls(client)

    def table(self, name: str):
        """Query builder for a table."""
        return self.client.table(name)

    async def execute(self, query) -> List[Dict[str, Any]]:
        """
        Run a built query and return its rows.

        Raises:
            SupabaseError: PostgREST rejected the query or the request failed
        """
        try:
            response = await query.execute()
        except APIError as e:
            logger.debug(f"Supabase error {e.code}: {e.message}")
            raise SupabaseError.from_api_error(e) from e
        except httpx.HTTPError as e:
            raise SupabaseError(f"Supabase request failed: {e}") from e

        data = response.data
        if not data:
            return []
        if isinstance(data, dict):
            return [data]
        return data

    async def close(self):
        if not self._closed:
            await self.client.postgrest.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
