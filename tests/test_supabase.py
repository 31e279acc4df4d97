"""
Tests for the Supabase client wrapper: PostgREST error mapping and
result normalisation.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from aigeo.database import SupabaseClient, SupabaseError, SupabaseNotConfigured
from aigeo.database.supabase import status_for_code

from tests.conftest import json_response


@pytest.mark.parametrize("code,status", [
    ("23505", 409),
    ("42P01", 404),
    ("PGRST205", 404),
    ("PGRST000", 503),
    ("PGRST301", 401),
    ("PGRST204", 400),
    ("22P02", 400),
    ("503", 503),
    (None, 500),
    ("XX000", 500),
])
def test_status_for_code(code, status):
    assert status_for_code(code) == status


def test_from_api_error():
    error = SupabaseError.from_api_error(APIError({
        "message": 'duplicate key value violates unique constraint "gsc_timeseries_pkey"',
        "code": "23505",
        "details": "Key (property_url, date) already exists.",
        "hint": None,
    }))

    assert error.status_code == 409
    assert error.code == "23505"
    assert error.response["details"] == "Key (property_url, date) already exists."
    assert not error.is_missing_table


def test_missing_table_from_message():
    error = SupabaseError("Could not find the table 'public.optimisation_tasks' in the schema cache")
    assert error.is_missing_table


def mocked_query(**kwargs):
    query = MagicMock()
    query.execute = AsyncMock(**kwargs)
    return query


@pytest.mark.asyncio
class TestExecute:

    async def test_single_object_wrapped(self):
        db = SupabaseClient(MagicMock())
        rows = await db.execute(mocked_query(return_value=MagicMock(data={"id": 1})))
        assert rows == [{"id": 1}]

    async def test_empty_result(self):
        db = SupabaseClient(MagicMock())
        assert await db.execute(mocked_query(return_value=MagicMock(data=None))) == []

    async def test_transport_failure(self):
        db = SupabaseClient(MagicMock())
        with pytest.raises(SupabaseError) as exc_info:
            await db.execute(mocked_query(side_effect=httpx.ConnectError("connection refused")))

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    async def test_postgrest_error_mapped(self, supabase_factory):
        db, _ = supabase_factory(lambda request: json_response(
            {"message": 'relation "public.audit_results" does not exist', "code": "42P01"}, 404
        ))
        async with db:
            with pytest.raises(SupabaseError) as exc_info:
                await db.execute(db.table("audit_results").select("*"))

        assert exc_info.value.status_code == 404
        assert exc_info.value.is_missing_table

    async def test_query_builder_request(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([{"date": "2026-01-01"}]))
        async with db:
            rows = await db.execute(
                db.table("gsc_timeseries")
                .select("*")
                .eq("property_url", "https://www.example.com")
                .gte("date", "2026-01-01")
            )

        assert rows == [{"date": "2026-01-01"}]
        request = transport.requests[0]
        assert request.url.path == "/rest/v1/gsc_timeseries"
        assert request.url.params["property_url"] == "eq.https://www.example.com"
        assert request.url.params["date"] == "gte.2026-01-01"

    async def test_connect_requires_credentials(self):
        with pytest.raises(SupabaseNotConfigured):
            await SupabaseClient.connect("", "key")
