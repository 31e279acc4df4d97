"""
Tests for the audit_results repository.

Covers payload -> row mapping, empty/partial audit handling, restore
back to the dashboard payload and the update-then-insert save.
"""

from datetime import datetime, timezone

import pytest

from aigeo.database.audits import (
    AuditRejected,
    assess_partial,
    build_audit_record,
    find_latest_audit_date,
    find_ranking_audits,
    get_audit_history,
    minimal_audit_payload,
    query_pages,
    restore_audit_payload,
    save_audit_record,
    schema_pages_detail,
)
from aigeo.database.supabase import SupabaseError

from tests.conftest import json_response, request_json


class TestBuildAuditRecord:
    """Save payload -> audit_results row."""

    def test_full_payload(self, audit_payload):
        record = assess_partial(build_audit_record(audit_payload))

        assert record["property_url"] == "https://www.example.com"
        assert record["audit_date"] == "2026-01-15"
        assert record["schema_types"] == ["Organization", "Product"]
        assert record["schema_foundation"] == {
            "Organization": True,
            "Person": True,
            "WebSite": True,
            "BreadcrumbList": False,
        }
        assert record["authority_score"] == 48
        assert record["visibility_score"] == 62
        assert record["date_range"] == 28
        assert record["gsc_clicks"] == 1200
        assert record["is_partial"] is False
        assert record["partial_reason"] is None

    def test_ai_summary_computed(self, audit_payload):
        record = build_audit_record(audit_payload)
        assert record["ai_summary"]["label"] == "Medium"
        assert record["ai_summary_score"] == 53

    def test_schema_types_from_objects(self):
        record = build_audit_record({
            "propertyUrl": "https://www.example.com",
            "auditDate": "2026-01-15",
            "schemaAudit": {"data": {"schemaTypes": [{"type": "Article"}, {}, "FAQPage"]}},
        })
        assert record["schema_types"] == ["Article", "FAQPage"]

    def test_snippet_readiness_object(self, audit_payload):
        audit_payload["snippetReadiness"] = {"overallScore": 74}
        record = build_audit_record(audit_payload)
        assert record["snippet_readiness"] == 74

    def test_authority_by_segment(self, audit_payload):
        audit_payload["scores"]["authority"] = {"score": 51, "bySegment": {"money": 40}}
        record = build_audit_record(audit_payload)
        assert record["authority_score"] == 51
        assert record["authority_by_segment"] == {"money": 40}


class TestPartialAudits:

    def test_rejects_empty_audit(self):
        record = build_audit_record({"propertyUrl": "https://www.example.com", "auditDate": "2026-01-15"})
        with pytest.raises(AuditRejected):
            assess_partial(record)

    def test_scores_only_is_partial(self):
        record = build_audit_record({
            "propertyUrl": "https://www.example.com",
            "auditDate": "2026-01-15",
            "scores": {"visibility": 50},
        })
        record = assess_partial(record)

        assert record["is_partial"] is True
        assert record["partial_reason"] == (
            "schema_pages_detail missing; gsc_timeseries missing; query_pages missing"
        )

    def test_payload_without_scores_is_partial(self, audit_payload):
        del audit_payload["scores"]
        record = assess_partial(build_audit_record(audit_payload))
        assert record["is_partial"] is True
        assert record["partial_reason"] == "pillar scores missing"


class TestSectionMapping:

    def test_schema_pages_fallback(self):
        detail = schema_pages_detail({"pagesWithSchema": ["https://www.example.com/a", ""]})
        assert len(detail) == 1
        assert detail[0]["url"] == "https://www.example.com/a"
        assert detail[0]["hasSchema"] is False

    def test_schema_pages_missing(self):
        assert schema_pages_detail({}) is None

    def test_query_pages(self):
        rows = query_pages({"queryPages": [
            {"query": "a", "url": "https://x.com/a", "clicks": 3, "avg_position": 4.5},
            {"clicks": 9},
            "junk",
        ]})
        assert rows == [{
            "query": "a",
            "page": "https://x.com/a",
            "clicks": 3,
            "impressions": 0,
            "ctr": 0,
            "position": 4.5,
        }]

    def test_query_pages_truncated(self):
        rows = query_pages({"queryPages": [{"query": f"q{i}"} for i in range(2100)]})
        assert len(rows) == 2000


class TestRestore:

    def test_restore_from_stored_blob(self, audit_payload):
        record = assess_partial(build_audit_record(audit_payload))
        restored = restore_audit_payload(record)

        assert restored["scores"]["authority"] == 48
        assert restored["searchData"]["dateRange"] == 28
        assert restored["searchData"]["overview"]["siteTotalClicks"] == 1200
        assert restored["schemaAudit"]["data"]["totalPages"] == 40
        assert len(restored["rankingAiData"]["combinedRows"]) == 3
        assert restored["isPartial"] is False

    def test_restore_prefers_keyword_rows(self, audit_payload):
        record = build_audit_record(audit_payload)
        keyword_rows = [
            {"keyword": "b", "best_rank_group": 2, "search_volume": 10, "page_type": "landing"},
            {"keyword": "a", "best_rank_group": 12, "search_volume": 0},
        ]
        restored = restore_audit_payload(record, keyword_rows)

        combined = restored["rankingAiData"]["combinedRows"]
        assert [r["keyword"] for r in combined] == ["b", "a"]
        assert combined[0]["pageType"] == "landing"
        assert restored["rankingAiData"]["summary"]["top3"] == 1

    def test_no_schema_audit(self):
        restored = restore_audit_payload({"audit_date": "2026-01-15"})
        assert restored["schemaAudit"] is None
        assert restored["localSignals"] is None

    def test_minimal_payload(self):
        record = {"audit_date": "2026-01-15", "visibility_score": 60, "authority_score": 40}
        minimal = minimal_audit_payload(record)

        expected = int(datetime(2026, 1, 15, tzinfo=timezone.utc).timestamp() * 1000)
        assert minimal["timestamp"] == expected
        assert minimal["scores"]["visibility"] == 60
        assert minimal["_minimal"] is True

    def test_timestamp_prefers_updated_at(self):
        record = {"audit_date": "2026-01-15", "updated_at": "2026-01-16T12:00:00Z"}
        expected = int(datetime(2026, 1, 16, 12, tzinfo=timezone.utc).timestamp() * 1000)
        assert minimal_audit_payload(record)["timestamp"] == expected


@pytest.mark.asyncio
class TestSaveAuditRecord:

    async def test_updates_existing_row(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([{"id": 7}]))
        async with db:
            rows, updated = await save_audit_record(db, {"property_url": "https://x.com", "audit_date": "2026-01-15"})

        assert updated is True
        assert rows == [{"id": 7}]
        assert [r.method for r in transport.requests] == ["PATCH"]

    async def test_inserts_when_no_row_updated(self, supabase_factory):
        def handler(request):
            if request.method == "PATCH":
                return json_response([])
            return json_response([request_json(request)])

        db, transport = supabase_factory(handler)
        record = {"property_url": "https://x.com", "audit_date": "2026-01-15"}
        async with db:
            rows, updated = await save_audit_record(db, record)

        assert updated is False
        assert rows == [record]
        assert [r.method for r in transport.requests] == ["PATCH", "POST"]

    async def test_inserts_after_400(self, supabase_factory):
        def handler(request):
            if request.method == "PATCH":
                return json_response({"message": "Could not find the column", "code": "PGRST204"}, 400)
            return json_response([{"id": 1}])

        db, _ = supabase_factory(handler)
        async with db:
            _, updated = await save_audit_record(db, {"property_url": "https://x.com", "audit_date": "2026-01-15"})
        assert updated is False

    async def test_server_error_propagates(self, supabase_factory):
        db, _ = supabase_factory(lambda request: json_response({"message": "Database client error", "code": "PGRST000"}, 503))
        async with db:
            with pytest.raises(SupabaseError) as exc_info:
                await save_audit_record(db, {"property_url": "https://x.com", "audit_date": "2026-01-15"})
        assert exc_info.value.status_code == 503

    async def test_find_ranking_audits_filters(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([]))
        async with db:
            await find_ranking_audits(db, "https://www.example.com/")

        params = transport.requests[0].url.params
        assert "https://www.example.com" in params["property_url"]
        assert params["property_url"].startswith("in.(")
        assert params["ranking_ai_data"] == "not.is.null"
        assert params["limit"] == "5"

    async def test_history_mapping(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([{
            "audit_date": "2026-01-15",
            "content_schema_score": 71,
            "schema_coverage": 75,
            "schema_total_pages": 40,
            "schema_pages_with_schema": 30,
            "schema_types": ["Organization"],
            "schema_foundation": {"Organization": True},
            "schema_rich_eligible": {},
        }]))
        async with db:
            history = await get_audit_history(db, "https://www.example.com", "2026-01-01", "2026-01-31")

        assert history == [{
            "date": "2026-01-15",
            "contentSchemaScore": 71,
            "schemaCoverage": 75,
            "schemaTotalPages": 40,
            "schemaPagesWithSchema": 30,
            "schemaTypes": ["Organization"],
            "foundationSchemas": {"Organization": True},
            "richEligible": {},
        }]
        assert transport.requests[0].url.params.get_list("audit_date") == ["gte.2026-01-01", "lte.2026-01-31"]
        assert transport.requests[0].url.params["order"].startswith("audit_date")

    async def test_find_latest_audit_date(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([{"audit_date": "2026-01-20"}]))
        async with db:
            latest = await find_latest_audit_date(db, "https://www.example.com")

        assert latest == "2026-01-20"
        params = transport.requests[0].url.params
        assert params["select"] == "audit_date"
        assert params["order"] == "audit_date.desc"
        assert params["limit"] == "1"

    async def test_find_latest_audit_date_none(self, supabase_factory):
        db, _ = supabase_factory(lambda request: json_response([]))
        async with db:
            assert await find_latest_audit_date(db, "https://www.example.com") is None
