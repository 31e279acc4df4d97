"""
Tests for keyword_rankings mapping and persistence.
"""

import pytest

from aigeo.database.keywords import (
    get_keyword_audit_dates,
    get_keyword_rankings,
    map_keyword_row,
    replace_keyword_rankings,
    restore_keyword_row,
    summarize_keyword_rows,
)
from aigeo.segments import KeywordRules

from tests.conftest import json_response, request_json


@pytest.fixture
def rules():
    return KeywordRules(brand_terms=["example brand"])


class TestMapKeywordRow:

    def test_classifies_missing_segment(self, combined_rows, rules):
        row = map_keyword_row(combined_rows[0], "2026-01-15", "https://www.example.com", rules)

        assert row["keyword"] == "photography courses near me"
        assert row["segment"] == "money"
        assert row["best_rank_group"] == 3
        assert row["has_ai_overview"] is True
        assert row["ai_overview_present_any"] is True
        assert len(row["ai_domain_citations"]) == 2
        assert row["local_pack_present_any"] is False

    def test_brand_segment(self, combined_rows, rules):
        row = map_keyword_row(combined_rows[2], "2026-01-15", "https://www.example.com", rules)
        assert row["segment"] == "brand"
        assert row["ai_domain_citations"] is None

    def test_keeps_declared_segment(self, rules):
        row = map_keyword_row({"keyword": "course dates", "segment": "education"}, "2026-01-15", "x", rules)
        assert row["segment"] == "education"

    def test_serp_feature_flags(self):
        row = map_keyword_row(
            {
                "keyword": "k",
                "serp_features": {"local_pack": True, "people_also_ask": True},
                "featured_snippet_present_any": True,
                "ai_citations_count": 4,
                "opportunity_score": "61.7",
            },
            "2026-01-15",
            "x",
        )
        assert row["local_pack_present_any"] is True
        assert row["paa_present_any"] is True
        assert row["featured_snippet_present_any"] is True
        assert row["ai_domain_citations_count"] == 4
        assert row["opportunity_score"] == 61


class TestRestoreKeywordRow:

    def test_caps_competitors_and_features(self):
        competitors = {f"c{i}.com": i for i in range(30)}
        features = {f"f{i}": True for i in range(12)}
        features["ai_overview"] = True
        restored = restore_keyword_row({
            "keyword": "k",
            "competitor_counts": competitors,
            "serp_features": features,
            "ai_domain_citations": [{"url": f"https://x.com/{i}"} for i in range(15)],
            "opportunity_score": 70,
        })

        assert len(restored["competitor_counts"]) == 20
        assert "c29.com" in restored["competitor_counts"]
        assert "c0.com" not in restored["competitor_counts"]
        assert restored["serp_features"] == {"ai_overview": True}
        assert len(restored["ai_domain_citations"]) == 10
        assert restored["opportunityScore"] == 70

    def test_json_string_columns(self):
        restored = restore_keyword_row({"keyword": "k", "ai_domain_citations": '[{"url": "https://x.com/a"}]'})
        assert restored["ai_domain_citations"] == [{"url": "https://x.com/a"}]


def test_summarize_keyword_rows():
    rows = [
        {"best_rank_group": 3, "search_volume": 100},
        {"best_rank_group": 12, "search_volume": 0},
        {"best_rank_group": None, "search_volume": 50},
        {"best_rank_group": 1, "search_volume": 100, "has_ai_overview": True, "ai_domain_citations_count": 2},
    ]
    summary = summarize_keyword_rows(rows)

    assert summary["total_keywords"] == 4
    assert summary["keywords_with_rank"] == 3
    assert summary["top10"] == 2
    assert summary["top3"] == 2
    assert summary["avg_position_unweighted"] == pytest.approx(16 / 3)
    assert summary["avg_position_volume_weighted"] == pytest.approx(2.0)
    assert summary["keywords_with_ai_overview"] == 1
    assert summary["keywords_with_ai_citations"] == 1
    assert summary["keywords_with_volume"] == 3


@pytest.mark.asyncio
class TestKeywordPersistence:

    async def test_replace_deletes_then_upserts(self, supabase_factory, combined_rows, rules):
        db, transport = supabase_factory(lambda request: json_response(request_json(request) or []))
        rows = combined_rows + [{"keyword": "   "}]

        async with db:
            saved = await replace_keyword_rankings(db, "2026-01-15", "https://www.example.com ", rows, rules)

        assert saved == 3
        delete, upsert = transport.requests
        assert delete.method == "DELETE"
        assert delete.url.params["property_url"] == "eq.https://www.example.com"
        assert upsert.url.params["on_conflict"] == "audit_date,property_url,keyword"
        assert "resolution=merge-duplicates" in upsert.headers["Prefer"]
        assert [r["keyword"] for r in request_json(upsert)] == [
            "photography courses near me",
            "camera settings guide",
            "example brand",
        ]

    async def test_audit_dates_distinct(self, supabase_factory):
        db, _ = supabase_factory(lambda request: json_response([
            {"audit_date": "2026-01-15"},
            {"audit_date": "2026-01-15"},
            {"audit_date": "2025-12-15"},
        ]))
        async with db:
            dates = await get_keyword_audit_dates(db)
        assert dates == ["2026-01-15", "2025-12-15"]

    async def test_rankings_match_property_variants(self, supabase_factory):
        db, transport = supabase_factory(lambda request: json_response([{"keyword": "a"}]))
        async with db:
            rows = await get_keyword_rankings(db, "2026-01-15", "example.com")

        assert rows == [{"keyword": "a"}]
        params = transport.requests[0].url.params
        assert params["audit_date"] == "eq.2026-01-15"
        assert params["property_url"].startswith("in.(")
        assert "https://www.example.com" in params["property_url"]
        assert params["order"].startswith("keyword")

    async def test_replace_skips_non_object_rows(self, supabase_factory, rules):
        db, transport = supabase_factory(lambda request: json_response(request_json(request) or []))
        rows = [None, "stray", {"keyword": "a"}]

        async with db:
            saved = await replace_keyword_rankings(db, "2026-01-15", "https://www.example.com", rows, rules)

        assert saved == 1
        upsert = transport.requests[-1]
        assert [r["keyword"] for r in request_json(upsert)] == ["a"]
