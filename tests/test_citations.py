"""
Tests for AI Overview citation matching.

Covers segment-wise prefix matching, keyword attribution and the
ranking_ai_data helpers used by the citing-URL query.
"""

import json

import pytest

from aigeo.citations import (
    citation_matches,
    citation_url,
    extract_combined_rows,
    find_keywords_citing_url,
    parse_ranking_ai_data,
    pick_audit_with_rows,
    summarize_ai_references,
)


class TestCitationMatches:
    """Segment-wise URL matching."""

    def test_exact_match(self):
        assert citation_matches("blog/post", "https://www.example.com/blog/post/")

    def test_prefix_match(self):
        assert citation_matches("blog/post", "https://example.com/blog/post/amp")

    def test_partial_segment_does_not_match(self):
        assert not citation_matches("blog/post", "https://example.com/blog/posting")

    def test_shorter_cited_path_does_not_match(self):
        assert not citation_matches("blog/post", "https://example.com/blog")

    def test_root_target_only_matches_root(self):
        assert citation_matches("", "https://example.com/")
        assert not citation_matches("", "https://example.com/blog")


class TestCitationUrl:
    """Citations may be strings or objects."""

    def test_string(self):
        assert citation_url("https://example.com/a") == "https://example.com/a"

    def test_dict_field_order(self):
        assert citation_url({"link": "https://x.com/l", "href": "https://x.com/h"}) == "https://x.com/l"

    def test_unknown_shape(self):
        assert citation_url({"title": "No url"}) is None
        assert citation_url(42) is None


class TestFindKeywordsCitingUrl:
    """Keyword attribution over combinedRows."""

    def test_counts_matching_citations(self, combined_rows):
        result = find_keywords_citing_url(combined_rows, "https://www.example.com/photography-courses")

        assert result.target_url_normalized == "photography-courses"
        assert result.unique_keywords == 2
        assert result.count == 2

        keywords = {k.keyword: k for k in result.keywords}
        assert keywords["photography courses near me"].citation_count == 1
        assert keywords["photography courses near me"].best_rank_group == 3
        assert keywords["photography courses near me"].search_volume == 880

    def test_reads_camel_case_fields(self, combined_rows):
        result = find_keywords_citing_url(combined_rows, "/blog/camera-settings")

        camel = next(k for k in result.keywords if k.keyword == "camera settings guide")
        assert camel.has_ai_overview is True
        assert camel.best_url == "https://www.example.com/blog/camera-settings"
        assert camel.best_rank == 7
        assert camel.search_volume == 320

    def test_no_matches(self, combined_rows):
        result = find_keywords_citing_url(combined_rows, "https://www.example.com/contact")
        assert result.keywords == []
        assert result.count == 0

    def test_ignores_non_dict_rows(self):
        result = find_keywords_citing_url(["not a row", None], "/a")
        assert result.unique_keywords == 0


class TestRankingData:
    """ranking_ai_data parsing."""

    def test_parses_json_string(self, combined_rows):
        stored = json.dumps({"combinedRows": combined_rows})
        assert len(extract_combined_rows(stored)) == 3

    def test_invalid_json(self):
        assert parse_ranking_ai_data("{not json") is None
        assert extract_combined_rows("{not json") == []

    def test_pick_audit_with_rows_skips_empty(self, combined_rows):
        records = [
            {"audit_date": "2026-01-20", "ranking_ai_data": {"combinedRows": []}},
            {"audit_date": "2026-01-15", "ranking_ai_data": {"combinedRows": combined_rows}},
        ]
        assert pick_audit_with_rows(records)["audit_date"] == "2026-01-15"

    def test_pick_audit_none(self):
        assert pick_audit_with_rows([{"ranking_ai_data": None}]) is None


class TestSummarizeAiReferences:
    """AI Overview reference deduplication."""

    def test_dedupes_and_filters_domain(self):
        overview = {
            "references": [
                {"url": "https://www.example.com/a", "domain": "www.example.com", "title": "A"},
                {"url": "https://www.example.com/a", "domain": "www.example.com", "title": "A again"},
                {"url": "https://other.com/b", "title": "B"},
            ]
        }
        summary = summarize_ai_references(overview, "example.com")

        assert summary["has_ai_overview"] is True
        assert summary["total_citations"] == 2
        assert summary["domain_citations_count"] == 1
        assert summary["citations"][1]["domain"] == "other.com"

    def test_falls_back_to_element_links(self):
        overview = {"items": [{"links": [{"url": "https://example.com/x", "title": "X", "domain": "example.com"}]}]}
        summary = summarize_ai_references(overview, "example.com")
        assert summary["total_citations"] == 1
        assert summary["domain_citations"][0]["url"] == "https://example.com/x"

    def test_no_overview(self):
        summary = summarize_ai_references(None, "example.com")
        assert summary["has_ai_overview"] is False
        assert summary["citations"] == []
