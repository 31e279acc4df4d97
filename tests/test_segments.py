"""
Tests for keyword, page and portfolio segment classification.
"""

import pytest

from aigeo.segments import (
    KeywordRules,
    PageRules,
    SegmentMarkers,
    aggregate_ai_metrics,
    classify_keyword_segment,
    classify_page_segment,
    group_keywords_by_segment,
    infer_segment_from_best_url,
)


@pytest.fixture
def keyword_rules():
    return KeywordRules(brand_terms=["example brand"], topic_terms=["aperture"])


class TestKeywordSegments:
    """Brand -> Money -> Education -> Other."""

    def test_brand_wins(self, keyword_rules):
        result = classify_keyword_segment("example brand photography courses", rules=keyword_rules)
        assert result.segment == "brand"
        assert result.confidence == 0.95

    def test_money_term(self, keyword_rules):
        result = classify_keyword_segment("photography courses near me", rules=keyword_rules)
        assert result.segment == "money"
        assert result.reason == "money: contains 'course'"

    def test_local_modifier(self, keyword_rules):
        result = classify_keyword_segment("photographer near me", rules=keyword_rules)
        assert result.segment == "money"
        assert "local modifier" in result.reason

    def test_postcode(self, keyword_rules):
        result = classify_keyword_segment("photographer cv1", rules=keyword_rules)
        assert result.segment == "money"
        assert result.reason == "money: contains postcode pattern"

    def test_gbp_page_type_boosts_money(self, keyword_rules):
        result = classify_keyword_segment("photography lessons", page_type="GBP", rules=keyword_rules)
        assert result.confidence == 0.9
        assert result.reason.endswith("+ GBP page type")

    def test_education(self, keyword_rules):
        result = classify_keyword_segment("how to use manual focus", rules=keyword_rules)
        assert result.segment == "education"
        assert result.confidence == 0.8

    def test_topic_term_with_blog_hint(self, keyword_rules):
        result = classify_keyword_segment("aperture explained", page_type="Blog", rules=keyword_rules)
        assert result.segment == "education"
        assert result.confidence == 0.85
        assert "technique/topic 'aperture'" in result.reason

    def test_other(self, keyword_rules):
        result = classify_keyword_segment("sunset photos", rules=keyword_rules)
        assert result.segment == "other"
        assert result.confidence == 0.5

    def test_missing_keyword(self):
        result = classify_keyword_segment(None)
        assert result.to_dict() == {"segment": "other", "confidence": 0, "reason": "Invalid or missing keyword"}

    def test_no_brand_terms_by_default(self):
        assert classify_keyword_segment("example brand").segment == "other"


class TestPageSegments:

    @pytest.mark.parametrize("url,segment", [
        ("https://www.example.com/blog/camera-settings/", "education"),
        ("/blog", "education"),
        ("https://www.example.com/fine-art-prints-workshop", "system"),
        ("https://www.example.com/photography-courses", "money"),
        ("academy/intro", "money"),
        ("https://www.example.com/about/", "support"),
        ("https://www.example.com/", "support"),
        ("https://www.example.com/privacy-policy", "system"),
    ])
    def test_default_rules(self, url, segment):
        assert classify_page_segment(url) == segment

    def test_override(self):
        assert classify_page_segment("/privacy-policy", kind_override="Commercial") == "money"

    def test_unknown_override_ignored(self):
        assert classify_page_segment("/about", kind_override="landing") == "support"

    def test_custom_exact_money_path(self):
        rules = PageRules(money_exact={"/pricing-2026"})
        assert classify_page_segment("/Pricing-2026/", rules=rules) == "money"


class TestPortfolioSegments:

    @pytest.fixture
    def keyword_rows(self):
        return [
            {"keyword": "photography academy", "best_url": "https://www.example.com/academy/start",
             "segment": "money", "ai_domain_citations_count": 2, "has_ai_overview": True},
            {"keyword": "camera settings", "best_url": "https://www.example.com/blog/camera-settings",
             "segment": "education", "ai_domain_citations_count": 1, "ai_overview_present_any": True},
            {"keyword": "landscape workshop", "best_url": "https://www.example.com/workshops/landscape",
             "segment": "money", "page_type": "event", "ai_domain_citations_count": None},
            {"keyword": "photography lessons", "best_url": "https://www.example.com/lessons/",
             "segment": "money"},
            {"keyword": "no url", "best_url": None, "segment": "other"},
        ]

    def test_infer_markers_first(self):
        row = {"page_type": "event", "segment": "money"}
        assert infer_segment_from_best_url("https://x.com/academy/a", row) == "academy"

    def test_infer_page_type_then_landing(self):
        assert infer_segment_from_best_url("https://x.com/w", {"page_type": "Product"}) == "product"
        assert infer_segment_from_best_url("https://x.com/w", {"segment": "money"}) == "landing"
        assert infer_segment_from_best_url("https://x.com/w", {"segment": "other"}) is None
        assert infer_segment_from_best_url(None, {"segment": "money"}) is None

    def test_group(self, keyword_rows):
        tracked = {"https://www.example.com/lessons"}
        groups = group_keywords_by_segment(keyword_rows, tracked_urls=tracked)

        assert len(groups["site"]) == 5
        assert len(groups["money"]) == 3
        assert [r["keyword"] for r in groups["academy"]] == ["photography academy"]
        assert [r["keyword"] for r in groups["blog"]] == ["camera settings"]
        assert [r["keyword"] for r in groups["event"]] == ["landscape workshop"]
        assert [r["keyword"] for r in groups["landing"]] == ["photography lessons"]
        assert [r["keyword"] for r in groups["all_tracked"]] == ["photography lessons"]
        assert groups["product"] == []

    def test_custom_markers(self, keyword_rows):
        markers = SegmentMarkers(academy="/workshops/", blog="/journal/")
        groups = group_keywords_by_segment(keyword_rows, markers=markers)
        assert [r["keyword"] for r in groups["academy"]] == ["landscape workshop"]
        assert groups["blog"] == []

    def test_aggregate_ai_metrics(self, keyword_rows):
        metrics = aggregate_ai_metrics(keyword_rows)
        assert metrics == {"ai_citations_28d": 3, "ai_overview_present_count": 2}
