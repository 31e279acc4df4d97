"""
Tests for URL and domain normalization.
"""

import pytest

from aigeo.utils.urls import (
    audit_date_key,
    normalize_domain,
    normalize_domain_list,
    normalize_property_url,
    normalize_tracked_url,
    normalize_url,
    property_url_candidates,
)


class TestNormalizeUrl:
    """normalize_url reduces URLs to a bare path."""

    @pytest.mark.parametrize("url,expected", [
        ("https://www.Example.com/Blog/Post/?utm=1", "blog/post"),
        ("http://example.com/blog/post#section", "blog/post"),
        ("/blog/post/", "blog/post"),
        ("example.com/photography-courses", "photography-courses"),
        ("https://www.example.com/", ""),
        ("example.com", "example.com"),
    ])
    def test_normalizes(self, url, expected):
        assert normalize_url(url) == expected

    def test_empty_input(self):
        assert normalize_url(None) == ""
        assert normalize_url("") == ""


class TestPropertyUrls:
    """GSC property URL handling."""

    def test_adds_protocol_and_strips_slash(self):
        assert normalize_property_url("www.example.com/") == "https://www.example.com"

    def test_keeps_existing_protocol(self):
        assert normalize_property_url("http://example.com") == "http://example.com"

    def test_candidates_include_www_twin(self):
        candidates = property_url_candidates("https://www.example.com/")
        assert candidates == ["https://www.example.com", "https://example.com"]

    def test_candidates_for_bare_host(self):
        candidates = property_url_candidates("example.com")
        assert candidates == ["example.com", "https://example.com", "https://www.example.com"]

    def test_candidates_empty(self):
        assert property_url_candidates("  ") == []


class TestDomains:
    """Hostname normalization."""

    def test_url_to_domain(self):
        assert normalize_domain("https://www.example.com/page") == "example.com"

    def test_path_without_protocol(self):
        assert normalize_domain("www.example.com/page") == "example.com"

    def test_empty_is_none(self):
        assert normalize_domain("") is None
        assert normalize_domain(None) is None

    def test_list_dedupes_in_order(self):
        domains = normalize_domain_list(["www.b.com", "a.com", "https://b.com/x", ""])
        assert domains == ["b.com", "a.com"]

    def test_list_from_comma_string(self):
        assert normalize_domain_list("a.com, www.b.com") == ["a.com", "b.com"]


def test_tracked_url_key():
    assert normalize_tracked_url("https://Example.com/Page/?x=1") == "https://example.com/page"


def test_audit_date_key():
    assert audit_date_key("2026-01-15T10:22:00Z") == "2026-01-15"
    assert audit_date_key(None) == ""
