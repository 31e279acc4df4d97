"""
Tests for the Google OAuth client, Search Console and Business Profile
integrations.
"""

from unittest.mock import patch

import pytest
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials

from aigeo.integrations import (
    GoogleAPIError,
    GoogleClient,
    GoogleNotConfigured,
    fetch_local_signals,
    fetch_page_totals,
    fetch_search_console,
    fetch_serp_features,
)
from aigeo.integrations.business_profile import (
    NO_ACCOUNTS_NOTE,
    extract_phone,
    extract_service_areas,
    nap_consistency_score,
    review_stats,
)
from aigeo.integrations.search_console import (
    page_filter_url,
    search_analytics_url,
    summarize_appearances,
    summarize_date_rows,
)

from tests.conftest import json_response, request_json


def grant_token(credentials, request):
    credentials.token = "access-123"
    credentials.expiry = None


@pytest.fixture
def token_refresh():
    """Credentials.refresh replaced so no token endpoint is contacted."""
    with patch.object(Credentials, "refresh", autospec=True, side_effect=grant_token) as refresh:
        yield refresh


@pytest.fixture
def google(make_transport, token_refresh):
    def factory(handler):
        transport = make_transport(handler)
        return GoogleClient("client-id", "client-secret", "refresh-token", transport=transport), transport

    return factory


# ============================================================================
# OAuth client
# ============================================================================

@pytest.mark.asyncio
class TestGoogleClient:

    async def test_requires_credentials(self):
        with pytest.raises(GoogleNotConfigured):
            GoogleClient("client-id", "", "refresh-token")

    async def test_credentials_from_refresh_token(self):
        client = GoogleClient("client-id", "client-secret", "refresh-token")
        async with client:
            assert client.credentials.refresh_token == "refresh-token"
            assert client.credentials.client_id == "client-id"
            assert client.credentials.token_uri == "https://oauth2.googleapis.com/token"
            assert not client.credentials.valid

    async def test_token_cached(self, google, token_refresh):
        client, transport = google(lambda request: json_response({"ok": True}))
        async with client:
            await client.get("https://www.googleapis.com/a")
            await client.get("https://www.googleapis.com/b")

        assert token_refresh.call_count == 1
        assert token_refresh.call_args.args[0] is client.credentials
        assert [r.headers["Authorization"] for r in transport.requests] == ["Bearer access-123"] * 2

    async def test_refresh_rejected(self, make_transport):
        transport = make_transport(lambda request: json_response({"ok": True}))
        error = RefreshError("invalid_grant: Token has been expired or revoked.")
        with patch.object(Credentials, "refresh", autospec=True, side_effect=error):
            async with GoogleClient("id", "secret", "refresh", transport=transport) as client:
                with pytest.raises(GoogleAPIError) as exc_info:
                    await client.get("https://www.googleapis.com/a")

        assert exc_info.value.status_code == 401
        assert "Token has been expired or revoked." in str(exc_info.value)
        assert transport.requests == []

    async def test_token_endpoint_unreachable(self, make_transport):
        transport = make_transport(lambda request: json_response({"ok": True}))
        with patch.object(Credentials, "refresh", autospec=True, side_effect=TransportError("timed out")):
            async with GoogleClient("id", "secret", "refresh", transport=transport) as client:
                with pytest.raises(GoogleAPIError) as exc_info:
                    await client.get("https://www.googleapis.com/a")

        assert exc_info.value.status_code == 502

    async def test_api_error_message(self, google):
        client, _ = google(lambda request: json_response(
            {"error": {"code": 403, "message": "User does not have sufficient permission"}}, 403
        ))
        async with client:
            with pytest.raises(GoogleAPIError) as exc_info:
                await client.post("https://www.googleapis.com/a", {})

        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "User does not have sufficient permission"


# ============================================================================
# Search Console
# ============================================================================

class TestSearchConsoleHelpers:

    def test_analytics_url_encodes_property(self):
        url = search_analytics_url("https://www.example.com")
        assert url.endswith("/sites/https%3A%2F%2Fwww.example.com/searchAnalytics/query")

    def test_summarize_date_rows(self):
        rows = [
            {"keys": ["2026-01-01"], "clicks": 10, "impressions": 400, "position": 10},
            {"keys": ["2026-01-02"], "clicks": 30, "impressions": 600, "position": 14},
        ]
        totals = summarize_date_rows(rows)
        assert totals == {"totalClicks": 40, "totalImpressions": 1000, "averagePosition": 12, "ctr": 4.0}

    def test_summarize_no_rows(self):
        assert summarize_date_rows([])["ctr"] == 0

    @pytest.mark.parametrize("page,expected", [
        ("/Blog/Post/?utm=1", "https://www.example.com/blog/post"),
        ("blog/post#top", "https://www.example.com/blog/post"),
        ("https://WWW.Example.com/Courses/", "https://www.example.com/courses"),
        ("/", "https://www.example.com/"),
    ])
    def test_page_filter_url(self, page, expected):
        assert page_filter_url("https://www.example.com", page) == expected

    def test_appearances_sorted_and_labelled(self):
        rows = [
            {"keys": ["RICH_RESULTS"], "impressions": 300, "clicks": 10, "ctr": 0.03333},
            {"keys": ["AMP_TOP_STORIES"], "impressions": 700, "clicks": 7, "ctr": 0.01},
        ]
        appearances = summarize_appearances(rows, 2000)

        assert [a["key"] for a in appearances] == ["amp_top_stories", "rich_result"]
        assert appearances[0]["label"] == "Amp Top Stories"
        assert appearances[0]["shareOfTotalImpressions"] == 35.0
        assert appearances[1]["label"] == "Rich Result"
        assert appearances[1]["ctr"] == 3.33


@pytest.mark.asyncio
class TestSearchConsoleFetch:

    async def test_site_totals_and_top_queries(self, google):
        def handler(request):
            body = request_json(request)
            if body["dimensions"] == ["date"]:
                return json_response({"rows": [
                    {"keys": ["2026-01-01"], "clicks": 5, "impressions": 100, "ctr": 0.05, "position": 9},
                ]})
            return json_response({"rows": [
                {"keys": ["photography courses"], "clicks": 3, "impressions": 40, "ctr": 0.075, "position": 4},
            ]})

        client, transport = google(handler)
        async with client:
            result = await fetch_search_console(client, "www.example.com/", "2025-12-16", "2026-01-13")

        assert result["totalClicks"] == 5
        assert result["timeseries"][0] == {
            "date": "2026-01-01", "clicks": 5, "impressions": 100, "ctr": 5.0, "position": 9,
        }
        assert result["topQueries"][0]["query"] == "photography courses"
        assert result["dateRange"] == {"startDate": "2025-12-16", "endDate": "2026-01-13"}

        date_query, top_query = transport.requests
        assert "https%3A%2F%2Fwww.example.com" in str(date_query.url)
        assert request_json(top_query)["rowLimit"] == 10

    async def test_page_totals(self, google):
        client, transport = google(lambda request: json_response({"rows": [
            {"keys": ["https://www.example.com/photography-courses"], "clicks": 12,
             "impressions": 300, "ctr": 0.04, "position": 6.5},
        ]}))
        async with client:
            result = await fetch_page_totals(
                client, "https://www.example.com", "/photography-courses/", "2025-12-16", "2026-01-13"
            )

        assert result["clicks"] == 12
        assert result["ctr"] == 4.0
        assert result["segment"] == "money"
        page_filter = request_json(transport.requests[0])["dimensionFilterGroups"][0]["filters"][0]
        assert page_filter == {
            "dimension": "page",
            "expression": "https://www.example.com/photography-courses",
            "operator": "equals",
        }

    async def test_page_totals_without_rows(self, google):
        client, _ = google(lambda request: json_response({}))
        async with client:
            result = await fetch_page_totals(client, "https://www.example.com", "/blog/post", "a", "b")

        assert result == {
            "page": "https://www.example.com/blog/post",
            "clicks": 0,
            "impressions": 0,
            "ctr": 0,
            "position": 0,
            "segment": "education",
        }

    async def test_serp_features_tolerate_appearance_failure(self, google):
        def handler(request):
            if "dimensions" in request_json(request):
                return json_response({"error": {"message": "Backend error"}}, 500)
            return json_response({"rows": [{"clicks": 40, "impressions": 2000}]})

        client, _ = google(handler)
        async with client:
            result = await fetch_serp_features(client, "https://www.example.com", "a", "b")

        assert result == {"totalImpressions": 2000, "totalClicks": 40, "appearances": []}


# ============================================================================
# Business Profile
# ============================================================================

class TestBusinessProfileHelpers:

    @pytest.mark.parametrize("location,phone", [
        ({"phoneNumbers": {"primaryPhone": "01234"}}, "01234"),
        ({"phoneNumbers": [{"phoneNumber": "05678"}]}, "05678"),
        ({"phoneNumbers": "09999"}, "09999"),
        ({"primaryPhone": {"phoneNumber": "01111"}}, "01111"),
        ({}, None),
    ])
    def test_extract_phone(self, location, phone):
        assert extract_phone(location) == phone

    def test_nap_score(self):
        entries = [
            {"name": "Studio", "address": {"locality": "Coventry"}, "phone": "01234"},
            {"name": "Studio", "address": None, "phone": None},
        ]
        assert nap_consistency_score(entries) == 65
        assert nap_consistency_score([]) is None

    def test_service_areas(self):
        locations = [
            {"title": "Studio", "serviceArea": {"places": {"placeInfos": [{"placeName": "Coventry", "placeId": "p1"}]}}},
            {"name": "locations/2", "serviceArea": {"businessType": "SERVICE_AREA_BUSINESS", "regionCode": "GB"}},
            {"title": "No area"},
        ]
        assert extract_service_areas(locations) == [
            {"placeName": "Coventry", "placeId": "p1", "locationName": "Studio"},
            {"regionCode": "GB", "locationName": "locations/2"},
        ]

    def test_review_stats_from_star_ratings(self):
        rating, count = review_stats({"reviews": [{"starRating": "FIVE"}, {"starRating": "THREE"}]})
        assert rating == 4.0
        assert count == 2

    def test_review_stats_totals(self):
        assert review_stats({"averageRating": 4.7, "totalReviewCount": 31}) == (4.7, 31)


@pytest.mark.asyncio
class TestLocalSignals:

    async def test_full_profile(self, google):
        detail = {
            "name": "locations/9",
            "title": "Example Studio",
            "storefrontAddress": {"locality": "Coventry", "addressLines": ["1 High St"]},
            "phoneNumbers": {"primaryPhone": "01234 567890"},
            "websiteUri": "https://www.example.com",
            "serviceArea": {"places": {"placeInfos": [{"placeName": "Coventry", "placeId": "p1"}]}},
        }

        def handler(request):
            host, path = request.url.host, request.url.path
            if host.startswith("mybusinessaccountmanagement"):
                return json_response({"accounts": [{"name": "accounts/1", "accountName": "Example Ltd", "type": "PERSONAL"}]})
            if host == "mybusiness.googleapis.com":
                return json_response({"averageRating": 4.8, "totalReviewCount": 52})
            if path.endswith("/accounts/1/locations"):
                return json_response({"locations": [{"name": "locations/9", "title": "Example Studio"}]})
            return json_response(detail)

        client, _ = google(handler)
        async with client:
            signals = await fetch_local_signals(client, "https://www.example.com")

        assert signals["napConsistencyScore"] == 100
        assert signals["knowledgePanelDetected"] is True
        assert signals["gbpRating"] == 4.8
        assert signals["gbpReviewCount"] == 52
        assert signals["serviceAreas"][0]["placeName"] == "Coventry"
        assert signals["accountName"] == "Example Ltd"
        assert signals["locations"][0]["phone"] == "01234 567890"

    async def test_no_accounts(self, google):
        client, _ = google(lambda request: json_response({}))
        async with client:
            signals = await fetch_local_signals(client, "https://www.example.com")

        assert signals["knowledgePanelDetected"] is False
        assert signals["notes"] == NO_ACCOUNTS_NOTE

    async def test_accounts_failure_raises(self, google):
        client, _ = google(lambda request: json_response({"error": {"message": "Forbidden"}}, 403))
        async with client:
            with pytest.raises(GoogleAPIError):
                await fetch_local_signals(client, "https://www.example.com")
