"""
Google Business Profile Local Signals

Reads the first Business Profile account's locations and derives:
- NAP (name, address, phone) completeness score
- Service areas
- Rating and review count
- Knowledge panel presence (any location exists)
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from aigeo.integrations.google import GoogleAPIError, GoogleClient

logger = logging.getLogger(__name__)

ACCOUNTS_URL = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"
BUSINESS_INFO_BASE = "https://mybusinessbusinessinformation.googleapis.com/v1"
REVIEWS_BASE = "https://mybusiness.googleapis.com/v4"
LOCATION_READ_MASK = "name,title,storefrontAddress,websiteUri,phoneNumbers,serviceArea"

NO_ACCOUNTS_NOTE = (
    "No Business Profile accounts found. Please set up a Google Business Profile "
    "to get local signals data."
)

# NAP completeness weights
NAP_NAME_POINTS = 30
NAP_ADDRESS_POINTS = 40
NAP_PHONE_POINTS = 30


def extract_phone(location: Dict[str, Any]) -> Optional[str]:
    phones = location.get("phoneNumbers")
    phone = None

    if isinstance(phones, dict):
        phone = phones.get("primaryPhone") or phones.get("phoneNumber")
    elif isinstance(phones, list) and phones:
        first = phones[0]
        phone = first.get("phoneNumber") if isinstance(first, dict) else first
    elif isinstance(phones, str):
        phone = phones

    if not phone and location.get("primaryPhone"):
        primary = location["primaryPhone"]
        phone = primary if isinstance(primary, str) else primary.get("phoneNumber")
    return phone or None


def nap_entry(location: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """NAP record for a location, or None when it carries no NAP fields at all."""
    if not any(location.get(k) for k in ("title", "storefrontAddress", "phoneNumbers", "websiteUri")):
        return None

    address = location.get("storefrontAddress")
    return {
        "name": location.get("title") or None,
        "address": {
            "addressLines": address.get("addressLines") or [],
            "locality": address.get("locality") or None,
            "administrativeArea": address.get("administrativeArea") or None,
            "postalCode": address.get("postalCode") or None,
            "regionCode": address.get("regionCode") or None,
        } if address else None,
        "phone": extract_phone(location),
        "website": location.get("websiteUri") or None,
    }


def nap_consistency_score(entries: List[Dict[str, Any]]) -> Optional[int]:
    """Mean NAP completeness (0-100); None without entries."""
    if not entries:
        return None

    scores = []
    for nap in entries:
        score = 0
        if nap.get("name"):
            score += NAP_NAME_POINTS
        if (nap.get("address") or {}).get("locality"):
            score += NAP_ADDRESS_POINTS
        if nap.get("phone"):
            score += NAP_PHONE_POINTS
        scores.append(score)
    return int(sum(scores) / len(scores) + 0.5)


def extract_service_areas(locations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    areas = []
    for location in locations:
        service_area = location.get("serviceArea") or {}
        location_name = location.get("title") or location.get("name")

        places = (service_area.get("places") or {}).get("placeInfos")
        if places:
            for place in places:
                areas.append({
                    "placeName": place.get("placeName") or None,
                    "placeId": place.get("placeId") or None,
                    "locationName": location_name,
                })
        elif service_area.get("businessType") == "SERVICE_AREA_BUSINESS" and service_area.get("regionCode"):
            areas.append({"regionCode": service_area["regionCode"], "locationName": location_name})
    return areas


def review_stats(payload: Dict[str, Any]) -> Tuple[Optional[float], Optional[int]]:
    """(rating, review count) from a v4 reviews response."""
    rating = payload.get("averageRating")
    count = payload.get("totalReviewCount")

    reviews = payload.get("reviews")
    if count is None and isinstance(reviews, list):
        count = len(reviews)
        if reviews and rating is None:
            rating = sum(_star_value(r.get("starRating")) for r in reviews) / len(reviews)
    return rating, count


STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}


def _star_value(value: Any) -> float:
    if isinstance(value, (int, float)):
        return value
    return STAR_RATINGS.get(str(value or "").upper(), 0)


def location_summary(location: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": location.get("title") or location.get("name"),
        "address": location.get("storefrontAddress"),
        "phone": extract_phone(location),
        "website": location.get("websiteUri"),
        "serviceArea": location.get("serviceArea"),
    }


async def _location_details(google: GoogleClient, locations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    details = []
    for location in locations:
        try:
            details.append(await google.get(f"{BUSINESS_INFO_BASE}/{location['name']}", params={"readMask": "*"}))
        except (GoogleAPIError, KeyError) as e:
            logger.warning(f"Location detail unavailable, using list data: {e}")
            details.append(location)
    return details


async def fetch_local_signals(google: GoogleClient, property_url: str) -> Dict[str, Any]:
    """
    Local entity signals from Google Business Profile.

    Raises:
        GoogleAPIError: Accounts could not be listed
    """
    accounts = (await google.get(ACCOUNTS_URL)).get("accounts") or []
    if not accounts:
        return {
            "localBusinessSchemaPages": 0,
            "napConsistencyScore": None,
            "knowledgePanelDetected": False,
            "serviceAreas": [],
            "locations": [],
            "notes": NO_ACCOUNTS_NOTE,
        }

    account = accounts[0]
    account_name = account.get("name")

    try:
        listing = await google.get(
            f"{BUSINESS_INFO_BASE}/{account_name}/locations",
            params={"readMask": LOCATION_READ_MASK},
        )
        locations = listing.get("locations") or []
    except GoogleAPIError as e:
        logger.error(f"Failed to fetch locations for {account_name}: {e}")
        locations = []

    details = await _location_details(google, locations) if locations else []

    rating = None
    review_count = None
    if details:
        first = details[0]
        rating = first.get("rating") or first.get("averageRating")
        review_count = first.get("totalReviewCount") or first.get("reviewCount")
        if (rating is None or review_count is None) and first.get("name"):
            try:
                reviews = await google.get(f"{REVIEWS_BASE}/{first['name']}/reviews")
                fetched_rating, fetched_count = review_stats(reviews)
                rating = fetched_rating if fetched_rating is not None else rating
                review_count = fetched_count if fetched_count is not None else review_count
            except GoogleAPIError as e:
                logger.warning(f"Reviews unavailable: {e}")

    nap = [entry for entry in (nap_entry(loc) for loc in details) if entry]

    logger.info(f"Local signals for {property_url}: {len(details)} locations")
    return {
        "localBusinessSchemaPages": 0,
        "napConsistencyScore": nap_consistency_score(nap),
        "knowledgePanelDetected": len(locations) > 0,
        "serviceAreas": extract_service_areas(details),
        "gbpRating": float(rating) if rating is not None else None,
        "gbpReviewCount": int(review_count) if review_count is not None else None,
        "locations": [location_summary(loc) for loc in details],
        "accountName": account.get("accountName") or account_name,
        "accountType": account.get("type"),
    }
