"""
Google Places reviews, fetched on demand and never stored.
"""
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from errors import ConfigError, ReviewLookupError, UpstreamError

logger = logging.getLogger(__name__)

TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
DETAIL_FIELDS = "review,rating,user_ratings_total,name,formatted_address,photos,url"
REQUEST_TIMEOUT = 10

NO_PLACE_MESSAGE = "No place found for the given name. Please check the spelling or try a more specific name."


def _get(url: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
        res.raise_for_status()
        return res.json()
    except requests.RequestException as exc:
        raise UpstreamError(f"Google Places request failed: {exc}")


def resolve_place_id(place_name: str, api_key: str) -> str:
    data = _get(TEXT_SEARCH_URL, {"query": place_name, "key": api_key})
    status = data.get("status")
    if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
        logger.error("No place found for %r: %s", place_name, data)
        raise ReviewLookupError(NO_PLACE_MESSAGE, code=status)
    if status != "OK":
        logger.error("Google Places Text Search API error: %s", data)
        raise UpstreamError(
            f"Google Places API error: {status} - {data.get('error_message', 'Unknown error')}",
            code=status,
        )
    return data["results"][0]["place_id"]


def fetch_google_reviews(
    place_id: Optional[str] = None,
    place_name: Optional[str] = None,
    api_key: Optional[str] = None,
) -> List[Dict[str, Any]]:
    api_key = api_key or os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise ConfigError("GOOGLE_API_KEY not set in environment")

    if not place_id and place_name:
        place_id = resolve_place_id(place_name, api_key)
    if not place_id:
        raise ReviewLookupError("Could not resolve placeId")

    data = _get(DETAILS_URL, {"place_id": place_id, "fields": DETAIL_FIELDS, "key": api_key})
    return (data.get("result") or {}).get("reviews") or []
