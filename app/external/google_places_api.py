from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx

from app.api.models.schemas import LatLng, Place
from app.core.errors import FailureReason
from app.domain.models import ProviderResult

logger = logging.getLogger(__name__)

PROVIDER_NAME = "google_places"
PLACES_URL = "https://places.googleapis.com/v1/places:searchText"
LEGACY_TEXTSEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
PHOTO_MEDIA_URL = "https://places.googleapis.com/v1"
LEGACY_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
PLACES_FIELD_MASK = (
    "places.id,"
    "places.displayName,"
    "places.formattedAddress,"
    "places.location,"
    "places.rating,"
    "places.userRatingCount,"
    "places.photos,"
    "places.types,"
    "places.primaryType,"
    "places.regularOpeningHours.openNow,"
    "places.regularOpeningHours.weekdayDescriptions,"
    "places.priceLevel,"
    "places.websiteUri"
)
PHOTO_MAX_WIDTH = 400


class GooglePlacesProvider:
    """
    Google Places text search. Tries Places API (v1) first and the classic Text Search API
    when v1 yields nothing. Never raises: failures come back as a typed ProviderResult.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 10.0,
        language: str = "ko",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.language = language
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def search(self, query: str, limit: int = 3) -> List[Place]:
        result = await self.lookup(query, limit)
        return result.value or []

    async def lookup(self, query: str, limit: int = 3) -> ProviderResult[List[Place]]:
        if not self.api_key:
            logger.warning("GOOGLE_PLACES_API_KEY missing; skipping search for '%s'", query)
            return ProviderResult.fail(self.name, FailureReason.MISSING_CREDENTIALS)

        logger.info("Searching places for '%s'", query)
        primary = await self._search_v1(query, limit)
        if primary.ok and primary.value:
            return primary

        legacy = await self._search_legacy(query, limit)
        if legacy.ok and legacy.value:
            return legacy
        # Report the primary failure; it is the more informative one.
        return primary if not primary.ok else legacy

    async def _search_v1(self, query: str, limit: int) -> ProviderResult[List[Place]]:
        headers = {
            "X-Goog-Api-Key": self.api_key or "",
            "X-Goog-FieldMask": PLACES_FIELD_MASK,
        }
        payload = {
            "textQuery": query,
            "languageCode": self.language,
            "maxResultCount": limit,
        }
        try:
            async with self._client() as client:
                resp = await client.post(PLACES_URL, headers=headers, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("Google Places search timed out for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.TIMEOUT, str(exc))
        except httpx.HTTPStatusError as exc:
            logger.warning("Google Places search failed for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.HTTP_ERROR, str(exc))
        except Exception as exc:
            logger.warning("Google Places search failed for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.EXCEPTION, str(exc))

        places = self._normalize_all(_entries(data, "places"), query, limit)
        if not places:
            return ProviderResult.fail(self.name, FailureReason.EMPTY_RESULT)
        return ProviderResult.success(self.name, places)

    async def _search_legacy(self, query: str, limit: int) -> ProviderResult[List[Place]]:
        """
        Backup search using the classic Places Text Search API.
        Useful when the new Places API (v1) is not enabled for the provided key.
        """
        params = {
            "query": query,
            "language": self.language,
            "key": self.api_key,
        }
        try:
            async with self._client() as client:
                resp = await client.get(LEGACY_TEXTSEARCH_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("Legacy Places search timed out for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.TIMEOUT, str(exc))
        except httpx.HTTPStatusError as exc:
            logger.warning("Legacy Places search failed for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.HTTP_ERROR, str(exc))
        except Exception as exc:
            logger.warning("Legacy Places search failed for '%s': %s", query, exc)
            return ProviderResult.fail(self.name, FailureReason.EXCEPTION, str(exc))

        places = self._normalize_all(_entries(data, "results"), query, limit)
        if not places:
            return ProviderResult.fail(self.name, FailureReason.EMPTY_RESULT)
        return ProviderResult.success(self.name, places)

    def _normalize_all(self, raw_places: List[Any], query: str, limit: int) -> List[Place]:
        places: List[Place] = []
        for raw in raw_places:
            try:
                normalized = self._normalize_place(raw, query)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed place entry for '%s': %s", query, exc)
                continue
            if normalized:
                places.append(normalized)
            if len(places) >= limit:
                break
        return places

    def _normalize_place(self, place: Dict[str, Any], query: str) -> Place | None:
        place_id = place.get("id") or place.get("place_id")
        if not place_id:
            return None

        # Support both Places v1 (location.latitude) and classic API (geometry.location.lat)
        location = place.get("location") or (place.get("geometry") or {}).get("location") or {}
        lat = location.get("latitude", location.get("lat"))
        lng = location.get("longitude", location.get("lng"))
        if lat is None or lng is None:
            return None

        title = (place.get("displayName") or {}).get("text") or place.get("name") or query
        types = place.get("types") or []
        hours = place.get("regularOpeningHours") or place.get("opening_hours") or {}
        open_now = hours.get("openNow", hours.get("open_now"))
        weekday = hours.get("weekdayDescriptions") or hours.get("weekday_text")

        return Place(
            placeId=place_id,
            title=title,
            address=place.get("formattedAddress") or place.get("formatted_address") or "",
            location=LatLng(lat=lat, lng=lng),
            rating=place.get("rating"),
            userRatingCount=place.get("userRatingCount", place.get("user_ratings_total")),
            category=types[0] if types else place.get("primaryType"),
            photoUrl=self._extract_photo_url(place),
            openNow=open_now,
            openingHours=list(weekday) if weekday else None,
            priceLevel=_price_level(place),
            website=place.get("websiteUri") or place.get("website"),
        )

    def _extract_photo_url(self, place: Dict[str, Any]) -> str | None:
        photos = place.get("photos") or []
        if not photos:
            return None
        photo = photos[0] or {}

        # Stored without the key; photo_media_url signs it when served.
        photo_name = photo.get("name")
        if photo_name:
            return f"{PHOTO_MEDIA_URL}/{photo_name}/media?maxWidthPx={PHOTO_MAX_WIDTH}"

        # Classic Places API photo_reference
        ref = photo.get("photo_reference") or photo.get("photoReference")
        if ref:
            return f"{LEGACY_PHOTO_URL}?maxwidth={PHOTO_MAX_WIDTH}&photo_reference={ref}"
        return None

    def photo_media_url(self, photo_url: str | None) -> str | None:
        """Adds the API key to a stored Google photo URL. Other URLs pass through unchanged."""
        if not photo_url or not self.api_key:
            return photo_url
        if not photo_url.startswith((PHOTO_MEDIA_URL, LEGACY_PHOTO_URL)):
            return photo_url
        return str(httpx.URL(photo_url).copy_add_param("key", self.api_key))


def _entries(data: Any, key: str) -> List[Any]:
    if not isinstance(data, dict):
        return []
    entries = data.get(key) or []
    return entries if isinstance(entries, list) else []


def _price_level(place: Dict[str, Any]) -> str | None:
    level = place.get("priceLevel", place.get("price_level"))
    if level is None:
        return None
    return str(level)
