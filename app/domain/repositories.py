from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from math import cos, radians
from typing import Any, Dict, List, Optional, Tuple

from app.api.models.schemas import LatLng, Place
from app.domain.geo import distance_meters, popularity_score

from .models import RouteInfo, utcnow

logger = logging.getLogger(__name__)

# 1km is ~0.009 degrees of latitude; 0.015 leaves room for rounding and projection error.
DEGREES_PER_KM = 0.015
NEARBY_PREFETCH_LIMIT = 100
TEXT_SEARCH_LIMIT = 10


def bounding_box(lat: float, lng: float, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Degree box around a point that contains every point within radius_meters.
    Longitude degrees shrink with cos(lat), so the longitude half-width is widened accordingly.
    """
    lat_delta = (radius_meters / 1000) * DEGREES_PER_KM
    lng_delta = lat_delta / max(cos(radians(lat)), 0.05)
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta


def rank_nearby(places: List[Place], lat: float, lng: float, radius_meters: float, limit: int) -> List[Place]:
    within = [
        place
        for place in places
        if distance_meters(lat, lng, place.location.lat, place.location.lng) <= radius_meters
    ]
    # sorted() is stable, so equal scores keep store order.
    within = sorted(within, key=lambda p: popularity_score(p.rating, p.userRatingCount), reverse=True)
    return within[:limit]


def _like_term(query: str) -> str:
    """Literal substring term for a PostgREST ilike or-filter."""
    # Commas and parentheses delimit or-filters; PostgREST reads * as a wildcard.
    term = query
    for char in ",()*":
        term = term.replace(char, " ")
    term = term.strip()
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PlaceRepository(ABC):
    @abstractmethod
    async def upsert(self, place: Place) -> None:
        raise NotImplementedError

    @abstractmethod
    async def find_nearby(self, lat: float, lng: float, radius_meters: float, limit: int) -> List[Place]:
        raise NotImplementedError

    @abstractmethod
    async def search_by_text(self, query: str) -> List[Place]:
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, place_id: str) -> Optional[Place]:
        raise NotImplementedError

    @abstractmethod
    async def find_all(self, skip: int = 0, take: int = 50) -> List[Place]:
        raise NotImplementedError


class RouteCacheRepository(ABC):
    @abstractmethod
    async def get(self, origin: LatLng, destination: LatLng) -> Optional[RouteInfo]:
        raise NotImplementedError

    @abstractmethod
    async def put(self, origin: LatLng, destination: LatLng, info: RouteInfo) -> None:
        raise NotImplementedError


def _route_key(origin: LatLng, destination: LatLng) -> Tuple[float, float, float, float]:
    # Exact float equality; no rounding.
    return (origin.lat, origin.lng, destination.lat, destination.lng)


class InMemoryPlaceRepository(PlaceRepository):
    def __init__(self):
        # Insertion order doubles as last-updated order.
        self._store: Dict[str, Place] = {}

    async def upsert(self, place: Place) -> None:
        self._store.pop(place.placeId, None)
        self._store[place.placeId] = place.model_copy(deep=True)

    async def find_nearby(self, lat: float, lng: float, radius_meters: float, limit: int) -> List[Place]:
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_meters)
        candidates = [
            place
            for place in self._store.values()
            if min_lat <= place.location.lat <= max_lat and min_lng <= place.location.lng <= max_lng
        ][:NEARBY_PREFETCH_LIMIT]
        return rank_nearby(candidates, lat, lng, radius_meters, limit)

    async def search_by_text(self, query: str) -> List[Place]:
        needle = query.casefold()
        matches = [
            place
            for place in self._store.values()
            if needle in place.title.casefold() or needle in (place.address or "").casefold()
        ]
        return matches[:TEXT_SEARCH_LIMIT]

    async def find_by_id(self, place_id: str) -> Optional[Place]:
        return self._store.get(place_id)

    async def find_all(self, skip: int = 0, take: int = 50) -> List[Place]:
        ordered = list(reversed(self._store.values()))
        return ordered[skip : skip + take]


class InMemoryRouteCacheRepository(RouteCacheRepository):
    def __init__(self):
        self._store: Dict[Tuple[float, float, float, float], RouteInfo] = {}

    async def get(self, origin: LatLng, destination: LatLng) -> Optional[RouteInfo]:
        return self._store.get(_route_key(origin, destination))

    async def put(self, origin: LatLng, destination: LatLng, info: RouteInfo) -> None:
        self._store.setdefault(_route_key(origin, destination), info)


class SupabasePlaceRepository(PlaceRepository):
    """
    Supabase-backed place store (`places` table keyed by the provider place id).
    Every query failure is logged and reported as an empty result.
    """

    def __init__(self, client):
        if client is None:
            raise ValueError("Supabase client is required for SupabasePlaceRepository")
        self.client = client
        self.table_name = "places"

    async def upsert(self, place: Place) -> None:
        payload = {
            "id": place.placeId,
            "title": place.title,
            "address": place.address,
            "lat": place.location.lat,
            "lng": place.location.lng,
            "rating": place.rating,
            "user_rating_count": place.userRatingCount,
            "category": place.category,
            "photo_url": place.photoUrl,
            "open_now": place.openNow,
            "opening_hours": place.openingHours,
            "price_level": place.priceLevel,
            "website": place.website,
            "raw_data": place.model_dump(mode="json"),
            "updated_at": utcnow().isoformat(),
        }
        try:
            await asyncio.to_thread(
                lambda: self.client.table(self.table_name).upsert(payload, on_conflict="id").execute()
            )
        except Exception as exc:
            logger.warning("Failed to upsert place %s: %s", place.title, exc)

    async def find_nearby(self, lat: float, lng: float, radius_meters: float, limit: int) -> List[Place]:
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_meters)
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("*")
                .gte("lat", min_lat)
                .lte("lat", max_lat)
                .gte("lng", min_lng)
                .lte("lng", max_lng)
                .limit(NEARBY_PREFETCH_LIMIT)
                .execute()
            )
        except Exception as exc:
            logger.warning("findNearby query failed: %s", exc)
            return []
        candidates = self._rows_to_places(getattr(response, "data", None))
        return rank_nearby(candidates, lat, lng, radius_meters, limit)

    async def search_by_text(self, query: str) -> List[Place]:
        term = _like_term(query)
        if not term:
            return []
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("*")
                .or_(f"title.ilike.%{term}%,address.ilike.%{term}%")
                .limit(TEXT_SEARCH_LIMIT)
                .execute()
            )
        except Exception as exc:
            logger.warning("searchByText query failed for '%s': %s", query, exc)
            return []
        return self._rows_to_places(getattr(response, "data", None))

    async def find_by_id(self, place_id: str) -> Optional[Place]:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name).select("*").eq("id", place_id).execute()
            )
        except Exception as exc:
            logger.warning("findById query failed for %s: %s", place_id, exc)
            return None
        places = self._rows_to_places((getattr(response, "data", None) or [])[:1])
        return places[0] if places else None

    async def find_all(self, skip: int = 0, take: int = 50) -> List[Place]:
        if take <= 0:
            return []
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("*")
                .order("updated_at", desc=True)
                .range(skip, skip + take - 1)
                .execute()
            )
        except Exception as exc:
            logger.warning("findAll query failed: %s", exc)
            return []
        return self._rows_to_places(getattr(response, "data", None))

    def _rows_to_places(self, rows: Optional[List[Dict[str, Any]]]) -> List[Place]:
        places: List[Place] = []
        for row in rows or []:
            try:
                places.append(self._row_to_place(row))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable place row %s: %s", row.get("id") if isinstance(row, dict) else row, exc)
        return places

    def _row_to_place(self, row: Dict[str, Any]) -> Place:
        hours = row.get("opening_hours")
        if isinstance(hours, str):
            hours = json.loads(hours)
        return Place(
            placeId=row["id"],
            title=row.get("title") or "",
            address=row.get("address") or "",
            location=LatLng(lat=row["lat"], lng=row["lng"]),
            rating=row.get("rating"),
            userRatingCount=row.get("user_rating_count"),
            category=row.get("category"),
            photoUrl=row.get("photo_url"),
            openNow=row.get("open_now"),
            openingHours=hours,
            priceLevel=row.get("price_level"),
            website=row.get("website"),
        )


class SupabaseRouteCacheRepository(RouteCacheRepository):
    """`route_cache` table keyed by the exact (start_lat, start_lng, end_lat, end_lng) tuple."""

    def __init__(self, client):
        if client is None:
            raise ValueError("Supabase client is required for SupabaseRouteCacheRepository")
        self.client = client
        self.table_name = "route_cache"

    async def get(self, origin: LatLng, destination: LatLng) -> Optional[RouteInfo]:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("*")
                .eq("start_lat", origin.lat)
                .eq("start_lng", origin.lng)
                .eq("end_lat", destination.lat)
                .eq("end_lng", destination.lng)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            logger.warning("Route cache lookup failed: %s", exc)
            return None
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        row = rows[0]
        try:
            path = row.get("path_json") or []
            if isinstance(path, str):
                path = json.loads(path)
            return RouteInfo(
                distance_meters=row["distance"],
                duration_seconds=row["duration"],
                path=[LatLng.model_validate(point) for point in path],
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring unreadable route cache row: %s", exc)
            return None

    async def put(self, origin: LatLng, destination: LatLng, info: RouteInfo) -> None:
        payload = {
            "start_lat": origin.lat,
            "start_lng": origin.lng,
            "end_lat": destination.lat,
            "end_lng": destination.lng,
            "distance": info.distance_meters,
            "duration": info.duration_seconds,
            "path_json": [point.model_dump() for point in info.path],
        }
        await asyncio.to_thread(lambda: self.client.table(self.table_name).insert(payload).execute())
