from __future__ import annotations

import logging
from typing import Any

import httpx

from app.api.models.schemas import LatLng
from app.domain.models import RouteInfo
from app.external.polyline import decode_polyline
from app.external.route_chain import RouteProvider

logger = logging.getLogger(__name__)

ROUTES_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
ROUTES_FIELD_MASK = "routes.distanceMeters,routes.duration,routes.polyline.encodedPolyline"


def _parse_duration(value: Any) -> float:
    """Google Routes durations are strings like "123s"."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip().rstrip("s") or 0)


class GoogleRoutesWalkingProvider(RouteProvider):
    """Google Routes API adapter for pedestrian routes with an encoded polyline."""

    name = "google"

    async def _send(self, client: httpx.AsyncClient, origin: LatLng, destination: LatLng) -> httpx.Response:
        headers = {
            "X-Goog-Api-Key": self.api_key or "",
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        body = {
            "origin": {
                "location": {"latLng": {"latitude": origin.lat, "longitude": origin.lng}},
            },
            "destination": {
                "location": {"latLng": {"latitude": destination.lat, "longitude": destination.lng}},
            },
            # routingPreference is rejected for WALK
            "travelMode": "WALK",
            "computeAlternativeRoutes": False,
        }
        return await client.post(ROUTES_URL, headers=headers, json=body)

    def _parse(self, data: Any) -> RouteInfo | None:
        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            return None
        route = routes[0]
        encoded = (route.get("polyline") or {}).get("encodedPolyline") or ""
        return RouteInfo(
            distance_meters=float(route.get("distanceMeters", 0)),
            duration_seconds=_parse_duration(route.get("duration")),
            path=decode_polyline(encoded) if encoded else [],
        )
