from __future__ import annotations

from typing import Any, List

import httpx

from app.api.models.schemas import LatLng
from app.domain.models import RouteInfo
from app.external.route_chain import RouteProvider

# https://tmapapi.sktelecom.com/main.html#webservice/docs/tmapRoutePedestrian
TMAP_PEDESTRIAN_URL = "https://apis.openapi.sk.com/tmap/routes/pedestrian?version=1&format=json"


class TmapPedestrianProvider(RouteProvider):
    """TMap pedestrian routing. Responses are GeoJSON features with [lng, lat] coordinates."""

    name = "tmap"

    async def _send(self, client: httpx.AsyncClient, origin: LatLng, destination: LatLng) -> httpx.Response:
        headers = {"appKey": self.api_key or "", "Content-Type": "application/json"}
        body = {
            "startX": origin.lng,
            "startY": origin.lat,
            "endX": destination.lng,
            "endY": destination.lat,
            "reqCoordType": "WGS84GEO",
            "resCoordType": "WGS84GEO",
            "startName": "Origin",
            "endName": "Destination",
        }
        return await client.post(TMAP_PEDESTRIAN_URL, headers=headers, json=body)

    def _parse(self, data: Any) -> RouteInfo | None:
        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            return None

        path: List[LatLng] = []
        total_distance = 0.0
        total_time = 0.0
        for feature in features:
            geometry = feature.get("geometry") or {}
            if geometry.get("type") == "LineString":
                for lng, lat, *_ in geometry.get("coordinates") or []:
                    path.append(LatLng(lat=lat, lng=lng))
            props = feature.get("properties") or {}
            total_distance += props.get("totalDistance") or 0
            total_time += props.get("totalTime") or 0

        # The first (start Point) feature carries the route totals.
        first_props = features[0].get("properties") or {}
        if "totalDistance" in first_props:
            total_distance = first_props["totalDistance"]
        if "totalTime" in first_props:
            total_time = first_props["totalTime"]

        return RouteInfo(distance_meters=float(total_distance), duration_seconds=float(total_time), path=path)
