from __future__ import annotations

from typing import Any, List

import httpx

from app.api.models.schemas import LatLng
from app.domain.models import RouteInfo
from app.external.route_chain import RouteProvider

KAKAO_DIRECTIONS_URL = "https://apis-navi.kakaomobility.com/v1/directions"


class KakaoCarProvider(RouteProvider):
    """Kakao Mobility car directions; used when no pedestrian route is available."""

    name = "kakao"

    async def _send(self, client: httpx.AsyncClient, origin: LatLng, destination: LatLng) -> httpx.Response:
        headers = {"Authorization": f"KakaoAK {self.api_key}", "Content-Type": "application/json"}
        params = {
            # Kakao expects "longitude,latitude"
            "origin": f"{origin.lng},{origin.lat}",
            "destination": f"{destination.lng},{destination.lat}",
            "priority": "RECOMMEND",
        }
        return await client.get(KAKAO_DIRECTIONS_URL, headers=headers, params=params)

    def _parse(self, data: Any) -> RouteInfo | None:
        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            return None
        route = routes[0]
        # Non-zero result_code means no route (e.g. origin and destination too close).
        if route.get("result_code", 0) != 0:
            return None
        summary = route["summary"]

        path: List[LatLng] = []
        for section in route.get("sections") or []:
            for road in section.get("roads") or []:
                vertexes = road.get("vertexes") or []
                for i in range(0, len(vertexes) - 1, 2):
                    path.append(LatLng(lat=vertexes[i + 1], lng=vertexes[i]))

        return RouteInfo(
            distance_meters=float(summary.get("distance", 0)),
            duration_seconds=float(summary.get("duration", 0)),
            path=path,
        )
