import json

import httpx
import pytest

from app.api.models.schemas import LatLng
from app.core.errors import FailureReason
from app.domain.models import ProviderResult
from app.external.kakao_mobility_api import KakaoCarProvider
from app.external.polyline import decode_polyline
from app.external.route_chain import RouteProviderChain
from app.external.routes_api import GoogleRoutesWalkingProvider
from app.external.tmap_api import TmapPedestrianProvider

ORIGIN = LatLng(lat=37.5440, lng=127.0557)
DEST = LatLng(lat=37.5470, lng=127.0420)


def _transport(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def test_decode_polyline_reference_example():
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    assert [(p.lat, p.lng) for p in points] == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]


@pytest.mark.asyncio
async def test_tmap_builds_path_from_line_strings():
    payload = {
        "features": [
            {
                "geometry": {"type": "Point", "coordinates": [127.0557, 37.5440]},
                "properties": {"totalDistance": 1350, "totalTime": 1020},
            },
            {
                "geometry": {"type": "LineString", "coordinates": [[127.0557, 37.5440], [127.0500, 37.5450]]},
                "properties": {"distance": 600, "time": 450},
            },
            {
                "geometry": {"type": "LineString", "coordinates": [[127.0500, 37.5450], [127.0420, 37.5470]]},
                "properties": {"distance": 750, "time": 570},
            },
        ]
    }
    seen = []
    provider = TmapPedestrianProvider("tmap-key", transport=_transport(payload, seen=seen))

    result = await provider.route(ORIGIN, DEST)

    assert result.ok
    assert result.value.distance_meters == 1350
    assert result.value.duration_seconds == 1020
    assert [(p.lat, p.lng) for p in result.value.path][0] == (37.5440, 127.0557)
    assert len(result.value.path) == 4
    body = json.loads(seen[0].content)
    assert body["startX"] == ORIGIN.lng and body["startY"] == ORIGIN.lat
    assert seen[0].headers["appKey"] == "tmap-key"


@pytest.mark.asyncio
async def test_kakao_reads_vertex_pairs_as_lng_lat():
    payload = {
        "routes": [
            {
                "result_code": 0,
                "summary": {"distance": 2100, "duration": 480},
                "sections": [{"roads": [{"vertexes": [127.0557, 37.5440, 127.0420, 37.5470]}]}],
            }
        ]
    }
    seen = []
    provider = KakaoCarProvider("kakao-key", transport=_transport(payload, seen=seen))

    result = await provider.route(ORIGIN, DEST)

    assert result.ok
    assert result.value.distance_meters == 2100
    assert [(p.lat, p.lng) for p in result.value.path] == [(37.5440, 127.0557), (37.5470, 127.0420)]
    assert seen[0].url.params["origin"] == "127.0557,37.544"
    assert seen[0].headers["Authorization"] == "KakaoAK kakao-key"


@pytest.mark.asyncio
async def test_kakao_nonzero_result_code_is_empty():
    payload = {"routes": [{"result_code": 104, "result_msg": "too close"}]}
    provider = KakaoCarProvider("kakao-key", transport=_transport(payload))

    result = await provider.route(ORIGIN, DEST)

    assert not result.ok
    assert result.failure is FailureReason.EMPTY_RESULT


@pytest.mark.asyncio
async def test_google_routes_decodes_polyline_and_duration():
    payload = {"routes": [{"distanceMeters": 900, "duration": "660s", "polyline": {"encodedPolyline": "_p~iF~ps|U_ulLnnqC"}}]}
    seen = []
    provider = GoogleRoutesWalkingProvider("g-key", transport=_transport(payload, seen=seen))

    result = await provider.route(ORIGIN, DEST)

    assert result.ok
    assert result.value.duration_seconds == 660
    assert len(result.value.path) == 2
    assert json.loads(seen[0].content)["travelMode"] == "WALK"


@pytest.mark.asyncio
async def test_missing_credentials_skip_http():
    seen = []
    provider = TmapPedestrianProvider(None, transport=_transport({}, seen=seen))

    result = await provider.route(ORIGIN, DEST)

    assert result.failure is FailureReason.MISSING_CREDENTIALS
    assert seen == []


@pytest.mark.asyncio
async def test_http_error_is_typed_failure():
    provider = GoogleRoutesWalkingProvider("g-key", transport=_transport({"error": "denied"}, status_code=403))

    result = await provider.route(ORIGIN, DEST)

    assert result.failure is FailureReason.HTTP_ERROR
    assert "403" in result.detail


@pytest.mark.asyncio
async def test_timeout_is_typed_failure():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    provider = TmapPedestrianProvider("tmap-key", transport=httpx.MockTransport(handler))

    result = await provider.route(ORIGIN, DEST)

    assert result.failure is FailureReason.TIMEOUT


@pytest.mark.asyncio
async def test_chain_falls_through_to_next_provider():
    tmap = TmapPedestrianProvider("tmap-key", transport=_transport({"features": []}))
    google = GoogleRoutesWalkingProvider(None)
    kakao_payload = {"routes": [{"result_code": 0, "summary": {"distance": 3000, "duration": 600}, "sections": []}]}
    kakao = KakaoCarProvider("kakao-key", transport=_transport(kakao_payload))

    result = await RouteProviderChain([tmap, google, kakao]).route(ORIGIN, DEST)

    assert result.ok
    assert result.provider == "kakao"
    assert result.value.distance_meters == 3000


@pytest.mark.asyncio
async def test_chain_returns_last_failure_when_all_fail():
    tmap = TmapPedestrianProvider(None)
    kakao = KakaoCarProvider("kakao-key", transport=_transport({}, status_code=500))

    result = await RouteProviderChain([tmap, kakao]).route(ORIGIN, DEST)

    assert not result.ok
    assert result.provider == "kakao"
    assert result.failure is FailureReason.HTTP_ERROR


@pytest.mark.asyncio
async def test_empty_chain_fails():
    result = await RouteProviderChain([]).route(ORIGIN, DEST)
    assert isinstance(result, ProviderResult)
    assert not result.ok
