import httpx
import pytest

from app.core.errors import FailureReason
from app.external.google_places_api import GooglePlacesProvider

V1_PLACE = {
    "id": "ChIJv1",
    "displayName": {"text": "어니언 성수"},
    "formattedAddress": "서울 성동구 아차산로9길 8",
    "location": {"latitude": 37.5447, "longitude": 127.0582},
    "rating": 4.4,
    "userRatingCount": 8123,
    "types": ["cafe", "food"],
    "photos": [{"name": "places/ChIJv1/photos/abc"}],
    "regularOpeningHours": {"openNow": True, "weekdayDescriptions": ["월요일: 08:00~22:00"]},
    "priceLevel": "PRICE_LEVEL_MODERATE",
}

LEGACY_PLACE = {
    "place_id": "ChIJlegacy",
    "name": "대림창고",
    "formatted_address": "서울 성동구 성수이로 78",
    "geometry": {"location": {"lat": 37.5418, "lng": 127.0565}},
    "rating": 4.2,
    "user_ratings_total": 5000,
    "types": ["cafe"],
    "photos": [{"photo_reference": "ref123"}],
    "opening_hours": {"open_now": False},
    "price_level": 2,
}


def _provider(handler, api_key="places-key"):
    return GooglePlacesProvider(api_key, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_v1_results_are_normalized():
    def handler(request):
        assert request.method == "POST"
        assert request.headers["X-Goog-Api-Key"] == "places-key"
        return httpx.Response(200, json={"places": [V1_PLACE, {"id": "no-coords"}]})

    places = await _provider(handler).search("성수 카페", limit=3)

    assert len(places) == 1
    place = places[0]
    assert place.placeId == "ChIJv1"
    assert place.title == "어니언 성수"
    assert (place.location.lat, place.location.lng) == (37.5447, 127.0582)
    assert place.userRatingCount == 8123
    assert place.category == "cafe"
    assert place.openNow is True
    assert place.openingHours == ["월요일: 08:00~22:00"]
    assert place.photoUrl.startswith("https://places.googleapis.com/v1/places/ChIJv1/photos/abc/media")
    assert "maxWidthPx=400" in place.photoUrl
    assert "places-key" not in place.photoUrl


@pytest.mark.asyncio
async def test_falls_back_to_legacy_text_search():
    def handler(request):
        if request.method == "POST":
            return httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED"}})
        assert request.url.params["query"] == "성수 카페"
        return httpx.Response(200, json={"results": [LEGACY_PLACE]})

    result = await _provider(handler).lookup("성수 카페", limit=3)

    assert result.ok
    place = result.value[0]
    assert place.placeId == "ChIJlegacy"
    assert place.title == "대림창고"
    assert place.userRatingCount == 5000
    assert place.openNow is False
    assert place.priceLevel == "2"
    assert "photo_reference=ref123" in place.photoUrl
    assert "key=" not in place.photoUrl


@pytest.mark.asyncio
async def test_limit_caps_results():
    many = [dict(V1_PLACE, id=f"p{i}") for i in range(6)]

    def handler(request):
        return httpx.Response(200, json={"places": many})

    assert len(await _provider(handler).search("q", limit=3)) == 3


@pytest.mark.asyncio
async def test_missing_key_returns_empty_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    provider = _provider(handler, api_key=None)
    result = await provider.lookup("q")

    assert result.failure is FailureReason.MISSING_CREDENTIALS
    assert await provider.search("q") == []
    assert calls == []


@pytest.mark.asyncio
async def test_errors_never_raise_from_search():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    provider = _provider(handler)

    assert await provider.search("q") == []
    assert (await provider.lookup("q")).failure is FailureReason.EXCEPTION


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped():
    broken = {"id": "x", "displayName": "plain", "location": {"latitude": 37.5, "longitude": 127.0}}

    def handler(request):
        return httpx.Response(200, json={"places": [broken, "not-a-place", V1_PLACE]})

    places = await _provider(handler).search("q", limit=3)

    assert [p.placeId for p in places] == ["ChIJv1"]


@pytest.mark.asyncio
async def test_non_object_body_is_an_empty_result():
    def handler(request):
        return httpx.Response(200, json=["unexpected"])

    result = await _provider(handler).lookup("q")

    assert result.failure is FailureReason.EMPTY_RESULT
    assert await _provider(handler).search("q") == []


def test_photo_media_url_adds_key_only_to_google_urls():
    provider = GooglePlacesProvider("places-key")
    stored = "https://places.googleapis.com/v1/places/ChIJv1/photos/abc/media?maxWidthPx=400"

    signed = provider.photo_media_url(stored)

    assert signed.startswith("https://places.googleapis.com/v1/places/ChIJv1/photos/abc/media?")
    assert httpx.URL(signed).params["key"] == "places-key"
    assert httpx.URL(signed).params["maxWidthPx"] == "400"
    assert provider.photo_media_url("https://img/p1") == "https://img/p1"
    assert provider.photo_media_url(None) is None
