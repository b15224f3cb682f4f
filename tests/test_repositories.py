import pytest

from app.api.models.schemas import LatLng
from app.domain.geo import distance_meters
from app.domain.models import RouteInfo
from app.domain.repositories import (
    TEXT_SEARCH_LIMIT,
    InMemoryPlaceRepository,
    InMemoryRouteCacheRepository,
    bounding_box,
)


@pytest.mark.asyncio
async def test_upsert_is_idempotent_and_keeps_latest_fields(make_place):
    repo = InMemoryPlaceRepository()
    await repo.upsert(make_place("p1", rating=4.0))
    await repo.upsert(make_place("p1", rating=4.0))
    await repo.upsert(make_place("p1", rating=4.7, title="Renamed"))

    all_places = await repo.find_all()
    assert len(all_places) == 1
    stored = await repo.find_by_id("p1")
    assert stored.rating == 4.7
    assert stored.title == "Renamed"


@pytest.mark.asyncio
async def test_find_nearby_filters_by_radius_and_sorts_by_popularity(make_place):
    repo = InMemoryPlaceRepository()
    center = (37.5000, 127.0000)
    await repo.upsert(make_place("close_low", 37.5010, 127.0010, rating=3.0, userRatingCount=10))
    await repo.upsert(make_place("close_high", 37.5020, 127.0000, rating=4.8, userRatingCount=500))
    await repo.upsert(make_place("close_none", 37.4990, 126.9990))
    await repo.upsert(make_place("far", 37.5300, 127.0000, rating=5.0, userRatingCount=10000))

    results = await repo.find_nearby(*center, radius_meters=1000, limit=10)

    assert [p.placeId for p in results] == ["close_high", "close_low", "close_none"]
    for place in results:
        assert distance_meters(*center, place.location.lat, place.location.lng) <= 1000


@pytest.mark.asyncio
async def test_find_nearby_respects_limit(make_place):
    repo = InMemoryPlaceRepository()
    for i in range(5):
        await repo.upsert(make_place(f"p{i}", 37.5 + i * 0.0001, 127.0, rating=4.0, userRatingCount=i))

    results = await repo.find_nearby(37.5, 127.0, 2000, limit=2)
    assert [p.placeId for p in results] == ["p4", "p3"]


def test_bounding_box_contains_radius_at_high_latitude():
    lat, lng = 60.0, 10.0
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, 2000)
    # A point 2km due east must still be inside the box.
    assert distance_meters(lat, lng, lat, max_lng) >= 2000
    assert distance_meters(lat, lng, max_lat, lng) >= 2000
    assert min_lat < lat < max_lat and min_lng < lng < max_lng


@pytest.mark.asyncio
async def test_search_by_text_is_case_insensitive_on_title_or_address(make_place):
    repo = InMemoryPlaceRepository()
    await repo.upsert(make_place("a", title="Blue Bottle Seongsu"))
    await repo.upsert(make_place("b", title="Other", address="Seongsu-dong 1"))
    await repo.upsert(make_place("c", title="Hongdae Cafe", address="Mapo"))

    results = await repo.search_by_text("SEONGSU")
    assert {p.placeId for p in results} == {"a", "b"}


@pytest.mark.asyncio
async def test_search_by_text_is_capped(make_place):
    repo = InMemoryPlaceRepository()
    for i in range(TEXT_SEARCH_LIMIT + 5):
        await repo.upsert(make_place(f"p{i}", title=f"cafe {i}"))
    assert len(await repo.search_by_text("cafe")) == TEXT_SEARCH_LIMIT


@pytest.mark.asyncio
async def test_find_all_orders_by_most_recent_update_and_paginates(make_place):
    repo = InMemoryPlaceRepository()
    for place_id in ("a", "b", "c"):
        await repo.upsert(make_place(place_id))
    await repo.upsert(make_place("a"))

    assert [p.placeId for p in await repo.find_all()] == ["a", "c", "b"]
    assert [p.placeId for p in await repo.find_all(skip=1, take=1)] == ["c"]
    assert await repo.find_by_id("missing") is None


@pytest.mark.asyncio
async def test_route_cache_exact_hit():
    cache = InMemoryRouteCacheRepository()
    origin, dest = LatLng(lat=37.5, lng=127.0), LatLng(lat=37.51, lng=127.01)
    info = RouteInfo(distance_meters=1234, duration_seconds=900, path=[origin, dest])

    await cache.put(origin, dest, info)

    assert await cache.get(LatLng(lat=37.5, lng=127.0), LatLng(lat=37.51, lng=127.01)) is info


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "origin,dest",
    [
        ((37.5000001, 127.0), (37.51, 127.01)),
        ((37.5, 127.0000001), (37.51, 127.01)),
        ((37.5, 127.0), (37.5100001, 127.01)),
        ((37.5, 127.0), (37.51, 127.0100001)),
        ((37.51, 127.01), (37.5, 127.0)),
    ],
)
async def test_route_cache_misses_on_any_differing_coordinate(origin, dest):
    cache = InMemoryRouteCacheRepository()
    await cache.put(LatLng(lat=37.5, lng=127.0), LatLng(lat=37.51, lng=127.01), RouteInfo(100, 60))

    assert await cache.get(LatLng(lat=origin[0], lng=origin[1]), LatLng(lat=dest[0], lng=dest[1])) is None
