import pytest

from app.api.models.schemas import LatLng, Place


@pytest.fixture
def make_place():
    def _make(place_id: str, lat: float = 37.5, lng: float = 127.0, **kwargs) -> Place:
        fields = {"title": f"Place {place_id}", "address": "서울 강남구"}
        fields.update(kwargs)
        return Place(placeId=place_id, location=LatLng(lat=lat, lng=lng), **fields)

    return _make
