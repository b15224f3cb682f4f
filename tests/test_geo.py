import pytest

from app.domain.geo import distance_meters, popularity_score


@pytest.mark.parametrize(
    "a,b",
    [
        ((37.4979, 127.0276), (37.5563, 126.9236)),
        ((0.0, 0.0), (0.0, 1.0)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
    ],
)
def test_distance_is_symmetric(a, b):
    assert distance_meters(*a, *b) == pytest.approx(distance_meters(*b, *a))


def test_distance_to_self_is_zero():
    assert distance_meters(37.5, 127.0, 37.5, 127.0) == 0


def test_one_degree_of_longitude_at_equator():
    # 2 * pi * 6371km / 360
    assert distance_meters(0, 0, 0, 1) == pytest.approx(111_194.9, rel=1e-4)


def test_popularity_score_handles_missing_values():
    assert popularity_score(None, None) == 0
    assert popularity_score(4.0, 9) == pytest.approx(4.0)
    assert popularity_score(4.5, 999) > popularity_score(5.0, 9)
