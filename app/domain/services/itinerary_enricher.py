from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional

from app.api.models.schemas import CoursePlan, CourseStep, LatLng, Place
from app.domain.services.route_service import RouteService

logger = logging.getLogger(__name__)


def format_distance(meters: float) -> str:
    return f"{meters / 1000:.1f}km"


def format_minutes(seconds: float) -> str:
    return f"{math.ceil(seconds / 60)}분"


def _has_coords(location: Optional[LatLng]) -> bool:
    # 0/0 is what the model emits when it has no coordinates.
    return location is not None and bool(location.lat) and bool(location.lng)


class ItineraryEnricher:
    """
    Post-processes generated plans.

    1. Steps referencing a candidate place take its photo, rating, review count and
       coordinates; model-proposed coordinates are never trusted over the candidate's.
    2. Each consecutive step pair gets a walking route. Distance/time land on the later
       step, the path on the earlier one. With no route the path is a straight line and
       distance/time stay empty.
    """

    def __init__(self, routes: RouteService):
        self.routes = routes

    async def enrich(self, plans: List[CoursePlan], candidates: Iterable[Place]) -> List[CoursePlan]:
        by_id: Dict[str, Place] = {place.placeId: place for place in candidates}
        for plan in plans:
            self.apply_place_details(plan.steps, by_id)
            await self.attach_routes(plan.steps)
        return plans

    def apply_place_details(self, steps: List[CourseStep], by_id: Dict[str, Place]) -> None:
        for step in steps:
            place_id = step.detail.googlePlaceId if step.detail else None
            if not place_id:
                continue
            original = by_id.get(place_id)
            if original is None:
                logger.debug("Step '%s' references unknown place %s", step.placeName, place_id)
                continue
            step.detail.imageUrl = original.photoUrl
            step.detail.rating = original.rating
            step.detail.reviewCount = original.userRatingCount
            step.location = original.location.model_copy()

    async def attach_routes(self, steps: List[CourseStep]) -> None:
        for current, following in zip(steps, steps[1:]):
            origin, destination = current.location, following.location
            if not (_has_coords(origin) and _has_coords(destination)):
                continue

            info = await self.routes.get_or_fetch(origin, destination)
            if info is None:
                current.pathToNext = [origin.model_copy(), destination.model_copy()]
                continue

            following.distanceFromPrev = format_distance(info.distance_meters)
            following.timeFromPrev = format_minutes(info.duration_seconds)
            if info.path:
                current.pathToNext = [point.model_copy() for point in info.path]
