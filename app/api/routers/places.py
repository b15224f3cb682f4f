import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from app.api.models.schemas import Place
from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.dependencies import get_cache_service, get_place_repo, get_places_provider, get_session
from app.domain.models import SessionEntity
from app.domain.repositories import PlaceRepository
from app.domain.services.session_service import CacheService
from app.external.google_places_api import GooglePlacesProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/places", tags=["places"])


@router.get("", response_model=List[Place])
async def list_places(
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1, le=200),
    repo: PlaceRepository = Depends(get_place_repo),
):
    return await repo.find_all(skip=skip, take=take)


@router.get("/search", response_model=List[Place])
async def search_places(
    query: str = "",
    session: SessionEntity = Depends(get_session),
    repo: PlaceRepository = Depends(get_place_repo),
    provider: GooglePlacesProvider = Depends(get_places_provider),
    cache: CacheService = Depends(get_cache_service),
):
    query = query.strip()
    if not query:
        raise ValidationError("검색어를 입력해주세요.", {"field": "query", "reason": "empty"})

    cached = await cache.get_cached_place_query(session.session_id, query)
    if cached is not None:
        logger.info("Place query cache hit for '%s'", query)
        return cached

    places = await repo.search_by_text(query)
    if not places:
        places = await provider.search(query, limit=settings.search_results_per_query)
        for place in places:
            await repo.upsert(place)

    if places:
        await cache.cache_place_query(session.session_id, query, places)
    return places


@router.get("/nearby", response_model=List[Place])
async def nearby_places(
    lat: float,
    lng: float,
    radius: int = Query(settings.nearby_radius_meters, gt=0),
    limit: int = Query(settings.nearby_limit, ge=1, le=200),
    repo: PlaceRepository = Depends(get_place_repo),
):
    return await repo.find_nearby(lat, lng, radius, limit)


@router.get("/{place_id}", response_model=Place)
async def get_place(place_id: str, repo: PlaceRepository = Depends(get_place_repo)):
    place = await repo.find_by_id(place_id)
    if place is None:
        raise NotFoundError("Place not found")
    return place


@router.get("/{place_id}/photo", response_class=RedirectResponse, status_code=307)
async def get_place_photo(
    place_id: str,
    repo: PlaceRepository = Depends(get_place_repo),
    provider: GooglePlacesProvider = Depends(get_places_provider),
):
    place = await repo.find_by_id(place_id)
    if place is None or not place.photoUrl:
        raise NotFoundError("Photo not found")
    return RedirectResponse(provider.photo_media_url(place.photoUrl), status_code=307)
