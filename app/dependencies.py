import logging
from typing import Dict, List, Type

from fastapi import Depends, Request, Response

from app.ai.openai_client import OpenAICompletionModel, get_client
from app.ai.plan_graph import PlanGenerator
from app.core.config import settings
from app.domain.models import SessionEntity
from app.domain.repositories import (
    InMemoryPlaceRepository,
    InMemoryRouteCacheRepository,
    PlaceRepository,
    RouteCacheRepository,
    SupabasePlaceRepository,
    SupabaseRouteCacheRepository,
)
from app.domain.services.chat_service import ChatService
from app.domain.services.itinerary_enricher import ItineraryEnricher
from app.domain.services.route_service import RouteService
from app.domain.services.session_service import CacheService, ContextService, SessionService
from app.domain.session_repositories import (
    CacheRepository,
    InMemoryCacheRepository,
    InMemorySessionRepository,
    SessionRepository,
    SupabaseCacheRepository,
    SupabaseSessionRepository,
)
from app.external.google_places_api import GooglePlacesProvider
from app.external.kakao_mobility_api import KakaoCarProvider
from app.external.route_chain import RouteProvider, RouteProviderChain
from app.external.routes_api import GoogleRoutesWalkingProvider
from app.external.supabase_client import get_supabase_client
from app.external.tmap_api import TmapPedestrianProvider

logger = logging.getLogger(__name__)

ROUTE_PROVIDER_TYPES: Dict[str, Type[RouteProvider]] = {
    "tmap": TmapPedestrianProvider,
    "google": GoogleRoutesWalkingProvider,
    "kakao": KakaoCarProvider,
}


def _route_api_key(name: str) -> str | None:
    if name == "tmap":
        return settings.tmap_api_key
    if name == "google":
        return settings.google_routes_api_key or settings.google_places_api_key
    if name == "kakao":
        return settings.kakao_rest_api_key
    return None


def build_route_providers(names: List[str]) -> List[RouteProvider]:
    providers: List[RouteProvider] = []
    for name in names:
        provider_type = ROUTE_PROVIDER_TYPES.get(name.lower())
        if provider_type is None:
            logger.warning("Unknown route provider '%s' ignored", name)
            continue
        providers.append(provider_type(_route_api_key(name.lower()), timeout=settings.http_timeout_seconds))
    return providers


_supabase_client = get_supabase_client()
if settings.use_supabase and _supabase_client:
    _place_repo: PlaceRepository = SupabasePlaceRepository(_supabase_client)
    _route_cache_repo: RouteCacheRepository = SupabaseRouteCacheRepository(_supabase_client)
    _session_repo: SessionRepository = SupabaseSessionRepository(_supabase_client)
    _cache_repo: CacheRepository = SupabaseCacheRepository(_supabase_client)
else:
    _place_repo = InMemoryPlaceRepository()
    _route_cache_repo = InMemoryRouteCacheRepository()
    _session_repo = InMemorySessionRepository()
    _cache_repo = InMemoryCacheRepository()

_places_provider = GooglePlacesProvider(settings.google_places_api_key, timeout=settings.http_timeout_seconds)
_route_service = RouteService(_route_cache_repo, RouteProviderChain(build_route_providers(settings.route_providers)))
_plan_generator = PlanGenerator(
    OpenAICompletionModel(get_client()),
    _places_provider,
    _place_repo,
    ItineraryEnricher(_route_service),
    planning_model=settings.openai_model_planning,
    chat_model=settings.openai_model_chat,
    results_per_query=settings.search_results_per_query,
    nearby_radius_meters=settings.nearby_radius_meters,
    nearby_limit=settings.nearby_limit,
    search_timeout=settings.http_timeout_seconds * 2,
    llm_timeout=settings.llm_timeout_seconds,
)


def get_place_repo() -> PlaceRepository:
    return _place_repo


def get_places_provider() -> GooglePlacesProvider:
    return _places_provider


def get_plan_generator() -> PlanGenerator:
    return _plan_generator


def get_session_service() -> SessionService:
    return SessionService(_session_repo, ttl_days=settings.session_ttl_days)


def get_cache_service() -> CacheService:
    return CacheService(_cache_repo, ttl_days=settings.cache_ttl_days)


def get_context_service(cache: CacheService = Depends(get_cache_service)) -> ContextService:
    return ContextService(cache)


def get_chat_service(
    generator: PlanGenerator = Depends(get_plan_generator),
    cache: CacheService = Depends(get_cache_service),
) -> ChatService:
    return ChatService(generator=generator, cache=cache)


async def get_session(
    request: Request,
    response: Response,
    svc: SessionService = Depends(get_session_service),
) -> SessionEntity:
    """Resolve the caller's session from the cookie, creating one (and setting the cookie) when needed."""
    cookie_id = request.cookies.get(settings.session_cookie_name)
    session = await svc.create_or_get_session(cookie_id)
    if session.session_id != cookie_id:
        response.set_cookie(
            key=settings.session_cookie_name,
            value=session.session_id,
            max_age=settings.session_ttl_days * 24 * 60 * 60,
            httponly=True,
            samesite="lax",
        )
    return session


__all__ = [
    "get_place_repo",
    "get_places_provider",
    "get_plan_generator",
    "get_session_service",
    "get_cache_service",
    "get_context_service",
    "get_chat_service",
    "get_session",
    "settings",
]
