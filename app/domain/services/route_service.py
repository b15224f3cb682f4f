from __future__ import annotations

import logging
from typing import Optional

from app.api.models.schemas import LatLng
from app.domain.models import RouteInfo
from app.domain.repositories import RouteCacheRepository
from app.external.route_chain import RouteProviderChain

logger = logging.getLogger(__name__)


class RouteService:
    """Walking route lookup: exact-coordinate cache first, then the provider chain."""

    def __init__(self, cache: RouteCacheRepository, chain: RouteProviderChain):
        self.cache = cache
        self.chain = chain

    async def get_or_fetch(self, origin: LatLng, destination: LatLng) -> Optional[RouteInfo]:
        try:
            cached = await self.cache.get(origin, destination)
        except Exception as exc:
            logger.warning("Route cache lookup failed: %s", exc)
            cached = None
        if cached is not None:
            logger.info(
                "Route cache hit (%s,%s) -> (%s,%s)", origin.lat, origin.lng, destination.lat, destination.lng
            )
            return cached

        logger.info("Route cache miss; querying providers")
        result = await self.chain.route(origin, destination)
        if not result.ok:
            return None

        info = result.value
        try:
            await self.cache.put(origin, destination, info)
        except Exception as exc:
            logger.warning("Failed to save route to cache: %s", exc)
        return info
