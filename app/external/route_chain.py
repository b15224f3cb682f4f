from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Sequence

import httpx

from app.api.models.schemas import LatLng
from app.core.errors import FailureReason
from app.domain.models import ProviderResult, RouteInfo

logger = logging.getLogger(__name__)

RouteResult = ProviderResult[RouteInfo]


class RouteProvider(ABC):
    """One external routing API. Implementations decode their own path encoding into LatLng lists."""

    name: str = "route"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def route(self, origin: LatLng, destination: LatLng) -> RouteResult:
        if not self.api_key:
            return ProviderResult.fail(self.name, FailureReason.MISSING_CREDENTIALS)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await self._send(client, origin, destination)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            return ProviderResult.fail(self.name, FailureReason.TIMEOUT, str(exc))
        except httpx.HTTPStatusError as exc:
            return ProviderResult.fail(self.name, FailureReason.HTTP_ERROR, f"{exc.response.status_code}: {exc.response.text[:200]}")
        except Exception as exc:
            return ProviderResult.fail(self.name, FailureReason.EXCEPTION, str(exc))

        try:
            info = self._parse(data)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            return ProviderResult.fail(self.name, FailureReason.EXCEPTION, f"malformed response: {exc}")
        if info is None:
            return ProviderResult.fail(self.name, FailureReason.EMPTY_RESULT)
        return ProviderResult.success(self.name, info)

    @abstractmethod
    async def _send(self, client: httpx.AsyncClient, origin: LatLng, destination: LatLng) -> httpx.Response:
        raise NotImplementedError

    @abstractmethod
    def _parse(self, data: Any) -> RouteInfo | None:
        raise NotImplementedError


class RouteProviderChain:
    """
    Tries each provider in priority order and returns the first successful route.
    When every provider fails the last failure is returned; the chain never fabricates geometry.
    """

    def __init__(self, providers: Sequence[RouteProvider]):
        self.providers: List[RouteProvider] = list(providers)

    async def route(self, origin: LatLng, destination: LatLng) -> RouteResult:
        last: RouteResult = ProviderResult.fail("chain", FailureReason.MISSING_CREDENTIALS, "no route providers configured")
        for provider in self.providers:
            result = await provider.route(origin, destination)
            if result.ok:
                logger.info("Route found by %s (%.0fm)", provider.name, result.value.distance_meters)
                return result
            logger.warning(
                "Route provider %s failed (%s) %s",
                provider.name,
                result.failure.value if result.failure else "unknown",
                result.detail,
            )
            last = result
        return last
