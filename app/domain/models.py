from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, List, Literal, Optional, TypeVar

from app.api.models.schemas import LatLng
from app.core.errors import FailureReason

T = TypeVar("T")

CacheType = Literal["place", "route", "course", "context"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RouteInfo:
    distance_meters: float
    duration_seconds: float
    path: List[LatLng] = field(default_factory=list)


@dataclass
class ProviderResult(Generic[T]):
    """Outcome of a single external provider call: a value or a typed failure."""

    provider: str
    value: Optional[T] = None
    failure: Optional[FailureReason] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None and self.value is not None

    @classmethod
    def success(cls, provider: str, value: T) -> "ProviderResult[T]":
        return cls(provider=provider, value=value)

    @classmethod
    def fail(cls, provider: str, reason: FailureReason, detail: str = "") -> "ProviderResult[T]":
        return cls(provider=provider, failure=reason, detail=detail)


@dataclass
class SessionEntity:
    session_id: str
    created_at: datetime
    expires_at: datetime
    last_active: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utcnow())

    def to_api_model(self):
        from app.api.models.schemas import SessionInfo

        return SessionInfo(
            sessionId=self.session_id,
            createdAt=self.created_at,
            expiresAt=self.expires_at,
            lastActive=self.last_active,
        )


@dataclass
class CacheEntity:
    id: str
    session_id: str
    cache_type: CacheType
    cache_key: str
    cache_data: str  # JSON encoded
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utcnow())
