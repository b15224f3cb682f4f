from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from app.api.models.schemas import CacheStats, CoursePlan, HistoryMessage, Place
from app.domain.models import CacheType, SessionEntity
from app.domain.session_repositories import CacheRepository, SessionRepository

logger = logging.getLogger(__name__)

CONTEXT_KEY = "user_context"
HISTORY_KEY = "chat_history"
SUGGESTIONS_KEY = "chat_suggestions"
PLANS_KEY = "course_plans"
SELECTED_PLAN_KEY = "selected_plan_id"


class SessionService:
    def __init__(self, repo: SessionRepository, ttl_days: int = 30):
        self.repo = repo
        self.ttl_days = ttl_days

    async def create_or_get_session(self, cookie_session_id: Optional[str] = None) -> SessionEntity:
        if cookie_session_id:
            existing = await self.repo.get_session(cookie_session_id)
            if existing:
                await self.repo.update_last_active(cookie_session_id)
                return existing
        return await self.repo.create_session(self.ttl_days)

    async def get_session(self, session_id: str) -> Optional[SessionEntity]:
        return await self.repo.get_session(session_id)

    async def delete_session(self, session_id: str) -> None:
        await self.repo.delete_session(session_id)

    async def cleanup_sessions(self) -> int:
        return await self.repo.delete_expired_sessions()


class CacheService:
    """Per-session cache of place queries, generated courses and arbitrary keyed values."""

    def __init__(self, repo: CacheRepository, ttl_days: int = 7):
        self.repo = repo
        self.ttl_days = ttl_days

    async def _set(self, session_id: str, cache_type: CacheType, key: str, data: Any) -> None:
        await self.repo.set_cache(session_id, cache_type, key, data, self.ttl_days)

    async def _get(self, session_id: str, cache_type: CacheType, key: str) -> Any:
        entry = await self.repo.get_cache(session_id, cache_type, key)
        if entry is None:
            return None
        try:
            return json.loads(entry.cache_data)
        except ValueError as exc:
            logger.warning("Failed to parse cached %s/%s: %s", cache_type, key, exc)
            return None

    async def _get_all(self, session_id: str, cache_type: CacheType) -> List[Any]:
        values: List[Any] = []
        for entry in await self.repo.get_caches_by_session(session_id, cache_type):
            try:
                values.append(json.loads(entry.cache_data))
            except ValueError as exc:
                logger.warning("Failed to parse cached %s entry %s: %s", cache_type, entry.id, exc)
        return values

    async def cache_place_query(self, session_id: str, query: str, results: List[Place]) -> None:
        await self._set(session_id, "place", f"query:{query}", [p.model_dump(mode="json") for p in results])

    async def get_cached_place_query(self, session_id: str, query: str) -> Optional[List[Place]]:
        data = await self._get(session_id, "place", f"query:{query}")
        if data is None:
            return None
        return [Place.model_validate(item) for item in data]

    async def get_cached_places(self, session_id: str) -> List[Place]:
        places: List[Place] = []
        for batch in await self._get_all(session_id, "place"):
            places.extend(Place.model_validate(item) for item in batch)
        return places

    async def cache_course(self, session_id: str, course: CoursePlan) -> None:
        await self._set(session_id, "course", course.id, course.model_dump(mode="json"))

    async def get_cached_course(self, session_id: str, course_id: str) -> Optional[CoursePlan]:
        data = await self._get(session_id, "course", course_id)
        return CoursePlan.model_validate(data) if data is not None else None

    async def get_cached_courses(self, session_id: str) -> List[CoursePlan]:
        return [CoursePlan.model_validate(item) for item in await self._get_all(session_id, "course")]

    async def cache_value(self, session_id: str, cache_type: CacheType, key: str, value: Any) -> None:
        await self._set(session_id, cache_type, key, value)

    async def get_cached_value(self, session_id: str, cache_type: CacheType, key: str) -> Any:
        return await self._get(session_id, cache_type, key)

    async def clear_session_cache(self, session_id: str) -> None:
        await self.repo.clear_session_cache(session_id)

    async def cleanup_expired_cache(self) -> int:
        return await self.repo.clear_expired_cache()

    async def get_cache_stats(self, session_id: str) -> CacheStats:
        places = await self.repo.get_caches_by_session(session_id, "place")
        courses = await self.repo.get_caches_by_session(session_id, "course")
        routes = await self.repo.get_caches_by_session(session_id, "route")
        return CacheStats(
            places=len(places),
            courses=len(courses),
            routes=len(routes),
            total=len(places) + len(courses) + len(routes),
        )


class ContextService:
    """Saves and restores the chat state a client needs to resume a conversation."""

    def __init__(self, cache: CacheService):
        self.cache = cache

    async def save(
        self,
        session_id: str,
        context: Any = None,
        history: Optional[List[HistoryMessage]] = None,
        suggestions: Optional[List[str]] = None,
        plans: Optional[List[CoursePlan]] = None,
        selected_plan_id: Optional[str] = None,
    ) -> None:
        if context:
            await self.cache.cache_value(session_id, "context", CONTEXT_KEY, context)
        if history is not None:
            await self.cache.cache_value(session_id, "context", HISTORY_KEY, [m.model_dump() for m in history])
        if suggestions is not None:
            await self.cache.cache_value(session_id, "context", SUGGESTIONS_KEY, suggestions)
        if plans is not None:
            await self.cache.cache_value(
                session_id, "context", PLANS_KEY, [p.model_dump(mode="json") for p in plans]
            )
        if selected_plan_id is not None:
            await self.cache.cache_value(session_id, "context", SELECTED_PLAN_KEY, selected_plan_id)

    async def load_context(self, session_id: str) -> Any:
        return await self.cache.get_cached_value(session_id, "context", CONTEXT_KEY)

    async def load_history(self, session_id: str) -> dict:
        history = await self.cache.get_cached_value(session_id, "context", HISTORY_KEY) or []
        suggestions = await self.cache.get_cached_value(session_id, "context", SUGGESTIONS_KEY) or []
        plans = await self.cache.get_cached_value(session_id, "context", PLANS_KEY) or []
        selected = await self.cache.get_cached_value(session_id, "context", SELECTED_PLAN_KEY)
        return {
            "history": [HistoryMessage.model_validate(m) for m in history],
            "suggestions": suggestions,
            "plans": [CoursePlan.model_validate(p) for p in plans],
            "selectedPlanId": selected,
        }
