from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .models import CacheEntity, CacheType, SessionEntity, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DAYS = 30
DEFAULT_CACHE_TTL_DAYS = 7


class SessionRepository(ABC):
    @abstractmethod
    async def create_session(self, expires_in_days: int = DEFAULT_SESSION_DAYS) -> SessionEntity:
        raise NotImplementedError

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[SessionEntity]:
        raise NotImplementedError

    @abstractmethod
    async def update_last_active(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_expired_sessions(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        raise NotImplementedError


class CacheRepository(ABC):
    @abstractmethod
    async def set_cache(
        self,
        session_id: str,
        cache_type: CacheType,
        cache_key: str,
        data: Any,
        ttl_days: int = DEFAULT_CACHE_TTL_DAYS,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_cache(self, session_id: str, cache_type: CacheType, cache_key: str) -> Optional[CacheEntity]:
        raise NotImplementedError

    @abstractmethod
    async def get_caches_by_session(self, session_id: str, cache_type: Optional[CacheType] = None) -> List[CacheEntity]:
        raise NotImplementedError

    @abstractmethod
    async def clear_expired_cache(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def clear_session_cache(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_cache(self, cache_id: str) -> None:
        raise NotImplementedError


class InMemorySessionRepository(SessionRepository):
    def __init__(self):
        self._store: Dict[str, SessionEntity] = {}

    async def create_session(self, expires_in_days: int = DEFAULT_SESSION_DAYS) -> SessionEntity:
        now = utcnow()
        session = SessionEntity(
            session_id=str(uuid4()),
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
            last_active=now,
        )
        self._store[session.session_id] = session
        logger.info("Created session %s", session.session_id)
        return session

    async def get_session(self, session_id: str) -> Optional[SessionEntity]:
        session = self._store.get(session_id)
        if session and session.is_expired():
            logger.info("Session %s is expired, deleting", session_id)
            del self._store[session_id]
            return None
        return session

    async def update_last_active(self, session_id: str) -> None:
        session = self._store.get(session_id)
        if session:
            session.last_active = utcnow()

    async def delete_expired_sessions(self) -> int:
        now = utcnow()
        expired = [key for key, session in self._store.items() if session.is_expired(now)]
        for key in expired:
            del self._store[key]
        return len(expired)

    async def delete_session(self, session_id: str) -> None:
        if session_id not in self._store:
            raise KeyError("Session not found")
        del self._store[session_id]


class InMemoryCacheRepository(CacheRepository):
    def __init__(self):
        self._store: Dict[str, CacheEntity] = {}

    def _find(self, session_id: str, cache_type: CacheType, cache_key: str) -> Optional[CacheEntity]:
        for entry in self._store.values():
            if entry.session_id == session_id and entry.cache_type == cache_type and entry.cache_key == cache_key:
                return entry
        return None

    async def set_cache(
        self,
        session_id: str,
        cache_type: CacheType,
        cache_key: str,
        data: Any,
        ttl_days: int = DEFAULT_CACHE_TTL_DAYS,
    ) -> None:
        now = utcnow()
        encoded = json.dumps(data, ensure_ascii=False, default=str)
        existing = self._find(session_id, cache_type, cache_key)
        if existing:
            existing.cache_data = encoded
            existing.created_at = now
            existing.expires_at = now + timedelta(days=ttl_days)
            return
        entry = CacheEntity(
            id=uuid4().hex,
            session_id=session_id,
            cache_type=cache_type,
            cache_key=cache_key,
            cache_data=encoded,
            created_at=now,
            expires_at=now + timedelta(days=ttl_days),
        )
        self._store[entry.id] = entry

    async def get_cache(self, session_id: str, cache_type: CacheType, cache_key: str) -> Optional[CacheEntity]:
        entry = self._find(session_id, cache_type, cache_key)
        if entry is None:
            return None
        if entry.is_expired():
            logger.info("Cache expired: %s/%s, deleting", cache_type, cache_key)
            await self.delete_cache(entry.id)
            return None
        return entry

    async def get_caches_by_session(self, session_id: str, cache_type: Optional[CacheType] = None) -> List[CacheEntity]:
        now = utcnow()
        entries = [
            entry
            for entry in self._store.values()
            if entry.session_id == session_id and (cache_type is None or entry.cache_type == cache_type)
        ]
        for entry in entries:
            if entry.is_expired(now):
                self._store.pop(entry.id, None)
        valid = [entry for entry in entries if not entry.is_expired(now)]
        return sorted(valid, key=lambda e: e.created_at, reverse=True)

    async def clear_expired_cache(self) -> int:
        now = utcnow()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        return len(expired)

    async def clear_session_cache(self, session_id: str) -> None:
        for key in [key for key, entry in self._store.items() if entry.session_id == session_id]:
            del self._store[key]

    async def delete_cache(self, cache_id: str) -> None:
        if cache_id not in self._store:
            raise KeyError("Cache entry not found")
        del self._store[cache_id]


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value.endswith("Z"):
        value = value.replace("Z", "+00:00")
    return datetime.fromisoformat(value)


class SupabaseSessionRepository(SessionRepository):
    def __init__(self, client):
        if client is None:
            raise ValueError("Supabase client is required for SupabaseSessionRepository")
        self.client = client
        self.table_name = "sessions"

    async def create_session(self, expires_in_days: int = DEFAULT_SESSION_DAYS) -> SessionEntity:
        now = utcnow()
        session = SessionEntity(
            session_id=str(uuid4()),
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
            last_active=now,
        )
        payload = {
            "session_id": session.session_id,
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat(),
            "last_active": session.last_active.isoformat(),
        }
        await asyncio.to_thread(lambda: self.client.table(self.table_name).insert(payload).execute())
        logger.info("Created session %s", session.session_id)
        return session

    async def get_session(self, session_id: str) -> Optional[SessionEntity]:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name).select("*").eq("session_id", session_id).execute()
            )
        except Exception as exc:
            logger.warning("Failed to load session %s: %s", session_id, exc)
            return None
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        row = rows[0]
        session = SessionEntity(
            session_id=row["session_id"],
            created_at=_parse_dt(row["created_at"]),
            expires_at=_parse_dt(row["expires_at"]),
            last_active=_parse_dt(row["last_active"]),
        )
        if session.is_expired():
            logger.info("Session %s is expired, deleting", session_id)
            await self.delete_session(session_id)
            return None
        return session

    async def update_last_active(self, session_id: str) -> None:
        try:
            await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .update({"last_active": utcnow().isoformat()})
                .eq("session_id", session_id)
                .execute()
            )
        except Exception as exc:
            logger.warning("Failed to update last active for %s: %s", session_id, exc)

    async def delete_expired_sessions(self) -> int:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name).delete().lt("expires_at", utcnow().isoformat()).execute()
            )
        except Exception as exc:
            logger.warning("Failed to delete expired sessions: %s", exc)
            return 0
        count = len(getattr(response, "data", None) or [])
        logger.info("Deleted %s expired sessions", count)
        return count

    async def delete_session(self, session_id: str) -> None:
        await asyncio.to_thread(
            lambda: self.client.table(self.table_name).delete().eq("session_id", session_id).execute()
        )


class SupabaseCacheRepository(CacheRepository):
    def __init__(self, client):
        if client is None:
            raise ValueError("Supabase client is required for SupabaseCacheRepository")
        self.client = client
        self.table_name = "user_cache"

    async def set_cache(
        self,
        session_id: str,
        cache_type: CacheType,
        cache_key: str,
        data: Any,
        ttl_days: int = DEFAULT_CACHE_TTL_DAYS,
    ) -> None:
        now = utcnow()
        payload = {
            "session_id": session_id,
            "cache_type": cache_type,
            "cache_key": cache_key,
            "cache_data": json.dumps(data, ensure_ascii=False, default=str),
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(days=ttl_days)).isoformat(),
        }
        await asyncio.to_thread(
            lambda: self.client.table(self.table_name)
            .upsert(payload, on_conflict="session_id,cache_type,cache_key")
            .execute()
        )

    async def get_cache(self, session_id: str, cache_type: CacheType, cache_key: str) -> Optional[CacheEntity]:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("*")
                .eq("session_id", session_id)
                .eq("cache_type", cache_type)
                .eq("cache_key", cache_key)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            logger.warning("Failed to get cache %s/%s: %s", cache_type, cache_key, exc)
            return None
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        entry = self._row_to_entity(rows[0])
        if entry.is_expired():
            await self.delete_cache(entry.id)
            return None
        return entry

    async def get_caches_by_session(self, session_id: str, cache_type: Optional[CacheType] = None) -> List[CacheEntity]:
        def _query():
            query = self.client.table(self.table_name).select("*").eq("session_id", session_id)
            if cache_type:
                query = query.eq("cache_type", cache_type)
            return query.order("created_at", desc=True).execute()

        try:
            response = await asyncio.to_thread(_query)
        except Exception as exc:
            logger.warning("Failed to get caches for session %s: %s", session_id, exc)
            return []
        now = utcnow()
        entries = [self._row_to_entity(row) for row in (getattr(response, "data", None) or [])]
        for entry in entries:
            if entry.is_expired(now):
                try:
                    await self.delete_cache(entry.id)
                except Exception as exc:
                    logger.warning("Failed to delete expired cache %s: %s", entry.id, exc)
        return [entry for entry in entries if not entry.is_expired(now)]

    async def clear_expired_cache(self) -> int:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name).delete().lt("expires_at", utcnow().isoformat()).execute()
            )
        except Exception as exc:
            logger.warning("Failed to clear expired cache: %s", exc)
            return 0
        count = len(getattr(response, "data", None) or [])
        logger.info("Deleted %s expired cache entries", count)
        return count

    async def clear_session_cache(self, session_id: str) -> None:
        await asyncio.to_thread(
            lambda: self.client.table(self.table_name).delete().eq("session_id", session_id).execute()
        )

    async def delete_cache(self, cache_id: str) -> None:
        await asyncio.to_thread(lambda: self.client.table(self.table_name).delete().eq("id", cache_id).execute())

    def _row_to_entity(self, row: Dict[str, Any]) -> CacheEntity:
        return CacheEntity(
            id=str(row["id"]),
            session_id=row["session_id"],
            cache_type=row["cache_type"],
            cache_key=row["cache_key"],
            cache_data=row["cache_data"],
            created_at=_parse_dt(row["created_at"]),
            expires_at=_parse_dt(row["expires_at"]),
        )
