from __future__ import annotations

import logging
from typing import Optional

from app.ai.plan_graph import PlanGenerator
from app.api.models.schemas import ChatRequest, CourseResponse
from app.core.errors import ValidationError
from app.domain.services.session_service import CacheService

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, generator: PlanGenerator, cache: CacheService):
        self.generator = generator
        self.cache = cache

    async def handle_chat(self, chat_request: ChatRequest, session_id: Optional[str] = None) -> CourseResponse:
        if not chat_request.message or not chat_request.message.strip():
            raise ValidationError("메시지를 입력해주세요.", {"field": "message", "reason": "empty"})

        response = await self.generator.generate(
            chat_request.message,
            chat_request.history,
            chat_request.systemContext,
            chat_request.transportMode,
        )

        if session_id and response.plans:
            for plan in response.plans:
                try:
                    await self.cache.cache_course(session_id, plan)
                except Exception as exc:
                    logger.warning("Failed to cache course %s: %s", plan.id, exc)
        return response
