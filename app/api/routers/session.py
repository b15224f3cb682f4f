from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response, status

from app.api.models.schemas import ContextHistoryResponse, ContextSaveRequest, SessionInfo
from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.dependencies import get_cache_service, get_context_service, get_session, get_session_service
from app.domain.models import SessionEntity
from app.domain.services.session_service import CacheService, ContextService, SessionService

router = APIRouter(tags=["session"])


@router.get("/session", response_model=SessionInfo)
async def get_current_session(session: SessionEntity = Depends(get_session)):
    return session.to_api_model()


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def delete_current_session(
    session: SessionEntity = Depends(get_session),
    svc: SessionService = Depends(get_session_service),
    cache: CacheService = Depends(get_cache_service),
):
    await cache.clear_session_cache(session.session_id)
    try:
        await svc.delete_session(session.session_id)
    except KeyError:
        raise NotFoundError("Session not found")
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/context")
async def get_context(
    type: Literal["history", "context"] = "context",
    session: SessionEntity = Depends(get_session),
    svc: ContextService = Depends(get_context_service),
):
    if type == "history":
        return ContextHistoryResponse(**await svc.load_history(session.session_id))
    return {"context": await svc.load_context(session.session_id)}


@router.post("/context")
async def save_context(
    body: ContextSaveRequest,
    session: SessionEntity = Depends(get_session),
    svc: ContextService = Depends(get_context_service),
):
    await svc.save(
        session.session_id,
        context=body.context,
        history=body.history,
        suggestions=body.suggestions,
        plans=body.plans,
        selected_plan_id=body.selectedPlanId,
    )
    return {"success": True}


@router.get("/cache")
async def get_cache(
    type: Optional[str] = None,
    session: SessionEntity = Depends(get_session),
    cache: CacheService = Depends(get_cache_service),
):
    if type is None:
        return await cache.get_cache_stats(session.session_id)
    if type == "place":
        places = await cache.get_cached_places(session.session_id)
        return {"type": type, "items": [p.model_dump(mode="json") for p in places]}
    if type == "course":
        courses = await cache.get_cached_courses(session.session_id)
        return {"type": type, "items": [c.model_dump(mode="json") for c in courses]}
    raise ValidationError("지원하지 않는 캐시 유형입니다.", {"field": "type", "reason": f"unknown cache type '{type}'"})


@router.delete("/cache")
async def clear_cache(
    session: SessionEntity = Depends(get_session),
    cache: CacheService = Depends(get_cache_service),
):
    await cache.clear_session_cache(session.session_id)
    return {"success": True}
