from fastapi import APIRouter, Depends

from app.api.models.schemas import ChatRequest, CourseResponse
from app.dependencies import get_chat_service, get_session
from app.domain.models import SessionEntity
from app.domain.services.chat_service import ChatService

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=CourseResponse)
async def chat(
    body: ChatRequest,
    session: SessionEntity = Depends(get_session),
    chat_svc: ChatService = Depends(get_chat_service),
):
    return await chat_svc.handle_chat(body, session_id=session.session_id)
