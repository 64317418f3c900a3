"""
AI tutor chat endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import get_current_user
from toeic_api.core.errors import AIProviderError, AIProviderNotConfigured
from toeic_api.core.plan_limits import RESOURCE_DAILY_AI_CHAT
from toeic_api.core.quota_guard import require_ai_chat_access
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.llm.provider import LLMProvider
from toeic_api.llm.router import get_llm_provider
from toeic_api.schemas.chat import ChatMessageRequest, ExplainQuestionRequest
from toeic_api.services import chat_service
from toeic_api.services.ai_service import explain_question
from toeic_api.services.quota_service import increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


def _provider_http_error(e: AIProviderError) -> HTTPException:
    if isinstance(e, AIProviderNotConfigured):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI service is not configured")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"AI service error: {e}")


@router.post("/message")
def send_message(
    request: ChatMessageRequest,
    current_user: User = Depends(require_ai_chat_access),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
    db: Session = Depends(get_db)
):
    try:
        result = chat_service.send_message(
            db,
            current_user.id,
            provider,
            request.message,
            session_id=request.session_id,
            question_context=request.question_context,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AIProviderError as e:
        logger.error(f"Chat provider error: user_id={current_user.id}, error={e}")
        raise _provider_http_error(e)

    increment_usage(db, current_user.id, RESOURCE_DAILY_AI_CHAT)
    return {"success": True, "data": result}


@router.post("/explain")
def explain(
    request: ExplainQuestionRequest,
    current_user: User = Depends(require_ai_chat_access),
    provider: Optional[LLMProvider] = Depends(get_llm_provider)
):
    if request.correct_answer >= len(request.options):
        raise HTTPException(status_code=400, detail="correctAnswer is out of range for options")
    try:
        explanation = explain_question(
            provider, request.question, request.options, request.correct_answer, request.user_answer
        )
    except AIProviderError as e:
        logger.error(f"Explanation provider error: user_id={current_user.id}, error={e}")
        raise _provider_http_error(e)
    return {"success": True, "data": {"explanation": explanation}}


@router.get("/sessions")
def list_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"success": True, "data": {"sessions": chat_service.list_sessions(db, current_user.id)}}


@router.get("/sessions/{session_id}")
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = chat_service.get_session(db, current_user.id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"success": True, "data": chat_service.serialize_session(session, include_messages=True)}


@router.delete("/sessions/{session_id}")
def delete_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = chat_service.get_session(db, current_user.id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Chat session not found")
    chat_service.delete_session(db, session)
    logger.info(f"Chat session deleted: user_id={current_user.id}, session_id={session_id}")
    return {"success": True, "message": "Chat session deleted"}
