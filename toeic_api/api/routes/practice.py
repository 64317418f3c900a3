"""
Practice endpoints: AI question generation, session submission and history.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import get_current_user
from toeic_api.core.errors import AIProviderError, AIProviderNotConfigured, QuestionGenerationError
from toeic_api.core.plan_limits import RESOURCE_DAILY_PRACTICE
from toeic_api.core.quota_guard import require_practice_access
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.llm.provider import LLMProvider
from toeic_api.llm.router import get_llm_provider
from toeic_api.schemas.practice import PracticeSubmissionRequest, QuestionGenerationRequest, QuestionType
from toeic_api.services import practice_service
from toeic_api.services.ai_service import generate_questions
from toeic_api.services.quota_service import increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/practice", tags=["Practice"])


@router.post("/questions/generate")
def generate_practice_questions(
    request: QuestionGenerationRequest,
    current_user: User = Depends(require_practice_access),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
    db: Session = Depends(get_db)
):
    """
    Generate exactly `count` questions for a TOEIC section.

    Provider failures are not retried; the learner can simply ask again.
    """
    try:
        questions = generate_questions(
            provider,
            question_type=request.type.value,
            difficulty=request.difficulty.value,
            count=request.count,
            topic=request.topic,
            custom_prompt=request.custom_prompt,
            language=request.language,
        )
    except AIProviderNotConfigured:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI service is not configured")
    except AIProviderError as e:
        logger.error(f"Question generation provider error: user_id={current_user.id}, error={e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"AI service error: {e}")
    except QuestionGenerationError as e:
        logger.error(f"Question generation failed: user_id={current_user.id}, error={e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Question generation failed")

    increment_usage(db, current_user.id, RESOURCE_DAILY_PRACTICE)
    logger.info(
        f"Practice questions generated: user_id={current_user.id}, type={request.type.value}, count={len(questions)}"
    )
    return {"success": True, "data": {"questions": questions}}


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_practice(
    request: PracticeSubmissionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    record = practice_service.submit_practice(
        db,
        current_user.id,
        session_id=request.session_id,
        answers=request.answers(),
        question_type=request.question_type.value if request.question_type else None,
        difficulty=request.difficulty.value if request.difficulty else None,
        total_time=request.total_time,
    )
    return {"success": True, "data": record.to_dict(), "message": "Practice submitted"}


@router.get("/history")
def practice_history(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    question_type: Optional[QuestionType] = Query(None, alias="questionType"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    data = practice_service.get_history(
        db, current_user.id, page, limit, question_type.value if question_type else None
    )
    return {"success": True, "data": data}


@router.get("/records/{record_id}")
def get_practice_record(
    record_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    record = practice_service.get_record(db, current_user.id, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Practice record not found")
    return {"success": True, "data": record.to_dict(include_questions=True)}
