"""
Vocabulary notebook endpoints.

Provides saved words with AI definitions, SM-2 review scheduling and bulk
import.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from toeic_api.core.auth_dependency import get_current_user
from toeic_api.core.errors import AIProviderError, AIProviderNotConfigured
from toeic_api.core.plan_limits import RESOURCE_VOCABULARY_WORDS
from toeic_api.core.quota_guard import require_vocabulary_capacity
from toeic_api.db.session import get_db
from toeic_api.db.models.user import User
from toeic_api.llm.provider import LLMProvider
from toeic_api.llm.router import get_llm_provider
from toeic_api.schemas.vocabulary import (
    DefinitionLookupRequest,
    VocabularyCreateRequest,
    VocabularyImportRequest,
    VocabularyReviewRequest,
    VocabularyUpdateRequest,
)
from toeic_api.services import vocabulary_service
from toeic_api.services.quota_service import check_usage_quota
from toeic_api.services.ai_service import get_word_definition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vocabulary", tags=["Vocabulary"])


def _get_owned_word(db: Session, user: User, item_id: int):
    item = vocabulary_service.get_word(db, user.id, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Word not found")
    return item


@router.post("", status_code=status.HTTP_201_CREATED)
def add_word(
    request: VocabularyCreateRequest,
    current_user: User = Depends(require_vocabulary_capacity),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
    db: Session = Depends(get_db)
):
    try:
        item = vocabulary_service.add_word(
            db,
            current_user.id,
            provider,
            request.word,
            context=request.context,
            source_type=request.source_type,
            tags=request.tags,
            language=request.language,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "data": item.to_dict(), "message": "Word added"}


@router.get("")
def list_words(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    sort_by: str = Query("created_at", alias="sortBy", pattern="^(created_at|word|next_review_date)$"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    mastered: Optional[bool] = Query(None, description="Filter by mastered flag"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    data = vocabulary_service.list_words(db, current_user.id, page, limit, sort_by, sort_order, mastered)
    return {"success": True, "data": data}


@router.get("/review")
def words_due_for_review(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    items = vocabulary_service.get_due_words(db, current_user.id)
    return {"success": True, "data": {"words": [item.to_dict() for item in items], "total": len(items)}}


@router.get("/stats")
def vocabulary_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"success": True, "data": vocabulary_service.get_stats(db, current_user.id)}


@router.post("/definition")
def lookup_definition(
    request: DefinitionLookupRequest,
    current_user: User = Depends(get_current_user),
    provider: Optional[LLMProvider] = Depends(get_llm_provider)
):
    language = "en" if request.language == "auto" else request.language
    try:
        entry = get_word_definition(provider, request.word.strip(), request.context, language)
    except AIProviderNotConfigured:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI service is not configured")
    except AIProviderError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"AI service error: {e}")
    except ValueError as e:
        logger.warning(f"Definition lookup unusable: user_id={current_user.id}, error={e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Definition lookup failed")
    return {"success": True, "data": entry}


@router.post("/import", status_code=status.HTTP_201_CREATED)
def import_words(
    request: VocabularyImportRequest,
    current_user: User = Depends(require_vocabulary_capacity),
    db: Session = Depends(get_db)
):
    quota = check_usage_quota(db, current_user, RESOURCE_VOCABULARY_WORDS)
    result = vocabulary_service.import_words(
        db,
        current_user.id,
        request.words,
        request.source_type,
        request.language,
        capacity=quota["remaining"],
    )
    return {
        "success": True,
        "data": result,
        "message": f"Imported {len(result['imported'])} words, skipped {len(result['skipped'])}",
    }


@router.post("/{item_id}/review")
def review_word(
    item_id: int,
    request: VocabularyReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    item = _get_owned_word(db, current_user, item_id)
    vocabulary_service.apply_review(item, request.correct, request.difficulty)
    db.commit()
    db.refresh(item)
    logger.debug(f"Word reviewed: user_id={current_user.id}, item_id={item_id}, correct={request.correct}")
    return {"success": True, "data": item.to_dict()}


@router.put("/{item_id}")
def update_word(
    item_id: int,
    request: VocabularyUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    item = _get_owned_word(db, current_user, item_id)
    item = vocabulary_service.update_word(db, item, request.notes, request.mastered, request.tags)
    return {"success": True, "data": item.to_dict()}


@router.delete("/{item_id}")
def delete_word(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    item = _get_owned_word(db, current_user, item_id)
    db.delete(item)
    db.commit()
    return {"success": True, "message": "Word deleted"}


@router.post("/{item_id}/refresh-definition")
def refresh_definition(
    item_id: int,
    current_user: User = Depends(get_current_user),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
    db: Session = Depends(get_db)
):
    item = _get_owned_word(db, current_user, item_id)
    item = vocabulary_service.refresh_definition(db, item, provider)
    return {"success": True, "data": item.to_dict()}
