"""
Vocabulary notebook: saved words, AI definitions and SM-2 review scheduling.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from toeic_api.core.errors import AIProviderError
from toeic_api.db.models.vocabulary import VocabularyItem
from toeic_api.llm.provider import LLMProvider
from toeic_api.services.ai_service import get_word_definition

logger = logging.getLogger(__name__)

MIN_EASE_FACTOR = 1.3
REVIEW_BATCH_LIMIT = 50
IMPORT_MAX_WORDS = 200
SORT_COLUMNS = {
    "created_at": VocabularyItem.created_at,
    "word": VocabularyItem.word,
    "next_review_date": VocabularyItem.next_review_date,
}


def normalize_word(word: str) -> str:
    return word.strip().lower()


def placeholder_meanings(word: str, context: Optional[str]) -> List[Dict]:
    """Stored when the AI lookup fails; the client offers a refresh."""
    return [{
        "partOfSpeech": "unknown",
        "definitions": [{
            "definition": f"Definition for '{word}' is not available yet. Refresh to try again.",
            "example": context,
        }],
    }]


def get_word(db: Session, user_id: int, item_id: int) -> Optional[VocabularyItem]:
    return db.query(VocabularyItem).filter(
        VocabularyItem.id == item_id,
        VocabularyItem.user_id == user_id,
    ).first()


def find_word(db: Session, user_id: int, word: str) -> Optional[VocabularyItem]:
    return db.query(VocabularyItem).filter(
        VocabularyItem.user_id == user_id,
        VocabularyItem.word == normalize_word(word),
    ).first()


def _apply_definition(item: VocabularyItem, entry: Optional[Dict]) -> None:
    if entry:
        item.meanings = entry.get("meanings") or []
        item.phonetic = entry.get("phonetic")
        item.definition = entry.get("definition")
        item.definition_error = False
    else:
        item.meanings = placeholder_meanings(item.word, item.context)
        item.definition_error = True
    item.definition_loading = False


def fetch_definition(provider: Optional[LLMProvider], word: str, context: Optional[str], language: str) -> Optional[Dict]:
    """AI definition, or None when the provider is missing or fails."""
    try:
        return get_word_definition(provider, word, context, language)
    except (AIProviderError, ValueError) as e:
        logger.warning(f"Definition lookup failed: word={word}, error={e}")
        return None


def add_word(
    db: Session,
    user_id: int,
    provider: Optional[LLMProvider],
    word: str,
    context: Optional[str] = None,
    source_type: str = "manual",
    tags: Optional[List[str]] = None,
    language: str = "en",
) -> VocabularyItem:
    """
    Save a word with its AI definition.

    Raises:
        ValueError: the word is already in the user's notebook
    """
    if find_word(db, user_id, word):
        raise ValueError("Word already exists in your vocabulary")

    item = VocabularyItem(
        user_id=user_id,
        word=normalize_word(word),
        context=context,
        source_type=source_type,
        tags=tags or [],
        language=language,
        next_review_date=datetime.utcnow(),
    )
    _apply_definition(item, fetch_definition(provider, item.word, context, language))

    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info(f"Vocabulary added: user_id={user_id}, word={item.word}, definition_error={item.definition_error}")
    return item


def import_words(
    db: Session,
    user_id: int,
    words: List[str],
    source_type: str = "manual",
    language: str = "en",
    capacity: Optional[int] = None,
) -> Dict:
    """
    Bulk-add words with deferred definitions.

    Duplicates, within the batch or already saved, are skipped. When capacity
    is given, at most that many new words are saved and the rest are skipped
    with limitReached set.
    """
    existing = {
        row.word for row in db.query(VocabularyItem.word).filter(VocabularyItem.user_id == user_id).all()
    }
    imported, skipped = [], []
    limit_reached = False
    now = datetime.utcnow()
    for raw in words[:IMPORT_MAX_WORDS]:
        word = normalize_word(raw)
        if not word or word in existing:
            skipped.append(raw)
            continue
        if capacity is not None and len(imported) >= capacity:
            limit_reached = True
            skipped.append(raw)
            continue
        existing.add(word)
        item = VocabularyItem(
            user_id=user_id,
            word=word,
            source_type=source_type,
            language=language,
            tags=[],
            definition_loading=True,
            next_review_date=now,
        )
        db.add(item)
        imported.append(item)
    db.commit()

    logger.info(f"Vocabulary imported: user_id={user_id}, imported={len(imported)}, skipped={len(skipped)}, limit_reached={limit_reached}")
    return {
        "imported": [item.to_dict() for item in imported],
        "skipped": skipped,
        "limitReached": limit_reached,
    }


def refresh_definition(db: Session, item: VocabularyItem, provider: Optional[LLMProvider]) -> VocabularyItem:
    _apply_definition(item, fetch_definition(provider, item.word, item.context, item.language))
    db.commit()
    db.refresh(item)
    return item


def list_words(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    mastered: Optional[bool] = None,
) -> Dict:
    query = db.query(VocabularyItem).filter(VocabularyItem.user_id == user_id)
    if mastered is not None:
        query = query.filter(VocabularyItem.mastered == mastered)

    total = query.count()
    column = SORT_COLUMNS.get(sort_by, VocabularyItem.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    items = query.order_by(order, VocabularyItem.id).offset((page - 1) * limit).limit(limit).all()

    return {
        "words": [item.to_dict() for item in items],
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": (total + limit - 1) // limit},
    }


def get_due_words(db: Session, user_id: int, now: datetime = None, limit: int = REVIEW_BATCH_LIMIT) -> List[VocabularyItem]:
    now = now or datetime.utcnow()
    return db.query(VocabularyItem).filter(
        VocabularyItem.user_id == user_id,
        VocabularyItem.next_review_date <= now,
    ).order_by(VocabularyItem.next_review_date.asc()).limit(limit).all()


def get_stats(db: Session, user_id: int, now: datetime = None) -> Dict[str, int]:
    now = now or datetime.utcnow()
    base = db.query(VocabularyItem).filter(VocabularyItem.user_id == user_id)
    return {
        "total": base.count(),
        "mastered": base.filter(VocabularyItem.mastered.is_(True)).count(),
        "dueForReview": base.filter(VocabularyItem.next_review_date <= now).count(),
    }


def apply_review(item: VocabularyItem, correct: bool, difficulty: int = 3, now: datetime = None) -> VocabularyItem:
    """
    SM-2 update. `difficulty` is 0 (trivial) to 5 (very hard); quality q = 5 - difficulty.

    Correct: ease += 0.1 - (5-q)(0.08 + (5-q)*0.02), interval 1 -> 6 -> round(interval*ease).
    Wrong: repetitions reset, interval 1, ease -= 0.2. Ease never drops below 1.3.
    """
    now = now or datetime.utcnow()
    if correct:
        quality = 5 - difficulty
        penalty = 5 - quality
        item.ease_factor = max(MIN_EASE_FACTOR, item.ease_factor + 0.1 - penalty * (0.08 + penalty * 0.02))
        if item.repetitions == 0:
            item.interval_days = 1
        elif item.repetitions == 1:
            item.interval_days = 6
        else:
            item.interval_days = round(item.interval_days * item.ease_factor)
        item.repetitions += 1
    else:
        item.repetitions = 0
        item.interval_days = 1
        item.ease_factor = max(MIN_EASE_FACTOR, item.ease_factor - 0.2)

    item.next_review_date = now + timedelta(days=item.interval_days)
    item.last_reviewed_at = now
    return item


def update_word(
    db: Session,
    item: VocabularyItem,
    notes: Optional[str] = None,
    mastered: Optional[bool] = None,
    tags: Optional[List[str]] = None,
) -> VocabularyItem:
    if notes is not None:
        item.notes = notes
    if mastered is not None:
        item.mastered = mastered
    if tags is not None:
        item.tags = tags
    db.commit()
    db.refresh(item)
    return item
