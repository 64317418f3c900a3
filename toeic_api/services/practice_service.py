"""
Practice session scoring and history.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from toeic_api.db.models.practice import PracticeRecord

logger = logging.getLogger(__name__)

SOURCE_COLUMNS = {
    "real": "real_questions",
    "ai_pool": "ai_pool_questions",
    "realtime": "realtime_questions",
}
DEFAULT_SOURCE = "realtime"


def estimate_score(correct: int, total: int) -> Optional[int]:
    """Estimated TOEIC score on the 200-1000 scale; None with no answers."""
    if total <= 0:
        return None
    return round(200 + (correct / total) * 800)


def submit_practice(
    db: Session,
    user_id: int,
    session_id: str,
    answers: List[Dict],
    question_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    total_time: Optional[int] = None,
) -> PracticeRecord:
    """
    Store one finished session.

    Each answer is {"questionId", "userAnswer", "isCorrect", "timeSpent", "source"}.
    """
    correct = sum(1 for answer in answers if answer.get("isCorrect"))
    counts = {column: 0 for column in SOURCE_COLUMNS.values()}
    for answer in answers:
        counts[SOURCE_COLUMNS.get(answer.get("source") or DEFAULT_SOURCE, SOURCE_COLUMNS[DEFAULT_SOURCE])] += 1

    time_spent = total_time if total_time is not None else sum(answer.get("timeSpent") or 0 for answer in answers)

    record = PracticeRecord(
        user_id=user_id,
        session_id=session_id,
        question_type=question_type,
        difficulty=difficulty,
        total_questions=len(answers),
        correct_answers=correct,
        score=estimate_score(correct, len(answers)),
        time_spent=time_spent,
        questions=answers,
        **counts,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(
        f"Practice submitted: user_id={user_id}, record_id={record.id}, "
        f"correct={correct}/{len(answers)}, score={record.score}"
    )
    return record


def get_history(db: Session, user_id: int, page: int = 1, limit: int = 20, question_type: Optional[str] = None) -> Dict:
    query = db.query(PracticeRecord).filter(PracticeRecord.user_id == user_id)
    if question_type:
        query = query.filter(PracticeRecord.question_type == question_type)

    total = query.count()
    records = query.order_by(
        PracticeRecord.completed_at.desc(), PracticeRecord.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    return {
        "records": [record.to_dict() for record in records],
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": (total + limit - 1) // limit},
    }


def get_record(db: Session, user_id: int, record_id: int) -> Optional[PracticeRecord]:
    return db.query(PracticeRecord).filter(
        PracticeRecord.id == record_id,
        PracticeRecord.user_id == user_id,
    ).first()
