from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from datetime import datetime
from toeic_api.db.base import Base


class PracticeRecord(Base):
    """Summary of one submitted practice session. Never updated after insert."""
    __tablename__ = "practice_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String, nullable=False, index=True)
    question_type = Column(String, nullable=True)
    difficulty = Column(String, nullable=True)
    total_questions = Column(Integer, default=0, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    score = Column(Integer, nullable=True)  # estimated TOEIC score
    time_spent = Column(Integer, default=0, nullable=False)  # seconds
    questions = Column(JSON, default=list, nullable=False)

    # Question counts by source type
    real_questions = Column(Integer, default=0, server_default="0", nullable=False)
    ai_pool_questions = Column(Integer, default=0, server_default="0", nullable=False)
    realtime_questions = Column(Integer, default=0, server_default="0", nullable=False)

    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self, include_questions: bool = False) -> dict:
        data = {
            "id": self.id,
            "sessionId": self.session_id,
            "questionType": self.question_type,
            "difficulty": self.difficulty,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "score": self.score,
            "timeSpent": self.time_spent,
            "realQuestions": self.real_questions,
            "aiPoolQuestions": self.ai_pool_questions,
            "realtimeQuestions": self.realtime_questions,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_questions:
            data["questions"] = self.questions or []
        return data
