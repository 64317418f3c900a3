from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, JSON, Text, UniqueConstraint
from datetime import datetime
from toeic_api.db.base import Base


class VocabularyItem(Base):
    """
    A word saved by a user, with AI-filled definition fields and
    spaced-review (SM-2) scheduling state.
    """
    __tablename__ = "vocabulary_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    word = Column(String(100), nullable=False)
    definition = Column(Text, nullable=True)
    phonetic = Column(String, nullable=True)
    context = Column(Text, nullable=True)
    meanings = Column(JSON, nullable=True)  # [{"partOfSpeech": ..., "definitions": [{"definition", "example"}]}]
    audio_url = Column(String, nullable=True)
    language = Column(String(8), default="en", nullable=False)
    reading = Column(String, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)
    source_type = Column(String, default="manual", nullable=False)  # practice | review | manual
    mastered = Column(Boolean, default=False, nullable=False)
    definition_loading = Column(Boolean, default=False, nullable=False)
    definition_error = Column(Boolean, default=False, nullable=False)

    ease_factor = Column(Float, default=2.5, nullable=False)
    interval_days = Column(Integer, default=0, nullable=False)
    repetitions = Column(Integer, default=0, nullable=False)
    next_review_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    last_reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "word", name="uq_vocabulary_user_word"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "word": self.word,
            "definition": self.definition,
            "phonetic": self.phonetic,
            "context": self.context,
            "meanings": self.meanings or [],
            "audioUrl": self.audio_url,
            "language": self.language,
            "reading": self.reading,
            "tags": self.tags or [],
            "notes": self.notes,
            "sourceType": self.source_type,
            "mastered": self.mastered,
            "definitionLoading": self.definition_loading,
            "definitionError": self.definition_error,
            "easeFactor": self.ease_factor,
            "intervalDays": self.interval_days,
            "repetitions": self.repetitions,
            "nextReviewDate": self.next_review_date.isoformat() if self.next_review_date else None,
            "lastReviewedAt": self.last_reviewed_at.isoformat() if self.last_reviewed_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
