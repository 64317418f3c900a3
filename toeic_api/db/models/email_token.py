from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from datetime import datetime
from toeic_api.db.base import Base


class EmailToken(Base):
    """
    One-time secret mailed to a user: a 6-digit email verification code or a
    password reset token. Only the SHA-256 of the secret is stored.
    """
    __tablename__ = "email_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(String(32), nullable=False)  # "email_verification" | "password_reset"
    token_hash = Column(String(64), nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_email_tokens_user_purpose", "user_id", "purpose"),
    )

    def is_live(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.used_at is None and self.expires_at > now
