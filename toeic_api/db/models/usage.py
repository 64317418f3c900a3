from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime, timedelta
from typing import Tuple
from toeic_api.db.base import Base


class UsageQuota(Base):
    """
    Per-user, per-resource counter for one period.

    Daily resources get one row per UTC day, created on first use.
    limit_count of None means unlimited.
    """
    __tablename__ = "usage_quotas"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_type = Column(String, nullable=False)  # "daily_practice", "daily_ai_chat", "vocabulary_words"
    used_count = Column(Integer, default=0, nullable=False)
    limit_count = Column(Integer, nullable=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "resource_type", "period_start", name="uq_usage_quota_period"),
    )

    @staticmethod
    def get_daily_period(now: datetime = None) -> Tuple[datetime, datetime]:
        """Return (start, end) of the UTC day containing now."""
        if now is None:
            now = datetime.utcnow()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1) - timedelta(microseconds=1)
