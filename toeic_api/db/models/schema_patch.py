from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from toeic_api.db.base import Base


class SchemaPatchRecord(Base):
    """One row per schema patch run (see toeic_api.db.schema_patches)."""
    __tablename__ = "schema_patches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    applied_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    steps_applied = Column(Integer, default=0, nullable=False)
    steps_skipped = Column(Integer, default=0, nullable=False)
    steps_failed = Column(Integer, default=0, nullable=False)
