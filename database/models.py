"""
SQLAlchemy models for the generation audit trail.

Rows are insert-only: the pipeline writes one row per generation call and
never reads, updates or deletes them.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from database.database import Base


class AIGenerationLog(Base):
    """Outcome of one question-generation call (1-3 remote attempts)."""
    __tablename__ = "ai_generation_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    evaluation_id = Column(String(255), nullable=True, index=True)
    content_source = Column(String(20), nullable=False)  # manual_text | file_upload
    file_type = Column(String(100), nullable=True)
    content_length = Column(Integer, nullable=False)
    questions_requested = Column(Integer, nullable=False)
    questions_generated = Column(Integer, nullable=False, default=0)
    tokens_used = Column(Integer, nullable=True)
    generation_time_ms = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False, index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AIGenerationLog(id={self.id}, user_id={self.user_id}, success={self.success})>"
