"""
Generation Audit Log

Best-effort persistence of one AuditLogEntry per generate() call into
ai_generation_logs. A failed write is logged and dropped: it is never retried
and never reaches the caller of generate().
"""

import logging
from typing import Callable

from sqlalchemy.orm import Session

from database.models import AIGenerationLog
from generation.schemas import AuditLogEntry

log = logging.getLogger(__name__)

# Anything that accepts an entry; called from a worker thread
AuditSink = Callable[[AuditLogEntry], None]


def build_log_row(entry: AuditLogEntry) -> AIGenerationLog:
    return AIGenerationLog(
        user_id=entry.user_id,
        evaluation_id=entry.evaluation_id,
        content_source=entry.content_source.value,
        file_type=entry.file_type,
        content_length=entry.content_length,
        questions_requested=entry.questions_requested,
        questions_generated=entry.questions_generated,
        tokens_used=entry.tokens_used,
        generation_time_ms=entry.generation_time_ms,
        success=entry.success,
        error_message=entry.error_message,
    )


def record_generation(db: Session, entry: AuditLogEntry) -> bool:
    """
    Insert one audit row.

    Args:
        db: Database session
        entry: Outcome of one generate() call

    Returns:
        True if the row was committed
    """
    try:
        db.add(build_log_row(entry))
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        log.error("audit: failed to write generation log: %s", e)
        return False


class SqlAuditSink:
    """AuditSink that opens a short-lived session per entry."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def __call__(self, entry: AuditLogEntry) -> None:
        db = self.session_factory()
        try:
            record_generation(db, entry)
        finally:
            db.close()
