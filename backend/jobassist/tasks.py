"""Celery tasks: AI usage retention sweep. DB session per task."""
import logging
from typing import Optional

from celery import shared_task

from .config import settings
from .database import SessionLocal
from .oauth_state_db import oauth_state_cleanup_expired
from .services import ai_usage

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="jobassist.tasks.prune_ai_usage")
def prune_ai_usage(self, retention_days: Optional[int] = None) -> dict:
    """
    Delete AI usage records older than retention_days (AI_USAGE_RETENTION_DAYS by default)
    and expired OAuth state rows. Run on demand or from celery beat.
    """
    retention = retention_days or settings.ai_usage_retention_days
    db = SessionLocal()
    try:
        deleted = ai_usage.prune(db, retention)
        expired_states = oauth_state_cleanup_expired(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info(f"Retention sweep: {deleted} usage records, {expired_states} OAuth states removed")
    return {"deleted": deleted, "retention_days": retention, "expired_oauth_states": expired_states}
