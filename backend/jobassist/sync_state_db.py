"""Sync cursor and last-sync outcome in DB (SyncState model) per user."""
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from .models import SyncState


def get_sync_state(db: Session, user_email: str) -> Optional[SyncState]:
    return db.query(SyncState).filter(SyncState.user_email == user_email).first()


def get_last_synced_at(db: Session, user_email: str) -> Optional[datetime]:
    row = get_sync_state(db, user_email)
    return row.last_synced_at if row else None


def set_last_synced_at(
    db: Session,
    user_email: str,
    when: Optional[datetime] = None,
    processed: int = 0,
    commit: bool = True,
) -> datetime:
    """Advance the cursor. Call only after the batch it covers has been committed."""
    now = when or datetime.utcnow()
    row = get_sync_state(db, user_email)
    if row:
        row.last_synced_at = now
        row.status = "idle"
        row.error = None
        row.processed = processed
        row.updated_at = now
    else:
        db.add(SyncState(
            user_email=user_email, last_synced_at=now, status="idle", processed=processed, updated_at=now
        ))
    if commit:
        db.commit()
    return now


def set_sync_state_error(db: Session, user_email: str, error: str):
    """Record a failed sync without touching last_synced_at."""
    now = datetime.utcnow()
    row = get_sync_state(db, user_email)
    if row:
        row.status = "error"
        row.error = error
        row.updated_at = now
    else:
        db.add(SyncState(user_email=user_email, status="error", error=error, updated_at=now))
    db.commit()


def get_state_dict(db: Session, user_email: str) -> dict:
    default = {"status": "idle", "lastSync": None, "processed": 0, "error": None}
    row = get_sync_state(db, user_email)
    if not row:
        return default
    return {
        "status": row.status or "idle",
        "lastSync": row.last_synced_at.isoformat() if row.last_synced_at else None,
        "processed": row.processed if row.processed is not None else 0,
        "error": row.error,
    }
