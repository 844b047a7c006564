"""Per-user email rows: atomic batch upsert, read flag, deletes."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Email
from .classification_service import Classification, DEFAULT_CATEGORY, DEFAULT_PRIORITY

logger = logging.getLogger(__name__)


@dataclass
class EmailUpsert:
    external_id: str
    sender: str
    subject: str
    body: str
    date: datetime
    labels: Optional[Classification] = None


def _apply_content(email: Email, row: EmailUpsert) -> None:
    email.sender = row.sender
    email.subject = row.subject
    email.body = row.body
    email.date = row.date
    # A classification miss keeps whatever labels the row already has.
    if row.labels is not None:
        email.category = row.labels.category
        email.priority = row.labels.priority
        email.summary = row.labels.summary
        email.suggested_action = row.labels.suggested_action
    email.updated_at = datetime.utcnow()


def _new_email(user_email: str, row: EmailUpsert) -> Email:
    now = datetime.utcnow()
    email = Email(
        user_email=user_email,
        external_id=row.external_id,
        is_read=False,
        category=DEFAULT_CATEGORY,
        priority=DEFAULT_PRIORITY,
        created_at=now,
    )
    _apply_content(email, row)
    return email


def _get(db: Session, user_email: str, external_id: str) -> Optional[Email]:
    return (
        db.query(Email)
        .filter(Email.user_email == user_email, Email.external_id == external_id)
        .first()
    )


def upsert_batch(db: Session, user_email: str, rows: Sequence[EmailUpsert], commit: bool = True) -> List[Email]:
    """
    Insert or update every row as one unit. is_read and created_at of existing rows are never touched.
    Any failure rolls back the whole batch and re-raises.
    """
    if not rows:
        return []
    ids = [r.external_id for r in rows]
    try:
        existing = {
            e.external_id: e
            for e in db.query(Email).filter(Email.user_email == user_email, Email.external_id.in_(ids))
        }
        written: List[Email] = []
        for row in rows:
            email = existing.get(row.external_id)
            if email is not None:
                _apply_content(email, row)
                written.append(email)
                continue
            email = _new_email(user_email, row)
            try:
                # Savepoint: a concurrent sync may have inserted the same external id.
                with db.begin_nested():
                    db.add(email)
                    db.flush()
            except IntegrityError:
                email = _get(db, user_email, row.external_id)
                if email is None:
                    raise
                _apply_content(email, row)
            existing[row.external_id] = email
            written.append(email)
        db.flush()
        if commit:
            db.commit()
    except Exception:
        db.rollback()
        raise
    return written


def get_email(db: Session, user_email: str, external_id: str) -> Optional[Email]:
    return _get(db, user_email, external_id)


def mark_read(db: Session, user_email: str, external_id: str) -> Optional[Email]:
    """Flip is_read to true. Returns None when the email does not exist."""
    email = _get(db, user_email, external_id)
    if email is None:
        return None
    if not email.is_read:
        email.is_read = True
        email.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(email)
    return email


def delete_one(db: Session, user_email: str, external_id: str) -> int:
    count = (
        db.query(Email)
        .filter(Email.user_email == user_email, Email.external_id == external_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def delete_all(db: Session, user_email: str) -> int:
    count = db.query(Email).filter(Email.user_email == user_email).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Deleted {count} emails for {user_email}")
    return count


def list_emails(db: Session, user_email: str, category: Optional[str] = None) -> List[Email]:
    q = db.query(Email).filter(Email.user_email == user_email)
    if category:
        q = q.filter(Email.category == category)
    return q.order_by(Email.date.desc(), Email.id.desc()).all()


def list_by_category(db: Session, user_email: str, category: str) -> List[Email]:
    return list_emails(db, user_email, category=category.strip().lower())


def list_high_priority_unread(db: Session, user_email: str) -> List[Email]:
    return (
        db.query(Email)
        .filter(Email.user_email == user_email, Email.priority == "HIGH", Email.is_read.is_(False))
        .order_by(Email.date.desc(), Email.id.desc())
        .all()
    )
