"""Per-user Gmail connection (OAuth tokens) in DB."""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .mailbox import MailboxSession
from .models import GmailConnection


def get_connection(db: Session, user_email: str) -> Optional[GmailConnection]:
    return db.query(GmailConnection).filter(GmailConnection.user_email == user_email).first()


def save_connection(
    db: Session,
    user_email: str,
    connected_gmail: str,
    access_token: str,
    refresh_token: Optional[str],
    token_expiry: Optional[datetime],
) -> GmailConnection:
    row = get_connection(db, user_email)
    if row is None:
        row = GmailConnection(user_email=user_email)
        db.add(row)
    row.is_connected = True
    row.connected_gmail = connected_gmail
    row.access_token = access_token
    # Google omits the refresh token on re-consent; keep the one we have.
    if refresh_token:
        row.refresh_token = refresh_token
    row.token_expiry = token_expiry
    db.commit()
    db.refresh(row)
    return row


def disconnect(db: Session, user_email: str) -> bool:
    row = get_connection(db, user_email)
    if row is None:
        return False
    row.is_connected = False
    row.access_token = None
    row.refresh_token = None
    row.token_expiry = None
    db.commit()
    return True


def session_for(db: Session, user_email: str) -> Optional[MailboxSession]:
    """Build the explicit session object the mailbox gateway expects, or None if not connected."""
    row = get_connection(db, user_email)
    if row is None or not row.is_connected or not row.access_token:
        return None
    return MailboxSession(
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expiry=row.token_expiry,
        email=row.connected_gmail or user_email,
    )


def store_refreshed_session(db: Session, user_email: str, session: MailboxSession) -> None:
    row = get_connection(db, user_email)
    if row is None:
        return
    row.access_token = session.access_token
    row.token_expiry = session.expiry
    db.commit()


def touch_last_sync(db: Session, user_email: str) -> None:
    row = get_connection(db, user_email)
    if row is None:
        return
    row.last_sync = datetime.utcnow()
    db.commit()
