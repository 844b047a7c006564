"""OAuth CSRF state persisted in DB for the Gmail connect flow."""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .models import OAuthState

OAUTH_STATE_TTL_SECONDS = 900  # 15 minutes (avoids invalid_state when slow or callback retried)


def oauth_state_set(db: Session, state_token: str, user_email: str, redirect_url: Optional[str] = None) -> None:
    """Store OAuth state token bound to the user starting the flow. Overwrites if exists."""
    now = datetime.utcnow()
    row = db.query(OAuthState).filter(OAuthState.state_token == state_token).first()
    if row:
        row.user_email = user_email
        row.redirect_url = redirect_url or ""
        row.created_at = now
    else:
        db.add(OAuthState(
            state_token=state_token,
            user_email=user_email,
            redirect_url=redirect_url or "",
            created_at=now,
        ))
    db.commit()


def oauth_state_consume(db: Session, state_token: str) -> Optional[dict]:
    """
    Look up state, validate TTL, delete row, return payload or None.
    Returns {"user_email", "redirect_url", "created_at"} if valid; None if missing or expired.
    """
    row = db.query(OAuthState).filter(OAuthState.state_token == state_token).first()
    if not row:
        return None
    expired = (datetime.utcnow() - row.created_at).total_seconds() > OAUTH_STATE_TTL_SECONDS
    payload = {
        "user_email": row.user_email,
        "redirect_url": row.redirect_url or "",
        "created_at": row.created_at,
    }
    db.delete(row)
    db.commit()
    return None if expired else payload


def oauth_state_cleanup_expired(db: Session) -> int:
    """Delete expired state rows. Returns the number removed."""
    removed = 0
    for row in db.query(OAuthState).all():
        if (datetime.utcnow() - row.created_at).total_seconds() > OAUTH_STATE_TTL_SECONDS:
            db.delete(row)
            removed += 1
    db.commit()
    return removed
