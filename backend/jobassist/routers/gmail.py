"""Gmail connection API: OAuth connect (with CSRF state), callback, status, disconnect."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_sync_db
from ..gmail_service import start_gmail_oauth, finish_gmail_oauth
from ..schemas import GmailStatusResponse
from .. import gmail_settings_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gmail", tags=["gmail"])


@router.get("/auth")
def gmail_auth(email: str, redirect_url: Optional[str] = None, db: Session = Depends(get_sync_db)):
    """
    Start Gmail OAuth for this user. Open in the browser; Google redirects back to
    GET /api/gmail/callback (GMAIL_OAUTH_REDIRECT_URI), which stores the tokens.
    """
    redirect_after = redirect_url or settings.frontend_url
    try:
        auth_url = start_gmail_oauth(db, email, redirect_url_after=redirect_after)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse(url=auth_url, status_code=302)


@router.get("/callback")
def gmail_callback(code: Optional[str] = None, state: Optional[str] = None, db: Session = Depends(get_sync_db)):
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")
    try:
        redirect_url = finish_gmail_oauth(db, code=code, state=state)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse(url=redirect_url, status_code=302)


@router.get("/{email}", response_model=GmailStatusResponse)
def gmail_status(email: str, request: Request, db: Session = Depends(get_sync_db)):
    mode = request.app.state.mailbox_gateway.name
    row = gmail_settings_db.get_connection(db, email)
    if row is None:
        return GmailStatusResponse(mode=mode)
    return GmailStatusResponse(
        is_connected=bool(row.is_connected),
        connected_gmail=row.connected_gmail,
        token_expiry=row.token_expiry,
        last_sync=row.last_sync,
        mode=mode,
    )


@router.delete("/{email}")
def gmail_disconnect(email: str, db: Session = Depends(get_sync_db)):
    if not gmail_settings_db.disconnect(db, email):
        raise HTTPException(status_code=404, detail="Gmail connection not found")
    logger.info(f"Gmail disconnected for {email}")
    return {"success": True, "message": "Gmail disconnected"}
