"""Emails API: list, category filter, sync (client batch or mailbox fetch), read flag, deletes, auto-pilot."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from ..ai_client import AIClient, get_ai_client
from ..database import get_db, get_sync_db
from ..dependencies import get_classifier, get_mailbox_gateway
from ..mailbox import MailboxGateway, RawMessage
from ..models import Email, SyncState
from ..schemas import (
    AutopilotItem,
    AutopilotResponse,
    DeleteResponse,
    EmailResponse,
    EmailSyncRequest,
    EmailSyncResponse,
    LastSyncResponse,
)
from ..services import ai_usage
from ..services.autopilot import run_autopilot
from ..services.classification_service import Classifier
from ..services.email_store import delete_all, delete_one, mark_read
from ..services.email_sync import SyncResult, sync_emails
from ..services.profile_store import get_profile, profile_to_dict
from .. import gmail_settings_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/emails", tags=["emails"])


def _record_classification(db: Session, user_email: str, result: SyncResult, model: str) -> None:
    """Ledger entry for the classifier call. The batch is already committed, so a failure here is only logged."""
    outcome = result.outcome
    if outcome.usage is None and outcome.error is None:
        return
    try:
        ai_usage.append(
            db,
            user_email,
            ai_usage.OP_EMAIL_ANALYSIS,
            outcome.usage,
            model=model,
            success=outcome.ok,
            error_message=outcome.error,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not record email analysis usage for {user_email}: {e}")


def _touch_last_sync(db: Session, user_email: str) -> None:
    try:
        gmail_settings_db.touch_last_sync(db, user_email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not update Gmail last sync for {user_email}: {e}")


def _sync_response(result: SyncResult) -> EmailSyncResponse:
    return EmailSyncResponse(
        count=result.count,
        emails=[EmailResponse.from_row(e) for e in result.emails],
        classified=result.classified,
        classification_error=result.outcome.error,
        last_sync=result.last_synced_at,
    )


@router.post("/sync", response_model=EmailSyncResponse)
def sync_batch(
    body: EmailSyncRequest,
    db: Session = Depends(get_sync_db),
    classifier: Classifier = Depends(get_classifier),
):
    """Classify and store a batch of raw messages the client already fetched."""
    messages = [
        RawMessage(
            external_id=m.external_id,
            sender=m.sender,
            subject=m.subject,
            body=m.body,
            provider_date=m.provider_date,
        )
        for m in body.emails
    ]
    result = sync_emails(db, body.email, messages, classifier)
    response = _sync_response(result)
    _record_classification(db, body.email, result, classifier.ai.model)
    return response


@router.post("/{email}/fetch", response_model=EmailSyncResponse)
def fetch_and_sync(
    email: str,
    db: Session = Depends(get_sync_db),
    gateway: MailboxGateway = Depends(get_mailbox_gateway),
    classifier: Classifier = Depends(get_classifier),
):
    """Pull recent messages through the mailbox gateway, then sync them."""
    session = gmail_settings_db.session_for(db, email)
    messages = gateway.fetch_recent(session)
    if session is not None and session.refreshed:
        gmail_settings_db.store_refreshed_session(db, email, session)
    result = sync_emails(db, email, messages, classifier)
    response = _sync_response(result)
    _record_classification(db, email, result, classifier.ai.model)
    _touch_last_sync(db, email)
    return response


@router.post("/{email}/autopilot", response_model=AutopilotResponse)
def autopilot(
    email: str,
    db: Session = Depends(get_sync_db),
    ai: AIClient = Depends(get_ai_client),
    gateway: MailboxGateway = Depends(get_mailbox_gateway),
):
    """Reply to every unread HIGH priority email; each reply succeeds or fails on its own."""
    row = get_profile(db, email)
    profile = profile_to_dict(row) if row else {}
    session = gmail_settings_db.session_for(db, email)
    attempts = run_autopilot(db, email, ai, gateway, session, profile)
    sent = sum(1 for a in attempts if a.success)
    return AutopilotResponse(
        attempted=len(attempts),
        sent=sent,
        failed=len(attempts) - sent,
        results=[
            AutopilotItem(id=a.external_id, subject=a.subject, success=a.success, error=a.error)
            for a in attempts
        ],
    )


@router.get("/{email}", response_model=List[EmailResponse])
async def list_user_emails(email: str, db: AsyncSession = Depends(get_db)):
    rows = (
        await db.scalars(
            select(Email).where(Email.user_email == email).order_by(Email.date.desc(), Email.id.desc())
        )
    ).all()
    return [EmailResponse.from_row(r) for r in rows]


@router.get("/{email}/last-sync", response_model=LastSyncResponse)
async def last_sync(email: str, db: AsyncSession = Depends(get_db)):
    row = await db.scalar(select(SyncState).where(SyncState.user_email == email))
    if row is None:
        return LastSyncResponse()
    return LastSyncResponse(last_sync=row.last_synced_at, status=row.status or "idle", error=row.error)


@router.get("/{email}/category/{category}", response_model=List[EmailResponse])
async def list_by_category(email: str, category: str, db: AsyncSession = Depends(get_db)):
    rows = (
        await db.scalars(
            select(Email)
            .where(Email.user_email == email, Email.category == category.strip().lower())
            .order_by(Email.date.desc(), Email.id.desc())
        )
    ).all()
    return [EmailResponse.from_row(r) for r in rows]


@router.put("/{email}/{email_id}/read", response_model=EmailResponse)
def mark_email_read(email: str, email_id: str, db: Session = Depends(get_sync_db)):
    row = mark_read(db, email, email_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Email not found")
    return EmailResponse.from_row(row)


@router.delete("/{email}/{email_id}", response_model=DeleteResponse)
def delete_email(email: str, email_id: str, db: Session = Depends(get_sync_db)):
    count = delete_one(db, email, email_id)
    if count == 0:
        raise HTTPException(status_code=404, detail="Email not found")
    return DeleteResponse(message="Email deleted successfully", count=count)


@router.delete("/{email}", response_model=DeleteResponse)
def delete_user_emails(email: str, db: Session = Depends(get_sync_db)):
    count = delete_all(db, email)
    return DeleteResponse(message=f"Deleted {count} emails", count=count)
