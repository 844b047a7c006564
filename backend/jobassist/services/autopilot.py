"""Auto-pilot: draft and send a reply to each unread high-priority email, one at a time."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..ai_client import AIClient
from ..errors import AIProviderError, MailboxAuthError, MailboxFetchError
from ..mailbox import MailboxGateway, MailboxSession
from . import ai_usage
from .assistant import smart_reply
from .email_store import list_high_priority_unread, mark_read

logger = logging.getLogger(__name__)


@dataclass
class ReplyAttempt:
    external_id: str
    subject: Optional[str]
    success: bool
    error: Optional[str] = None


def _reply_address(sender: str) -> str:
    """Pull the bare address out of 'Name <addr@host>'."""
    sender = (sender or "").strip()
    if "<" in sender and ">" in sender:
        return sender[sender.index("<") + 1:sender.index(">")].strip()
    return sender


def _record_failure(db: Session, user_email: str, ai: AIClient, error: Exception) -> None:
    try:
        ai_usage.append(
            db, user_email, ai_usage.OP_SMART_REPLY, model=ai.model, success=False, error_message=str(error)
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not record failed smart reply for {user_email}: {e}")


def run_autopilot(
    db: Session,
    user_email: str,
    ai: AIClient,
    gateway: MailboxGateway,
    session: Optional[MailboxSession],
    profile: dict,
) -> List[ReplyAttempt]:
    """
    Works on a snapshot taken up front. Each attempt stands alone: a failure is
    logged and reported, never retried, and does not stop the loop.
    """
    snapshot = [
        (e.external_id, e.sender, e.subject, e.body)
        for e in list_high_priority_unread(db, user_email)
    ]
    results: List[ReplyAttempt] = []
    for external_id, sender, subject, body in snapshot:
        try:
            reply, response = smart_reply(
                ai, {"sender": sender, "subject": subject, "body": body}, profile
            )
            ai_usage.append(db, user_email, ai_usage.OP_SMART_REPLY, response)
            gateway.send_reply(session, _reply_address(sender), subject or "", reply)
            mark_read(db, user_email, external_id)
            results.append(ReplyAttempt(external_id=external_id, subject=subject, success=True))
        except Exception as e:
            if isinstance(e, SQLAlchemyError):
                db.rollback()
            if isinstance(e, (AIProviderError, MailboxAuthError, MailboxFetchError)):
                logger.error(f"Auto-pilot reply failed for {user_email}/{external_id}: {e}")
            else:
                logger.exception(f"Auto-pilot reply failed for {user_email}/{external_id}")
            if isinstance(e, AIProviderError):
                _record_failure(db, user_email, ai, e)
            error = str(e) or type(e).__name__
            results.append(ReplyAttempt(external_id=external_id, subject=subject, success=False, error=error))
    sent = sum(1 for r in results if r.success)
    logger.info(f"Auto-pilot for {user_email}: {sent}/{len(results)} replies sent")
    return results
