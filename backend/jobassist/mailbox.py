"""
Mailbox gateway interface.

Two variants exist: ``LiveGateway`` (Gmail API, in ``gmail_service``) and
``SampleGateway`` (four fixed messages so the pipeline runs without Google
credentials). ``build_mailbox_gateway`` picks one at startup; callers pass an
explicit ``MailboxSession`` into every call.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from email.utils import format_datetime
from typing import List, Optional

from .config import Settings
from .errors import MailboxAuthError

logger = logging.getLogger(__name__)

# Treat tokens this close to expiry as already expired
EXPIRY_SKEW = timedelta(seconds=60)


@dataclass
class RawMessage:
    external_id: str
    sender: str = ""
    subject: str = ""
    body: str = ""
    provider_date: Optional[str] = None


@dataclass
class MailboxSession:
    """OAuth session for one mailbox. ``expiry`` is naive UTC."""
    access_token: str
    email: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    # Set by the gateway when it refreshed the access token, so the caller can persist it
    refreshed: bool = field(default=False, compare=False)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        now = now or datetime.utcnow()
        return now + EXPIRY_SKEW >= self.expiry

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)


class MailboxGateway(ABC):
    """Fetch recent messages from a mailbox and send replies from it."""

    name: str = "base"

    def check_session(self, session: Optional[MailboxSession]) -> MailboxSession:
        """Raise MailboxAuthError unless the session can be used for a provider call."""
        if session is None or not session.access_token:
            raise MailboxAuthError("Mailbox is not connected. Connect Gmail and try again.")
        if session.is_expired() and not session.can_refresh:
            raise MailboxAuthError("Mailbox session expired. Reconnect Gmail and try again.")
        return session

    @abstractmethod
    def fetch_recent(self, session: Optional[MailboxSession]) -> List[RawMessage]:
        """Return recent messages, newest first. May be empty."""

    @abstractmethod
    def send_reply(
        self,
        session: Optional[MailboxSession],
        to: str,
        subject: str,
        body: str,
    ) -> str:
        """Send a plain-text reply; returns the provider message id."""


def _sample_messages(now: datetime) -> List[RawMessage]:
    def ago(**kwargs) -> str:
        return format_datetime(now - timedelta(**kwargs))

    return [
        RawMessage(
            external_id="sample-1",
            sender="sarah.jenkins@techcorp.io",
            subject="Interview Availability - Senior Frontend Engineer",
            body=(
                "Hi there, We reviewed your application and were very impressed with your experience "
                "in React and TypeScript. We'd like to schedule a 30-minute technical screen next week. "
                "Please let us know your availability."
            ),
            provider_date=ago(hours=2),
        ),
        RawMessage(
            external_id="sample-2",
            sender="recruiting@startup.inc",
            subject="Application Status: Full Stack Developer",
            body=(
                "Thank you for applying to Startup Inc. Unfortunately, we have decided to move forward "
                "with other candidates who more closely match our current needs. We will keep your "
                "resume on file."
            ),
            provider_date=ago(days=1),
        ),
        RawMessage(
            external_id="sample-3",
            sender="talent@bigdata.com",
            subject="Job Offer: Data Visualization Specialist",
            body=(
                "We are excited to offer you the position of Data Visualization Specialist! Attached is "
                "the offer letter. Please review and let us know if you have any questions."
            ),
            provider_date=ago(days=2),
        ),
        RawMessage(
            external_id="sample-4",
            sender="newsletter@devweekly.com",
            subject="Top 10 React Libraries in 2024",
            body="Here are the trending libraries you need to know about...",
            provider_date=ago(days=3),
        ),
    ]


class SampleGateway(MailboxGateway):
    """Stands in for Gmail when no OAuth client is configured."""

    name = "sample"

    def __init__(self):
        self.sent: List[dict] = []

    def check_session(self, session: Optional[MailboxSession]) -> Optional[MailboxSession]:
        # No credentials needed; a session that was passed must still be valid.
        if session is not None and session.is_expired() and not session.can_refresh:
            raise MailboxAuthError("Mailbox session expired. Reconnect Gmail and try again.")
        return session

    def fetch_recent(self, session: Optional[MailboxSession]) -> List[RawMessage]:
        self.check_session(session)
        return _sample_messages(datetime.utcnow())

    def send_reply(self, session, to, subject, body) -> str:
        self.check_session(session)
        message_id = f"sample-sent-{len(self.sent) + 1}"
        self.sent.append({"id": message_id, "to": to, "subject": subject, "body": body})
        logger.info(f"Sample mailbox: recorded reply to {to} ({subject!r})")
        return message_id


def build_mailbox_gateway(settings: Settings) -> MailboxGateway:
    """Pick the gateway variant once, from configuration."""
    mode = (settings.mailbox_mode or "auto").strip().lower()
    if mode == "sample" or (mode == "auto" and not settings.gmail_configured):
        logger.info("Mailbox gateway: sample messages (Google OAuth client not configured)")
        return SampleGateway()
    if not settings.gmail_configured:
        raise ValueError("MAILBOX_MODE=live requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET")
    from .gmail_service import LiveGateway

    logger.info("Mailbox gateway: live Gmail")
    return LiveGateway(settings)
