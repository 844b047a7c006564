"""
Email sync: reconcile a batch of fetched mailbox messages with classifier
labels and the rows already stored for the user.

One call is one batch:

1. An empty batch is a no-op; the cursor does not move.
2. Duplicate external ids collapse; the later message wins.
3. The classifier labels what it can. A failure or a missing id leaves that
   message unlabelled, which never blocks the sync.
4. Provider dates are parsed (ISO 8601, RFC 2822); anything else becomes now.
5. Rows are upserted in one transaction. Existing rows keep is_read,
   created_at, and their previous labels when this batch has none for them.
6. The sync cursor advances only after that transaction commits.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import EmailSyncError
from ..mailbox import RawMessage
from ..models import Email
from ..sync_state_db import get_last_synced_at, set_last_synced_at, set_sync_state_error
from .classification_service import ClassificationOutcome, Classifier
from .email_store import EmailUpsert, upsert_batch

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    emails: List[Email] = field(default_factory=list)
    count: int = 0
    outcome: ClassificationOutcome = field(default_factory=ClassificationOutcome)
    cursor_advanced: bool = False
    last_synced_at: Optional[datetime] = None

    @property
    def classified(self) -> int:
        return len(self.outcome.labels)


def normalize_date(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Parse a provider date to naive UTC; unparsable or missing values become ``now``."""
    now = now or datetime.utcnow()
    text = (value or "").strip()
    if not text:
        return now
    try:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = parsedate_to_datetime(text)
        if parsed is None:
            return now
        if parsed.tzinfo is not None:
            # Years 1 and 9999 can fall outside datetime's range once shifted to UTC
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, IndexError, OverflowError):
        return now
    return parsed


def dedupe_messages(messages: Sequence[RawMessage]) -> List[RawMessage]:
    """One message per external id; later duplicates replace earlier ones in place."""
    by_id: dict[str, RawMessage] = {}
    for m in messages:
        if not m.external_id or not str(m.external_id).strip():
            raise ValueError("Every message needs a non-empty id")
        by_id[m.external_id] = m
    return list(by_id.values())


def sync_emails(
    db: Session,
    user_email: str,
    messages: Sequence[RawMessage],
    classifier: Classifier,
) -> SyncResult:
    """Classify and persist one batch for user_email. Raises EmailSyncError if the batch was not stored."""
    if not user_email:
        raise ValueError("User email is required")
    if not messages:
        return SyncResult(last_synced_at=get_last_synced_at(db, user_email))

    batch = dedupe_messages(messages)
    outcome = classifier.analyze(batch)

    now = datetime.utcnow()
    rows = [
        EmailUpsert(
            external_id=m.external_id,
            sender=m.sender or "",
            subject=m.subject or "",
            body=m.body or "",
            date=normalize_date(m.provider_date, now),
            labels=outcome.labels.get(m.external_id),
        )
        for m in batch
    ]

    try:
        written = upsert_batch(db, user_email, rows)
    except SQLAlchemyError as e:
        logger.error(f"Sync batch of {len(rows)} failed for {user_email}: {e}")
        try:
            set_sync_state_error(db, user_email, str(e))
        except SQLAlchemyError as state_err:
            db.rollback()
            logger.error(f"Could not record sync error for {user_email}: {state_err}")
        raise EmailSyncError(str(e)) from e

    last = set_last_synced_at(db, user_email, processed=len(written))
    logger.info(
        f"Synced {len(written)} emails for {user_email} "
        f"({len(outcome.labels)} classified{', classifier error' if outcome.error else ''})"
    )
    return SyncResult(
        emails=written,
        count=len(written),
        outcome=outcome,
        cursor_advanced=True,
        last_synced_at=last,
    )
