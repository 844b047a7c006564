"""Gmail API integration: OAuth connect flow, message fetch fan-out, replies, rate limiting."""
import base64
import re
import secrets
import time
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Optional, List

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from .config import Settings, settings as default_settings
from .errors import MailboxAuthError, MailboxFetchError
from .mailbox import MailboxGateway, MailboxSession, RawMessage
from .oauth_state_db import oauth_state_set, oauth_state_consume
from . import gmail_settings_db

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def _client_config(cfg: Settings) -> dict:
    return {
        "web": {
            "client_id": cfg.google_client_id,
            "client_secret": cfg.google_client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
        }
    }


def _build_flow(cfg: Settings) -> Flow:
    if not cfg.gmail_configured:
        raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set to connect Gmail")
    if not cfg.gmail_oauth_redirect_uri:
        raise ValueError("GMAIL_OAUTH_REDIRECT_URI must be set to connect Gmail")
    return Flow.from_client_config(
        _client_config(cfg),
        scopes=SCOPES,
        redirect_uri=cfg.gmail_oauth_redirect_uri,
        autogenerate_code_verifier=False,
    )


def start_gmail_oauth(db: Session, user_email: str, redirect_url_after: str, cfg: Settings = default_settings) -> str:
    """
    Start OAuth with CSRF state bound to user_email.
    Returns the Google authorization URL to redirect the user to.
    Call finish_gmail_oauth(code, state) in the callback.
    """
    flow = _build_flow(cfg)
    state = secrets.token_urlsafe(32)
    oauth_state_set(db, state, user_email, redirect_url_after)
    auth_url, _ = flow.authorization_url(prompt="consent", state=state, access_type="offline")
    return auth_url


def finish_gmail_oauth(db: Session, code: str, state: str, cfg: Settings = default_settings) -> str:
    """
    Validate state, exchange code for tokens and store them for the user who started the flow.
    Returns redirect_url to send the user to. Raises ValueError if state is invalid or expired.
    """
    entry = oauth_state_consume(db, state)
    if not entry:
        raise ValueError("Invalid or expired OAuth state")
    flow = _build_flow(cfg)
    flow.fetch_token(code=code)
    creds = flow.credentials
    service = build("gmail", "v1", credentials=creds, cache_discovery=False)
    profile = _with_backoff(lambda: service.users().getProfile(userId="me").execute())
    gmail_settings_db.save_connection(
        db,
        entry["user_email"],
        connected_gmail=profile.get("emailAddress") or entry["user_email"],
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        token_expiry=creds.expiry,
    )
    logger.info(f"Gmail connected for {entry['user_email']}")
    return entry.get("redirect_url") or cfg.frontend_url


def _get_body(payload: dict) -> str:
    if "body" in payload and payload["body"].get("data"):
        return base64.urlsafe_b64decode(payload["body"]["data"]).decode("utf-8", errors="replace")
    if "parts" not in payload:
        return ""
    for part in payload["parts"]:
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return base64.urlsafe_b64decode(part["body"]["data"]).decode("utf-8", errors="replace")
        if part.get("mimeType") == "text/html" and part.get("body", {}).get("data"):
            raw = base64.urlsafe_b64decode(part["body"]["data"]).decode("utf-8", errors="replace")
            return re.sub(r"<[^>]+>", " ", raw)[:2000]
        if part.get("parts"):
            nested = _get_body(part)
            if nested:
                return nested
    return ""


def _get_headers(email: dict) -> dict:
    return {h["name"].lower(): h["value"] for h in email.get("payload", {}).get("headers", [])}


def _provider_date(email: dict) -> Optional[str]:
    """Date header as sent; falls back to Gmail's internalDate (epoch millis)."""
    date_str = _get_headers(email).get("date")
    if date_str:
        return date_str
    internal = email.get("internalDate")
    if internal and str(internal).isdigit():
        return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc).isoformat()
    return None


def email_to_raw_message(email: dict) -> RawMessage:
    headers = _get_headers(email)
    return RawMessage(
        external_id=email.get("id", ""),
        sender=headers.get("from", ""),
        subject=headers.get("subject", ""),
        body=_get_body(email.get("payload", {})) or email.get("snippet", ""),
        provider_date=_provider_date(email),
    )


# Rate limiting: exponential backoff
def _with_backoff(fn, max_retries: int = 5):
    for attempt in range(max_retries):
        try:
            return fn()
        except HttpError as e:
            if e.resp.status in (429, 500, 503) and attempt < max_retries - 1:
                time.sleep(2 ** attempt)
                continue
            raise


def _translate_http_error(e: HttpError) -> Exception:
    if e.resp.status in (401, 403):
        return MailboxAuthError("Gmail rejected the session. Reconnect Gmail and try again.")
    return MailboxFetchError(f"Gmail API error {e.resp.status}: {e}")


# Socket timeouts, DNS failures and dropped connections never reach Gmail as an HttpError
NETWORK_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)


def _translate_network_error(e: Exception) -> MailboxFetchError:
    return MailboxFetchError(f"Gmail request failed: {str(e) or type(e).__name__}")


def list_message_ids(service, query: str, max_results: int) -> List[str]:
    result = _with_backoff(
        lambda: service.users()
        .messages()
        .list(userId="me", q=query, maxResults=max_results)
        .execute()
    )
    return [m["id"] for m in result.get("messages", [])]


def get_message(service, msg_id: str) -> dict:
    """Get full message by ID."""
    return _with_backoff(
        lambda: service.users()
        .messages()
        .get(userId="me", id=msg_id, format="full")
        .execute()
    )


class LiveGateway(MailboxGateway):
    """Gmail API mailbox. Refreshes an expired access token when the session has a refresh token."""

    name = "live"

    def __init__(self, cfg: Settings = default_settings):
        self.settings = cfg

    def _credentials(self, session: MailboxSession) -> Credentials:
        self.check_session(session)
        creds = Credentials(
            token=session.access_token,
            refresh_token=session.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.settings.google_client_id,
            client_secret=self.settings.google_client_secret,
            scopes=SCOPES,
            expiry=session.expiry,
        )
        if session.is_expired():
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise MailboxAuthError("Gmail token refresh failed. Reconnect Gmail and try again.") from e
            except NETWORK_ERRORS as e:
                raise _translate_network_error(e) from e
            session.access_token = creds.token
            session.expiry = creds.expiry
            session.refreshed = True
        return creds

    def _service(self, creds: Credentials):
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def fetch_recent(self, session: Optional[MailboxSession]) -> List[RawMessage]:
        creds = self._credentials(session)
        try:
            ids = list_message_ids(self._service(creds), self.settings.gmail_query, self.settings.gmail_max_results)
        except HttpError as e:
            raise _translate_http_error(e) from e
        except NETWORK_ERRORS as e:
            raise _translate_network_error(e) from e
        if not ids:
            return []

        # One service per worker thread: the underlying http client is not thread-safe.
        def fetch_one(msg_id: str) -> dict:
            return get_message(self._service(creds), msg_id)

        by_id: dict[str, dict] = {}
        workers = max(1, min(self.settings.gmail_fetch_workers, len(ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(fetch_one, mid): mid for mid in ids}
            for future in as_completed(futures):
                mid = futures[future]
                try:
                    by_id[mid] = future.result()
                except HttpError as e:
                    raise _translate_http_error(e) from e
                except NETWORK_ERRORS as e:
                    raise _translate_network_error(e) from e

        logger.info(f"Fetched {len(by_id)} Gmail messages for {session.email}")
        return [email_to_raw_message(by_id[mid]) for mid in ids if mid in by_id]

    def send_reply(self, session, to, subject, body) -> str:
        creds = self._credentials(session)
        message = MIMEText(body)
        message["to"] = to
        message["from"] = session.email
        message["subject"] = subject if subject.lower().startswith("re:") else f"Re: {subject}"
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
        try:
            sent = _with_backoff(
                lambda: self._service(creds).users().messages().send(userId="me", body={"raw": raw}).execute()
            )
        except HttpError as e:
            raise _translate_http_error(e) from e
        except NETWORK_ERRORS as e:
            raise _translate_network_error(e) from e
        return sent.get("id", "")
