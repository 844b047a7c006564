"""Tests for Gmail connection: OAuth state, connect/callback flow (mocked Google), status, disconnect."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from jobassist import gmail_service, gmail_settings_db
from jobassist.config import Settings
from jobassist.models import GmailConnection, OAuthState
from jobassist.oauth_state_db import oauth_state_cleanup_expired, oauth_state_consume, oauth_state_set

USER = "jane@example.com"


@pytest.fixture
def cfg():
    return Settings(
        google_client_id="client-id",
        google_client_secret="client-secret",
        gmail_oauth_redirect_uri="http://localhost:8000/api/gmail/callback",
        frontend_url="http://localhost:5173",
    )


def connect(db, **kwargs):
    return gmail_settings_db.save_connection(
        db,
        USER,
        connected_gmail=kwargs.get("connected_gmail", "jane@gmail.com"),
        access_token=kwargs.get("access_token", "token"),
        refresh_token=kwargs.get("refresh_token", "refresh"),
        token_expiry=kwargs.get("token_expiry", datetime.utcnow() + timedelta(hours=1)),
    )


# --- OAuth state ---


def test_oauth_state_is_single_use(db_session):
    oauth_state_set(db_session, "tok", USER, "http://app/after")
    entry = oauth_state_consume(db_session, "tok")
    assert entry["user_email"] == USER
    assert entry["redirect_url"] == "http://app/after"
    assert oauth_state_consume(db_session, "tok") is None


def test_oauth_state_expires(db_session):
    db_session.add(OAuthState(state_token="old", user_email=USER, created_at=datetime.utcnow() - timedelta(hours=1)))
    db_session.commit()
    assert oauth_state_consume(db_session, "old") is None
    assert db_session.query(OAuthState).count() == 0


def test_oauth_state_cleanup(db_session):
    db_session.add(OAuthState(state_token="old", user_email=USER, created_at=datetime.utcnow() - timedelta(hours=1)))
    oauth_state_set(db_session, "new", USER)
    assert oauth_state_cleanup_expired(db_session) == 1
    assert [s.state_token for s in db_session.query(OAuthState).all()] == ["new"]


# --- connection store ---


def test_save_connection_keeps_refresh_token_on_reconsent(db_session):
    connect(db_session, refresh_token="first")
    row = connect(db_session, access_token="second-access", refresh_token=None)
    assert row.access_token == "second-access"
    assert row.refresh_token == "first"
    assert db_session.query(GmailConnection).count() == 1


def test_session_for_disconnected_user_is_none(db_session):
    assert gmail_settings_db.session_for(db_session, USER) is None
    connect(db_session)
    session = gmail_settings_db.session_for(db_session, USER)
    assert session.email == "jane@gmail.com"
    assert session.can_refresh
    gmail_settings_db.disconnect(db_session, USER)
    assert gmail_settings_db.session_for(db_session, USER) is None


# --- OAuth flow ---


def test_start_oauth_stores_state_and_returns_google_url(db_session, cfg):
    url = gmail_service.start_gmail_oauth(db_session, USER, "http://app/after", cfg)

    parsed = urlparse(url)
    assert parsed.netloc == "accounts.google.com"
    query = parse_qs(parsed.query)
    assert query["access_type"] == ["offline"]
    assert query["redirect_uri"] == ["http://localhost:8000/api/gmail/callback"]
    state = query["state"][0]
    row = db_session.query(OAuthState).filter(OAuthState.state_token == state).one()
    assert row.user_email == USER


def test_start_oauth_requires_client_config(db_session):
    with pytest.raises(ValueError):
        gmail_service.start_gmail_oauth(db_session, USER, "http://app", Settings(google_client_id="", google_client_secret=""))


def test_finish_oauth_saves_tokens_for_user_who_started(db_session, cfg, monkeypatch):
    flow = MagicMock()
    flow.credentials.token = "access"
    flow.credentials.refresh_token = "refresh"
    flow.credentials.expiry = datetime(2030, 1, 1)
    service = MagicMock()
    service.users.return_value.getProfile.return_value.execute.return_value = {"emailAddress": "jane@gmail.com"}
    monkeypatch.setattr(gmail_service, "_build_flow", lambda c: flow)
    monkeypatch.setattr(gmail_service, "build", lambda *a, **kw: service)
    oauth_state_set(db_session, "state-1", USER, "http://app/after")

    redirect = gmail_service.finish_gmail_oauth(db_session, code="auth-code", state="state-1", cfg=cfg)

    assert redirect == "http://app/after"
    flow.fetch_token.assert_called_once_with(code="auth-code")
    row = gmail_settings_db.get_connection(db_session, USER)
    assert row.is_connected is True
    assert row.connected_gmail == "jane@gmail.com"
    assert row.access_token == "access"
    assert row.token_expiry == datetime(2030, 1, 1)


def test_finish_oauth_rejects_unknown_state(db_session, cfg):
    with pytest.raises(ValueError):
        gmail_service.finish_gmail_oauth(db_session, code="c", state="forged", cfg=cfg)


# --- API ---


def test_status_when_not_connected(client):
    r = client.get(f"/api/gmail/{USER}")
    assert r.status_code == 200
    assert r.json() == {
        "isConnected": False,
        "connectedGmail": None,
        "tokenExpiry": None,
        "lastSync": None,
        "mode": "sample",
    }


def test_status_when_connected(client, db_session):
    connect(db_session)
    body = client.get(f"/api/gmail/{USER}").json()
    assert body["isConnected"] is True
    assert body["connectedGmail"] == "jane@gmail.com"
    assert body["tokenExpiry"] is not None


def test_disconnect(client, db_session):
    connect(db_session)
    db_session.commit()
    r = client.delete(f"/api/gmail/{USER}")
    assert r.status_code == 200
    assert r.json()["success"] is True

    db_session.expire_all()
    row = gmail_settings_db.get_connection(db_session, USER)
    assert row.is_connected is False
    assert row.access_token is None


def test_disconnect_unknown_user(client):
    r = client.delete(f"/api/gmail/{USER}")
    assert r.status_code == 404
    assert r.json() == {"error": "Gmail connection not found"}


def test_auth_without_google_config_is_400(client, monkeypatch):
    monkeypatch.setattr(gmail_service.default_settings, "google_client_id", "")
    r = client.get("/api/gmail/auth", params={"email": USER}, follow_redirects=False)
    assert r.status_code == 400
    assert "GOOGLE_CLIENT_ID" in r.json()["error"]


def test_callback_requires_code_and_state(client):
    r = client.get("/api/gmail/callback")
    assert r.status_code == 400
    assert r.json() == {"error": "Missing code or state"}


def test_callback_with_invalid_state(client):
    r = client.get("/api/gmail/callback", params={"code": "c", "state": "forged"}, follow_redirects=False)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid or expired OAuth state"}
