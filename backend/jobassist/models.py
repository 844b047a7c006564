"""SQLAlchemy models."""
from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    Boolean,
    Index,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy import JSON

Base = declarative_base()


class User(Base):
    """Signed-in identity; the email is the key every other table hangs off."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    picture = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Profile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    location = Column(String, nullable=True)
    about_me = Column(Text, nullable=True)
    skills = Column(JSON, nullable=True)  # list of strings
    experience = Column(JSON, nullable=True)  # list of {role, company, duration, description}
    education = Column(JSON, nullable=True)  # list of {degree, school, year}
    contact_email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    linkedin = Column(String, nullable=True)
    github = Column(String, nullable=True)
    portfolio = Column(String, nullable=True)
    resume_data = Column(Text, nullable=True)  # base64 payload
    resume_mime_type = Column(String, nullable=True)
    resume_file_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Email(Base):
    """Classified copy of one mailbox message, unique per (user_email, external_id)."""
    __tablename__ = "user_emails"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String, nullable=False, index=True)
    external_id = Column(String, nullable=False)
    sender = Column(String, nullable=True)
    subject = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    date = Column(DateTime, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    category = Column(String, default="unclassified", index=True)
    priority = Column(String, default="MEDIUM")
    summary = Column(Text, nullable=True)
    suggested_action = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SyncState(Base):
    """Per-user sync cursor plus the outcome of the last sync attempt."""
    __tablename__ = "sync_state"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String, unique=True, index=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    status = Column(String, default="idle")  # idle, error
    error = Column(Text, nullable=True)
    processed = Column(Integer, default=0, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AIUsage(Base):
    """Append-only ledger of AI invocations."""
    __tablename__ = "ai_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String, nullable=False, index=True)
    operation_type = Column(String(50), nullable=False, index=True)
    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)
    total_tokens = Column(Integer, default=0)
    model_used = Column(String(100), nullable=True)
    success = Column(Boolean, default=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class GmailConnection(Base):
    """Mailbox OAuth tokens for one user."""
    __tablename__ = "gmail_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String, unique=True, index=True, nullable=False)
    is_connected = Column(Boolean, default=False)
    connected_gmail = Column(String, nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime, nullable=True)
    last_sync = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OAuthState(Base):
    """OAuth CSRF state for the Gmail connect flow."""
    __tablename__ = "oauth_state"

    state_token = Column(String(64), primary_key=True)
    user_email = Column(String, nullable=False, index=True)
    redirect_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False)


Index("ix_user_emails_user_external", Email.user_email, Email.external_id, unique=True)
Index("ix_user_emails_user_date", Email.user_email, Email.date)
Index("ix_ai_usage_user_created", AIUsage.user_email, AIUsage.created_at)
