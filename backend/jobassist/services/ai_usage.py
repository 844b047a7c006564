"""Append-only AI usage ledger: record every AI call, aggregate per user, prune by age."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..ai_client import AIResponse
from ..models import AIUsage

logger = logging.getLogger(__name__)

OP_RESUME_PARSE = "resume-parse"
OP_JOB_SEARCH = "job-search"
OP_EMAIL_GENERATION = "email-generation"
OP_EMAIL_ANALYSIS = "email-analysis"
OP_SMART_REPLY = "smart-reply"
OP_RESUME_TAILORING = "resume-tailoring"

OPERATION_TYPES = (
    OP_RESUME_PARSE,
    OP_JOB_SEARCH,
    OP_EMAIL_GENERATION,
    OP_EMAIL_ANALYSIS,
    OP_SMART_REPLY,
    OP_RESUME_TAILORING,
)


def append(
    db: Session,
    user_email: str,
    operation_type: str,
    response: Optional[AIResponse] = None,
    model: Optional[str] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> AIUsage:
    if operation_type not in OPERATION_TYPES:
        raise ValueError(f"Unknown AI operation type: {operation_type}")
    row = AIUsage(
        user_email=user_email,
        operation_type=operation_type,
        input_tokens=response.input_tokens if response else 0,
        output_tokens=response.output_tokens if response else 0,
        total_tokens=response.total_tokens if response else 0,
        model_used=(response.model if response else None) or model,
        success=success,
        error_message=error_message,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    return row


def query(db: Session, user_email: str, window_days: int = 30) -> dict:
    """Aggregate one user's usage over the last window_days."""
    since = datetime.utcnow() - timedelta(days=window_days)
    base = db.query(AIUsage).filter(AIUsage.user_email == user_email, AIUsage.created_at >= since)

    totals = base.with_entities(
        func.count(AIUsage.id),
        func.coalesce(func.sum(AIUsage.total_tokens), 0),
        func.coalesce(func.sum(AIUsage.input_tokens), 0),
        func.coalesce(func.sum(AIUsage.output_tokens), 0),
    ).one()

    by_type = (
        base.with_entities(
            AIUsage.operation_type,
            func.count(AIUsage.id),
            func.coalesce(func.sum(AIUsage.total_tokens), 0),
        )
        .group_by(AIUsage.operation_type)
        .order_by(func.count(AIUsage.id).desc())
        .all()
    )
    recent = base.order_by(AIUsage.created_at.desc(), AIUsage.id.desc()).limit(10).all()

    return {
        "total_operations": int(totals[0] or 0),
        "total_tokens": int(totals[1] or 0),
        "total_input_tokens": int(totals[2] or 0),
        "total_output_tokens": int(totals[3] or 0),
        "operations_by_type": [
            {"operation_type": op, "count": int(count), "total_tokens": int(tokens or 0)}
            for op, count, tokens in by_type
        ],
        "recent_usage": [
            {
                "operation_type": r.operation_type,
                "input_tokens": r.input_tokens or 0,
                "output_tokens": r.output_tokens or 0,
                "total_tokens": r.total_tokens or 0,
                "model_used": r.model_used,
                "success": bool(r.success),
                "error_message": r.error_message,
                "created_at": r.created_at,
            }
            for r in recent
        ],
    }


def query_all_users(db: Session, window_days: int = 30) -> list[dict]:
    since = datetime.utcnow() - timedelta(days=window_days)
    rows = (
        db.query(
            AIUsage.user_email,
            func.count(AIUsage.id),
            func.coalesce(func.sum(AIUsage.total_tokens), 0),
        )
        .filter(AIUsage.created_at >= since)
        .group_by(AIUsage.user_email)
        .order_by(func.coalesce(func.sum(AIUsage.total_tokens), 0).desc())
        .all()
    )
    return [
        {"user_email": email, "total_operations": int(count), "total_tokens": int(tokens or 0)}
        for email, count, tokens in rows
    ]


def prune(db: Session, retention_days: int) -> int:
    """Delete records older than retention_days. Returns the number deleted."""
    if retention_days < 1:
        raise ValueError("retention_days must be at least 1")
    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    deleted = (
        db.query(AIUsage)
        .filter(AIUsage.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Pruned {deleted} AI usage records older than {retention_days} days")
    return deleted
