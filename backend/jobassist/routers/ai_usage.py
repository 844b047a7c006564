"""AI usage API: per-user stats, all-users totals, retention sweep."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_sync_db
from ..schemas import PruneResponse, UsageStatsResponse, UserUsageTotals
from ..services import ai_usage

router = APIRouter(prefix="/api/ai-usage", tags=["ai-usage"])


@router.get("", response_model=List[UserUsageTotals])
def all_users_usage(days: int = Query(30, ge=1, le=3650), db: Session = Depends(get_sync_db)):
    return ai_usage.query_all_users(db, window_days=days)


@router.post("/prune", response_model=PruneResponse)
def prune_usage(days: Optional[int] = Query(None, ge=1), db: Session = Depends(get_sync_db)):
    retention = days or settings.ai_usage_retention_days
    deleted = ai_usage.prune(db, retention)
    return PruneResponse(deleted=deleted, retention_days=retention)


@router.get("/{email}", response_model=UsageStatsResponse)
def user_usage(email: str, days: int = Query(30, ge=1, le=3650), db: Session = Depends(get_sync_db)):
    return ai_usage.query(db, email, window_days=days)
