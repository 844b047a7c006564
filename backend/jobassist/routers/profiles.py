"""Users and profiles API: post-login bootstrap, profile get/save/delete, resume upload."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from ..ai_client import AIClient, Attachment, get_ai_client
from ..database import get_db, get_sync_db
from ..errors import AIProviderError
from ..models import Profile
from ..schemas import ProfileData, ProfileSaveRequest, ResumeUploadRequest, UserResponse, UserUpsertRequest
from ..services import ai_usage
from ..services.assistant import parse_resume
from ..services.profile_reconciler import reconcile_profile
from ..services.profile_store import delete_profile, get_profile, profile_to_dict, upsert_profile, upsert_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["profiles"])


@router.post("/users", response_model=UserResponse)
def save_user(body: UserUpsertRequest, db: Session = Depends(get_sync_db)):
    return upsert_user(db, body.email, name=body.name, picture=body.picture)


@router.get("/profiles/{email}", response_model=ProfileData)
async def read_profile(email: str, db: AsyncSession = Depends(get_db)):
    row = await db.scalar(select(Profile).where(Profile.user_email == email))
    if row is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileData(**profile_to_dict(row))


@router.post("/profiles", response_model=ProfileData)
def save_profile(body: ProfileSaveRequest, db: Session = Depends(get_sync_db)):
    row = upsert_profile(db, body.email, body.profile.model_dump())
    return ProfileData(**profile_to_dict(row))


@router.delete("/profiles/{email}")
def remove_profile(email: str, db: Session = Depends(get_sync_db)):
    if not delete_profile(db, email):
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"success": True, "message": "Profile deleted successfully"}


@router.post("/profiles/{email}/resume", response_model=ProfileData)
def upload_resume(
    email: str,
    body: ResumeUploadRequest,
    db: Session = Depends(get_sync_db),
    ai: AIClient = Depends(get_ai_client),
):
    """Parse the resume, merge what was found into the stored profile, and keep the file."""
    try:
        extracted, response = parse_resume(ai, body.resume_data, body.mime_type, body.file_name)
    except AIProviderError as e:
        ai_usage.append(db, email, ai_usage.OP_RESUME_PARSE, model=ai.model, success=False, error_message=str(e))
        raise
    ai_usage.append(db, email, ai_usage.OP_RESUME_PARSE, response)

    row = get_profile(db, email)
    existing = profile_to_dict(row) if row else None
    merged = reconcile_profile(
        existing,
        extracted,
        Attachment(data=body.resume_data, mime_type=body.mime_type, file_name=body.file_name),
        override=body.override,
    )
    row = upsert_profile(db, email, merged)
    logger.info(f"Resume parsed and merged into profile for {email}")
    return ProfileData(**profile_to_dict(row))
