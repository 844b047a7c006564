"""Users and their career profiles (one profile per user email)."""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models import Profile, User

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "name",
    "location",
    "about_me",
    "contact_email",
    "phone",
    "linkedin",
    "github",
    "portfolio",
    "resume_data",
    "resume_mime_type",
    "resume_name",
)
LIST_FIELDS = ("skills", "experience", "education")

# ProfileData attribute -> Profile column where they differ
_COLUMN = {"resume_name": "resume_file_name"}


def dedupe_skills(skills: Iterable) -> List[str]:
    """Case-insensitive de-duplication; first spelling and order win."""
    seen = set()
    out = []
    for s in skills or []:
        s = str(s).strip()
        if not s or s.lower() in seen:
            continue
        seen.add(s.lower())
        out.append(s)
    return out


def upsert_user(db: Session, email: str, name: Optional[str] = None, picture: Optional[str] = None) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, name=name, picture=picture)
        db.add(user)
    else:
        if name is not None:
            user.name = name
        if picture is not None:
            user.picture = picture
        user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user


def get_profile(db: Session, user_email: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.user_email == user_email).first()


def profile_to_dict(row: Profile) -> dict:
    """Snake-case dict matching schemas.ProfileData."""
    data = {f: getattr(row, _COLUMN.get(f, f)) for f in SCALAR_FIELDS}
    for f in LIST_FIELDS:
        data[f] = list(getattr(row, f) or [])
    return data


def upsert_profile(db: Session, user_email: str, data: dict) -> Profile:
    """Full replace: fields absent from data are cleared."""
    if db.query(User).filter(User.email == user_email).first() is None:
        db.add(User(email=user_email))
    row = get_profile(db, user_email)
    if row is None:
        row = Profile(user_email=user_email)
        db.add(row)
    for f in SCALAR_FIELDS:
        setattr(row, _COLUMN.get(f, f), data.get(f))
    row.skills = dedupe_skills(data.get("skills"))
    row.experience = [dict(e) for e in data.get("experience") or []]
    row.education = [dict(e) for e in data.get("education") or []]
    row.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(row)
    return row


def delete_profile(db: Session, user_email: str) -> bool:
    row = get_profile(db, user_email)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    logger.info(f"Deleted profile for {user_email}")
    return True
