"""Merge AI-extracted resume fields into an existing profile."""
from typing import Optional

from ..ai_client import Attachment
from .profile_store import dedupe_skills

SCALARS = ("name", "location", "about_me")
# Keys the resume parser returns -> profile keys
_EXTRACTED_KEYS = {"name": "name", "location": "location", "aboutMe": "about_me", "about_me": "about_me"}

_EXPERIENCE_KEYS = ("role", "company", "duration", "description")
_EDUCATION_KEYS = ("degree", "school", "year")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _entries(items, keys) -> list:
    out = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        entry = {k: "" if item.get(k) is None else str(item.get(k)) for k in keys}
        if any(entry.values()):
            out.append(entry)
    return out


def normalize_extracted(extracted: Optional[dict]) -> dict:
    """Map parser output onto profile keys, dropping anything malformed."""
    extracted = extracted if isinstance(extracted, dict) else {}
    out: dict = {}
    for src, dst in _EXTRACTED_KEYS.items():
        value = extracted.get(src)
        if isinstance(value, str) and value.strip():
            out[dst] = value.strip()
    skills = extracted.get("skills")
    if isinstance(skills, list):
        out["skills"] = dedupe_skills(s for s in skills if isinstance(s, (str, int, float)))
    out["experience"] = _entries(extracted.get("experience"), _EXPERIENCE_KEYS)
    out["education"] = _entries(extracted.get("education"), _EDUCATION_KEYS)
    return out


def reconcile_profile(
    existing: Optional[dict],
    extracted: Optional[dict],
    attachment: Attachment,
    override: bool = True,
) -> dict:
    """
    Return the merged profile dict.

    Scalars take the extracted value when it is non-empty and the existing one
    is empty (or ``override``). Lists are replaced only by a non-empty extracted
    list. The resume attachment is always stored.
    """
    merged = dict(existing or {})
    found = normalize_extracted(extracted)

    for f in SCALARS:
        value = found.get(f)
        if _blank(value):
            continue
        if override or _blank(merged.get(f)):
            merged[f] = value

    for f in ("skills", "experience", "education"):
        if found.get(f):
            merged[f] = found[f]
        else:
            merged.setdefault(f, [])

    merged["resume_data"] = attachment.data
    merged["resume_mime_type"] = attachment.mime_type
    merged["resume_name"] = attachment.file_name
    return merged
