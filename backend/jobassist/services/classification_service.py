"""Batch email triage: one LLM call labels every message with category, priority, summary, action."""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..ai_client import AIClient, AIResponse, parse_json_text
from ..config import settings
from ..mailbox import RawMessage

logger = logging.getLogger(__name__)

CATEGORIES = (
    "interview_request",
    "job_offer",
    "application_update",
    "rejection",
    "other",
)
PRIORITIES = ("HIGH", "MEDIUM", "LOW")
DEFAULT_CATEGORY = "unclassified"
DEFAULT_PRIORITY = "MEDIUM"

_CATEGORY_SYNONYMS = {
    "interview": "interview_request",
    "offer": "job_offer",
    "application_status": "application_update",
    "status_update": "application_update",
    "rejected": "rejection",
}


@dataclass(frozen=True)
class Classification:
    category: str
    priority: str
    summary: Optional[str] = None
    suggested_action: Optional[str] = None


@dataclass
class ClassificationOutcome:
    """Labels keyed by external id. Missing ids were not classified."""
    labels: Dict[str, Classification] = field(default_factory=dict)
    usage: Optional[AIResponse] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_category(raw) -> str:
    raw = (str(raw or "")).strip().lower()
    raw = re.sub(r"[\s\-]+", "_", raw)
    if raw in CATEGORIES:
        return raw
    if raw in _CATEGORY_SYNONYMS:
        return _CATEGORY_SYNONYMS[raw]
    for cat in CATEGORIES:
        if cat in raw:
            return cat
    return "other"


def normalize_priority(raw) -> str:
    raw = (str(raw or "")).strip().upper()
    return raw if raw in PRIORITIES else DEFAULT_PRIORITY


def _text_or_none(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _build_prompt(messages: Sequence[RawMessage], body_chars: int) -> str:
    payload = [
        {
            "id": m.external_id,
            "sender": m.sender,
            "subject": m.subject,
            "body": (m.body or "")[:body_chars],
        }
        for m in messages
    ]
    return f"""You triage a job seeker's inbox.

For each email below, return:
- id: the email's id, copied exactly
- category: one of interview_request, job_offer, application_update, rejection, other
- priority: HIGH, MEDIUM or LOW (interviews and offers that need a reply are HIGH; newsletters are LOW)
- summary: one sentence
- suggestedAction: a short next step for the candidate

Emails (JSON):
{json.dumps(payload, ensure_ascii=False)}

Return a JSON object with a top-level "results" array, one item per email."""


def _extract_items(data) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("results", "emails", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    raise ValueError("classification response has no results array")


class Classifier:
    """Never raises: any failure is logged and reported on the outcome with no labels."""

    def __init__(self, ai: AIClient, body_chars: Optional[int] = None):
        self.ai = ai
        self.body_chars = body_chars or settings.classification_body_chars

    def analyze(self, messages: Sequence[RawMessage]) -> ClassificationOutcome:
        if not messages:
            return ClassificationOutcome()
        wanted = {m.external_id for m in messages}
        usage = None
        try:
            usage = self.ai.generate(
                _build_prompt(messages, self.body_chars),
                json_output=True,
                max_tokens=min(250 * len(messages) + 200, 4096),
            )
            items = _extract_items(parse_json_text(usage.text))
        except Exception as e:
            logger.warning(f"Email classification failed for {len(messages)} messages: {e}")
            return ClassificationOutcome(usage=usage, error=str(e) or type(e).__name__)

        labels: Dict[str, Classification] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            ext_id = str(item.get("id") or item.get("externalId") or "")
            if ext_id not in wanted:
                continue
            labels[ext_id] = Classification(
                category=normalize_category(item.get("category")),
                priority=normalize_priority(item.get("priority")),
                summary=_text_or_none(item.get("summary")),
                suggested_action=_text_or_none(item.get("suggestedAction") or item.get("suggested_action")),
            )
        missing = len(wanted) - len(labels)
        if missing:
            logger.info(f"Classifier returned no labels for {missing} of {len(wanted)} messages")
        return ClassificationOutcome(labels=labels, usage=usage)


def merge_labels(emails: List[dict], outcome: ClassificationOutcome) -> List[dict]:
    """Return copies of the email dicts with labels merged in; inputs pass through unchanged on a miss."""
    merged = []
    for email in emails:
        label = outcome.labels.get(str(email.get("id", "")))
        if label is None:
            merged.append(dict(email))
            continue
        merged.append({
            **email,
            "category": label.category,
            "priority": label.priority,
            "summary": label.summary,
            "suggestedAction": label.suggested_action,
        })
    return merged
