"""AI proxy API. Every call with a userEmail is written to the usage ledger, success or not."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..ai_client import AIClient, AIResponse, get_ai_client
from ..database import get_sync_db
from ..dependencies import get_classifier
from ..errors import AIProviderError
from ..schemas import (
    AnalyzeEmailsRequest,
    GenerateEmailRequest,
    ParseResumeRequest,
    ProfileRequest,
    SearchJobsResponse,
    SmartReplyRequest,
    TailorResumeRequest,
    TextResponse,
)
from ..services import ai_usage, assistant
from ..services.classification_service import Classifier

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _record(
    db: Session,
    user_email: Optional[str],
    operation: str,
    ai: AIClient,
    response: Optional[AIResponse] = None,
    error: Optional[str] = None,
) -> None:
    if not user_email:
        return
    ai_usage.append(
        db, user_email, operation, response, model=ai.model, success=error is None, error_message=error
    )


def _run(db: Session, user_email: Optional[str], operation: str, ai: AIClient, fn, *args):
    try:
        result, response = fn(ai, *args)
    except AIProviderError as e:
        _record(db, user_email, operation, ai, error=str(e))
        raise
    _record(db, user_email, operation, ai, response)
    return result


@router.post("/parse-resume")
def parse_resume(body: ParseResumeRequest, db: Session = Depends(get_sync_db), ai: AIClient = Depends(get_ai_client)):
    """Raw extraction (name, location, aboutMe, skills, experience, education); nothing is saved."""
    return _run(db, body.user_email, ai_usage.OP_RESUME_PARSE, ai, assistant.parse_resume, body.base64_data, body.mime_type)


@router.post("/search-jobs", response_model=SearchJobsResponse)
def search_jobs(body: ProfileRequest, db: Session = Depends(get_sync_db), ai: AIClient = Depends(get_ai_client)):
    result = _run(db, body.user_email, ai_usage.OP_JOB_SEARCH, ai, assistant.search_jobs, body.profile.model_dump())
    return SearchJobsResponse(**result)


@router.post("/generate-email", response_model=TextResponse)
def generate_email(body: GenerateEmailRequest, db: Session = Depends(get_sync_db), ai: AIClient = Depends(get_ai_client)):
    text = _run(
        db, body.user_email, ai_usage.OP_EMAIL_GENERATION, ai,
        assistant.generate_email, body.profile.model_dump(), body.job_description, body.type,
    )
    return TextResponse(text=text)


@router.post("/tailor-resume", response_model=TextResponse)
def tailor_resume(body: TailorResumeRequest, db: Session = Depends(get_sync_db), ai: AIClient = Depends(get_ai_client)):
    text = _run(
        db, body.user_email, ai_usage.OP_RESUME_TAILORING, ai,
        assistant.tailor_resume, body.profile.model_dump(), body.job_description,
    )
    return TextResponse(text=text)


@router.post("/smart-reply", response_model=TextResponse)
def smart_reply(body: SmartReplyRequest, db: Session = Depends(get_sync_db), ai: AIClient = Depends(get_ai_client)):
    text = _run(db, body.user_email, ai_usage.OP_SMART_REPLY, ai, assistant.smart_reply, body.email, body.profile.model_dump())
    return TextResponse(text=text)


@router.post("/analyze-emails")
def analyze_emails(
    body: AnalyzeEmailsRequest,
    db: Session = Depends(get_sync_db),
    classifier: Classifier = Depends(get_classifier),
):
    """Label emails the client holds. Never fails on AI errors: inputs come back unlabelled."""
    emails, outcome = assistant.analyze_emails(classifier, body.emails)
    if outcome.usage is not None or outcome.error is not None:
        _record(db, body.user_email, ai_usage.OP_EMAIL_ANALYSIS, classifier.ai, outcome.usage, outcome.error)
    return emails
