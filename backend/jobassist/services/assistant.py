"""Single-shot AI operations. Each returns (result, AIResponse) and raises AIProviderError on failure."""
import json
from typing import Optional, Tuple

from ..ai_client import AIClient, AIResponse, Attachment, parse_json_text
from ..errors import AIProviderError
from ..mailbox import RawMessage
from .classification_service import Classifier, ClassificationOutcome, merge_labels

RESUME_EXTRACTION_PROMPT = """Extract the candidate's details from the attached resume.

Return a JSON object with these keys (omit what the resume does not contain):
- name: string
- location: string
- aboutMe: a 2-3 sentence professional summary
- skills: array of strings
- experience: array of {role, company, duration, description}
- education: array of {degree, school, year}"""


def _skills(profile: dict) -> str:
    return ", ".join(profile.get("skills") or [])


def parse_resume(ai: AIClient, base64_data: str, mime_type: str, file_name: Optional[str] = None) -> Tuple[dict, AIResponse]:
    response = ai.generate(
        RESUME_EXTRACTION_PROMPT,
        json_output=True,
        attachment=Attachment(data=base64_data, mime_type=mime_type, file_name=file_name),
    )
    if not response.text:
        return {}, response
    try:
        data = parse_json_text(response.text)
    except ValueError as e:
        raise AIProviderError(f"Resume parser returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIProviderError("Resume parser did not return a JSON object")
    return data, response


def search_jobs(ai: AIClient, profile: dict) -> Tuple[dict, AIResponse]:
    context = f"Candidate Name: {profile.get('name') or 'N/A'}\n"
    if profile.get("skills"):
        context += f"Skills: {_skills(profile)}\n"
    experience = profile.get("experience") or []
    if experience:
        context += "Recent Experience:\n"
        for exp in experience[:3]:
            context += (
                f"- {exp.get('role', '')} at {exp.get('company', '')} "
                f"({exp.get('duration', '')}): {exp.get('description', '')}\n"
            )
    prompt = (
        "Find 5-8 job listings that fit this candidate. For each give the title, company, "
        "location, why it fits, and where to apply.\n\n"
        f"{profile.get('about_me') or ''}\n{context}\nLocation: {profile.get('location') or 'Remote'}"
    )
    response = ai.generate(prompt, temperature=0.7)
    return {"text": response.text or "No results found.", "grounding_metadata": None}, response


def generate_email(ai: AIClient, profile: dict, job_description: str, kind: str) -> Tuple[str, AIResponse]:
    label = "Cover Letter" if kind == "cover_letter" else "Cold Email"
    context = f"Name: {profile.get('name') or 'Candidate'}\nSummary: {profile.get('about_me') or ''}\n"
    if profile.get("skills"):
        context += f"Skills: {_skills(profile)}\n"
    experience = profile.get("experience") or []
    if experience:
        context += f"Current Role: {experience[0].get('role', '')} at {experience[0].get('company', '')}\n"
    prompt = f"Write a {label} for:\n{job_description}\n\nMy Profile:\n{context}"
    response = ai.generate(prompt, temperature=0.7)
    return response.text or "Could not generate email.", response


def tailor_resume(ai: AIClient, profile: dict, job_description: str) -> Tuple[str, AIResponse]:
    context = f"Summary: {profile.get('about_me') or ''}\n"
    if profile.get("skills"):
        context += f"Skills: {_skills(profile)}\n"
    if profile.get("experience"):
        context += f"Experience: {json.dumps(profile['experience'], ensure_ascii=False)}\n"
    prompt = f"""You are an expert resume writer and applicant tracking system specialist.

1. Analyze the target job description.
2. Analyze the candidate profile.
3. Build a skills gap table comparing the job's top 5 requirements with the candidate's match.
4. Rewrite the candidate's resume for this job.

Target Job Description:
"{job_description}"

Candidate Context:
{context}

Output Format (Markdown):

# Match Analysis
(Table with columns: 'Key Requirement from JD', 'Candidate Match Level', 'Notes/Suggestions')

# Tailored Resume
(The full rewritten resume. Optimize the summary, put matching skills first, use the job's
keywords naturally, and stay truthful to the candidate's actual experience.)"""
    attachment = None
    if profile.get("resume_data") and profile.get("resume_mime_type"):
        attachment = Attachment(
            data=profile["resume_data"],
            mime_type=profile["resume_mime_type"],
            file_name=profile.get("resume_name"),
        )
        prompt += "\n\nUse the detailed history from my attached resume to build the new resume."
    response = ai.generate(prompt, attachment=attachment, temperature=0.5)
    return response.text or "Could not generate resume.", response


def smart_reply(ai: AIClient, email: dict, profile: dict) -> Tuple[str, AIResponse]:
    prompt = (
        "Write a concise, professional reply to this email. Return only the reply body.\n\n"
        f"From: {email.get('sender', '')}\nSubject: {email.get('subject', '')}\n{email.get('body', '')}\n\n"
        f"My name: {profile.get('name') or ''}"
    )
    response = ai.generate(prompt)
    return response.text or "Draft could not be generated.", response


def analyze_emails(classifier: Classifier, emails: list[dict]) -> Tuple[list[dict], ClassificationOutcome]:
    """Label client-held emails without storing them; inputs pass through on failure."""
    messages = [
        RawMessage(
            external_id=str(e.get("id", "")),
            sender=str(e.get("sender") or ""),
            subject=str(e.get("subject") or ""),
            body=str(e.get("body") or ""),
            provider_date=e.get("date"),
        )
        for e in emails
        if e.get("id") not in (None, "")
    ]
    outcome = classifier.analyze(messages)
    return merge_labels(emails, outcome), outcome
