"""Tests for the AI proxy endpoints and the usage ledger entries they write."""
import json

from jobassist.models import AIUsage

USER = "jane@example.com"
PROFILE = {
    "name": "Jane Doe",
    "aboutMe": "Backend engineer",
    "skills": ["Python", "Postgres"],
    "experience": [{"role": "Engineer", "company": "Acme", "duration": "4y", "description": "APIs"}],
    "location": "Berlin",
}


def ledger(db_session):
    db_session.expire_all()
    return db_session.query(AIUsage).order_by(AIUsage.id).all()


def test_parse_resume_returns_extraction_without_saving(client, fake_ai, db_session):
    fake_ai.respond(json.dumps({"name": "Jane", "skills": ["Go"]}))
    r = client.post(
        "/api/ai/parse-resume",
        json={"base64Data": "data:application/pdf;base64,JVBER", "mimeType": "application/pdf", "userEmail": USER},
    )
    assert r.status_code == 200
    assert r.json() == {"name": "Jane", "skills": ["Go"]}
    assert fake_ai.calls[0]["attachment"].data == "data:application/pdf;base64,JVBER"

    (row,) = ledger(db_session)
    assert row.operation_type == "resume-parse"
    assert row.user_email == USER


def test_parse_resume_empty_text_is_empty_object(client, fake_ai):
    fake_ai.respond("")
    r = client.post("/api/ai/parse-resume", json={"base64Data": "abc", "mimeType": "image/png"})
    assert r.status_code == 200
    assert r.json() == {}


def test_parse_resume_invalid_json_is_500(client, fake_ai, db_session):
    fake_ai.respond("I could not read this file")
    r = client.post(
        "/api/ai/parse-resume", json={"base64Data": "abc", "mimeType": "application/pdf", "userEmail": USER}
    )
    assert r.status_code == 500
    assert r.json()["error"] == "AI operation failed"
    (row,) = ledger(db_session)
    assert row.success is False


def test_search_jobs(client, fake_ai, db_session):
    fake_ai.respond("1. Senior Engineer at Acme")
    r = client.post("/api/ai/search-jobs", json={"profile": PROFILE, "userEmail": USER})
    assert r.status_code == 200
    assert r.json() == {"text": "1. Senior Engineer at Acme", "groundingMetadata": None}
    prompt = fake_ai.calls[0]["prompt"]
    assert "Python, Postgres" in prompt
    assert "Engineer at Acme" in prompt
    assert "Berlin" in prompt
    assert ledger(db_session)[0].operation_type == "job-search"


def test_search_jobs_without_user_email_writes_no_ledger(client, fake_ai, db_session):
    fake_ai.respond("")
    r = client.post("/api/ai/search-jobs", json={"profile": PROFILE})
    assert r.status_code == 200
    assert r.json()["text"] == "No results found."
    assert ledger(db_session) == []


def test_generate_email_cover_letter_and_cold_email(client, fake_ai):
    fake_ai.respond("Dear hiring manager").respond("Hi there")
    r = client.post(
        "/api/ai/generate-email",
        json={"profile": PROFILE, "jobDescription": "Python role", "type": "cover_letter"},
    )
    assert r.json() == {"text": "Dear hiring manager"}
    assert "Cover Letter" in fake_ai.calls[0]["prompt"]

    r = client.post(
        "/api/ai/generate-email",
        json={"profile": PROFILE, "jobDescription": "Python role", "type": "cold_email"},
    )
    assert r.json() == {"text": "Hi there"}
    assert "Cold Email" in fake_ai.calls[1]["prompt"]


def test_generate_email_rejects_unknown_type(client, fake_ai):
    r = client.post(
        "/api/ai/generate-email",
        json={"profile": PROFILE, "jobDescription": "Python role", "type": "haiku"},
    )
    assert r.status_code == 400
    assert fake_ai.calls == []


def test_tailor_resume_attaches_stored_resume(client, fake_ai, db_session):
    fake_ai.respond("# Match Analysis")
    profile = dict(PROFILE, resumeData="JVBER", resumeMimeType="application/pdf", resumeName="cv.pdf")
    r = client.post(
        "/api/ai/tailor-resume",
        json={"profile": profile, "jobDescription": "Data engineer", "userEmail": USER},
    )
    assert r.status_code == 200
    assert r.json() == {"text": "# Match Analysis"}
    call = fake_ai.calls[0]
    assert call["attachment"].file_name == "cv.pdf"
    assert "Data engineer" in call["prompt"]
    assert ledger(db_session)[0].operation_type == "resume-tailoring"


def test_tailor_resume_without_resume_sends_no_attachment(client, fake_ai):
    fake_ai.respond("resume")
    client.post("/api/ai/tailor-resume", json={"profile": PROFILE, "jobDescription": "Data engineer"})
    assert fake_ai.calls[0]["attachment"] is None


def test_smart_reply(client, fake_ai, db_session):
    fake_ai.respond("Thanks, Tuesday works.")
    r = client.post(
        "/api/ai/smart-reply",
        json={
            "email": {"sender": "hr@acme.com", "subject": "Interview", "body": "Are you free Tuesday?"},
            "profile": PROFILE,
            "userEmail": USER,
        },
    )
    assert r.status_code == 200
    assert r.json() == {"text": "Thanks, Tuesday works."}
    assert "Are you free Tuesday?" in fake_ai.calls[0]["prompt"]
    assert ledger(db_session)[0].operation_type == "smart-reply"


def test_smart_reply_provider_failure(client, fake_ai, db_session):
    fake_ai.fail("upstream 503")
    r = client.post(
        "/api/ai/smart-reply",
        json={"email": {"subject": "Hi"}, "profile": PROFILE, "userEmail": USER},
    )
    assert r.status_code == 500
    assert r.json() == {"error": "AI operation failed", "details": "upstream 503"}
    (row,) = ledger(db_session)
    assert row.success is False
    assert row.model_used == "fake-model"


def test_analyze_emails_merges_labels(client, fake_ai, db_session):
    fake_ai.respond(json.dumps({"results": [
        {"id": "1", "category": "job_offer", "priority": "HIGH", "summary": "Offer", "suggestedAction": "Accept"},
    ]}))
    emails = [
        {"id": "1", "sender": "a@x.com", "subject": "Offer", "body": "..."},
        {"id": "2", "sender": "b@x.com", "subject": "News", "body": "...", "category": "other"},
    ]
    r = client.post("/api/ai/analyze-emails", json={"emails": emails, "userEmail": USER})
    assert r.status_code == 200
    body = r.json()
    assert body[0]["category"] == "job_offer"
    assert body[0]["suggestedAction"] == "Accept"
    assert body[1] == emails[1]
    assert ledger(db_session)[0].operation_type == "email-analysis"


def test_analyze_emails_returns_inputs_on_failure(client, fake_ai, db_session):
    fake_ai.fail("quota")
    emails = [{"id": "1", "subject": "Offer"}]
    r = client.post("/api/ai/analyze-emails", json={"emails": emails, "userEmail": USER})
    assert r.status_code == 200
    assert r.json() == emails
    (row,) = ledger(db_session)
    assert row.success is False
    assert row.error_message == "quota"


def test_analyze_emails_empty_list_makes_no_call(client, fake_ai, db_session):
    r = client.post("/api/ai/analyze-emails", json={"emails": [], "userEmail": USER})
    assert r.status_code == 200
    assert r.json() == []
    assert fake_ai.calls == []
    assert ledger(db_session) == []
