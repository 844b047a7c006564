"""Tests for users and profiles API, including resume upload and merge."""
import json

from jobassist.models import AIUsage, Profile, User

USER = "jane@example.com"

PROFILE = {
    "name": "Jane Doe",
    "location": "Berlin",
    "aboutMe": "Backend engineer",
    "skills": ["Python", "python", "SQL"],
    "experience": [{"role": "Engineer", "company": "Acme", "duration": "2020-2024", "description": "APIs"}],
    "education": [{"degree": "BSc", "school": "TU Berlin", "year": "2019"}],
    "email": "jane.public@example.com",
    "github": "https://github.com/jane",
}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "message": "Server is running"}


def test_upsert_user_is_idempotent(client, db_session):
    r = client.post("/api/users", json={"email": USER, "name": "Jane"})
    assert r.status_code == 200
    assert r.json()["email"] == USER
    assert r.json()["name"] == "Jane"

    r = client.post("/api/users", json={"email": USER, "picture": "https://img/jane.png"})
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Jane"
    assert body["picture"] == "https://img/jane.png"
    assert db_session.query(User).filter(User.email == USER).count() == 1


def test_upsert_user_requires_email(client):
    r = client.post("/api/users", json={"email": ""})
    assert r.status_code == 400
    assert "error" in r.json()


def test_profile_not_found(client):
    r = client.get(f"/api/profiles/{USER}")
    assert r.status_code == 404
    assert r.json() == {"error": "Profile not found"}


def test_save_and_read_profile(client):
    r = client.post("/api/profiles", json={"email": USER, "profile": PROFILE})
    assert r.status_code == 200
    saved = r.json()
    assert saved["skills"] == ["Python", "SQL"]
    assert saved["aboutMe"] == "Backend engineer"
    assert saved["email"] == "jane.public@example.com"

    r = client.get(f"/api/profiles/{USER}")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Jane Doe"
    assert body["experience"][0]["company"] == "Acme"
    assert body["education"][0]["school"] == "TU Berlin"
    assert body["github"] == "https://github.com/jane"


def test_save_profile_is_full_replace(client):
    client.post("/api/profiles", json={"email": USER, "profile": PROFILE})
    r = client.post("/api/profiles", json={"email": USER, "profile": {"name": "Jane"}})
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Jane"
    assert body["location"] is None
    assert body["skills"] == []


def test_save_profile_creates_user(client, db_session):
    client.post("/api/profiles", json={"email": USER, "profile": {"name": "Jane"}})
    assert db_session.query(User).filter(User.email == USER).count() == 1


def test_delete_profile(client, db_session):
    client.post("/api/profiles", json={"email": USER, "profile": PROFILE})
    r = client.delete(f"/api/profiles/{USER}")
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert db_session.query(Profile).count() == 0

    r = client.delete(f"/api/profiles/{USER}")
    assert r.status_code == 404


def test_resume_upload_merges_and_stores_file(client, fake_ai, db_session):
    client.post("/api/profiles", json={"email": USER, "profile": {"name": "Old Name", "phone": "123"}})
    fake_ai.respond(json.dumps({
        "name": "Jane Doe",
        "aboutMe": "Parsed summary",
        "skills": ["Go", "go", "Kubernetes"],
        "experience": [{"role": "SRE", "company": "Cloudy", "duration": "3y", "description": "On call"}],
    }))

    r = client.post(
        f"/api/profiles/{USER}/resume",
        json={"resumeData": "JVBERi0xLjQK", "mimeType": "application/pdf", "fileName": "cv.pdf"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Jane Doe"
    assert body["phone"] == "123"
    assert body["aboutMe"] == "Parsed summary"
    assert body["skills"] == ["Go", "Kubernetes"]
    assert body["experience"][0]["role"] == "SRE"
    assert body["resumeData"] == "JVBERi0xLjQK"
    assert body["resumeMimeType"] == "application/pdf"
    assert body["resumeName"] == "cv.pdf"

    call = fake_ai.calls[0]
    assert call["json_output"] is True
    assert call["attachment"].mime_type == "application/pdf"

    usage = db_session.query(AIUsage).one()
    assert usage.operation_type == "resume-parse"
    assert usage.success is True
    assert usage.total_tokens == 150


def test_resume_upload_without_override_keeps_filled_fields(client, fake_ai):
    client.post("/api/profiles", json={"email": USER, "profile": {"name": "Old Name"}})
    fake_ai.respond(json.dumps({"name": "Jane Doe", "location": "Paris"}))

    r = client.post(
        f"/api/profiles/{USER}/resume",
        json={"resumeData": "abc", "mimeType": "application/pdf", "override": False},
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Old Name"
    assert r.json()["location"] == "Paris"


def test_resume_upload_ai_failure_leaves_profile_untouched(client, fake_ai, db_session):
    client.post("/api/profiles", json={"email": USER, "profile": {"name": "Old Name"}})
    fake_ai.fail("model overloaded")

    r = client.post(f"/api/profiles/{USER}/resume", json={"resumeData": "abc", "mimeType": "application/pdf"})
    assert r.status_code == 500
    assert r.json() == {"error": "AI operation failed", "details": "model overloaded"}

    db_session.expire_all()
    row = db_session.query(Profile).filter(Profile.user_email == USER).one()
    assert row.name == "Old Name"
    assert row.resume_data is None
    usage = db_session.query(AIUsage).one()
    assert usage.success is False
    assert usage.error_message == "model overloaded"


def test_resume_upload_rejects_non_object_json(client, fake_ai):
    fake_ai.respond('["not", "an", "object"]')
    r = client.post(f"/api/profiles/{USER}/resume", json={"resumeData": "abc", "mimeType": "application/pdf"})
    assert r.status_code == 500
    assert r.json()["error"] == "AI operation failed"


def test_resume_upload_validates_body(client):
    r = client.post(f"/api/profiles/{USER}/resume", json={"mimeType": "application/pdf"})
    assert r.status_code == 400
