"""Tests for batch email classification: label normalization, partial results, failure handling."""
import copy
import json
from dataclasses import replace

import pytest

from jobassist.ai_client import parse_json_text
from jobassist.mailbox import RawMessage
from jobassist.services.classification_service import (
    Classifier,
    ClassificationOutcome,
    Classification,
    merge_labels,
    normalize_category,
    normalize_priority,
)


def msg(ext_id, body="Hi"):
    return RawMessage(external_id=ext_id, sender="a@x.com", subject="Subject", body=body, provider_date=None)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("interview_request", "interview_request"),
        ("Interview Request", "interview_request"),
        ("job-offer", "job_offer"),
        ("offer", "job_offer"),
        ("REJECTED", "rejection"),
        ("status update", "application_update"),
        ("newsletter", "other"),
        (None, "other"),
    ],
)
def test_normalize_category(raw, expected):
    assert normalize_category(raw) == expected


@pytest.mark.parametrize("raw,expected", [("high", "HIGH"), (" low ", "LOW"), ("urgent", "MEDIUM"), (None, "MEDIUM")])
def test_normalize_priority(raw, expected):
    assert normalize_priority(raw) == expected


def test_analyze_labels_every_known_id(fake_ai):
    fake_ai.respond(json.dumps({"results": [
        {"id": "a", "category": "Interview", "priority": "high", "summary": " Call on Tuesday ", "suggestedAction": "Confirm"},
        {"id": "b", "category": "rejection", "priority": "LOW", "summary": "", "suggested_action": "Archive"},
    ]}))
    outcome = Classifier(fake_ai).analyze([msg("a"), msg("b")])

    assert outcome.ok
    assert outcome.labels["a"] == Classification("interview_request", "HIGH", "Call on Tuesday", "Confirm")
    assert outcome.labels["b"] == Classification("rejection", "LOW", None, "Archive")
    assert outcome.usage.total_tokens == 150
    assert fake_ai.calls[0]["json_output"] is True


def test_analyze_accepts_bare_list_and_fenced_json(fake_ai):
    fake_ai.respond("```json\n" + json.dumps([{"id": "a", "category": "job_offer", "priority": "HIGH"}]) + "\n```")
    outcome = Classifier(fake_ai).analyze([msg("a")])
    assert outcome.labels["a"].category == "job_offer"


def test_analyze_ignores_unknown_and_malformed_items(fake_ai):
    fake_ai.respond(json.dumps({"emails": [
        {"id": "zzz", "category": "job_offer"},
        "not an object",
        {"category": "job_offer"},
        {"id": "a", "category": "other", "priority": "LOW"},
    ]}))
    outcome = Classifier(fake_ai).analyze([msg("a"), msg("b")])
    assert set(outcome.labels) == {"a"}
    assert outcome.ok


def test_analyze_never_raises_on_provider_failure(fake_ai):
    fake_ai.fail("rate limited")
    outcome = Classifier(fake_ai).analyze([msg("a")])
    assert outcome.labels == {}
    assert outcome.error == "rate limited"
    assert not outcome.ok


def test_analyze_reports_bad_json_but_keeps_usage(fake_ai):
    fake_ai.respond('{"results": "nope"}')
    outcome = Classifier(fake_ai).analyze([msg("a")])
    assert outcome.labels == {}
    assert outcome.error
    assert outcome.usage is not None


def test_analyze_skips_the_call_for_no_messages(fake_ai):
    outcome = Classifier(fake_ai).analyze([])
    assert outcome.ok and outcome.labels == {}
    assert fake_ai.calls == []


def test_prompt_truncates_bodies(fake_ai):
    fake_ai.respond('{"results": []}')
    Classifier(fake_ai, body_chars=10).analyze([msg("a", body="x" * 50 + "TAIL")])
    prompt = fake_ai.calls[0]["prompt"]
    assert "x" * 10 in prompt
    assert "x" * 11 not in prompt
    assert "TAIL" not in prompt


def test_merge_labels_passes_unlabelled_emails_through():
    emails = [{"id": "a", "subject": "One"}, {"id": "b", "subject": "Two", "category": "rejection"}]
    outcome = ClassificationOutcome(labels={"a": Classification("job_offer", "HIGH", "Offer", "Accept")})

    merged = merge_labels(emails, outcome)

    assert merged[0] == {
        "id": "a", "subject": "One", "category": "job_offer", "priority": "HIGH",
        "summary": "Offer", "suggestedAction": "Accept",
    }
    assert merged[1] == emails[1]
    assert merged[1] is not emails[1]


def test_parse_json_text_strips_fences():
    assert parse_json_text("```\n{\"a\": 1}\n```") == {"a": 1}
    with pytest.raises(ValueError):
        parse_json_text("not json")


def test_analyze_and_merge_leave_their_inputs_untouched(fake_ai):
    messages = [msg("a", body="Are you free Tuesday?"), msg("b", body="x" * 5000)]
    before = [replace(m) for m in messages]
    fake_ai.respond(json.dumps({"results": [{"id": "a", "category": "interview_request", "priority": "HIGH"}]}))
    fake_ai.fail("provider down")

    classifier = Classifier(fake_ai, body_chars=100)
    labelled = classifier.analyze(messages)
    failed = classifier.analyze(messages)

    assert set(labelled.labels) == {"a"}
    assert failed.error == "provider down"
    assert messages == before

    emails = [{"id": "a", "subject": "One"}, {"id": "b", "subject": "Two"}]
    snapshot = copy.deepcopy(emails)
    merge_labels(emails, labelled)
    assert emails == snapshot
