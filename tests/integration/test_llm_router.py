from __future__ import annotations

import json

import pytest

from outreach.config import Settings
from outreach.core.errors import InvalidRequestError, MissingApiKeyError, StructuredExtractionError, UpstreamError
from outreach.llm.router import LLMRouter
from outreach.types import ParsedJob


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = "OK" if self.ok else "Error"
        self._payload = payload
        self.text = text or json.dumps(payload)

    def json(self):
        return self._payload


class ScriptedSession:
    """Replays one response per POST, in order."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.prompts: list[str] = []

    def post(self, url, **kwargs):
        self.prompts.append(kwargs["json"]["contents"][0]["parts"][0]["text"])
        return self.responses.pop(0)


def reply(text: str) -> FakeResponse:
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _router(session: ScriptedSession) -> LLMRouter:
    return LLMRouter(Settings(llm_provider="gemini"), session=session)


JOB_TEXT = "Acme is hiring a Backend Engineer in Berlin. 3+ years of Python and PostgreSQL required."
PARSED = ParsedJob(title="Backend Engineer", company="Acme", skills=["Python", "PostgreSQL"], location="Berlin")


def test_parse_job_extracts_fields_from_wrapped_json() -> None:
    session = ScriptedSession(
        reply(
            "Sure! ```json\n"
            '{"title": "Backend Engineer", "company": "Acme", "skills": ["Python", "PostgreSQL"],'
            ' "experience": "3+ years", "location": "Berlin", "salary": "", "requirements": []}\n```'
        )
    )

    parsed = _router(session).parse_job(job_description=JOB_TEXT, api_key="AIza-key")

    assert parsed.title == "Backend Engineer"
    assert parsed.skills == ["Python", "PostgreSQL"]
    assert JOB_TEXT in session.prompts[0]


def test_parse_job_rejects_reply_without_json_object() -> None:
    session = ScriptedSession(reply("I could not find any job details, sorry."))

    with pytest.raises(StructuredExtractionError):
        _router(session).parse_job(job_description=JOB_TEXT, api_key="AIza-key")


def test_parse_job_requires_key_before_calling_model() -> None:
    session = ScriptedSession()

    with pytest.raises(MissingApiKeyError):
        _router(session).parse_job(job_description=JOB_TEXT, api_key=None)
    with pytest.raises(MissingApiKeyError):
        _router(session).parse_job(job_description=JOB_TEXT, api_key="sk-not-a-gemini-key")

    assert session.prompts == []


def test_parse_job_requires_description() -> None:
    with pytest.raises(InvalidRequestError):
        _router(ScriptedSession()).parse_job(job_description="   ", api_key="AIza-key")


def test_parse_job_surfaces_upstream_status() -> None:
    session = ScriptedSession(FakeResponse(403, {"error": {"message": "API key not valid"}}))

    with pytest.raises(UpstreamError) as excinfo:
        _router(session).parse_job(job_description=JOB_TEXT, api_key="AIza-key")

    assert excinfo.value.upstream_status == 403


def test_cover_letter_includes_analysis_and_subject() -> None:
    analysis = {"strengths": ["clear"], "suggestions": [], "matchScore": 82, "personalization": {"insight": "ok"}}
    session = ScriptedSession(
        reply("<p>Dear Hiring Manager, ... Regards, Ada Lovelace</p>"),
        reply(json.dumps(analysis)),
    )

    result = _router(session).generate_cover_letter(
        job_description=JOB_TEXT,
        parsed_job=PARSED,
        sender_title="Software Engineer",
        sender_name="Ada Lovelace",
        api_key="AIza-key",
    )

    assert result.cover_letter.startswith("<p>Dear Hiring Manager")
    assert result.subject == "Application for Backend Engineer Position"
    assert result.analysis == analysis
    assert "Regards, Ada Lovelace" in session.prompts[0]
    assert "Python, PostgreSQL" in session.prompts[1]


@pytest.mark.parametrize(
    "analysis_reply",
    [
        FakeResponse(500, {"error": "internal"}),
        reply("The letter is great, no JSON here."),
    ],
)
def test_cover_letter_survives_analysis_failure(analysis_reply: FakeResponse) -> None:
    session = ScriptedSession(reply("<p>Dear Hiring Manager</p>"), analysis_reply)

    result = _router(session).generate_cover_letter(
        job_description=JOB_TEXT,
        parsed_job=PARSED,
        sender_title="",
        sender_name="Ada",
        api_key="AIza-key",
    )

    assert result.cover_letter == "<p>Dear Hiring Manager</p>"
    assert result.analysis == {}


def test_cover_letter_fails_when_letter_call_fails() -> None:
    session = ScriptedSession(FakeResponse(503, {"error": "unavailable"}))

    with pytest.raises(UpstreamError):
        _router(session).generate_cover_letter(
            job_description=JOB_TEXT,
            parsed_job=PARSED,
            sender_title="",
            sender_name="Ada",
            api_key="AIza-key",
        )
    assert len(session.prompts) == 1


class EmptyOpenAIClient:
    def __init__(self, **kwargs):
        self.responses = self

    def create(self, **kwargs):
        return type("Reply", (), {"output_text": ""})()


def test_cover_letter_rejects_empty_openai_reply(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("outreach.llm.providers.OpenAI", EmptyOpenAIClient)
    router = LLMRouter(Settings(llm_provider="openai"))

    with pytest.raises(UpstreamError, match="No valid content"):
        router.generate_cover_letter(
            job_description=JOB_TEXT,
            parsed_job=PARSED,
            sender_title="",
            sender_name="Ada",
            api_key="sk-test",
        )
