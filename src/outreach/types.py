from __future__ import annotations

from typing import Any, Literal, get_args

from pydantic import BaseModel, Field, field_validator

ApplicationStatus = Literal["draft", "scheduled", "sent", "delivered", "opened", "replied", "bounced"]
AnalyticsEvent = Literal["sent", "delivered", "opened", "clicked", "replied", "bounced"]

APPLICATION_STATUSES: tuple[str, ...] = get_args(ApplicationStatus)
ANALYTICS_EVENTS: tuple[str, ...] = get_args(AnalyticsEvent)
SENT_STATUSES = frozenset({"sent", "delivered", "opened", "replied"})


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return [str(value)]


class ParsedJob(BaseModel):
    title: str = ""
    company: str = ""
    skills: list[str] = Field(default_factory=list)
    experience: str = ""
    location: str = ""
    salary: str = ""
    requirements: list[str] = Field(default_factory=list)

    @field_validator("title", "company", "experience", "location", "salary", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("skills", "requirements", mode="before")
    @classmethod
    def coerce_list(cls, value: Any) -> list[str]:
        return _as_list(value)


class CoverLetterResult(BaseModel):
    cover_letter: str
    subject: str
    analysis: dict[str, Any] = Field(default_factory=dict)


class RecruiterContact(BaseModel):
    name: str = ""
    email: str | None = None
    title: str | None = None
    linkedin_url: str | None = None


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class SendReceipt(BaseModel):
    message_id: str
    recipients: list[str]
    rejected: list[str] = Field(default_factory=list)


class RecipientOutcome(BaseModel):
    recipient: str
    ok: bool
    message_id: str = ""
    error: str = ""


class AnalyticsSummary(BaseModel):
    total_applications: int = 0
    response_rate: int = 0
    interview_count: int = 0
    delivery_rate: int = 0
    open_rate: int = 0
    reply_rate: int = 0
