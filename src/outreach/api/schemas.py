from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from outreach.types import AnalyticsEvent, ApplicationStatus, ParsedJob, RecipientOutcome, RecruiterContact

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class PartialUpdate(BaseModel):
    """PATCH body where omitted keys are left alone.

    Keys listed in ``required_columns`` back NOT NULL columns, so an explicit
    ``null`` for them is rejected instead of being written through.
    """

    required_columns: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulls = sorted(key for key in cls.required_columns if key in data and data[key] is None)
            if nulls:
                raise ValueError(f"may not be null: {', '.join(nulls)}")
        return data


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=120)
    password: str = Field(min_length=6)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    name: str = Field(min_length=1, max_length=255)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    name: str
    title: str
    gmail_connected: bool
    llm_api_key_set: bool
    apollo_api_key_set: bool


class UserUpdateRequest(PartialUpdate):
    required_columns = frozenset({"name", "email", "title"})

    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    title: str | None = None
    llm_api_key: str | None = None
    apollo_api_key: str | None = None
    gmail_access_token: str | None = None
    gmail_refresh_token: str | None = None


class ApplicationCreateRequest(BaseModel):
    company: str = Field(min_length=1)
    position: str = Field(min_length=1)
    job_description: str = Field(min_length=1)
    recruiter_name: str | None = None
    recruiter_email: str | None = None
    recruiter_title: str | None = None
    location: str | None = None
    status: ApplicationStatus = "draft"
    email_subject: str | None = None
    email_content: str | None = None
    cover_letter: str | None = None
    scheduled_at: datetime | None = None


class ApplicationUpdateRequest(PartialUpdate):
    required_columns = frozenset({"company", "position", "job_description", "status"})

    company: str | None = None
    position: str | None = None
    job_description: str | None = None
    recruiter_name: str | None = None
    recruiter_email: str | None = None
    recruiter_title: str | None = None
    location: str | None = None
    status: ApplicationStatus | None = None
    email_subject: str | None = None
    email_content: str | None = None
    cover_letter: str | None = None
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    company: str
    position: str
    job_description: str
    recruiter_name: str | None
    recruiter_email: str | None
    recruiter_title: str | None
    location: str | None
    status: str
    email_subject: str | None
    email_content: str | None
    cover_letter: str | None
    scheduled_at: datetime | None
    sent_at: datetime | None
    created_at: datetime | None


class TemplateCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    content: str = Field(min_length=1)
    is_default: bool = False


class TemplateUpdateRequest(PartialUpdate):
    required_columns = frozenset({"name", "subject", "content", "is_default"})

    name: str | None = Field(default=None, min_length=1)
    subject: str | None = Field(default=None, min_length=1)
    content: str | None = Field(default=None, min_length=1)
    is_default: bool | None = None


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    subject: str
    content: str
    is_default: bool
    created_at: datetime | None


class ResumeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    is_default: bool
    created_at: datetime | None


class AnalyticsEventRequest(BaseModel):
    event: AnalyticsEvent
    metadata: dict[str, Any] = Field(default_factory=dict)


class AnalyticsEventResponse(BaseModel):
    id: int
    application_id: int
    event: AnalyticsEvent
    metadata: dict[str, Any]
    created_at: datetime | None


class ParseJobRequest(BaseModel):
    job_description: str = ""


class CoverLetterRequest(BaseModel):
    job_description: str = ""
    parsed_job: ParsedJob
    user_profile: dict[str, Any] = Field(default_factory=dict)


class FindRecruiterRequest(BaseModel):
    company: str = ""


class FindRecruiterResponse(BaseModel):
    contacts: list[RecruiterContact]


class SendEmailRequest(BaseModel):
    to: str | list[str] | None = None
    subject: str = ""
    body: str = ""
    application_id: int | None = None


class SendEmailResponse(BaseModel):
    success: bool
    message_id: str


class SendMailResponse(BaseModel):
    message: str
    message_id: str
    recipients: list[str]
    rejected: list[str]


class BatchSendResponse(BaseModel):
    sent: int
    failed: int
    results: list[RecipientOutcome]
