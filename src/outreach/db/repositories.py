from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session

from outreach.core.errors import InvalidRequestError
from outreach.db.models import EmailAnalytics, EmailTemplate, JobApplication, Resume, User
from outreach.types import ANALYTICS_EVENTS, APPLICATION_STATUSES, SENT_STATUSES, AnalyticsSummary

USER_MUTABLE_FIELDS = frozenset(
    {
        "name",
        "email",
        "title",
        "llm_api_key",
        "apollo_api_key",
        "gmail_access_token",
        "gmail_refresh_token",
        "gmail_connected",
    }
)
APPLICATION_MUTABLE_FIELDS = frozenset(
    {
        "company",
        "position",
        "job_description",
        "recruiter_name",
        "recruiter_email",
        "recruiter_title",
        "location",
        "status",
        "email_subject",
        "email_content",
        "cover_letter",
        "scheduled_at",
        "sent_at",
    }
)
TEMPLATE_MUTABLE_FIELDS = frozenset({"name", "subject", "content", "is_default"})


def _percent(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        return 0
    return round(numerator * 100 / denominator)


def _validate_status(values: dict[str, Any]) -> None:
    status = values.get("status")
    if status is not None and status not in APPLICATION_STATUSES:
        raise InvalidRequestError(f"status must be one of {list(APPLICATION_STATUSES)}")


class Repository:
    """Owner-scoped persistence for every entity. Lookups return ``None`` when a row
    is missing or belongs to another user."""

    def __init__(self, session: Session):
        self.session = session

    # users

    def create_user(self, *, username: str, password_hash: str, email: str, name: str) -> User:
        user = User(username=username, password_hash=password_hash, email=email, name=name)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return self.session.scalar(select(User).where(User.username == username))

    def get_user_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(func.lower(User.email) == email.lower()))

    def update_user(self, user_id: int, values: dict[str, Any]) -> User | None:
        user = self.session.get(User, user_id)
        if not user:
            return None

        for key, value in values.items():
            if key in USER_MUTABLE_FIELDS:
                setattr(user, key, value)
        self.session.commit()
        self.session.refresh(user)
        return user

    # job applications

    def list_applications(self, user_id: int) -> list[JobApplication]:
        statement = (
            select(JobApplication)
            .where(JobApplication.user_id == user_id)
            .order_by(JobApplication.created_at.desc(), JobApplication.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_application(self, user_id: int, application_id: int) -> JobApplication | None:
        application = self.session.get(JobApplication, application_id)
        if application is None or application.user_id != user_id:
            return None
        return application

    def create_application(self, user_id: int, values: dict[str, Any]) -> JobApplication:
        _validate_status(values)
        payload = {key: value for key, value in values.items() if key in APPLICATION_MUTABLE_FIELDS}
        application = JobApplication(user_id=user_id, **payload)
        self.session.add(application)
        self.session.commit()
        self.session.refresh(application)
        return application

    def update_application(
        self, user_id: int, application_id: int, values: dict[str, Any]
    ) -> JobApplication | None:
        application = self.get_application(user_id, application_id)
        if not application:
            return None

        _validate_status(values)
        for key, value in values.items():
            if key in APPLICATION_MUTABLE_FIELDS:
                setattr(application, key, value)
        self.session.commit()
        self.session.refresh(application)
        return application

    def delete_application(self, user_id: int, application_id: int) -> bool:
        application = self.get_application(user_id, application_id)
        if not application:
            return False

        self.session.execute(delete(EmailAnalytics).where(EmailAnalytics.application_id == application_id))
        self.session.delete(application)
        self.session.commit()
        return True

    def mark_application_sent(
        self, user_id: int, application_id: int, metadata: dict[str, Any]
    ) -> JobApplication | None:
        application = self.get_application(user_id, application_id)
        if not application:
            return None

        application.status = "sent"
        application.sent_at = datetime.now(UTC)
        self.record_event(application_id, "sent", metadata)
        self.session.refresh(application)
        return application

    # email templates

    def list_templates(self, user_id: int) -> list[EmailTemplate]:
        statement = select(EmailTemplate).where(EmailTemplate.user_id == user_id).order_by(EmailTemplate.id.asc())
        return list(self.session.scalars(statement).all())

    def get_template(self, user_id: int, template_id: int) -> EmailTemplate | None:
        template = self.session.get(EmailTemplate, template_id)
        if template is None or template.user_id != user_id:
            return None
        return template

    def create_template(
        self, user_id: int, *, name: str, subject: str, content: str, is_default: bool = False
    ) -> EmailTemplate:
        if is_default:
            self._clear_default(EmailTemplate, user_id)
        template = EmailTemplate(
            user_id=user_id, name=name, subject=subject, content=content, is_default=is_default
        )
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update_template(self, user_id: int, template_id: int, values: dict[str, Any]) -> EmailTemplate | None:
        template = self.get_template(user_id, template_id)
        if not template:
            return None

        if values.get("is_default"):
            self._clear_default(EmailTemplate, user_id)
        for key, value in values.items():
            if key in TEMPLATE_MUTABLE_FIELDS:
                setattr(template, key, value)
        self.session.commit()
        self.session.refresh(template)
        return template

    def delete_template(self, user_id: int, template_id: int) -> bool:
        template = self.get_template(user_id, template_id)
        if not template:
            return False
        self.session.delete(template)
        self.session.commit()
        return True

    # resumes

    def list_resumes(self, user_id: int) -> list[Resume]:
        statement = select(Resume).where(Resume.user_id == user_id).order_by(Resume.id.desc())
        return list(self.session.scalars(statement).all())

    def get_resume(self, user_id: int, resume_id: int) -> Resume | None:
        resume = self.session.get(Resume, resume_id)
        if resume is None or resume.user_id != user_id:
            return None
        return resume

    def create_resume(self, user_id: int, *, file_name: str, file_path: str, is_default: bool = False) -> Resume:
        if is_default:
            self._clear_default(Resume, user_id)
        resume = Resume(user_id=user_id, file_name=file_name, file_path=file_path, is_default=is_default)
        self.session.add(resume)
        self.session.commit()
        self.session.refresh(resume)
        return resume

    def delete_resume(self, user_id: int, resume_id: int) -> Resume | None:
        resume = self.get_resume(user_id, resume_id)
        if not resume:
            return None
        self.session.delete(resume)
        self.session.commit()
        return resume

    # analytics

    def record_event(
        self, application_id: int, event: str, metadata: dict[str, Any] | None = None
    ) -> EmailAnalytics:
        if event not in ANALYTICS_EVENTS:
            raise InvalidRequestError(f"event must be one of {list(ANALYTICS_EVENTS)}")
        row = EmailAnalytics(application_id=application_id, event=event, metadata_json=metadata or {})
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def list_events(self, application_id: int) -> list[EmailAnalytics]:
        statement = (
            select(EmailAnalytics)
            .where(EmailAnalytics.application_id == application_id)
            .order_by(EmailAnalytics.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def analytics_summary(self, user_id: int) -> AnalyticsSummary:
        statement = (
            select(JobApplication.status, func.count(JobApplication.id))
            .where(JobApplication.user_id == user_id)
            .group_by(JobApplication.status)
        )
        counts = {status: count for status, count in self.session.execute(statement).all()}

        total = sum(counts.values())
        sent = sum(counts.get(status, 0) for status in SENT_STATUSES)
        replied = counts.get("replied", 0)
        opened = counts.get("opened", 0) + replied
        response_rate = _percent(replied, sent)

        return AnalyticsSummary(
            total_applications=total,
            response_rate=response_rate,
            interview_count=replied,
            delivery_rate=_percent(sent, total),
            open_rate=_percent(opened, sent),
            reply_rate=response_rate,
        )

    def _clear_default(self, model: type[EmailTemplate] | type[Resume], user_id: int) -> None:
        self.session.execute(
            update(model).where(and_(model.user_id == user_id, model.is_default.is_(True))).values(is_default=False)
        )
