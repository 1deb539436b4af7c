from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy.orm import Session

from outreach.config import Settings, get_settings
from outreach.core.errors import NotFoundError
from outreach.core.identity import Identity
from outreach.core.mailer import Mailbox, MailDispatcher, OutgoingMail
from outreach.core.recruiters import RecruiterFinder
from outreach.db.models import User
from outreach.db.repositories import Repository
from outreach.llm.router import LLMRouter
from outreach.types import CoverLetterResult, ParsedJob, RecipientOutcome, RecruiterContact, SendReceipt

logger = logging.getLogger(__name__)


class OutreachPipeline:
    """Job text to sent email. Each stage is a stateless hop; the caller's identity
    is passed in explicitly and the user record is loaded from the repository."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        llm: LLMRouter | None = None,
        recruiters: RecruiterFinder | None = None,
        dispatcher: MailDispatcher | None = None,
    ):
        self.settings = settings or get_settings()
        self.repo = Repository(session)
        self.llm = llm or LLMRouter(self.settings)
        self.recruiters = recruiters or RecruiterFinder(self.settings)
        self.dispatcher = dispatcher or MailDispatcher(self.settings)

    def parse_job(self, identity: Identity, job_description: str) -> ParsedJob:
        user = self._user(identity)
        return self.llm.parse_job(job_description=job_description, api_key=user.llm_api_key)

    def generate_cover_letter(
        self,
        identity: Identity,
        *,
        job_description: str,
        parsed_job: ParsedJob,
        user_profile: dict[str, Any] | None = None,
    ) -> CoverLetterResult:
        user = self._user(identity)
        profile = user_profile or {}
        return self.llm.generate_cover_letter(
            job_description=job_description,
            parsed_job=parsed_job,
            sender_title=str(profile.get("title") or user.title or ""),
            sender_name=str(profile.get("name") or user.name),
            api_key=user.llm_api_key,
        )

    def find_recruiters(self, identity: Identity, company: str) -> list[RecruiterContact]:
        user = self._user(identity)
        return self.recruiters.find(company=company, api_key=user.apollo_api_key)

    def send_mail(
        self,
        identity: Identity,
        recipients: list[str],
        mail: OutgoingMail,
        *,
        application_id: int | None = None,
    ) -> SendReceipt:
        user = self._user(identity)
        self._require_application(identity, application_id)

        receipt = self.dispatcher.send(Mailbox.from_user(user), recipients, mail)
        if application_id is not None:
            self.repo.mark_application_sent(
                identity.user_id,
                application_id,
                {"to": receipt.recipients, "subject": mail.subject, "message_id": receipt.message_id},
            )
        return receipt

    def send_each(
        self,
        identity: Identity,
        recipients: list[str],
        mail: OutgoingMail,
        *,
        application_id: int | None = None,
    ) -> list[RecipientOutcome]:
        user = self._user(identity)
        self._require_application(identity, application_id)

        outcomes = self.dispatcher.send_each(Mailbox.from_user(user), recipients, mail)
        delivered = [outcome.recipient for outcome in outcomes if outcome.ok]
        if application_id is not None and delivered:
            self.repo.mark_application_sent(
                identity.user_id,
                application_id,
                {"to": delivered, "subject": mail.subject, "batch": True},
            )
        return outcomes

    def record_send(self, identity: Identity, *, application_id: int | None, to: Any, subject: str) -> str:
        """Status-only send: marks the application sent without contacting the mailbox."""
        Mailbox.from_user(self._user(identity)).require_connected()

        if application_id is not None:
            updated = self.repo.mark_application_sent(
                identity.user_id, application_id, {"to": to, "subject": subject}
            )
            if updated is None:
                raise NotFoundError("Application not found")
        return f"mock-{int(time.time() * 1000)}"

    def _user(self, identity: Identity) -> User:
        user = self.repo.get_user(identity.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _require_application(self, identity: Identity, application_id: int | None) -> None:
        if application_id is not None and self.repo.get_application(identity.user_id, application_id) is None:
            raise NotFoundError("Application not found")
