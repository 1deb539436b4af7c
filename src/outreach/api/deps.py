from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from outreach.config import Settings, get_settings
from outreach.core.errors import AuthenticationError
from outreach.core.identity import Identity
from outreach.core.mailer import MailDispatcher
from outreach.core.pipeline import OutreachPipeline
from outreach.core.recruiters import RecruiterFinder
from outreach.db.repositories import Repository
from outreach.db.session import get_db_session
from outreach.llm.router import LLMRouter

SESSION_USER_KEY = "user_id"


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_identity(request: Request, db: Session = Depends(get_db)) -> Identity:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise AuthenticationError("Authentication required")

    user = Repository(db).get_user(int(user_id))
    if user is None:
        request.session.clear()
        raise AuthenticationError("Authentication required")
    return Identity.from_user(user)


def get_llm_router(settings: Settings = Depends(get_settings)) -> LLMRouter:
    return LLMRouter(settings)


def get_recruiter_finder(settings: Settings = Depends(get_settings)) -> RecruiterFinder:
    return RecruiterFinder(settings)


def get_mail_dispatcher(settings: Settings = Depends(get_settings)) -> MailDispatcher:
    return MailDispatcher(settings)


def get_pipeline(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    llm: LLMRouter = Depends(get_llm_router),
    recruiters: RecruiterFinder = Depends(get_recruiter_finder),
    dispatcher: MailDispatcher = Depends(get_mail_dispatcher),
) -> OutreachPipeline:
    return OutreachPipeline(db, settings=settings, llm=llm, recruiters=recruiters, dispatcher=dispatcher)
