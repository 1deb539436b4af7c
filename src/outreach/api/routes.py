from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.orm import Session

from outreach.api.deps import get_db, get_identity, get_pipeline
from outreach.api.schemas import (
    AnalyticsEventRequest,
    AnalyticsEventResponse,
    ApplicationCreateRequest,
    ApplicationResponse,
    ApplicationUpdateRequest,
    BatchSendResponse,
    CoverLetterRequest,
    FindRecruiterRequest,
    FindRecruiterResponse,
    ParseJobRequest,
    ResumeResponse,
    SendEmailRequest,
    SendEmailResponse,
    SendMailResponse,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateUpdateRequest,
)
from outreach.config import Settings, get_settings
from outreach.core.errors import InvalidRequestError, NotFoundError
from outreach.core.identity import Identity
from outreach.core.mailer import OutgoingMail, split_recipients
from outreach.core.pipeline import OutreachPipeline
from outreach.core.uploads import discard, staged_upload, store_upload
from outreach.db.repositories import Repository
from outreach.types import AnalyticsSummary, CoverLetterResult, ParsedJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _upload_or_none(upload: UploadFile | None) -> UploadFile | None:
    if upload is None or not upload.filename:
        return None
    return upload


# job applications


@router.get("/applications", response_model=list[ApplicationResponse])
def list_applications(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> list:
    return Repository(db).list_applications(identity.user_id)


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
def create_application(
    payload: ApplicationCreateRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return Repository(db).create_application(identity.user_id, payload.model_dump())


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(application_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    application = Repository(db).get_application(identity.user_id, application_id)
    if not application:
        raise NotFoundError("Application not found")
    return application


@router.patch("/applications/{application_id}", response_model=ApplicationResponse)
def update_application(
    application_id: int,
    payload: ApplicationUpdateRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    application = Repository(db).update_application(
        identity.user_id, application_id, payload.model_dump(exclude_unset=True)
    )
    if not application:
        raise NotFoundError("Application not found")
    return application


@router.delete("/applications/{application_id}", status_code=204)
def delete_application(
    application_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Response:
    if not Repository(db).delete_application(identity.user_id, application_id):
        raise NotFoundError("Application not found")
    return Response(status_code=204)


def _event_response(row) -> AnalyticsEventResponse:
    return AnalyticsEventResponse(
        id=row.id,
        application_id=row.application_id,
        event=row.event,
        metadata=row.metadata_json or {},
        created_at=row.created_at,
    )


@router.get("/applications/{application_id}/analytics", response_model=list[AnalyticsEventResponse])
def list_application_events(
    application_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> list[AnalyticsEventResponse]:
    repo = Repository(db)
    if not repo.get_application(identity.user_id, application_id):
        raise NotFoundError("Application not found")
    return [_event_response(row) for row in repo.list_events(application_id)]


@router.post("/applications/{application_id}/analytics", response_model=AnalyticsEventResponse, status_code=201)
def record_application_event(
    application_id: int,
    payload: AnalyticsEventRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> AnalyticsEventResponse:
    repo = Repository(db)
    if not repo.get_application(identity.user_id, application_id):
        raise NotFoundError("Application not found")
    return _event_response(repo.record_event(application_id, payload.event, payload.metadata))


@router.get("/analytics", response_model=AnalyticsSummary)
def analytics_summary(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> AnalyticsSummary:
    return Repository(db).analytics_summary(identity.user_id)


# email templates


@router.get("/templates", response_model=list[TemplateResponse])
def list_templates(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> list:
    return Repository(db).list_templates(identity.user_id)


@router.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(
    payload: TemplateCreateRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return Repository(db).create_template(identity.user_id, **payload.model_dump())


@router.patch("/templates/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: int,
    payload: TemplateUpdateRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    template = Repository(db).update_template(identity.user_id, template_id, payload.model_dump(exclude_unset=True))
    if not template:
        raise NotFoundError("Template not found")
    return template


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(template_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> Response:
    if not Repository(db).delete_template(identity.user_id, template_id):
        raise NotFoundError("Template not found")
    return Response(status_code=204)


# resumes


@router.get("/resumes", response_model=list[ResumeResponse])
def list_resumes(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> list:
    return Repository(db).list_resumes(identity.user_id)


@router.post("/resumes", response_model=ResumeResponse, status_code=201)
@router.post("/upload-resume", response_model=ResumeResponse, status_code=201, include_in_schema=False)
def upload_resume(
    resume: UploadFile | None = File(None),
    is_default: bool = Form(False),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    upload = _upload_or_none(resume)
    if upload is None:
        raise InvalidRequestError("No file uploaded")

    path = store_upload(
        upload.file,
        upload.filename,
        target_dir=settings.resume_dir,
        max_bytes=settings.max_upload_bytes,
    )
    try:
        return Repository(db).create_resume(
            identity.user_id,
            file_name=upload.filename,
            file_path=str(path),
            is_default=is_default,
        )
    except Exception:
        discard(path)
        raise


@router.delete("/resumes/{resume_id}", status_code=204)
def delete_resume(resume_id: int, identity: Identity = Depends(get_identity), db: Session = Depends(get_db)) -> Response:
    resume = Repository(db).delete_resume(identity.user_id, resume_id)
    if not resume:
        raise NotFoundError("Resume not found")
    discard(resume.file_path)
    logger.info("Deleted resume id=%s", resume_id)
    return Response(status_code=204)


# outreach pipeline


@router.post("/parse-job", response_model=ParsedJob)
def parse_job(
    payload: ParseJobRequest,
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
) -> ParsedJob:
    return pipeline.parse_job(identity, payload.job_description)


@router.post("/generate-cover-letter", response_model=CoverLetterResult)
def generate_cover_letter(
    payload: CoverLetterRequest,
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
) -> CoverLetterResult:
    return pipeline.generate_cover_letter(
        identity,
        job_description=payload.job_description,
        parsed_job=payload.parsed_job,
        user_profile=payload.user_profile,
    )


@router.post("/find-recruiter", response_model=FindRecruiterResponse)
def find_recruiter(
    payload: FindRecruiterRequest,
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
) -> FindRecruiterResponse:
    return FindRecruiterResponse(contacts=pipeline.find_recruiters(identity, payload.company))


@router.post("/send-email", response_model=SendEmailResponse)
def send_email(
    payload: SendEmailRequest,
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
) -> SendEmailResponse:
    message_id = pipeline.record_send(
        identity,
        application_id=payload.application_id,
        to=payload.to,
        subject=payload.subject,
    )
    return SendEmailResponse(success=True, message_id=message_id)


@router.post("/send/mail", response_model=SendMailResponse)
def send_mail(
    to: str = Form(...),
    subject: str = Form(""),
    text: str = Form(""),
    html: str = Form(""),
    application_id: int | None = Form(None),
    resume: UploadFile | None = File(None),
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> SendMailResponse:
    upload = _upload_or_none(resume)
    with staged_upload(
        upload.file if upload else None,
        upload.filename if upload else None,
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
    ) as attachment:
        receipt = pipeline.send_mail(
            identity,
            split_recipients(to),
            OutgoingMail(subject=subject, text=text, html=html, attachment=attachment),
            application_id=application_id,
        )
    return SendMailResponse(
        message="Email sent",
        message_id=receipt.message_id,
        recipients=receipt.recipients,
        rejected=receipt.rejected,
    )


@router.post("/send/batch", response_model=BatchSendResponse)
def send_batch(
    to: str = Form(...),
    subject: str = Form(""),
    text: str = Form(""),
    html: str = Form(""),
    application_id: int | None = Form(None),
    resume: UploadFile | None = File(None),
    identity: Identity = Depends(get_identity),
    pipeline: OutreachPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> BatchSendResponse:
    upload = _upload_or_none(resume)
    with staged_upload(
        upload.file if upload else None,
        upload.filename if upload else None,
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
    ) as attachment:
        results = pipeline.send_each(
            identity,
            split_recipients(to),
            OutgoingMail(subject=subject, text=text, html=html, attachment=attachment),
            application_id=application_id,
        )
    sent = sum(1 for item in results if item.ok)
    return BatchSendResponse(sent=sent, failed=len(results) - sent, results=results)
