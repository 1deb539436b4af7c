from __future__ import annotations

import json
from contextlib import nullcontext
from pathlib import Path
from typing import NoReturn

import typer
import uvicorn

from outreach.api.app import create_app
from outreach.config import get_settings
from outreach.core.errors import OutreachError
from outreach.core.identity import Identity, hash_password
from outreach.core.mailer import OutgoingMail, split_recipients
from outreach.core.pipeline import OutreachPipeline
from outreach.core.uploads import staged_upload
from outreach.db.init import init_database
from outreach.db.repositories import Repository
from outreach.db.session import SessionLocal
from outreach.logging_config import configure_logging
from outreach.types import ParsedJob

app = typer.Typer(help="Outreach CLI")
user_app = typer.Typer(help="Manage user accounts")

app.add_typer(user_app, name="user")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _identity(repo: Repository, user_id: int) -> Identity:
    user = repo.get_user(user_id)
    if not user:
        raise typer.BadParameter(f"user {user_id} not found")
    return Identity.from_user(user)


def _fail(exc: OutreachError) -> NoReturn:
    typer.echo(json.dumps({"ok": False, **exc.to_payload()}, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@user_app.command("create")
def user_create(
    username: str = typer.Option(..., "--username"),
    email: str = typer.Option(..., "--email"),
    name: str = typer.Option(..., "--name"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    title: str = typer.Option("", "--title"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        if repo.get_user_by_username(username):
            raise typer.BadParameter(f"username {username!r} already exists")
        if repo.get_user_by_email(email):
            raise typer.BadParameter(f"email {email!r} already exists")
        user = repo.create_user(username=username, password_hash=hash_password(password), email=email, name=name)
        if title:
            repo.update_user(user.id, {"title": title})
        typer.echo(json.dumps({"id": user.id, "username": user.username}, indent=2))


@user_app.command("set-keys")
def user_set_keys(
    user_id: int = typer.Option(..., "--user-id"),
    llm_api_key: str | None = typer.Option(None, "--llm-api-key"),
    apollo_api_key: str | None = typer.Option(None, "--apollo-api-key"),
    gmail_refresh_token: str | None = typer.Option(None, "--gmail-refresh-token"),
) -> None:
    configure_logging()
    ensure_initialized()
    updates: dict[str, object] = {}
    if llm_api_key is not None:
        updates["llm_api_key"] = llm_api_key
    if apollo_api_key is not None:
        updates["apollo_api_key"] = apollo_api_key
    if gmail_refresh_token is not None:
        updates["gmail_refresh_token"] = gmail_refresh_token
        updates["gmail_connected"] = bool(gmail_refresh_token)

    with SessionLocal() as db:
        repo = Repository(db)
        _identity(repo, user_id)
        user = repo.update_user(user_id, updates)
        typer.echo(
            json.dumps(
                {
                    "id": user.id,
                    "llm_api_key_set": bool(user.llm_api_key),
                    "apollo_api_key_set": bool(user.apollo_api_key),
                    "gmail_connected": user.gmail_connected,
                },
                indent=2,
            )
        )


@app.command("parse-job")
def parse_job_cmd(
    user_id: int = typer.Option(..., "--user-id"),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        identity = _identity(Repository(db), user_id)
        try:
            parsed = OutreachPipeline(db).parse_job(identity, file.read_text(encoding="utf-8"))
        except OutreachError as exc:
            _fail(exc)
        typer.echo(json.dumps(parsed.model_dump(), indent=2))


@app.command("cover-letter")
def cover_letter_cmd(
    user_id: int = typer.Option(..., "--user-id"),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
    parsed: Path | None = typer.Option(None, "--parsed", exists=True, readable=True),
) -> None:
    """Generate a cover letter; the job is parsed first unless --parsed is given."""
    configure_logging()
    ensure_initialized()
    job_description = file.read_text(encoding="utf-8")

    with SessionLocal() as db:
        identity = _identity(Repository(db), user_id)
        pipeline = OutreachPipeline(db)
        try:
            if parsed is not None:
                parsed_job = ParsedJob.model_validate(json.loads(parsed.read_text(encoding="utf-8")))
            else:
                parsed_job = pipeline.parse_job(identity, job_description)
            result = pipeline.generate_cover_letter(identity, job_description=job_description, parsed_job=parsed_job)
        except OutreachError as exc:
            _fail(exc)
        typer.echo(json.dumps(result.model_dump(), indent=2))


@app.command("find-recruiter")
def find_recruiter_cmd(
    user_id: int = typer.Option(..., "--user-id"),
    company: str = typer.Option(..., "--company"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        identity = _identity(Repository(db), user_id)
        try:
            contacts = OutreachPipeline(db).find_recruiters(identity, company)
        except OutreachError as exc:
            _fail(exc)
        typer.echo(json.dumps([contact.model_dump() for contact in contacts], indent=2))


@app.command("send")
def send_cmd(
    user_id: int = typer.Option(..., "--user-id"),
    to: str = typer.Option(..., "--to", help="Comma or semicolon separated recipients"),
    subject: str = typer.Option(..., "--subject"),
    body: Path = typer.Option(..., "--body", exists=True, readable=True),
    html: bool = typer.Option(False, "--html", help="Treat the body file as HTML"),
    attachment: Path | None = typer.Option(None, "--attachment", exists=True, readable=True),
    application_id: int | None = typer.Option(None, "--application-id"),
) -> None:
    """Send one message per recipient, paced by SEND_DELAY_SEC."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    content = body.read_text(encoding="utf-8")
    mail_kwargs = {"html": content} if html else {"text": content}

    with SessionLocal() as db:
        identity = _identity(Repository(db), user_id)
        try:
            with attachment.open("rb") if attachment else nullcontext() as stream:
                with staged_upload(
                    stream,
                    attachment.name if attachment else None,
                    upload_dir=settings.upload_dir,
                    max_bytes=settings.max_upload_bytes,
                ) as staged:
                    results = OutreachPipeline(db).send_each(
                        identity,
                        split_recipients(to),
                        OutgoingMail(subject=subject, attachment=staged, **mail_kwargs),
                        application_id=application_id,
                    )
        except OutreachError as exc:
            _fail(exc)

    sent = sum(1 for item in results if item.ok)
    typer.echo(
        json.dumps(
            {"sent": sent, "failed": len(results) - sent, "results": [item.model_dump() for item in results]},
            indent=2,
        )
    )
    if sent == 0:
        raise typer.Exit(code=1)


@app.command("analytics")
def analytics_cmd(user_id: int = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        identity = _identity(repo, user_id)
        typer.echo(json.dumps(repo.analytics_summary(identity.user_id).model_dump(), indent=2))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
