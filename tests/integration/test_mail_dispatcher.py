from __future__ import annotations

import email
import smtplib
from pathlib import Path

import pytest

from outreach.config import Settings
from outreach.core.errors import InvalidRequestError, MailboxNotConnectedError, UpstreamError
from outreach.core.mailer import Mailbox, MailDispatcher, OutgoingMail, xoauth2_string
from outreach.core.uploads import StagedFile


class FakeTokenSource:
    def __init__(self, error: Exception | None = None):
        self.calls: list[str] = []
        self.error = error

    def access_token(self, refresh_token: str) -> str:
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return "access-token"


class FakeSMTPFactory:
    """Stands in for ``smtplib.SMTP``; records every connection and message."""

    def __init__(self, refuse: set[str] | None = None, fail_for: set[str] | None = None):
        self.refuse = refuse or set()
        self.fail_for = fail_for or set()
        self.connections: list[tuple[str, int]] = []
        self.auth_responses: list[str] = []
        self.sent: list[tuple[str, list[str], str]] = []

    def __call__(self, host: str, port: int, timeout: int | None = None):
        self.connections.append((host, port))
        return _FakeServer(self)


class _FakeServer:
    def __init__(self, factory: FakeSMTPFactory):
        self.factory = factory
        self.tls = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def ehlo(self) -> None:
        return None

    def starttls(self, context=None) -> None:
        self.tls = True

    def auth(self, mechanism, authobject, initial_response_ok=True) -> None:
        assert mechanism == "XOAUTH2"
        assert self.tls
        self.factory.auth_responses.append(authobject())

    def sendmail(self, from_addr, to_addrs, msg):
        if set(to_addrs) & self.factory.fail_for:
            raise smtplib.SMTPRecipientsRefused({addr: (550, b"no such user") for addr in to_addrs})
        self.factory.sent.append((from_addr, list(to_addrs), msg))
        return {addr: (550, b"rejected") for addr in to_addrs if addr in self.factory.refuse}


class CountingPacer:
    def __init__(self):
        self.calls = 0

    def wait(self) -> None:
        self.calls += 1


MAILBOX = Mailbox(address="ada@example.com", display_name="Ada Lovelace", refresh_token="refresh", connected=True)
MAIL = OutgoingMail(subject="Application for Backend Engineer Position", html="<p>Dear Hiring Manager</p>")


def _dispatcher(smtp: FakeSMTPFactory, tokens: FakeTokenSource | None = None, pacer=None) -> MailDispatcher:
    return MailDispatcher(
        Settings(smtp_host="smtp.test", smtp_port=2525),
        token_source=tokens or FakeTokenSource(),
        smtp_factory=smtp,
        pacer=pacer or CountingPacer(),
    )


def test_send_builds_multipart_message_and_authenticates_with_xoauth2() -> None:
    smtp = FakeSMTPFactory()
    tokens = FakeTokenSource()

    receipt = _dispatcher(smtp, tokens).send(MAILBOX, ["  <grace@acme.com> ", "linus@acme.com"], MAIL)

    assert receipt.recipients == ["grace@acme.com", "linus@acme.com"]
    assert receipt.rejected == []
    assert tokens.calls == ["refresh"]
    assert smtp.connections == [("smtp.test", 2525)]
    assert smtp.auth_responses == [xoauth2_string("ada@example.com", "access-token")]

    from_addr, to_addrs, raw = smtp.sent[0]
    assert from_addr == "ada@example.com"
    message = email.message_from_string(raw)
    assert message["To"] == "grace@acme.com, linus@acme.com"
    assert message["Subject"] == MAIL.subject
    assert message["Message-ID"] == receipt.message_id
    bodies = {
        part.get_content_type(): part.get_payload(decode=True).decode("utf-8")
        for part in message.walk()
        if not part.is_multipart()
    }
    assert bodies["text/plain"] == "Dear Hiring Manager"
    assert bodies["text/html"] == "<p>Dear Hiring Manager</p>"


def test_send_attaches_staged_file(tmp_path: Path) -> None:
    resume = tmp_path / "upload-abc"
    resume.write_bytes(b"%PDF-1.4 resume")
    smtp = FakeSMTPFactory()
    mail = OutgoingMail(subject="Hi", text="Hello", attachment=StagedFile(path=resume, filename="cv.pdf"))

    _dispatcher(smtp).send(MAILBOX, ["grace@acme.com"], mail)

    message = email.message_from_string(smtp.sent[0][2])
    attachments = [part for part in message.walk() if part.get_filename()]
    assert [part.get_filename() for part in attachments] == ["cv.pdf"]
    assert attachments[0].get_content_type() == "application/pdf"
    assert attachments[0].get_payload(decode=True) == b"%PDF-1.4 resume"


def test_send_without_refresh_token_makes_no_remote_attempt() -> None:
    smtp = FakeSMTPFactory()
    tokens = FakeTokenSource()
    mailbox = Mailbox(address="ada@example.com", display_name="Ada", refresh_token=None, connected=False)

    with pytest.raises(MailboxNotConnectedError, match="mailbox not connected"):
        _dispatcher(smtp, tokens).send(mailbox, ["grace@acme.com"], MAIL)
    with pytest.raises(MailboxNotConnectedError):
        _dispatcher(smtp, tokens).send_each(mailbox, ["grace@acme.com"], MAIL)

    assert tokens.calls == []
    assert smtp.connections == []


def test_send_rejects_invalid_or_missing_recipients() -> None:
    smtp = FakeSMTPFactory()

    with pytest.raises(InvalidRequestError, match="bad-email"):
        _dispatcher(smtp).send(MAILBOX, ["grace@acme.com", "bad-email"], MAIL)
    with pytest.raises(InvalidRequestError):
        _dispatcher(smtp).send(MAILBOX, ["  ", "<>"], MAIL)
    with pytest.raises(InvalidRequestError):
        _dispatcher(smtp).send(MAILBOX, ["grace@acme.com"], OutgoingMail(subject="empty"))

    assert smtp.connections == []


def test_send_wraps_smtp_failures() -> None:
    smtp = FakeSMTPFactory(fail_for={"grace@acme.com"})

    with pytest.raises(UpstreamError):
        _dispatcher(smtp).send(MAILBOX, ["grace@acme.com"], MAIL)


def test_send_each_reports_invalid_address_and_still_attempts_valid_ones() -> None:
    smtp = FakeSMTPFactory()
    pacer = CountingPacer()

    outcomes = _dispatcher(smtp, pacer=pacer).send_each(MAILBOX, ["a@x.com", "bad-email", "b@x.com"], MAIL)

    assert [(outcome.recipient, outcome.ok) for outcome in outcomes] == [
        ("a@x.com", True),
        ("bad-email", False),
        ("b@x.com", True),
    ]
    assert outcomes[1].error == "invalid email address"
    assert [to_addrs for _, to_addrs, _ in smtp.sent] == [["a@x.com"], ["b@x.com"]]
    assert pacer.calls == 1


def test_send_each_continues_after_a_recipient_fails() -> None:
    smtp = FakeSMTPFactory(refuse={"b@x.com"}, fail_for={"a@x.com"})
    tokens = FakeTokenSource()
    pacer = CountingPacer()

    outcomes = _dispatcher(smtp, tokens, pacer).send_each(MAILBOX, ["a@x.com", "b@x.com", "c@x.com"], MAIL)

    assert [outcome.ok for outcome in outcomes] == [False, False, True]
    assert "SMTP send failed" in outcomes[0].error
    assert outcomes[1].error == "recipient refused"
    assert outcomes[2].message_id
    assert pacer.calls == 2
    assert tokens.calls == ["refresh"]


def test_send_each_token_failure_is_reported_per_recipient() -> None:
    smtp = FakeSMTPFactory()
    tokens = FakeTokenSource(error=UpstreamError("Failed to refresh mailbox access token"))

    outcomes = _dispatcher(smtp, tokens).send_each(MAILBOX, ["a@x.com", "b@x.com"], MAIL)

    assert [outcome.ok for outcome in outcomes] == [False, False]
    assert smtp.connections == []
