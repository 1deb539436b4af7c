from __future__ import annotations

import json
import logging
import mimetypes
import re
import smtplib
import ssl
from collections.abc import Callable
from dataclasses import dataclass
from email import encoders
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

from bs4 import BeautifulSoup
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials

from outreach.config import Settings, get_settings
from outreach.core.errors import InvalidRequestError, MailboxNotConnectedError, OutreachError, UpstreamError
from outreach.core.pacing import FixedDelayPacer, Pacer
from outreach.core.uploads import StagedFile
from outreach.db.models import User
from outreach.types import RecipientOutcome, SendReceipt

logger = logging.getLogger(__name__)

_BRACKETS = re.compile(r"[\[\]<>]")
_ADDRESS = re.compile(r"^[^@\s,;\"']+@[^@\s,;\"']+\.[^@\s,;\"'.]+$")


def sanitize_recipient(address: str) -> str:
    return _BRACKETS.sub("", address.strip()).strip()


def is_valid_address(address: str) -> bool:
    return bool(_ADDRESS.match(address))


def split_recipients(value: str | list[str] | None) -> list[str]:
    """Accept a list, a JSON array string, or a comma/semicolon separated string."""
    if value is None:
        return []
    if isinstance(value, list):
        items: list[str] = []
        for item in value:
            items.extend(split_recipients(item))
        return items

    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidRequestError("Recipients must be a JSON array of addresses") from exc
        if not isinstance(decoded, list):
            raise InvalidRequestError("Recipients must be a JSON array of addresses")
        return [str(item) for item in decoded if str(item).strip()]
    return [part.strip() for part in re.split(r"[,;]", text) if part.strip()]


def html_to_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text("\n", strip=True)


@dataclass(frozen=True, slots=True)
class Mailbox:
    address: str
    display_name: str
    refresh_token: str | None
    connected: bool

    @classmethod
    def from_user(cls, user: User) -> Mailbox:
        return cls(
            address=user.email,
            display_name=user.name,
            refresh_token=user.gmail_refresh_token,
            connected=bool(user.gmail_connected),
        )

    def require_connected(self) -> str:
        if not self.connected or not self.refresh_token:
            raise MailboxNotConnectedError()
        return self.refresh_token


@dataclass(frozen=True, slots=True)
class OutgoingMail:
    subject: str
    text: str = ""
    html: str = ""
    attachment: StagedFile | None = None

    def plain_text(self) -> str:
        if self.text:
            return self.text
        return html_to_text(self.html) if self.html else ""


class TokenSource(Protocol):
    def access_token(self, refresh_token: str) -> str: ...


class GoogleTokenSource:
    """Exchanges a stored Gmail refresh token for a short-lived access token."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def access_token(self, refresh_token: str) -> str:
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.settings.google_token_uri,
            client_id=self.settings.google_client_id,
            client_secret=self.settings.google_client_secret,
        )
        try:
            credentials.refresh(GoogleAuthRequest())
        except GoogleAuthError as exc:
            logger.warning("Mailbox token refresh failed: %s", type(exc).__name__)
            raise UpstreamError(f"Failed to refresh mailbox access token: {exc}") from exc
        if not credentials.token:
            raise UpstreamError("Token endpoint returned no access token")
        return credentials.token


def build_message(mailbox: Mailbox, recipients: list[str], mail: OutgoingMail) -> MIMEMultipart:
    message = MIMEMultipart("mixed")
    message["From"] = formataddr((mailbox.display_name, mailbox.address))
    message["To"] = ", ".join(recipients)
    message["Subject"] = mail.subject
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid(domain=mailbox.address.rpartition("@")[2] or None)

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(mail.plain_text(), "plain", "utf-8"))
    if mail.html:
        body.attach(MIMEText(mail.html, "html", "utf-8"))
    message.attach(body)

    if mail.attachment is not None:
        message.attach(_attachment_part(mail.attachment))
    return message


def _attachment_part(staged: StagedFile) -> MIMEBase:
    content_type, _ = mimetypes.guess_type(staged.filename)
    maintype, _, subtype = (content_type or "application/octet-stream").partition("/")
    payload = staged.path.read_bytes()

    if maintype == "application":
        part: MIMEBase = MIMEApplication(payload, _subtype=subtype)
    else:
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
    part.add_header("Content-Disposition", "attachment", filename=staged.filename)
    return part


def xoauth2_string(address: str, access_token: str) -> str:
    return f"user={address}\x01auth=Bearer {access_token}\x01\x01"


class MailDispatcher:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        token_source: TokenSource | None = None,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        pacer: Pacer | None = None,
    ):
        self.settings = settings or get_settings()
        self.token_source = token_source or GoogleTokenSource(self.settings)
        self.smtp_factory = smtp_factory
        self.pacer = pacer or FixedDelayPacer(self.settings.send_delay_sec)

    def send(self, mailbox: Mailbox, recipients: list[str], mail: OutgoingMail) -> SendReceipt:
        """Send one message addressed to every recipient in a single ``To`` header."""
        refresh_token = mailbox.require_connected()
        _require_body(mail)

        cleaned = [address for address in (sanitize_recipient(item) for item in recipients) if address]
        if not cleaned:
            raise InvalidRequestError("At least one recipient is required")
        invalid = [address for address in cleaned if not is_valid_address(address)]
        if invalid:
            raise InvalidRequestError(f"Invalid recipient address: {', '.join(invalid)}")

        access_token = self.token_source.access_token(refresh_token)
        message = build_message(mailbox, cleaned, mail)
        refused = self._deliver(mailbox, access_token, cleaned, message)
        logger.info("Sent message to %d recipients (%d refused)", len(cleaned), len(refused))
        return SendReceipt(message_id=message["Message-ID"], recipients=cleaned, rejected=sorted(refused))

    def send_each(self, mailbox: Mailbox, recipients: list[str], mail: OutgoingMail) -> list[RecipientOutcome]:
        """Send an independent message per recipient, pacing between attempts.

        One recipient's failure is recorded in its outcome and never stops the loop.
        """
        refresh_token = mailbox.require_connected()
        _require_body(mail)

        outcomes: list[RecipientOutcome] = []
        access_token: str | None = None
        attempted = False

        for raw in recipients:
            address = sanitize_recipient(raw)
            if not is_valid_address(address):
                outcomes.append(RecipientOutcome(recipient=address or raw, ok=False, error="invalid email address"))
                continue

            if attempted:
                self.pacer.wait()
            attempted = True

            try:
                if access_token is None:
                    access_token = self.token_source.access_token(refresh_token)
                message = build_message(mailbox, [address], mail)
                refused = self._deliver(mailbox, access_token, [address], message)
            except OutreachError as exc:
                logger.warning("Send failed recipient=%s error=%s", address, exc)
                outcomes.append(RecipientOutcome(recipient=address, ok=False, error=str(exc)))
                continue

            if refused:
                outcomes.append(RecipientOutcome(recipient=address, ok=False, error="recipient refused"))
            else:
                outcomes.append(RecipientOutcome(recipient=address, ok=True, message_id=message["Message-ID"]))

        sent = sum(1 for outcome in outcomes if outcome.ok)
        logger.info("Batch send finished sent=%d failed=%d", sent, len(outcomes) - sent)
        return outcomes

    def _deliver(
        self,
        mailbox: Mailbox,
        access_token: str,
        recipients: list[str],
        message: MIMEMultipart,
    ) -> dict[str, tuple[int, bytes]]:
        auth_string = xoauth2_string(mailbox.address, access_token)
        try:
            with self.smtp_factory(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.smtp_timeout_sec,
            ) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
                server.auth(
                    "XOAUTH2",
                    lambda challenge=None: auth_string if challenge is None else "",
                    initial_response_ok=True,
                )
                return server.sendmail(mailbox.address, recipients, message.as_string())
        except smtplib.SMTPException as exc:
            raise UpstreamError(f"SMTP send failed: {exc}") from exc
        except OSError as exc:
            raise UpstreamError(f"SMTP connection failed: {exc}") from exc


def _require_body(mail: OutgoingMail) -> None:
    if not (mail.text or mail.html):
        raise InvalidRequestError("Message text or html is required")
