"""Error taxonomy shared by the pipeline, the repository layer and the API.

Every error carries the HTTP status the API reports it with, so routes can let
pipeline errors propagate and a single handler renders them.
"""

from __future__ import annotations

from typing import Any


class OutreachError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message}


class InvalidRequestError(OutreachError):
    status_code = 400


class NotFoundError(OutreachError):
    status_code = 404


class AuthenticationError(OutreachError):
    status_code = 401


class PreconditionError(OutreachError):
    status_code = 400


class MissingApiKeyError(PreconditionError):
    pass


class MailboxNotConnectedError(PreconditionError):
    def __init__(self, message: str = "mailbox not connected"):
        super().__init__(message)


class UpstreamError(OutreachError):
    status_code = 502

    def __init__(self, message: str, *, upstream_status: int | None = None, upstream_body: str = ""):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.upstream_status is not None:
            payload["upstream_status"] = self.upstream_status
        if self.upstream_body:
            payload["upstream_body"] = self.upstream_body[:2000]
        return payload


class StructuredExtractionError(UpstreamError):
    pass
