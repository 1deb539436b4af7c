from __future__ import annotations

import logging
from typing import Any

import requests

from outreach.config import Settings, get_settings
from outreach.core.errors import InvalidRequestError, MissingApiKeyError, UpstreamError
from outreach.types import RecruiterContact

logger = logging.getLogger(__name__)

RECRUITER_TITLES = ["recruiter", "talent acquisition", "hr", "hiring manager"]


class RecruiterFinder:
    """Company-name lookup against the Apollo people search."""

    def __init__(self, settings: Settings | None = None, *, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def find(self, *, company: str, api_key: str | None) -> list[RecruiterContact]:
        company = (company or "").strip()
        if not company:
            raise InvalidRequestError("Company is required")
        if not api_key:
            raise MissingApiKeyError("Apollo.io API key not configured")

        url = f"{self.settings.apollo_base_url.rstrip('/')}/mixed_people/search"
        try:
            response = self.session.post(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Cache-Control": "no-cache",
                    "X-Api-Key": api_key,
                },
                json={
                    "q_organization_name": company,
                    "person_titles": RECRUITER_TITLES,
                    "page": 1,
                    "per_page": self.settings.apollo_per_page,
                },
                timeout=self.settings.apollo_timeout_sec,
            )
        except requests.RequestException as exc:
            logger.warning("Apollo request failed company=%r error=%s", company, exc)
            raise UpstreamError(f"Apollo request failed: {exc}") from exc

        if not response.ok:
            logger.warning("Apollo API failed status=%s company=%r", response.status_code, company)
            raise UpstreamError(
                f"Apollo API error: {response.status_code} {response.reason or ''}".strip(),
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Apollo API returned a non-JSON body",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from exc

        contacts = [to_contact(person) for person in (data.get("people") or []) if isinstance(person, dict)]
        logger.info("Found %d recruiter contacts company=%r", len(contacts), company)
        return contacts


def to_contact(person: dict[str, Any]) -> RecruiterContact:
    name = " ".join(part for part in (person.get("first_name"), person.get("last_name")) if part)
    return RecruiterContact(
        name=name or person.get("name") or "",
        email=person.get("email"),
        title=person.get("title"),
        linkedin_url=person.get("linkedin_url"),
    )
