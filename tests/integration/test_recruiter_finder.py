from __future__ import annotations

import pytest

from outreach.config import Settings
from outreach.core.errors import InvalidRequestError, MissingApiKeyError, UpstreamError
from outreach.core.recruiters import RECRUITER_TITLES, RecruiterFinder


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = "OK" if self.ok else "Unauthorized"
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response: FakeResponse):
        self.response = response
        self.calls: list[dict] = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return self.response


def _finder(session: FakeSession) -> RecruiterFinder:
    return RecruiterFinder(Settings(apollo_base_url="https://apollo.test/v1", apollo_per_page=5), session=session)


def test_find_returns_contacts_with_joined_names() -> None:
    session = FakeSession(
        FakeResponse(
            200,
            {
                "people": [
                    {
                        "first_name": "Grace",
                        "last_name": "Hopper",
                        "email": "grace@acme.com",
                        "title": "Technical Recruiter",
                        "linkedin_url": "https://linkedin.com/in/grace",
                    },
                    {"first_name": "Linus", "title": "HR Partner"},
                ]
            },
        )
    )

    contacts = _finder(session).find(company=" Acme ", api_key="apollo-key")

    assert [contact.name for contact in contacts] == ["Grace Hopper", "Linus"]
    assert contacts[0].email == "grace@acme.com"
    assert contacts[1].email is None

    call = session.calls[0]
    assert call["url"] == "https://apollo.test/v1/mixed_people/search"
    assert call["headers"]["X-Api-Key"] == "apollo-key"
    assert call["json"] == {
        "q_organization_name": "Acme",
        "person_titles": RECRUITER_TITLES,
        "page": 1,
        "per_page": 5,
    }


def test_empty_people_list_is_not_an_error() -> None:
    assert _finder(FakeSession(FakeResponse(200, {}))).find(company="Acme", api_key="k") == []


def test_preconditions_are_checked_before_calling_apollo() -> None:
    session = FakeSession(FakeResponse(200, {"people": []}))

    with pytest.raises(InvalidRequestError):
        _finder(session).find(company="", api_key="k")
    with pytest.raises(MissingApiKeyError):
        _finder(session).find(company="Acme", api_key="")

    assert session.calls == []


def test_apollo_error_carries_status_and_body() -> None:
    session = FakeSession(FakeResponse(401, text='{"error": "invalid api key"}'))

    with pytest.raises(UpstreamError) as excinfo:
        _finder(session).find(company="Acme", api_key="bad")

    assert excinfo.value.upstream_status == 401
    assert "invalid api key" in excinfo.value.upstream_body
