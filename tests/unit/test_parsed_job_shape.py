from outreach.core.errors import MailboxNotConnectedError, UpstreamError
from outreach.types import ParsedJob


def test_parsed_job_coerces_loose_model_output() -> None:
    parsed = ParsedJob.model_validate(
        {
            "title": "Backend Engineer",
            "company": None,
            "skills": "Python, SQL , ",
            "experience": 5,
            "location": ["Berlin", "Remote"],
            "requirements": ["Degree", None],
            "extra": "ignored",
        }
    )

    assert parsed.company == ""
    assert parsed.skills == ["Python", "SQL"]
    assert parsed.experience == "5"
    assert parsed.location == "Berlin, Remote"
    assert parsed.requirements == ["Degree"]
    assert parsed.salary == ""


def test_parsed_job_contract_shape() -> None:
    assert set(ParsedJob().model_dump()) == {
        "title",
        "company",
        "skills",
        "experience",
        "location",
        "salary",
        "requirements",
    }


def test_error_payloads() -> None:
    assert MailboxNotConnectedError().to_payload() == {"detail": "mailbox not connected"}
    assert MailboxNotConnectedError.status_code == 400

    payload = UpstreamError("boom", upstream_status=500, upstream_body="x" * 5000).to_payload()
    assert payload["upstream_status"] == 500
    assert len(payload["upstream_body"]) == 2000
