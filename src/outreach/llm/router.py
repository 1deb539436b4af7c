from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from outreach.config import Settings, get_settings
from outreach.core.errors import InvalidRequestError, MissingApiKeyError, StructuredExtractionError
from outreach.llm.extraction import extract_json_object
from outreach.llm.prompts import COVER_LETTER_PROMPT, JOB_PARSE_PROMPT, LETTER_ANALYSIS_PROMPT
from outreach.llm.providers import CompletionProvider, build_provider
from outreach.types import CoverLetterResult, ParsedJob

logger = logging.getLogger(__name__)

MAX_JOB_TEXT_CHARS = 20000


class LLMRouter:
    """The two LLM-facing pipeline stages. Every call is a single attempt."""

    def __init__(self, settings: Settings | None = None, *, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.session = session

    def parse_job(self, *, job_description: str, api_key: str | None) -> ParsedJob:
        if not job_description or not job_description.strip():
            raise InvalidRequestError("Job description is required")

        provider = self.provider_for(api_key)
        prompt = JOB_PARSE_PROMPT.format(job_description=job_description[:MAX_JOB_TEXT_CHARS])
        logger.info("Parsing job description provider=%s chars=%d", provider.config.name, len(job_description))
        response = provider.complete_text(prompt=prompt)
        data = extract_json_object(response.content)

        try:
            parsed = ParsedJob.model_validate(data)
        except ValidationError as exc:
            raise StructuredExtractionError(f"Parsed job has unexpected shape: {exc.error_count()} errors") from exc
        logger.info("Parsed job title=%r company=%r", parsed.title, parsed.company)
        return parsed

    def generate_cover_letter(
        self,
        *,
        job_description: str,
        parsed_job: ParsedJob,
        sender_title: str,
        sender_name: str,
        api_key: str | None,
    ) -> CoverLetterResult:
        provider = self.provider_for(api_key)
        skills = ", ".join(parsed_job.skills)
        prompt = COVER_LETTER_PROMPT.format(
            title=parsed_job.title,
            company=parsed_job.company,
            skills=skills,
            experience=parsed_job.experience,
            location=parsed_job.location,
            sender_title=sender_title,
            sender_name=sender_name,
            job_description=(job_description or "")[:MAX_JOB_TEXT_CHARS],
        )
        letter = provider.complete_text(prompt=prompt).content.strip()
        analysis = self._analyze_letter(provider, cover_letter=letter, skills=skills)

        return CoverLetterResult(
            cover_letter=letter,
            analysis=analysis,
            subject=subject_for(parsed_job),
        )

    def provider_for(self, api_key: str | None) -> CompletionProvider:
        if not api_key:
            raise MissingApiKeyError(f"{self.settings.llm_provider} API key not configured")

        provider = build_provider(self.settings, api_key, session=self.session)
        prefix = provider.config.key_prefix
        if prefix and not api_key.startswith(prefix):
            raise MissingApiKeyError(f"Invalid {provider.config.name} API key")
        return provider

    @staticmethod
    def _analyze_letter(provider: CompletionProvider, *, cover_letter: str, skills: str) -> dict[str, Any]:
        prompt = LETTER_ANALYSIS_PROMPT.format(cover_letter=cover_letter, skills=skills)
        try:
            return extract_json_object(provider.complete_text(prompt=prompt).content)
        except Exception as exc:
            logger.warning("Cover letter analysis unavailable: %s", exc)
            return {}


def subject_for(parsed_job: ParsedJob) -> str:
    return f"Application for {parsed_job.title} Position"
