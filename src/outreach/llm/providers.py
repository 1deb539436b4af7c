from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import openai
import requests
from openai import OpenAI

from outreach.config import Settings
from outreach.core.errors import UpstreamError
from outreach.types import ModelResponse

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    model: str
    timeout_sec: int
    key_prefix: str = ""


class CompletionProvider(Protocol):
    config: ProviderConfig

    def complete_text(self, *, prompt: str) -> ModelResponse: ...


class GeminiProvider:
    """Gemini ``generateContent`` over plain HTTP; the key travels as a query parameter."""

    def __init__(self, config: ProviderConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"

    def complete_text(self, *, prompt: str) -> ModelResponse:
        try:
            response = self.session.post(
                self.endpoint,
                params={"key": self.config.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.config.timeout_sec,
            )
        except requests.RequestException as exc:
            # str(exc) embeds the request URL, and with it the key
            logger.warning("Gemini request failed model=%s error=%s", self.config.model, type(exc).__name__)
            raise UpstreamError(f"Gemini request failed: {type(exc).__name__}") from exc

        if not response.ok:
            logger.warning("Gemini API failed status=%s", response.status_code)
            raise UpstreamError(
                f"Gemini API error: {response.status_code} {response.reason or ''}".strip(),
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Gemini API returned a non-JSON body",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from exc

        text = extract_candidate_text(data)
        if not text:
            raise UpstreamError("No valid content from Gemini API", upstream_status=response.status_code)
        return ModelResponse(
            content=text,
            raw={"api_path": "generate_content", "model_version": data.get("modelVersion", "")},
        )


def extract_candidate_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    if not parts:
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""


class OpenAIProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )

    def complete_text(self, *, prompt: str) -> ModelResponse:
        try:
            try:
                result = self._complete_via_responses(prompt=prompt)
            except Exception as exc:
                if not self._is_unsupported_responses_endpoint(exc):
                    raise
                logger.warning(
                    "Responses API unavailable for base_url=%s; falling back to chat.completions",
                    self.config.base_url,
                )
                result = self._complete_via_chat_completions(prompt=prompt)
        except openai.APIStatusError as exc:
            raise UpstreamError(
                f"OpenAI API error: {exc.status_code}",
                upstream_status=exc.status_code,
                upstream_body=exc.response.text if exc.response is not None else str(exc),
            ) from exc
        except openai.APIError as exc:
            raise UpstreamError(f"OpenAI request failed: {type(exc).__name__}") from exc

        if not result.content.strip():
            raise UpstreamError(f"No valid content from OpenAI API via {result.raw.get('api_path')}")
        return result

    def _complete_via_responses(self, *, prompt: str) -> ModelResponse:
        response = self.client.responses.create(
            model=self.config.model,
            input=[{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
        )
        text = getattr(response, "output_text", "") or ""
        return ModelResponse(content=text, raw={"api_path": "responses"})

    def _complete_via_chat_completions(self, *, prompt: str) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=self.config.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return ModelResponse(content=self._extract_chat_text(response), raw={"api_path": "chat_completions"})

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if content is None:
            return ""
        return content if isinstance(content, str) else str(content)

    @staticmethod
    def _is_unsupported_responses_endpoint(exc: Exception) -> bool:
        if getattr(exc, "status_code", None) == 404:
            return True
        message = str(exc).strip().lower()
        return bool(message) and ("not found" in message or "404" in message)


def build_provider(
    settings: Settings,
    api_key: str,
    *,
    session: requests.Session | None = None,
) -> CompletionProvider:
    if settings.llm_provider == "openai":
        return OpenAIProvider(
            ProviderConfig(
                name="openai",
                base_url=settings.openai_base_url,
                api_key=api_key,
                model=settings.openai_model,
                timeout_sec=settings.openai_timeout_sec,
            )
        )
    return GeminiProvider(
        ProviderConfig(
            name="gemini",
            base_url=settings.gemini_base_url,
            api_key=api_key,
            model=settings.gemini_model,
            timeout_sec=settings.gemini_timeout_sec,
            key_prefix="AIza",
        ),
        session=session,
    )
