"""OpenAI-compatible chat client for JSON-mode completions (Groq by default)."""
from __future__ import annotations

import json
from typing import Any, Protocol

from openai import OpenAI

from jobmatch.config import Settings
from jobmatch.log import get_logger

log = get_logger(__name__)


class LLMResponseError(ValueError):
    """The model answered, but not with a JSON object."""


class JSONCompleter(Protocol):
    def complete_json(self, system: str, prompt: str, *, temperature: float) -> dict[str, Any]:
        ...


class LLMClient:
    """Thin wrapper that asks for a JSON object and parses it.

    The underlying OpenAI client enforces *timeout* per request; a timeout
    surfaces as ``openai.APITimeoutError``.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        timeout: float = 20.0,
        max_tokens: int = 1500,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMClient | None:
        if not settings.llm_api_key:
            log.info("No GROQ_API_KEY — AI extraction and scoring disabled")
            return None
        return cls(
            settings.llm_api_key,
            settings.llm_model,
            base_url=settings.llm_base_url or None,
            timeout=settings.llm_timeout,
        )

    def complete_json(self, system: str, prompt: str, *, temperature: float) -> dict[str, Any]:
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        raw = (resp.choices[0].message.content or "").strip()
        return parse_json_object(raw)


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse the outermost ``{...}`` in *raw*; models sometimes wrap it in prose."""
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise LLMResponseError("LLM did not return valid JSON")
    try:
        data = json.loads(raw[start:end])
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"LLM returned malformed JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise LLMResponseError("LLM returned JSON that is not an object")
    return data
