"""LLM client: HTTP connection to a content-generation backend.

Services take an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` names the caller ("level_title", "task_generation",
"journal_enrichment"). Implementations may use it for logging or routing;
the simplest implementation ignores it.

HttpLLM is the one implementation: a real HTTP client supporting OpenAI
chat-completions and KoboldCpp backends, selected by provider_format.

Level titles and journal enrichment are best effort: callers catch LLMError and
fall back to deterministic output. Tests use StubLLM instead.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]

DEFAULT_OPENAI_URL = "https://api.openai.com"
DEFAULT_MODEL = "gpt-4o-mini"
PROVIDER_FORMATS = ("openai", "koboldcpp")


class HttpLLM:
    """Async HTTP client for completion backends.

    Supported formats:
      "openai"    : POST /v1/chat/completions
                     {"model": ..., "messages": [{"role": "user", "content": ...}]}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp" : POST /api/v1/generate  {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend.
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 30.
    """

    def __init__(
        self,
        provider_url: str = DEFAULT_OPENAI_URL,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "koboldcpp":
            return f"{self._base_url}/api/v1/generate", {"prompt": prompt}

        body: dict = {"messages": [{"role": "user", "content": prompt}]}
        if self._model:
            body["model"] = self._model
        return f"{self._base_url}/v1/chat/completions", body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "koboldcpp":
            results = data.get("results")
            if not results or "text" not in results[0]:
                raise LLMError("Unexpected response format from KoboldCpp backend")
            return results[0]["text"]

        choices = data.get("choices")
        if not choices:
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        return content

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


def llm_from_config(connection: dict[str, Any]) -> HttpLLM | None:
    """Build an HttpLLM from the stored llm_connection settings.

    Blank fields fall back to the LLM_PROVIDER_URL, OPENAI_API_KEY,
    LLM_PROVIDER_FORMAT and LLM_MODEL environment variables. Returns None
    when no API key and no provider URL are configured anywhere.
    """
    url = connection.get("provider_url") or os.getenv("LLM_PROVIDER_URL", "")
    api_key = connection.get("api_key") or os.getenv("OPENAI_API_KEY", "")
    if not url and not api_key:
        return None
    fmt = connection.get("provider_format") or os.getenv("LLM_PROVIDER_FORMAT", "openai")
    if fmt not in PROVIDER_FORMATS:
        raise ValueError(f"Unknown provider format: {fmt}")
    return HttpLLM(
        provider_url=url or DEFAULT_OPENAI_URL,
        api_key=api_key,
        provider_format=fmt,
        model=connection.get("model") or os.getenv("LLM_MODEL", DEFAULT_MODEL),
    )


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------

def parse_json_output(text: str) -> dict | None:
    """Parse a JSON object from LLM output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("LLM output is not valid JSON: %s", e)
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# LLMError
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
