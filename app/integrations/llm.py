"""
LLM integration (OpenAI compatible chat completions)

- complete(): one-shot reply
- stream(): yields content deltas parsed from the SSE response

Mock mode replies with a short canned sentence so chat works offline.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import httpx

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)

MOCK_REPLY = "I love hearing from you. Tell me more about your day?"


class LlmClient:
    def __init__(self) -> None:
        self._mock = settings.LLM_MOCK
        self._base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self._api_key = settings.OPENAI_API_KEY
        self.model = settings.OPENAI_MODEL

    @property
    def available(self) -> bool:
        return self._mock or bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise AppError(code=500601, message="OPENAI_API_KEY not configured", status_code=500)
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    def complete(self, messages: list[dict[str, str]], *, max_tokens: int = 300,
                 temperature: float = 0.9) -> str:
        """
        Non-streaming completion

        Returns:
            the assistant text, stripped

        Raises:
            AppError: 502601 on HTTP failure or an empty choice list
        """
        if self._mock:
            return MOCK_REPLY
        body = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            with httpx.Client(timeout=60) as client:
                r = client.post(f"{self._base_url}/chat/completions", json=body, headers=self._headers())
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise AppError(code=502601, message=f"LLM error: {e}", status_code=502)
        choices = data.get("choices") or []
        if not choices:
            raise AppError(code=502601, message="LLM returned no choices", status_code=502)
        return str(choices[0].get("message", {}).get("content") or "").strip()

    def stream(self, messages: list[dict[str, str]], *, max_tokens: int = 350,
               temperature: float = 0.92) -> Iterator[str]:
        """
        Streaming completion

        Yields:
            content deltas in arrival order

        Raises:
            AppError: 502602 when the request fails before or during the stream
        """
        if self._mock:
            for word in MOCK_REPLY.split(" "):
                yield word + " "
            return
        body = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": True,
        }
        try:
            with httpx.Client(timeout=httpx.Timeout(60, read=120)) as client:
                with client.stream("POST", f"{self._base_url}/chat/completions",
                                   json=body, headers=self._headers()) as r:
                    r.raise_for_status()
                    for line in r.iter_lines():
                        delta = parse_sse_line(line)
                        if delta is None:
                            continue
                        if delta == "[DONE]":
                            return
                        yield delta
        except httpx.HTTPError as e:
            raise AppError(code=502602, message=f"LLM stream error: {e}", status_code=502)


def parse_sse_line(line: str) -> str | None:
    """
    Content delta carried by one SSE line

    Returns "[DONE]" for the terminator and None for keep-alives, empty
    deltas and lines that are not JSON.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if payload == "[DONE]":
        return payload
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE line: %s", payload[:200])
        return None
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        return None
    content = (choices[0].get("delta") or {}).get("content")
    return content or None


llm_client = LlmClient()
