"""OpenAI-compatible LLM client for cogen.

httpx client for an OpenRouter-style /chat/completions endpoint with
auth headers and retry/backoff on rate limits, server errors and
network failures.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

import httpx

from cogen.core.config import LLMConfig
from cogen.core.exceptions import (
    AuthenticationError,
    LLMError,
    ModelNotFoundError,
    ResponseParseError,
)

logger = logging.getLogger("cogen.llm")


class LLMMessage:
    """A single message in a conversation."""

    def __init__(self, role: str, content: str):
        self.role = role
        self.content = content

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LLMResponse:
    """Parsed response from the LLM."""

    def __init__(
        self,
        content: str,
        model: str,
        tokens_used: int = 0,
        raw: Optional[dict] = None,
    ):
        self.content = content
        self.model = model
        self.tokens_used = tokens_used
        self.raw = raw or {}


class OpenRouterClient:
    """HTTP client for OpenRouter's OpenAI-compatible API.

    Model selection comes from GeneratorConfig; this client never
    hardcodes model IDs.
    """

    def __init__(self, config: Optional[LLMConfig] = None, api_key: Optional[str] = None):
        self.config = config or LLMConfig()
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY", "")
        self.base_url = self.config.base_url.rstrip("/")
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        return self._client

    def complete(
        self,
        messages: list[LLMMessage],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send a chat completion request.

        Args:
            messages: Conversation messages.
            model: Provider model ID.
            temperature: Sampling temperature (default from config).
            max_tokens: Max response tokens (default from config).

        Returns:
            LLMResponse with content, model, and token usage.
        """
        if not self.api_key:
            raise AuthenticationError("OPENROUTER_API_KEY not set")

        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.config.default_temperature,
            "max_tokens": max_tokens or self.config.default_max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "cogen",
        }

        return self._request_with_retry(
            payload,
            headers,
            max_retries=self.config.provider_retries + 1,
            backoff_base_seconds=self.config.provider_backoff_seconds,
        )

    def _request_with_retry(
        self,
        payload: dict,
        headers: dict,
        max_retries: int = 3,
        backoff_base_seconds: float = 2.0,
    ) -> LLMResponse:
        """POST the completion, backing off on 429/5xx and network failures.

        Anything else is not retried here: auth and model errors and
        unparsable bodies raise their own LLMError subclass, other 4xx
        statuses raise LLMError. The generation loop owns the wider retry
        budget.
        """
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                resp = self.client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
            except httpx.TransportError as e:
                last_error = e
                reason = f"network error ({type(e).__name__})"
            else:
                status = resp.status_code
                if status == 401:
                    raise AuthenticationError("Invalid API key")
                if status == 404:
                    raise ModelNotFoundError(f"Model not found: {payload.get('model')}")
                if status != 429 and status < 500:
                    if status >= 400:
                        raise LLMError(f"Provider rejected request: HTTP {status}")
                    try:
                        body = resp.json()
                    except ValueError as e:
                        raise ResponseParseError("Completion body is not JSON") from e
                    return _parse_completion(body, payload)
                last_error = LLMError(f"HTTP {status}")
                reason = f"HTTP {status}"

            if attempt < max_retries - 1:
                delay = _backoff_delay(attempt, backoff_base_seconds)
                logger.warning("Provider %s. Retry %d in %.1fs", reason, attempt + 1, delay)
                time.sleep(delay)

        raise LLMError(f"Request failed after {max_retries} attempts: {last_error}")

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None


def _parse_completion(data: Any, payload: dict) -> LLMResponse:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ResponseParseError(f"Malformed completion body: {e}") from e
    if not isinstance(content, str):
        raise ResponseParseError("Completion content is not text")

    model = data.get("model", payload.get("model", "unknown"))
    tokens = data.get("usage", {}).get("total_tokens", 0)
    logger.debug("LLM response: model=%s tokens=%d", model, tokens)
    return LLMResponse(content=content, model=model, tokens_used=tokens, raw=data)


def _backoff_delay(attempt: int, base_seconds: float = 2.0) -> float:
    """Exponential backoff: 2s, 4s, 8s, ..."""
    return min(base_seconds * (2 ** attempt), 60)
