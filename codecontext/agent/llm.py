"""
Model API client: one Anthropic Messages call per request.

Missing credentials fail before any network attempt. Rate limits are raised
as RateLimitReached; every other HTTP or transport failure is a
DispatchFailure. No automatic retries. Usage is returned as the API reports it.
"""

import logging
from typing import Any

import httpx

from codecontext.core.config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_API_TIMEOUT,
    ANTHROPIC_MESSAGES_URL,
    ANTHROPIC_MODEL,
    ANTHROPIC_VERSION,
    DISPATCH_MAX_TOKENS,
)
from codecontext.core.errors import ConfigurationError, DispatchFailure, RateLimitReached
from codecontext.schemas.pipeline import APIResult, Usage

logger = logging.getLogger(__name__)

# USD per million tokens (input, output)
INPUT_COST_PER_MTOK = 3.0
OUTPUT_COST_PER_MTOK = 15.0


def _error_details(response: httpx.Response) -> tuple[str, str]:
    """(error type, message) from an API error body; falls back to the raw text."""
    try:
        data = response.json()
    except ValueError:
        return "", response.text[:200]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("type") or ""), str(error.get("message") or "")
    return "", response.text[:200]


class APIClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = ANTHROPIC_MODEL,
        timeout: float = ANTHROPIC_API_TIMEOUT,
        url: str = ANTHROPIC_MESSAGES_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = ANTHROPIC_API_KEY if api_key is None else api_key.strip()
        self.model = model
        self.timeout = timeout
        self.url = url
        self._transport = transport
        self._stats = {"total_calls": 0, "total_input_tokens": 0, "total_output_tokens": 0, "errors": 0}

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _payload(self, prompt: str, max_tokens: int, use_cache: bool, system_prompt: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            if use_cache:
                payload["system"] = [
                    {"type": "text", "text": system_prompt, "cache_control": {"type": "ephemeral"}}
                ]
            else:
                payload["system"] = system_prompt
        return payload

    def send_message(
        self,
        prompt: str,
        max_tokens: int = DISPATCH_MAX_TOKENS,
        use_cache: bool = True,
        system_prompt: str | None = None,
    ) -> APIResult:
        if not self.api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set. Add it to your environment or .env file.")
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = self._payload(prompt, max_tokens, use_cache, system_prompt)
        logger.info("[llm:send_message] IN  prompt_len=%d max_tokens=%d use_cache=%s", len(prompt), max_tokens, use_cache)
        self._stats["total_calls"] += 1
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            self._stats["errors"] += 1
            logger.warning("[llm:send_message] request failed: %s", e)
            raise DispatchFailure(f"Request to model API failed: {e}") from e

        if response.status_code != 200:
            self._stats["errors"] += 1
            error_type, message = _error_details(response)
            logger.warning("[llm:send_message] API error %s type=%s: %s", response.status_code, error_type, message)
            if response.status_code == 429 or error_type == "rate_limit_error":
                raise RateLimitReached(message or "Rate limit reached", weekly="weekly" in message.lower())
            raise DispatchFailure(
                f"Model API error {response.status_code}: {message or 'unknown error'}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            self._stats["errors"] += 1
            raise DispatchFailure("Model API returned a non-JSON response", status_code=200) from e
        if not isinstance(data, dict):
            self._stats["errors"] += 1
            raise DispatchFailure("Model API returned an unexpected response body", status_code=200)
        blocks = data.get("content") or []
        content = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text")
        usage = Usage.model_validate(data.get("usage") or {})
        self._stats["total_input_tokens"] += usage.input_tokens
        self._stats["total_output_tokens"] += usage.output_tokens
        logger.info(
            "[llm:send_message] OUT response_len=%d input_tokens=%d output_tokens=%d cache_read=%s",
            len(content), usage.input_tokens, usage.output_tokens, usage.cache_read_input_tokens,
        )
        return APIResult(
            content=content,
            usage=usage,
            model=data.get("model") or self.model,
            stop_reason=data.get("stop_reason"),
        )

    def stats(self) -> dict[str, Any]:
        cost = (
            self._stats["total_input_tokens"] / 1_000_000 * INPUT_COST_PER_MTOK
            + self._stats["total_output_tokens"] / 1_000_000 * OUTPUT_COST_PER_MTOK
        )
        return {**self._stats, "estimated_cost_usd": round(cost, 4)}
