"""Tests for the Messages API client using httpx.MockTransport (no network)."""

import json

import httpx
import pytest

from codecontext.agent.llm import APIClient
from codecontext.core.errors import ConfigurationError, DispatchFailure, RateLimitReached

OK_BODY = {
    "content": [{"type": "text", "text": "Use "}, {"type": "text", "text": "width * height."}],
    "usage": {"input_tokens": 1200, "output_tokens": 80, "cache_read_input_tokens": 900},
    "model": "claude-test",
    "stop_reason": "end_turn",
}


def _client(handler, api_key: str = "sk-test") -> APIClient:
    return APIClient(api_key=api_key, model="claude-test", timeout=5.0, transport=httpx.MockTransport(handler))


def _error(status: int, error_type: str, message: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"type": "error", "error": {"type": error_type, "message": message}})
    return handler


class TestSendMessage:
    def test_missing_key_fails_before_network(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=OK_BODY)

        client = _client(handler, api_key="")
        assert client.is_available() is False
        with pytest.raises(ConfigurationError):
            client.send_message("prompt")
        assert calls == []

    def test_success_returns_usage_intact(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=OK_BODY)

        result = _client(handler).send_message("the prompt", max_tokens=100, use_cache=True, system_prompt="be brief")
        assert result.content == "Use width * height."
        assert result.usage.input_tokens == 1200
        assert result.usage.output_tokens == 80
        assert result.usage.cache_read_input_tokens == 900
        assert result.model == "claude-test"
        assert seen["headers"]["x-api-key"] == "sk-test"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["max_tokens"] == 100
        assert seen["body"]["messages"] == [{"role": "user", "content": "the prompt"}]
        assert seen["body"]["system"][0]["cache_control"] == {"type": "ephemeral"}

    def test_plain_system_prompt_without_cache(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=OK_BODY)

        _client(handler).send_message("p", use_cache=False, system_prompt="be brief")
        assert seen["body"]["system"] == "be brief"

    def test_weekly_limit(self) -> None:
        with pytest.raises(RateLimitReached) as exc:
            _client(_error(429, "rate_limit_error", "Weekly limit reached for this organization")).send_message("p")
        assert exc.value.weekly is True
        assert exc.value.code == "WEEKLY_LIMIT_REACHED"

    def test_plain_rate_limit(self) -> None:
        with pytest.raises(RateLimitReached) as exc:
            _client(_error(429, "rate_limit_error", "Too many requests")).send_message("p")
        assert exc.value.code == "RATE_LIMIT"

    def test_server_error_is_dispatch_failure(self) -> None:
        with pytest.raises(DispatchFailure) as exc:
            _client(_error(500, "api_error", "Internal error")).send_message("p")
        assert exc.value.status_code == 500

    def test_transport_error_is_dispatch_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DispatchFailure):
            _client(handler).send_message("p")

    @pytest.mark.parametrize("body", [[1], "text", None])
    def test_non_object_body_is_dispatch_failure(self, body) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        client = _client(handler)
        with pytest.raises(DispatchFailure) as exc:
            client.send_message("p")
        assert exc.value.status_code == 200
        assert client.stats()["errors"] == 1


def test_stats_accumulate() -> None:
    client = _client(lambda request: httpx.Response(200, json=OK_BODY))
    client.send_message("a")
    client.send_message("b")
    stats = client.stats()
    assert stats["total_calls"] == 2
    assert stats["total_input_tokens"] == 2400
    assert stats["total_output_tokens"] == 160
    assert stats["errors"] == 0
    assert stats["estimated_cost_usd"] == round(2400 / 1e6 * 3 + 160 / 1e6 * 15, 4)
