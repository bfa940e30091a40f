"""Tests for roadmapper.ai — dispatcher, transports, classification, credentials, retry.

Transports are stubbed (or driven through httpx.MockTransport) so no test
touches the network.
"""

from __future__ import annotations

import asyncio
import json
import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from roadmapper.ai.base import (
    ErrorKind,
    Failure,
    GenerationError,
    GenerationRequest,
    SamplingParameters,
    Success,
    TokenUsage,
)
from roadmapper.ai.credentials import (
    CredentialContext,
    FileCredentialStore,
    MemoryCredentialStore,
    is_valid_api_key,
)
from roadmapper.ai.dispatcher import GenerationRequestDispatcher, extract_text, extract_usage
from roadmapper.ai.errors import ErrorClassifier, TransportError
from roadmapper.ai.retry import RetryingDispatcher
from roadmapper.ai.transport import GenaiTransport, HttpxTransport, build_request_body


API_KEY = "AIzaSyTestKey_0123456789abcdef"


# ─── Helpers ──────────────────────────────────────────────────


def make_payload(text: str = "Phase 1: Design", usage: dict | None = None) -> dict:
    payload = {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}
    if usage is not None:
        payload["usageMetadata"] = usage
    return payload


class StubTransport:
    """Records calls; returns `payload`, raises `error`, or hangs for `delay` seconds."""

    def __init__(self, payload: dict | None = None, error: Exception | None = None, delay: float = 0.0):
        self.payload = payload if payload is not None else make_payload()
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []
        self.cancelled = False

    async def send(self, model, body, credential, timeout):
        self.calls.append({"model": model, "body": body, "credential": credential, "timeout": timeout})
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.payload


def make_dispatcher(transport, key: str | None = API_KEY, **kwargs) -> GenerationRequestDispatcher:
    return GenerationRequestDispatcher(
        transport=transport,
        credentials=CredentialContext(key=key),
        **kwargs,
    )


class ScriptedDispatcher:
    """Returns queued results in order, for retry tests."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self.model = "scripted"

    async def dispatch(self, request, cancel=None):
        self.calls += 1
        return self.results.pop(0)


# ─── Dispatcher Tests ─────────────────────────────────────────


class TestDispatcher:
    @pytest.mark.anyio
    async def test_missing_credential_makes_no_call(self):
        transport = StubTransport()
        dispatcher = make_dispatcher(transport, key=None)
        result = await dispatcher.dispatch(GenerationRequest("hello"))
        assert not result.is_success
        assert result.kind is ErrorKind.CREDENTIAL_MISSING
        assert transport.calls == []

    @pytest.mark.anyio
    async def test_success(self):
        usage = {"promptTokenCount": 12, "candidatesTokenCount": 30, "totalTokenCount": 42}
        transport = StubTransport(make_payload("Phase 1: Design", usage))
        dispatcher = make_dispatcher(transport, model="gemini-2.5-flash", timeout=12)

        result = await dispatcher.dispatch(GenerationRequest("Plan my app"))

        assert result.is_success
        assert result.text == "Phase 1: Design"
        assert result.usage == TokenUsage(12, 30, 42)
        call = transport.calls[0]
        assert call["model"] == "gemini-2.5-flash"
        assert call["credential"] == API_KEY
        assert call["timeout"] == 12

    @pytest.mark.anyio
    async def test_request_body_shape(self):
        transport = StubTransport()
        dispatcher = make_dispatcher(transport)
        sampling = SamplingParameters(temperature=0.5, max_output_tokens=2000, top_p=0.8)

        await dispatcher.dispatch(GenerationRequest("Break it down", sampling=sampling))

        assert transport.calls[0]["body"] == {
            "contents": [{"parts": [{"text": "Break it down"}]}],
            "generationConfig": {"temperature": 0.5, "maxOutputTokens": 2000, "topP": 0.8},
        }

    @pytest.mark.anyio
    async def test_default_sampling(self):
        transport = StubTransport()
        await make_dispatcher(transport).dispatch(GenerationRequest("x"))
        config = transport.calls[0]["body"]["generationConfig"]
        assert config == {"temperature": 0.7, "maxOutputTokens": 4096, "topP": 0.9}

    @pytest.mark.anyio
    async def test_context_substituted(self):
        transport = StubTransport()
        request = GenerationRequest("Idea with {context}", context_text="a tight budget")
        await make_dispatcher(transport).dispatch(request)
        text = transport.calls[0]["body"]["contents"][0]["parts"][0]["text"]
        assert text == "Idea with a tight budget"

    @pytest.mark.anyio
    async def test_usage_defaults_to_zero(self):
        transport = StubTransport(make_payload("ok"))
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"))
        assert result.usage == TokenUsage(0, 0, 0)

    @pytest.mark.anyio
    @pytest.mark.parametrize("payload", [
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        {"candidates": [{"finishReason": "SAFETY"}]},
    ])
    async def test_empty_response(self, payload):
        result = await make_dispatcher(StubTransport(payload)).dispatch(GenerationRequest("x"))
        assert result.kind is ErrorKind.EMPTY_RESPONSE

    @pytest.mark.anyio
    async def test_transport_error_classified(self):
        transport = StubTransport(error=TransportError("Too many requests", status=429))
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"))
        assert result.kind is ErrorKind.RATE_LIMITED
        assert len(transport.calls) == 1

    @pytest.mark.anyio
    async def test_unexpected_error_becomes_other(self):
        transport = StubTransport(error=ValueError("bad json"))
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"))
        assert result.kind is ErrorKind.OTHER
        assert result.error.message == "bad json"

    @pytest.mark.anyio
    async def test_set_credential_takes_effect_immediately(self):
        store = MemoryCredentialStore()
        transport = StubTransport()
        dispatcher = GenerationRequestDispatcher(transport, CredentialContext.load(store, use_env=False))
        assert not dispatcher.has_credential

        dispatcher.set_credential(API_KEY)

        result = await dispatcher.dispatch(GenerationRequest("x"))
        assert result.is_success
        assert transport.calls[0]["credential"] == API_KEY
        assert store.get() == API_KEY

    @pytest.mark.anyio
    async def test_cancel_aborts_in_flight_call(self):
        transport = StubTransport(delay=10)
        cancel = asyncio.Event()

        async def trigger():
            await asyncio.sleep(0.01)
            cancel.set()

        trigger_task = asyncio.ensure_future(trigger())
        result = await asyncio.wait_for(
            make_dispatcher(transport).dispatch(GenerationRequest("x"), cancel=cancel),
            timeout=2,
        )
        await trigger_task

        assert result.kind is ErrorKind.CANCELLED
        assert transport.cancelled is True

    @pytest.mark.anyio
    async def test_cancel_already_set_makes_no_call(self):
        transport = StubTransport()
        cancel = asyncio.Event()
        cancel.set()
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"), cancel=cancel)
        assert result.kind is ErrorKind.CANCELLED
        assert transport.calls == []

    @pytest.mark.anyio
    async def test_unset_cancel_event_does_not_interfere(self):
        transport = StubTransport()
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"), cancel=asyncio.Event())
        assert result.is_success

    def test_extract_helpers(self):
        assert extract_text(make_payload("hi")) == "hi"
        assert extract_text(None) is None
        assert extract_usage({"usageMetadata": {"totalTokenCount": 5}}) == TokenUsage(0, 0, 5)
        assert extract_usage([]) == TokenUsage()


# ─── ErrorClassifier Tests ────────────────────────────────────


class FakeAPIError(Exception):
    """Shaped like google.genai.errors.APIError."""

    def __init__(self, code: int, message: str):
        super().__init__(f"{code} {message}")
        self.code = code
        self.message = message


class ResponselessError(Exception):
    response = None


class TestErrorClassifier:
    def setup_method(self):
        self.classifier = ErrorClassifier()

    def test_unauthorized(self):
        assert self.classifier.classify(TransportError("nope", status=401)).kind is ErrorKind.UNAUTHORIZED

    def test_rate_limited(self):
        assert self.classifier.classify(TransportError("slow down", status=429)).kind is ErrorKind.RATE_LIMITED

    def test_no_response(self):
        error = TransportError("connection refused", response_received=False)
        result = self.classifier.classify(error)
        assert result.kind is ErrorKind.NETWORK_UNREACHABLE

    def test_response_attribute_none(self):
        assert self.classifier.classify(ResponselessError("down")).kind is ErrorKind.NETWORK_UNREACHABLE

    def test_other_passes_message(self):
        result = self.classifier.classify(TransportError("server exploded", status=500))
        assert result == GenerationError(ErrorKind.OTHER, "server exploded")

    def test_priority_status_beats_missing_response(self):
        assert self.classifier.classify(
            TransportError("x", status=401, response_received=False)
        ).kind is ErrorKind.UNAUTHORIZED
        assert self.classifier.classify(
            TransportError("x", status=429, response_received=False)
        ).kind is ErrorKind.RATE_LIMITED

    def test_genai_style_code(self):
        assert self.classifier.classify(FakeAPIError(401, "API key not valid")).kind is ErrorKind.UNAUTHORIZED
        assert self.classifier.classify(FakeAPIError(429, "quota")).kind is ErrorKind.RATE_LIMITED
        result = self.classifier.classify(FakeAPIError(400, "bad request"))
        assert result == GenerationError(ErrorKind.OTHER, "bad request")

    def test_httpx_connect_error(self):
        assert self.classifier.classify(httpx.ConnectError("down")).kind is ErrorKind.NETWORK_UNREACHABLE
        assert self.classifier.classify(httpx.ReadTimeout("slow")).kind is ErrorKind.NETWORK_UNREACHABLE

    def test_plain_exception(self):
        result = self.classifier.classify(RuntimeError("weird"))
        assert result.kind is ErrorKind.OTHER
        assert result.user_message == "weird"

    def test_user_messages(self):
        assert "API key" in GenerationError(ErrorKind.UNAUTHORIZED).user_message
        assert "rate limit" in GenerationError(ErrorKind.RATE_LIMITED).user_message
        assert GenerationError(ErrorKind.OTHER).user_message.startswith("An unexpected error")


# ─── Transport Tests ──────────────────────────────────────────


def make_httpx_transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxTransport(base_url="https://example.test/v1beta/", client=client)


class TestHttpxTransport:
    @pytest.mark.anyio
    async def test_posts_body_to_generate_content(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=make_payload("Phase 1: Build"))

        transport = make_httpx_transport(handler)
        dispatcher = make_dispatcher(transport, model="gemini-pro")
        result = await dispatcher.dispatch(GenerationRequest("Plan it"))

        assert result.is_success
        assert result.text == "Phase 1: Build"
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://example.test/v1beta/models/gemini-pro:generateContent"
        assert request.headers["x-goog-api-key"] == API_KEY
        assert json.loads(request.content) == build_request_body(
            "Plan it", SamplingParameters().to_generation_config(),
        )

    @pytest.mark.anyio
    @pytest.mark.parametrize("status, kind", [
        (401, ErrorKind.UNAUTHORIZED),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.OTHER),
    ])
    async def test_http_errors(self, status, kind):
        transport = make_httpx_transport(lambda request: httpx.Response(status, json={"error": {}}))
        result = await make_dispatcher(transport).dispatch(GenerationRequest("x"))
        assert result.kind is kind

    @pytest.mark.anyio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        result = await make_dispatcher(make_httpx_transport(handler)).dispatch(GenerationRequest("x"))
        assert result.kind is ErrorKind.NETWORK_UNREACHABLE

    @pytest.mark.anyio
    async def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        transport = HttpxTransport(client=client)
        await transport.aclose()
        assert not client.is_closed
        await client.aclose()

    def test_endpoint(self):
        assert HttpxTransport().endpoint("gemini-pro") == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent"
        )


class TestGenaiTransport:
    @pytest.mark.anyio
    async def test_send_through_sdk_client(self):
        pytest.importorskip("google.genai")

        response = MagicMock()
        response.model_dump.return_value = make_payload("Phase 1: SDK")
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=response)
        factory = MagicMock(return_value=client)

        transport = GenaiTransport(client_factory=factory)
        body = build_request_body("Plan", {"temperature": 0.5, "maxOutputTokens": 100, "topP": 0.9})
        payload = await transport.send("gemini-2.5-flash", body, API_KEY, 30)

        assert extract_text(payload) == "Phase 1: SDK"
        factory.assert_called_once_with(api_key=API_KEY)
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == body["contents"]
        assert kwargs["config"].temperature == 0.5
        assert kwargs["config"].max_output_tokens == 100
        assert kwargs["config"].top_p == 0.9
        response.model_dump.assert_called_once_with(mode="json", by_alias=True, exclude_none=True)

    @pytest.mark.anyio
    async def test_client_reused_per_credential(self):
        pytest.importorskip("google.genai")

        response = MagicMock()
        response.model_dump.return_value = make_payload()
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=response)
        factory = MagicMock(return_value=client)
        transport = GenaiTransport(client_factory=factory)
        body = build_request_body("x", {})

        await transport.send("m", body, API_KEY, 30)
        await transport.send("m", body, API_KEY, 30)
        await transport.send("m", body, "another-key", 30)

        assert factory.call_count == 2


# ─── Credential Tests ─────────────────────────────────────────


class TestCredentials:
    def test_api_key_validation(self):
        assert is_valid_api_key(API_KEY)
        assert not is_valid_api_key("short")
        assert not is_valid_api_key("has spaces in it which is not allowed")

    def test_load_from_store(self):
        ctx = CredentialContext.load(MemoryCredentialStore(API_KEY), use_env=False)
        assert ctx.get() == API_KEY

    def test_env_fallback(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("GOOGLE_API_KEY", "from-env")
        ctx = CredentialContext.load(MemoryCredentialStore(), use_env=True)
        assert ctx.get() == "from-env"

    def test_store_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        ctx = CredentialContext.load(MemoryCredentialStore(API_KEY))
        assert ctx.get() == API_KEY

    def test_store_read_only_once(self):
        store = MagicMock()
        store.get.return_value = API_KEY
        ctx = CredentialContext.load(store, use_env=False)
        ctx.get()
        ctx.get()
        store.get.assert_called_once()

    def test_with_credential_persists(self):
        store = MemoryCredentialStore()
        ctx = CredentialContext(store=store)
        assert ctx.with_credential(API_KEY) is ctx
        assert ctx.get() == API_KEY
        assert store.get() == API_KEY

    def test_persist_failure_keeps_in_memory_key(self):
        store = MagicMock()
        store.set.side_effect = OSError("read-only")
        ctx = CredentialContext(store=store)
        ctx.with_credential(API_KEY)
        assert ctx.get() == API_KEY

    def test_broken_store_on_load(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        store = MagicMock()
        store.get.side_effect = RuntimeError("keyring locked")
        assert CredentialContext.load(store).get() is None

    def test_file_store_roundtrip(self, tmp_path):
        path = tmp_path / "nested" / "credentials.yaml"
        store = FileCredentialStore(path)
        assert store.get() is None
        store.set(API_KEY)
        assert FileCredentialStore(path).get() == API_KEY
        assert oct(os.stat(path).st_mode & 0o777) == oct(0o600)

    def test_file_store_garbage(self, tmp_path):
        path = tmp_path / "credentials.yaml"
        path.write_text("- just\n- a list\n")
        assert FileCredentialStore(path).get() is None


# ─── Retry Tests ──────────────────────────────────────────────


class TestRetryingDispatcher:
    def make(self, results, **kwargs):
        inner = ScriptedDispatcher(results)
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        return RetryingDispatcher(inner, sleep=fake_sleep, **kwargs), inner, sleeps

    @pytest.mark.anyio
    async def test_retries_rate_limit_then_succeeds(self):
        retrying, inner, sleeps = self.make([
            Failure.of(ErrorKind.RATE_LIMITED),
            Failure.of(ErrorKind.NETWORK_UNREACHABLE),
            Success("done"),
        ], max_attempts=3, delay=1.0, backoff=2.0)

        result = await retrying.dispatch(GenerationRequest("x"))

        assert result.is_success
        assert inner.calls == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.anyio
    async def test_gives_up_after_max_attempts(self):
        retrying, inner, sleeps = self.make(
            [Failure.of(ErrorKind.RATE_LIMITED)] * 3, max_attempts=3,
        )
        result = await retrying.dispatch(GenerationRequest("x"))
        assert result.kind is ErrorKind.RATE_LIMITED
        assert inner.calls == 3
        assert len(sleeps) == 2

    @pytest.mark.anyio
    @pytest.mark.parametrize("kind", [
        ErrorKind.UNAUTHORIZED,
        ErrorKind.CREDENTIAL_MISSING,
        ErrorKind.EMPTY_RESPONSE,
        ErrorKind.OTHER,
        ErrorKind.CANCELLED,
    ])
    async def test_non_transient_not_retried(self, kind):
        retrying, inner, sleeps = self.make([Failure.of(kind)])
        result = await retrying.dispatch(GenerationRequest("x"))
        assert result.kind is kind
        assert inner.calls == 1
        assert sleeps == []

    @pytest.mark.anyio
    async def test_stops_when_cancelled(self):
        retrying, inner, _ = self.make([Failure.of(ErrorKind.NETWORK_UNREACHABLE)] * 3)
        cancel = asyncio.Event()
        cancel.set()
        result = await retrying.dispatch(GenerationRequest("x"), cancel=cancel)
        assert result.kind is ErrorKind.NETWORK_UNREACHABLE
        assert inner.calls == 1

    def test_forwards_attributes(self):
        retrying, inner, _ = self.make([])
        assert retrying.model == "scripted"

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryingDispatcher(ScriptedDispatcher([]), max_attempts=0)
