"""Transports that carry a generateContent call to the Gemini API.

A transport sends one JSON request body and returns the JSON response as a
dict. Failures are raised, not returned; the dispatcher classifies them.

    HttpxTransport  — raw REST call to {base}/models/<model>:generateContent
    GenaiTransport  — same call through the google-genai SDK
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

import httpx

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-pro"
DEFAULT_TIMEOUT = 30.0


@runtime_checkable
class GenerationTransport(Protocol):
    """Sends one generation request body and returns the decoded response."""

    async def send(
        self,
        model: str,
        body: dict[str, Any],
        credential: str,
        timeout: float,
    ) -> dict[str, Any]:
        ...


def build_request_body(prompt: str, generation_config: dict[str, Any]) -> dict[str, Any]:
    """Build the generateContent JSON body for a single-part text prompt."""
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


class HttpxTransport:
    """Posts the request body with httpx.

    Pass a preconfigured `client` (e.g. one built on httpx.MockTransport) to
    control the connection; otherwise one is created lazily and closed by
    aclose().
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/models/{model}:generateContent"

    async def send(
        self,
        model: str,
        body: dict[str, Any],
        credential: str,
        timeout: float,
    ) -> dict[str, Any]:
        response = await self._get_client().post(
            self.endpoint(model),
            json=body,
            headers={"x-goog-api-key": credential},
            timeout=timeout,
        )
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class GenaiTransport:
    """Sends the request through google-genai's async client.

    The SDK response is dumped back to the REST JSON shape (camelCase keys),
    so the dispatcher treats both transports the same way. One client is
    kept per credential.
    """

    def __init__(self, client_factory: Callable[..., Any] | None = None):
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

    def _get_client(self, credential: str):
        client = self._clients.get(credential)
        if client is None:
            factory = self._client_factory
            if factory is None:
                from google import genai
                factory = genai.Client
            client = factory(api_key=credential)
            self._clients = {credential: client}
        return client

    @staticmethod
    def _build_config(generation_config: dict[str, Any], timeout: float):
        from google.genai import types

        return types.GenerateContentConfig(
            temperature=generation_config.get("temperature"),
            max_output_tokens=generation_config.get("maxOutputTokens"),
            top_p=generation_config.get("topP"),
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    async def send(
        self,
        model: str,
        body: dict[str, Any],
        credential: str,
        timeout: float,
    ) -> dict[str, Any]:
        client = self._get_client(credential)
        response = await client.aio.models.generate_content(
            model=model,
            contents=body["contents"],
            config=self._build_config(body.get("generationConfig", {}), timeout),
        )
        return response.model_dump(mode="json", by_alias=True, exclude_none=True)
