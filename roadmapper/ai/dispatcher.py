"""Generation request dispatcher.

Performs exactly one transport call per dispatch and folds every outcome
into a GenerationResult. Nothing is retried here; wrap the dispatcher in
RetryingDispatcher for that.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from roadmapper.ai.base import (
    ErrorKind,
    Failure,
    GenerationRequest,
    GenerationResult,
    Success,
    TokenUsage,
)
from roadmapper.ai.credentials import CredentialContext
from roadmapper.ai.errors import ErrorClassifier
from roadmapper.ai.transport import (
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT,
    GenerationTransport,
    build_request_body,
)
from roadmapper.prompts import render_text

logger = logging.getLogger(__name__)


def extract_text(payload: Any) -> str | None:
    """First candidate's first text part, or None when there is none."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None


def extract_usage(payload: Any) -> TokenUsage:
    meta = payload.get("usageMetadata") if isinstance(payload, dict) else None
    if not isinstance(meta, dict):
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=meta.get("promptTokenCount") or 0,
        completion_tokens=meta.get("candidatesTokenCount") or 0,
        total_tokens=meta.get("totalTokenCount") or 0,
    )


class GenerationRequestDispatcher:
    """Dispatches generation requests with the context's current credential."""

    def __init__(
        self,
        transport: GenerationTransport,
        credentials: CredentialContext | None = None,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        classifier: ErrorClassifier | None = None,
    ):
        self.transport = transport
        self.credentials = credentials or CredentialContext()
        self.model = model
        self.timeout = timeout
        self.classifier = classifier or ErrorClassifier()

    def set_credential(self, key: str) -> None:
        """Use `key` for every following dispatch and persist it."""
        self.credentials.with_credential(key)

    @property
    def has_credential(self) -> bool:
        return self.credentials.has_credential

    @staticmethod
    def build_prompt(request: GenerationRequest) -> str:
        if request.context_text:
            return render_text(request.prompt_text, {"context": request.context_text})
        return request.prompt_text

    async def dispatch(
        self,
        request: GenerationRequest,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Send one request and normalize the outcome.

        `cancel`, when set before or during the call, aborts the in-flight
        transport call and yields a CANCELLED failure.
        """
        credential = self.credentials.get()
        if not credential:
            return Failure.of(ErrorKind.CREDENTIAL_MISSING)
        if cancel is not None and cancel.is_set():
            return Failure.of(ErrorKind.CANCELLED)

        body = build_request_body(
            self.build_prompt(request),
            request.sampling.to_generation_config(),
        )
        logger.debug(
            "Dispatching generation request to %s (%d prompt chars)",
            self.model, len(request.prompt_text),
        )
        start = time.monotonic()

        try:
            payload = await self._send(body, credential, cancel)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = self.classifier.classify(e)
            logger.warning("Generation request failed (%s): %s", error.kind.value, e)
            return Failure(error)

        if payload is None:
            logger.info("Generation request cancelled after %.1fs", time.monotonic() - start)
            return Failure.of(ErrorKind.CANCELLED)

        text = extract_text(payload)
        if text is None:
            logger.warning("Generation response contained no text")
            return Failure.of(ErrorKind.EMPTY_RESPONSE, "No content received from Gemini API")

        usage = extract_usage(payload)
        logger.debug(
            "Generation finished in %.1fs (%d total tokens)",
            time.monotonic() - start, usage.total_tokens,
        )
        return Success(text=text, usage=usage)

    async def _send(
        self,
        body: dict[str, Any],
        credential: str,
        cancel: asyncio.Event | None,
    ) -> dict[str, Any] | None:
        """Run the transport call, racing it against `cancel`.

        Returns None when cancellation won.
        """
        call = self.transport.send(self.model, body, credential, self.timeout)
        if cancel is None:
            return await call

        send_task = asyncio.ensure_future(call)
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait(
                {send_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (send_task, cancel_task):
                if not task.done():
                    task.cancel()

        if send_task.done() and not send_task.cancelled():
            return send_task.result()

        await asyncio.gather(send_task, return_exceptions=True)
        return None
