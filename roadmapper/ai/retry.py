"""Bounded retry around a dispatcher.

Only transient failures are retried: rate limiting and an unreachable
network. Everything else, including success, is returned as soon as it
arrives.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from roadmapper.ai.base import ErrorKind, GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)

RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.NETWORK_UNREACHABLE})


class Dispatcher(Protocol):
    async def dispatch(
        self,
        request: GenerationRequest,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        ...


class RetryingDispatcher:
    """Decorates a dispatcher with up to `max_attempts` tries.

    Waits `delay` seconds before the first retry and multiplies the wait by
    `backoff` after each one.
    """

    def __init__(
        self,
        inner: Dispatcher,
        max_attempts: int = 3,
        delay: float = 1.0,
        backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.inner = inner
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self._sleep = sleep

    def __getattr__(self, name: str):
        # Expose set_credential, has_credential, transport, ... of the wrapped dispatcher
        if name == "inner":
            raise AttributeError(name)
        return getattr(self.inner, name)

    async def dispatch(
        self,
        request: GenerationRequest,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        wait = self.delay
        for attempt in range(1, self.max_attempts + 1):
            result = await self.inner.dispatch(request, cancel=cancel)
            if result.is_success or result.kind not in RETRYABLE_KINDS:
                return result
            if attempt == self.max_attempts:
                break
            if cancel is not None and cancel.is_set():
                break
            logger.warning(
                "Generation attempt %d/%d failed (%s), retrying in %.1fs",
                attempt, self.max_attempts, result.kind.value, wait,
            )
            await self._sleep(wait)
            wait *= self.backoff
        return result
