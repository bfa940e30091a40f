"""Transport failure classification.

Maps whatever a transport raised onto the closed set of generation error
kinds. Signals are checked in a fixed priority order, so a failure that
carries more than one of them still lands in exactly one kind:

    401 -> UNAUTHORIZED
    429 -> RATE_LIMITED
    no response at all -> NETWORK_UNREACHABLE
    anything else -> OTHER (message passed through)
"""

from __future__ import annotations

import httpx

from roadmapper.ai.base import ErrorKind, GenerationError


class TransportError(Exception):
    """Failure raised by a transport.

    status is the HTTP status when a response arrived; response_received is
    False when the request never got an answer (DNS, refused, timeout).
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        response_received: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.response_received = (
            status is not None if response_received is None else response_received
        )


_NO_RESPONSE_TYPES: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    TimeoutError,
    ConnectionError,
    OSError,
)


class ErrorClassifier:
    """Classifies transport failures into generation error kinds."""

    def classify(self, error: BaseException) -> GenerationError:
        status = self._status_of(error)

        if status == 401:
            return GenerationError(ErrorKind.UNAUTHORIZED)
        if status == 429:
            return GenerationError(ErrorKind.RATE_LIMITED)
        if not self._response_received(error, status):
            return GenerationError(ErrorKind.NETWORK_UNREACHABLE, self._message_of(error))

        return GenerationError(ErrorKind.OTHER, self._message_of(error))

    @staticmethod
    def _status_of(error: BaseException) -> int | None:
        if isinstance(error, TransportError):
            return error.status
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code
        # google-genai APIError and friends expose the HTTP status as `code`
        code = getattr(error, "code", None)
        if isinstance(code, int):
            return code
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
        return status if isinstance(status, int) else None

    @staticmethod
    def _response_received(error: BaseException, status: int | None) -> bool:
        if isinstance(error, TransportError):
            return error.response_received
        if status is not None:
            return True
        if hasattr(error, "response") and getattr(error, "response") is None:
            return False
        return not isinstance(error, _NO_RESPONSE_TYPES)

    @staticmethod
    def _message_of(error: BaseException) -> str:
        message = getattr(error, "message", None)
        if isinstance(message, str) and message:
            return message
        return str(error) or type(error).__name__
