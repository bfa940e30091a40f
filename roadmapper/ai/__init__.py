"""Gemini generation: requests, dispatch, transports and error classification."""

from roadmapper.ai.base import (
    ErrorKind,
    Failure,
    GenerationError,
    GenerationRequest,
    GenerationResult,
    SamplingParameters,
    Success,
    TokenUsage,
)
from roadmapper.ai.credentials import CredentialContext, FileCredentialStore, MemoryCredentialStore
from roadmapper.ai.dispatcher import GenerationRequestDispatcher
from roadmapper.ai.errors import ErrorClassifier, TransportError
from roadmapper.ai.retry import RetryingDispatcher
from roadmapper.ai.transport import GenaiTransport, HttpxTransport

__all__ = [
    "CredentialContext",
    "ErrorClassifier",
    "ErrorKind",
    "Failure",
    "FileCredentialStore",
    "GenaiTransport",
    "GenerationError",
    "GenerationRequest",
    "GenerationRequestDispatcher",
    "GenerationResult",
    "HttpxTransport",
    "MemoryCredentialStore",
    "RetryingDispatcher",
    "SamplingParameters",
    "Success",
    "TokenUsage",
    "TransportError",
]
