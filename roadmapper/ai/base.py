"""Generation request/result models shared by the dispatcher and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 4096
DEFAULT_TOP_P = 0.9


class ErrorKind(Enum):
    """Closed set of failure kinds a generation call can end in."""
    CREDENTIAL_MISSING = "credential_missing"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    NETWORK_UNREACHABLE = "network_unreachable"
    EMPTY_RESPONSE = "empty_response"
    OTHER = "other"
    PARSE_FAILURE = "parse_failure"
    CANCELLED = "cancelled"


# One message per kind, suitable for showing to a user as-is.
USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CREDENTIAL_MISSING: "No API key configured. Add your Gemini API key in settings.",
    ErrorKind.UNAUTHORIZED: "Invalid API key. Please check your Gemini API key in settings.",
    ErrorKind.RATE_LIMITED: "API rate limit exceeded. Please try again later.",
    ErrorKind.NETWORK_UNREACHABLE: "Network connection failed. Please check your internet connection.",
    ErrorKind.EMPTY_RESPONSE: "The model returned no content. Please try again.",
    ErrorKind.OTHER: "An unexpected error occurred. Please try again.",
    ErrorKind.PARSE_FAILURE: "The model response could not be turned into a plan.",
    ErrorKind.CANCELLED: "The request was cancelled.",
}


@dataclass(frozen=True)
class SamplingParameters:
    """Generation-time tuning values sent with every request."""
    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    top_p: float = DEFAULT_TOP_P

    def to_generation_config(self) -> dict[str, float | int]:
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topP": self.top_p,
        }


@dataclass(frozen=True)
class GenerationRequest:
    """A single generation call: prompt text plus sampling parameters.

    context_text, when given, replaces the `{context}` placeholder of
    prompt_text at dispatch time.
    """
    prompt_text: str
    context_text: str | None = None
    sampling: SamplingParameters = field(default_factory=SamplingParameters)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class GenerationError:
    """A classified failure. message carries transport detail for OTHER."""
    kind: ErrorKind
    message: str = ""

    @property
    def user_message(self) -> str:
        if self.kind is ErrorKind.OTHER and self.message:
            return self.message
        return USER_MESSAGES[self.kind]


@dataclass(frozen=True)
class Success:
    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def is_success(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: GenerationError

    @property
    def is_success(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @classmethod
    def of(cls, kind: ErrorKind, message: str = "") -> Failure:
        return cls(GenerationError(kind, message))


GenerationResult = Union[Success, Failure]
