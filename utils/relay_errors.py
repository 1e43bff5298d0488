"""Error kinds shared by the chat relay and the conversation session."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    """Classification attached to every failed turn."""

    INVALID_INPUT = "invalid_input"
    CANCELLED = "cancelled"
    RATE_LIMITED = "rate_limited"
    MISCONFIGURED = "misconfigured"
    UPSTREAM_FAILURE = "upstream_failure"
    # Client side only: the relay could not be reached or answered garbage.
    TRANSPORT = "transport"


class RelayError(Exception):
    """Base error rendered by the application as an `{"error": ...}` body."""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE
    status_code: int = 500
    default_message = "An error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidInput(RelayError):
    kind = ErrorKind.INVALID_INPUT
    status_code = 400
    default_message = "Message or image is required"


class Cancelled(RelayError):
    kind = ErrorKind.CANCELLED
    status_code = 499
    default_message = "Request cancelled by user"


class RateLimited(RelayError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    default_message = "The model provider is rate limiting requests. Please try again shortly."


class Misconfigured(RelayError):
    kind = ErrorKind.MISCONFIGURED
    status_code = 500
    default_message = "OpenAI API key is not configured"


class UpstreamFailure(RelayError):
    kind = ErrorKind.UPSTREAM_FAILURE
    status_code = 500
    default_message = "OpenAI API error"


STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_INPUT,
    429: ErrorKind.RATE_LIMITED,
    499: ErrorKind.CANCELLED,
}


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a relay HTTP status back to the error kind that produced it."""
    return STATUS_KINDS.get(status_code, ErrorKind.UPSTREAM_FAILURE)
