"""Translate OpenAI SDK exceptions into relay errors."""

import logging
from typing import Any, Optional

import openai

from utils.relay_errors import RateLimited, RelayError, UpstreamFailure

LOGGER = logging.getLogger(__name__)


def _provider_message(exc: Exception) -> Optional[str]:
    """Best-effort human readable message from a provider error."""
    body: Any = getattr(exc, "body", None)
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(exc)
    return text or None


def translate_provider_error(exc: Exception) -> RelayError:
    """Return the relay error for a failed model call."""
    if isinstance(exc, RelayError):
        return exc
    if isinstance(exc, openai.RateLimitError):
        LOGGER.warning("OpenAI rate limit hit: %s", exc)
        return RateLimited(_provider_message(exc))
    if isinstance(exc, openai.APIError):
        LOGGER.error("OpenAI API error: %s", exc)
        return UpstreamFailure(_provider_message(exc))
    LOGGER.error("Unexpected error during OpenAI call: %s", exc)
    return UpstreamFailure(_provider_message(exc) or "An error occurred")
