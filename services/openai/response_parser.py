"""Helpers to parse chat completion outputs."""

from typing import Any, Dict, Optional

from utils.relay_errors import UpstreamFailure


def extract_completion_text(completion: Any) -> str:
    """Return the text of the first choice, or raise if the model sent none."""
    choices = getattr(completion, "choices", None) or []
    if not choices:
        raise UpstreamFailure("Model returned no choices.")
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not content:
        raise UpstreamFailure("Model returned an empty response.")
    return content


def extract_usage(completion: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the completion, if present."""
    usage = getattr(completion, "usage", None)
    return {
        "input_tokens": getattr(usage, "prompt_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "completion_tokens", None) if usage else None,
    }
