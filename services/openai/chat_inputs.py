"""Utilities to build chat completion message payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from models.chat_models import HistoryEntry
from utils.relay_errors import InvalidInput

_HISTORY_ADAPTER = TypeAdapter(List[HistoryEntry])


@dataclass(frozen=True)
class ImageInput:
    """An image to show the model, as a URL (hosted or `data:` URL)."""

    url: str
    source: str = "url"


@dataclass
class TurnRequest:
    """Relay-side view of one turn: new text, optional image, prior history."""

    text: str = ""
    image: Optional[ImageInput] = None
    history: List[HistoryEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.text = (self.text or "").strip()
        if not self.text and self.image is None:
            raise InvalidInput("Message or image is required")


def parse_history(raw: Optional[str]) -> List[HistoryEntry]:
    """Decode the JSON-encoded `messages` form field."""
    if raw is None or not raw.strip():
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInput("messages must be a JSON array") from exc
    try:
        return _HISTORY_ADAPTER.validate_python(decoded)
    except ValidationError as exc:
        raise InvalidInput("messages must be a list of {role, content} objects with role user or assistant") from exc


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def image_part(url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url}}


def build_user_message(text: Optional[str], image_url: Optional[str]) -> Dict[str, Any]:
    """Compose the new user message, one content part per modality."""
    content: List[Dict[str, Any]] = []
    if text:
        content.append(text_part(text))
    if image_url:
        content.append(image_part(image_url))
    return {"role": "user", "content": content}


def build_messages(
    system_prompt: str,
    history: List[HistoryEntry],
    user_message: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """Build the full message list: system, prior history, then the new user message."""
    messages: List[Dict[str, Any]] = [{"role": "system", "content": [text_part(system_prompt)]}]
    for entry in history:
        # Image-only turns leave no text behind; the provider rejects empty parts.
        if not entry.content.strip():
            continue
        messages.append({"role": entry.role, "content": [text_part(entry.content)]})
    messages.append(user_message)
    return messages
