"""Conversation domain models shared by the relay and the session manager."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict

from utils.relay_errors import ErrorKind


class MessageRole(str, Enum):
	USER = "user"
	ASSISTANT = "assistant"


class MessageKind(str, Enum):
	TEXT = "text"
	ERROR = "error"


@dataclass
class Message:
	"""One entry of a conversation.

	`image` holds an attachment reference (see `AttachmentRegistry`), never the
	image bytes themselves.
	"""

	role: MessageRole
	content: str
	image: Optional[str] = None
	kind: MessageKind = MessageKind.TEXT
	created_at: float = field(default_factory=lambda: time.time())

	@property
	def is_error(self) -> bool:
		return self.kind is MessageKind.ERROR

	def render(self) -> str:
		"""Return the text shown to the user for this message."""
		if self.is_error:
			return f"Error: {self.content}"
		return self.content

	def to_wire(self) -> Dict[str, str]:
		"""Serialize the message the way the relay expects prior history."""
		return {"role": self.role.value, "content": self.content}


class HistoryEntry(BaseModel):
	"""A prior message as received by the relay in the `messages` form field."""

	model_config = ConfigDict(extra="ignore")

	role: Literal["user", "assistant"]
	content: str = ""


@dataclass(frozen=True)
class TurnError:
	"""Error descriptor for a failed turn."""

	message: str
	kind: ErrorKind


class TurnStatus(str, Enum):
	COMPLETED = "completed"
	FAILED = "failed"
	CANCELLED = "cancelled"


@dataclass(frozen=True)
class TurnOutcome:
	"""Terminal result of one submitted turn."""

	status: TurnStatus
	message: Optional[Message] = None
	error: Optional[TurnError] = None

	@classmethod
	def completed(cls, message: Message) -> "TurnOutcome":
		return cls(status=TurnStatus.COMPLETED, message=message)

	@classmethod
	def failed(cls, message: Message, error: TurnError) -> "TurnOutcome":
		return cls(status=TurnStatus.FAILED, message=message, error=error)

	@classmethod
	def cancelled(cls) -> "TurnOutcome":
		return cls(status=TurnStatus.CANCELLED)

	@property
	def ok(self) -> bool:
		return self.status is TurnStatus.COMPLETED
