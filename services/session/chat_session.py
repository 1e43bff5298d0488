"""Conversation session: ordered history plus one cancellable turn at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from models.chat_models import Message, MessageKind, MessageRole, TurnError, TurnOutcome
from services.session.attachments import AttachmentRegistry, ImageAttachment
from services.session.relay_client import RelayClient, RelayRequestError
from utils.relay_errors import ErrorKind

LOGGER = logging.getLogger(__name__)


class ChatSession:
	"""Own the message history and the lifecycle of each turn.

	A session is either idle or submitting. While submitting, further
	submissions are rejected (not queued) and `cancel_turn` may abort the
	in-flight relay call. Every submitted turn ends in exactly one outcome:
	completed (assistant message appended), failed (error message appended)
	or cancelled (nothing appended).
	"""

	def __init__(self, relay: RelayClient, attachments: Optional[AttachmentRegistry] = None) -> None:
		if relay is None:
			raise ValueError("RelayClient is required.")
		self.relay = relay
		self.attachments = attachments if attachments is not None else AttachmentRegistry()
		self.in_conversation = False
		self._messages: List[Message] = []
		self._inflight: Optional[asyncio.Task] = None
		self._cancelled_task: Optional[asyncio.Task] = None
		# Bumped on every reset; replies from an older generation are dropped.
		self._generation = 0

	@property
	def messages(self) -> Tuple[Message, ...]:
		return tuple(self._messages)

	@property
	def is_loading(self) -> bool:
		return self._inflight is not None

	def wire_history(self) -> List[dict]:
		"""Prior history in the shape the relay expects; failed turns are left out."""
		return [message.to_wire() for message in self._messages if not message.is_error]

	async def submit_turn(self, text: str = "", image: Optional[ImageAttachment] = None) -> Optional[TurnOutcome]:
		"""Run one turn against the relay.

		Returns None without touching history when there is nothing to send
		or a turn is already in flight; otherwise the turn's outcome.
		"""
		text = (text or "").strip()
		if not text and image is None:
			return None
		if self.is_loading:
			LOGGER.debug("Rejected submission while a turn is in flight.")
			return None

		self.in_conversation = True
		history = self.wire_history()
		image_ref = self.attachments.register(image) if image is not None else None
		self._messages.append(Message(role=MessageRole.USER, content=text, image=image_ref))

		task = asyncio.ensure_future(self.relay.send_turn(text, history, image))
		generation = self._generation
		self._inflight = task
		try:
			reply = await task
		except asyncio.CancelledError:
			if self._cancelled_task is task:
				return TurnOutcome.cancelled()
			# The caller itself was cancelled; make sure the request dies with it.
			task.cancel()
			raise
		except RelayRequestError as exc:
			if self._is_stale(task, generation) or exc.kind is ErrorKind.CANCELLED:
				return TurnOutcome.cancelled()
			return self._append_error(exc.message, exc.kind)
		finally:
			stale = self._is_stale(task, generation)
			if self._inflight is task:
				self._inflight = None
			if self._cancelled_task is task:
				self._cancelled_task = None

		if stale:
			return TurnOutcome.cancelled()
		message = Message(role=MessageRole.ASSISTANT, content=reply)
		self._messages.append(message)
		return TurnOutcome.completed(message)

	def cancel_turn(self) -> bool:
		"""Abort the in-flight turn.

		Returns True when a pending call was cancelled, False when there was
		nothing to cancel or the call had already completed.
		"""
		task = self._inflight
		if task is None or task.done():
			return False
		self._cancelled_task = task
		self._inflight = None
		task.cancel()
		LOGGER.info("Turn cancelled by user.")
		return True

	def reset_session(self) -> None:
		"""Start a new conversation: cancel any pending turn, revoke attachments, clear history."""
		self.cancel_turn()
		self._generation += 1
		self._inflight = None
		for message in self._messages:
			if message.image:
				self.attachments.revoke(message.image)
		self.attachments.revoke_all()
		self._messages.clear()
		self.in_conversation = False

	def _is_stale(self, task: asyncio.Task, generation: int) -> bool:
		return self._cancelled_task is task or self._generation != generation

	def _append_error(self, detail: str, kind: ErrorKind) -> TurnOutcome:
		LOGGER.warning("Turn failed (%s): %s", kind.value, detail)
		text = detail or "Sorry, I encountered an error. Please try again."
		message = Message(role=MessageRole.ASSISTANT, content=text, kind=MessageKind.ERROR)
		self._messages.append(message)
		return TurnOutcome.failed(message, TurnError(message=text, kind=kind))
