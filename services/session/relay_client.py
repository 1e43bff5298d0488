"""HTTP client that sends one turn to the chat relay endpoint."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from services.session.attachments import ImageAttachment
from utils.relay_errors import ErrorKind, kind_for_status

CHAT_ENDPOINT = "/api/chat"
DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


class RelayRequestError(Exception):
	"""A turn the relay answered with an error, or could not answer at all."""

	def __init__(self, message: str, kind: ErrorKind, status_code: Optional[int] = None) -> None:
		self.message = message
		self.kind = kind
		self.status_code = status_code
		super().__init__(message)


class RelayClient:
	"""Post turns as multipart forms and unwrap the `{response}` / `{error}` envelope."""

	def __init__(self, http_client: httpx.AsyncClient, endpoint: str = CHAT_ENDPOINT) -> None:
		if http_client is None:
			raise ValueError("httpx.AsyncClient is required.")
		self.http_client = http_client
		self.endpoint = endpoint

	@classmethod
	def connect(cls, base_url: str, *, timeout: httpx.Timeout = DEFAULT_TIMEOUT) -> "RelayClient":
		return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout))

	async def aclose(self) -> None:
		await self.http_client.aclose()

	async def __aenter__(self) -> "RelayClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def send_turn(
		self,
		text: str,
		history: List[Dict[str, str]],
		image: Optional[ImageAttachment] = None,
	) -> str:
		"""Send one turn and return the assistant reply.

		Raises:
			RelayRequestError: The relay reported an error or was unreachable.
			asyncio.CancelledError: The turn was cancelled mid-request.
		"""
		data: Dict[str, str] = {"message": text}
		if history:
			data["messages"] = json.dumps(history)
		files = {"file": (image.filename, image.data, image.mime_type)} if image else None

		try:
			response = await self.http_client.post(self.endpoint, data=data, files=files)
		except httpx.HTTPError as exc:
			raise RelayRequestError(str(exc) or "Unable to reach the chat service.", ErrorKind.TRANSPORT) from exc

		return self._unwrap(response)

	@staticmethod
	def _unwrap(response: httpx.Response) -> str:
		status = response.status_code
		try:
			payload = response.json()
		except ValueError:
			payload = None

		if not isinstance(payload, dict):
			kind = kind_for_status(status) if response.is_error else ErrorKind.TRANSPORT
			raise RelayRequestError(f"HTTP error! status: {status}", kind, status)

		error = payload.get("error")
		if response.is_error:
			raise RelayRequestError(str(error) if error else f"HTTP error! status: {status}", kind_for_status(status), status)
		if error:
			raise RelayRequestError(str(error), ErrorKind.UPSTREAM_FAILURE, status)

		reply = payload.get("response")
		if not isinstance(reply, str):
			raise RelayRequestError("Chat service response did not include text.", ErrorKind.TRANSPORT, status)
		return reply
