"""Controller for chat turns relayed to the model."""

import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, TypeVar

from fastapi import Request, UploadFile

from config.settings import Settings
from services.openai.chat_inputs import ImageInput, TurnRequest, parse_history
from services.openai.chat_relay import PromptRelay
from utils.media_validation import read_image_upload, to_image_data_url
from utils.relay_errors import Cancelled, InvalidInput, Misconfigured

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def run_until_disconnect(request: Request, work: Awaitable[T], poll_seconds: float) -> T:
    """Await `work` while watching the client connection.

    The work runs in its own task. If the client disconnects, or the handler
    itself is cancelled, the task is cancelled so the upstream call stops.

    Raises:
        Cancelled: The client went away before the work finished.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_seconds)
            if done:
                return task.result()
            if await request.is_disconnected():
                LOGGER.info("Client disconnected; cancelling upstream call.")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                raise Cancelled()
    except asyncio.CancelledError:
        task.cancel()
        raise


async def _resolve_image(image_url: Optional[str], file: Optional[UploadFile]) -> Optional[ImageInput]:
    """Return the turn image from either the hosted URL or the uploaded file."""
    url = (image_url or "").strip()
    upload = await read_image_upload(file) if file is not None else None
    if url and upload:
        raise InvalidInput("Provide either image_url or file, not both.")
    if upload:
        image_bytes, mime_type = upload
        return ImageInput(url=to_image_data_url(image_bytes, mime_type), source="upload")
    if url:
        return ImageInput(url=url, source="url")
    return None


async def handle_chat_turn(
    request: Request,
    message: Optional[str],
    image_url: Optional[str],
    file: Optional[UploadFile],
    messages: Optional[str],
) -> Dict[str, Any]:
    """Validate one chat turn, relay it to the model and wrap the reply.

    Args:
        request: FastAPI Request (used to access app.state for shared clients).
        message: New user text; may be empty when an image is supplied.
        image_url: Pre-hosted image URL.
        file: Uploaded image file.
        messages: JSON-encoded prior history.

    Returns:
        A dict with the model reply under `response`.

    Raises:
        RelayError: Rendered by the application as an `{"error": ...}` body.
    """
    openai_client = getattr(request.app.state, "openai_client", None)
    if openai_client is None:
        raise Misconfigured()
    settings: Settings = request.app.state.settings

    image = await _resolve_image(image_url, file)
    turn = TurnRequest(text=message or "", image=image, history=parse_history(messages))

    relay = PromptRelay(openai_client, settings)
    try:
        reply = await run_until_disconnect(request, relay.relay(turn), settings.disconnect_poll_seconds)
    except asyncio.CancelledError:
        LOGGER.info("Chat turn cancelled while waiting on the model.")
        raise
    return {"response": reply}
