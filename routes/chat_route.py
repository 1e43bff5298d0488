"""FastAPI route for relayed chat turns."""

from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile

from controllers.chat_controller import handle_chat_turn

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", summary="Relay a chat turn to the home repair assistant")
async def post_chat_turn(
    request: Request,
    message: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    messages: Optional[str] = Form(None),
):
    """Answer one chat turn.

    Returns `{"response": text}` on success. Failures are raised as
    `RelayError` and rendered as `{"error": message}` by the application.
    """
    return await handle_chat_turn(request, message, image_url, file, messages)
