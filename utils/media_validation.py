"""Validation helpers for uploaded and attached images."""

import base64
import io
from typing import Optional, Tuple

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from utils.relay_errors import InvalidInput

MAX_IMAGE_BYTES = 5 * 1024 * 1024


def check_image_constraints(mime_type: Optional[str], size: int) -> str:
    """Return the normalized MIME type or raise ValueError.

    Only `image/*` content types up to 5MB are accepted.
    """
    content_type = (mime_type or "").lower().split(";", 1)[0].strip()
    if not content_type.startswith("image/"):
        raise ValueError("Please upload an image file")
    if size <= 0:
        raise ValueError("Uploaded image is empty.")
    if size > MAX_IMAGE_BYTES:
        raise ValueError("File size should be less than 5MB")
    return content_type


def sniff_image(image_bytes: bytes) -> str:
    """Decode the image header with Pillow and return its real MIME type."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Uploaded file is not a readable image.") from exc
    mime_type = Image.MIME.get(image_format or "")
    if not mime_type:
        raise ValueError(f"Unsupported image format: {image_format}")
    return mime_type


def to_image_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Encode image bytes to a base64 data URL string."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


async def read_image_upload(upload: UploadFile) -> Optional[Tuple[bytes, str]]:
    """Read and validate an uploaded image.

    Returns `(image_bytes, mime_type)`, or None when the form carried an empty
    file part with no filename (what browsers send when nothing was picked).
    """
    declared_size = getattr(upload, "size", None)
    if isinstance(declared_size, int) and declared_size > MAX_IMAGE_BYTES:
        raise InvalidInput("File size should be less than 5MB")

    try:
        # One byte past the limit is enough to tell an oversized upload apart.
        image_bytes = await upload.read(MAX_IMAGE_BYTES + 1)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise InvalidInput("Unable to read uploaded image.") from exc

    if not image_bytes and not upload.filename:
        return None

    try:
        check_image_constraints(upload.content_type, len(image_bytes))
        mime_type = sniff_image(image_bytes)
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    return image_bytes, mime_type
