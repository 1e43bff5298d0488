"""Client-side image attachments and the registry that hands out references."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator
from uuid import uuid4

from utils.media_validation import check_image_constraints

REFERENCE_SCHEME = "attachment://"


@dataclass(frozen=True)
class ImageAttachment:
	"""An image picked by the user, validated before it can join a turn."""

	data: bytes
	mime_type: str
	filename: str = "image"

	@classmethod
	def from_bytes(cls, data: bytes, mime_type: str, filename: str = "image") -> "ImageAttachment":
		"""Validate and wrap raw bytes; raises ValueError for non-images or files over 5MB."""
		content_type = check_image_constraints(mime_type, len(data))
		return cls(data=data, mime_type=content_type, filename=filename)

	@classmethod
	def from_path(cls, path: str | Path) -> "ImageAttachment":
		"""Load an image from disk, guessing its MIME type from the extension."""
		file_path = Path(path)
		mime_type, _ = mimetypes.guess_type(file_path.name)
		return cls.from_bytes(file_path.read_bytes(), mime_type or "", filename=file_path.name)


class AttachmentRegistry:
	"""Hold attachments for one session behind opaque `attachment://` references.

	References stay valid until revoked; a revoked reference no longer resolves.
	"""

	def __init__(self) -> None:
		self._attachments: Dict[str, ImageAttachment] = {}

	def register(self, attachment: ImageAttachment) -> str:
		ref = f"{REFERENCE_SCHEME}{uuid4().hex}"
		self._attachments[ref] = attachment
		return ref

	def get(self, ref: str) -> ImageAttachment:
		"""Return an attachment or raise KeyError if missing or revoked."""
		attachment = self._attachments.get(ref)
		if attachment is None:
			raise KeyError(f"Attachment {ref} not found")
		return attachment

	def revoke(self, ref: str) -> bool:
		"""Release an attachment; returns False if it was already gone."""
		return self._attachments.pop(ref, None) is not None

	def revoke_all(self) -> int:
		count = len(self._attachments)
		self._attachments.clear()
		return count

	def __contains__(self, ref: object) -> bool:
		return ref in self._attachments

	def __len__(self) -> int:
		return len(self._attachments)

	def __iter__(self) -> Iterator[str]:
		return iter(list(self._attachments))
