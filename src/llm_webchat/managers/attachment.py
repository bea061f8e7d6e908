"""Pending file attachments for the next outgoing message.

Manages validation (size), the pending list, and conversion of image
attachments into base64 data-URI content parts.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
import logging
import mimetypes
from pathlib import Path

import aiofiles

from ..config import DEFAULT_MAX_ATTACHMENT_BYTES
from ..exceptions import AttachmentTooLargeError, MessageValidationError
from ..models import ImagePart

LOGGER = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Attachment:
    """A user-selected file; holds either its bytes or a path to read them from."""

    name: str
    size_bytes: int
    mime_type: str = DEFAULT_MIME_TYPE
    data: bytes | None = field(default=None, repr=False)
    path: Path | None = None

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> Attachment:
        guessed = mime_type or mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
        return cls(name=name, size_bytes=len(data), mime_type=guessed, data=data)

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> Attachment:
        resolved = Path(path).expanduser().resolve()
        guessed = mime_type or mimetypes.guess_type(str(resolved))[0] or DEFAULT_MIME_TYPE
        return cls(
            name=resolved.name,
            size_bytes=resolved.stat().st_size,
            mime_type=guessed,
            path=resolved,
        )

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    async def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise MessageValidationError(
                f"Attachment {self.name} has neither data nor a path."
            )
        async with aiofiles.open(self.path, "rb") as handle:
            return await handle.read()


@dataclass(frozen=True)
class AttachmentPayload:
    """What pending attachments contribute to an outgoing request."""

    image_parts: list[ImagePart]
    note: str = ""


@dataclass(frozen=True)
class AttachmentPreview:
    """Display row for one pending attachment."""

    index: int
    name: str
    size: str
    icon: str
    is_image: bool


def format_file_size(size_bytes: int) -> str:
    """Human-readable size, e.g. ``1.5 KB``."""
    if size_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    while size_bytes >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = round(size_bytes / (1024**index), 2)
    return f"{value:g} {units[index]}"


def attachment_icon(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "🖼️"
    if "pdf" in mime_type:
        return "📄"
    if "json" in mime_type:
        return "📋"
    if "csv" in mime_type:
        return "📊"
    if "text" in mime_type:
        return "📝"
    return "📁"


def summarize_names(attachments: Iterable[Attachment]) -> str:
    names = ", ".join(attachment.name for attachment in attachments)
    return f"[Attachments: {names}]" if names else ""


class AttachmentManager:
    """Holds pending attachments until the next send attempt completes."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES) -> None:
        self.max_bytes = max_bytes
        self._pending: list[Attachment] = []

    @property
    def pending(self) -> tuple[Attachment, ...]:
        return tuple(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def has_any(self) -> bool:
        return bool(self._pending)

    def add(self, attachment: Attachment) -> None:
        """Queue an attachment; too-large files raise and leave the list untouched."""
        if attachment.size_bytes > self.max_bytes:
            raise AttachmentTooLargeError(
                attachment.name, attachment.size_bytes, self.max_bytes
            )
        self._pending.append(attachment)

    def add_files(self, attachments: Iterable[Attachment]) -> list[str]:
        """Queue a batch; rejected files are reported and the rest still added."""
        errors: list[str] = []
        for attachment in attachments:
            try:
                self.add(attachment)
            except AttachmentTooLargeError as exc:
                errors.append(str(exc))
                LOGGER.warning(
                    "attachment.rejected",
                    extra={
                        "event": "attachment.rejected",
                        "name": attachment.name,
                        "size_bytes": attachment.size_bytes,
                    },
                )
        return errors

    def remove(self, index: int) -> bool:
        """Remove by position; out-of-range indexes are ignored."""
        if not 0 <= index < len(self._pending):
            return False
        del self._pending[index]
        return True

    def clear(self) -> None:
        self._pending.clear()

    def previews(self) -> list[AttachmentPreview]:
        return [
            AttachmentPreview(
                index=index,
                name=attachment.name,
                size=format_file_size(attachment.size_bytes),
                icon=attachment_icon(attachment.mime_type),
                is_image=attachment.is_image,
            )
            for index, attachment in enumerate(self._pending)
        ]

    def summary(self) -> str:
        """Bracketed note naming every pending attachment."""
        return summarize_names(self._pending)

    async def to_request_parts(self) -> AttachmentPayload:
        """Encode images as data-URI parts; other files become a filename note."""
        image_parts: list[ImagePart] = []
        others: list[Attachment] = []
        for attachment in self._pending:
            if not attachment.is_image:
                others.append(attachment)
                continue
            raw = await attachment.read_bytes()
            encoded = base64.b64encode(raw).decode("ascii")
            image_parts.append(
                ImagePart.from_url(f"data:{attachment.mime_type};base64,{encoded}")
            )
        return AttachmentPayload(image_parts=image_parts, note=summarize_names(others))
