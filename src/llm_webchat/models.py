"""Data models for conversations, messages and content parts."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "New Chat"

Role = Literal["user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_conversation_id() -> str:
    return uuid4().hex


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class ImagePart(BaseModel):
    """Image content part; ``url`` is an http(s) URL or a base64 data URI."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl

    @classmethod
    def from_url(cls, url: str) -> ImagePart:
        return cls(image_url=ImageUrl(url=url))

    @property
    def url(self) -> str:
        return self.image_url.url


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]
MessageContent = str | list[ContentPart]


class Message(BaseModel):
    """One turn in a conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: MessageContent
    timestamp: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _require_content(self) -> Message:
        if isinstance(self.content, str):
            if not self.content.strip():
                raise ValueError("Message content must not be empty.")
            return self
        has_image = any(isinstance(part, ImagePart) for part in self.content)
        has_text = any(
            isinstance(part, TextPart) and part.text.strip() for part in self.content
        )
        if not (has_text or has_image):
            raise ValueError("Message content must not be empty.")
        return self

    @property
    def text(self) -> str:
        """Return the displayable text: the string content or the first text part."""
        if isinstance(self.content, str):
            return self.content
        for part in self.content:
            if isinstance(part, TextPart):
                return part.text
        return ""

    @property
    def image_urls(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        return [part.url for part in self.content if isinstance(part, ImagePart)]

    def to_wire(self) -> dict[str, Any]:
        """Return the ``{role, content}`` shape sent to the completion API."""
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [part.model_dump() for part in self.content]
        return {"role": self.role, "content": content}


class Conversation(BaseModel):
    """A titled, timestamped, ordered log of messages.

    Serialized with camelCase keys (``createdAt``, ``lastMessageAt``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_conversation_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_message_at: datetime = Field(default_factory=utcnow)

    @property
    def user_message_count(self) -> int:
        return sum(1 for message in self.messages if message.role == "user")

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None
