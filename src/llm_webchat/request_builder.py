"""Assemble provider request payloads from a conversation and pending input.

Sampling parameters are chosen from an explicit policy table keyed by model
name prefix, so new model families only need a new ``SamplingPolicy`` row.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .managers.attachment import AttachmentPayload
from .models import ContentPart, ImagePart, Message, TextPart

DEFAULT_IMAGE_PROMPT = "Please analyze these images."
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class SamplingPolicy:
    """Parameter shape for one family of models."""

    name: str
    prefixes: tuple[str, ...] = ()
    token_param: str = "max_tokens"
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float | None = DEFAULT_TEMPERATURE

    def matches(self, model: str) -> bool:
        return any(model.startswith(prefix) for prefix in self.prefixes)

    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {self.token_param: self.max_tokens}
        if self.temperature is not None:
            params["temperature"] = self.temperature
        return params


# Reasoning models reject temperature and take max_completion_tokens instead.
REASONING_POLICY = SamplingPolicy(
    name="reasoning",
    prefixes=("o1", "o3"),
    token_param="max_completion_tokens",
    max_tokens=DEFAULT_MAX_TOKENS,
    temperature=None,
)
STANDARD_POLICY = SamplingPolicy(name="standard")


class SamplingPolicyTable:
    """Ordered prefix -> policy lookup with a fallback for unmatched models."""

    def __init__(
        self,
        policies: Iterable[SamplingPolicy] = (REASONING_POLICY,),
        default: SamplingPolicy = STANDARD_POLICY,
    ) -> None:
        self._policies: list[SamplingPolicy] = list(policies)
        self.default = default

    @property
    def policies(self) -> tuple[SamplingPolicy, ...]:
        return tuple(self._policies)

    def register(self, policy: SamplingPolicy) -> None:
        """Add a policy that takes precedence over the existing rows."""
        self._policies.insert(0, policy)

    def select(self, model: str) -> SamplingPolicy:
        for policy in self._policies:
            if policy.matches(model):
                return policy
        return self.default


DEFAULT_POLICY_TABLE = SamplingPolicyTable()


@dataclass(frozen=True)
class CompletionRequest:
    """A built request plus the canonical user message to log on success."""

    model: str
    messages: list[dict[str, Any]]
    params: dict[str, Any]
    user_message: Message
    policy: str = field(default=STANDARD_POLICY.name)

    def to_payload(self) -> dict[str, Any]:
        return {"model": self.model, "messages": self.messages, **self.params}


def build_user_message(text: str, payload: AttachmentPayload | None = None) -> Message:
    """Build the outgoing user message as a content-part list.

    Non-image attachments contribute a bracketed note to the text; a message
    with neither text nor images gets a default prompt.
    """
    payload = payload or AttachmentPayload(image_parts=[])
    outgoing_text = text.strip()
    if payload.note:
        outgoing_text = f"{outgoing_text}\n\n{payload.note}" if outgoing_text else payload.note

    parts: list[ContentPart] = []
    if outgoing_text:
        parts.append(TextPart(text=outgoing_text))
    parts.extend(payload.image_parts)
    if not parts:
        parts.append(TextPart(text=DEFAULT_IMAGE_PROMPT))
    return Message(role="user", content=parts)


def build_request(
    prior_messages: Sequence[Message],
    text: str,
    model: str,
    payload: AttachmentPayload | None = None,
    policies: SamplingPolicyTable = DEFAULT_POLICY_TABLE,
) -> CompletionRequest:
    """Build ``{model, messages, <sampling params>}`` without touching the log."""
    user_message = build_user_message(text, payload)
    messages = [message.to_wire() for message in prior_messages]
    messages.append(user_message.to_wire())
    policy = policies.select(model)
    return CompletionRequest(
        model=model,
        messages=messages,
        params=policy.params(),
        user_message=user_message,
        policy=policy.name,
    )


def image_count(message: Message) -> int:
    if isinstance(message.content, str):
        return 0
    return sum(1 for part in message.content if isinstance(part, ImagePart))
