"""Turn messages into safe HTML fragments.

Assistant text goes through markdown (with code highlighting and math
delimiter normalization); user text is escaped verbatim. Code blocks get a
language label and a copy button, and math typesetting is scheduled after the
fragment has been inserted by the presentation layer.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import html
import logging
import re
from typing import Any, Protocol

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from ..heuristics import (
    LanguageGuess,
    MathGuess,
    detect_language,
    looks_like_display_math,
    looks_like_inline_math,
    normalize_math_delimiters,
)
from ..models import Message

LOGGER = logging.getLogger(__name__)

WELCOME_TEXT = "Hello! I'm your AI assistant. How can I help you today?"
COPY_LABEL = "Copy"
COPIED_LABEL = "Copied!"
COPY_RESET_SECONDS = 2.0
TYPESET_DELAY_SECONDS = 0.2

FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
INLINE_CODE_RE = re.compile(r"`[^`]+`")
MATH_SPAN_RE = re.compile(r"\\\[[\s\S]*?\\\]|\\\([\s\S]*?\\\)")
# Private-use code points never appear in model output and pass through
# markdown untouched.
_PLACEHOLDER_RE = re.compile("\ue000([CM])(\\d+)\ue001")
_SAFE_IMAGE_SRC_RE = re.compile(r"^(data:image/[\w.+-]+;base64,|https?://)", re.IGNORECASE)


class MarkdownParser(Protocol):
    def render(self, src: str) -> str: ...


class MathTypesetter(Protocol):
    async def typeset(self, target: Any) -> None: ...


class Clipboard(Protocol):
    async def write_text(self, text: str) -> None: ...


def _placeholder(kind: str, index: int) -> str:
    return f"\ue000{kind}{index}\ue001"


def highlight_code(code: str, lang: str, _attrs: str = "") -> str:
    """Pygments highlighting for fenced blocks; empty string lets markdown escape it."""
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return ""
    return highlight(code, lexer, HtmlFormatter(nowrap=True))


def build_markdown_parser(
    highlighter: Callable[[str, str, str], str] = highlight_code,
) -> MarkdownIt:
    """CommonMark with tables, strikethrough and soft breaks; raw HTML disabled."""
    return (
        MarkdownIt("commonmark", {"html": False, "breaks": True, "highlight": highlighter})
        .enable("table")
        .enable("strikethrough")
    )


def plain_text_fallback(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")


def format_time(timestamp: datetime) -> str:
    return timestamp.astimezone().strftime("%H:%M")


class CopyButton:
    """Copy-to-clipboard affordance for one code block.

    After a successful copy the label reads ``Copied!`` and reverts to
    ``Copy`` after ``reset_seconds``.
    """

    def __init__(self, code: str, reset_seconds: float = COPY_RESET_SECONDS) -> None:
        self.code = code
        self.reset_seconds = reset_seconds
        self.label = COPY_LABEL
        self._reset_handle: asyncio.TimerHandle | None = None

    @property
    def copied(self) -> bool:
        return self.label == COPIED_LABEL

    async def press(self, clipboard: Clipboard) -> bool:
        try:
            await clipboard.write_text(self.code)
        except Exception as exc:
            LOGGER.error(
                "renderer.copy.failed",
                extra={"event": "renderer.copy.failed", "reason": str(exc)},
            )
            return False
        self.label = COPIED_LABEL
        if self._reset_handle is not None:
            self._reset_handle.cancel()
        self._reset_handle = asyncio.get_running_loop().call_later(
            self.reset_seconds, self._reset
        )
        return True

    def _reset(self) -> None:
        self.label = COPY_LABEL
        self._reset_handle = None


@dataclass
class DecoratedFragment:
    html: str
    copy_buttons: list[CopyButton] = field(default_factory=list)


@dataclass
class RenderedMessage:
    """HTML for one transcript bubble plus its interactive pieces."""

    role: str
    html: str
    copy_buttons: list[CopyButton] = field(default_factory=list)
    needs_typeset: bool = False


class ContentRenderer:
    """Convert raw message text into displayable, escaped HTML."""

    def __init__(
        self,
        markdown: MarkdownParser | None = None,
        typesetter: MathTypesetter | None = None,
        display_math_guess: MathGuess = looks_like_display_math,
        inline_math_guess: MathGuess = looks_like_inline_math,
        language_guess: LanguageGuess = detect_language,
        typeset_delay: float = TYPESET_DELAY_SECONDS,
    ) -> None:
        self._markdown = markdown or build_markdown_parser()
        self._typesetter = typesetter
        self._display_math_guess = display_math_guess
        self._inline_math_guess = inline_math_guess
        self._language_guess = language_guess
        self._typeset_delay = typeset_delay
        self._typeset_tasks: set[asyncio.Task[None]] = set()

    def render(self, text: str) -> str:
        """Markdown to HTML; any parser failure falls back to escaped plain text."""
        try:
            return self._render_markdown(text)
        except Exception as exc:
            LOGGER.error(
                "renderer.markdown.failed",
                extra={"event": "renderer.markdown.failed", "reason": str(exc)},
            )
            return plain_text_fallback(text)

    def _render_markdown(self, text: str) -> str:
        protected: list[str] = []
        math_spans: list[str] = []

        def _protect(match: re.Match[str]) -> str:
            protected.append(match.group(0))
            return _placeholder("C", len(protected) - 1)

        def _shield_math(match: re.Match[str]) -> str:
            math_spans.append(match.group(0))
            return _placeholder("M", len(math_spans) - 1)

        work = FENCED_CODE_RE.sub(_protect, text)
        work = INLINE_CODE_RE.sub(_protect, work)
        work = normalize_math_delimiters(
            work, self._display_math_guess, self._inline_math_guess
        )
        work = MATH_SPAN_RE.sub(_shield_math, work)
        work = _PLACEHOLDER_RE.sub(
            lambda m: protected[int(m.group(2))] if m.group(1) == "C" else m.group(0),
            work,
        )

        rendered = self._markdown.render(work)

        def _restore_math(match: re.Match[str]) -> str:
            span = math_spans[int(match.group(2))]
            kind = "math display" if span.startswith("\\[") else "math inline"
            return f'<span class="{kind}">{html.escape(span, quote=False)}</span>'

        return _PLACEHOLDER_RE.sub(_restore_math, rendered)

    def decorate_code_blocks(self, fragment: str) -> DecoratedFragment:
        """Wrap each undecorated ``pre > code`` with a language label and copy button."""
        soup = BeautifulSoup(fragment, "html.parser")
        buttons: list[CopyButton] = []
        for code in soup.select("pre > code"):
            pre = code.parent
            container = pre.parent
            if container is not None and "code-block-container" in (
                container.get("class") or []
            ):
                continue

            wrapper = soup.new_tag("div", attrs={"class": "code-block-container"})
            pre.wrap(wrapper)

            code_text = code.get_text()
            language = self._declared_language(code) or self._language_guess(code_text)
            if language:
                label = soup.new_tag("div", attrs={"class": "code-language"})
                label.string = language
                wrapper.append(label)

            button = soup.new_tag(
                "button",
                attrs={
                    "class": "copy-button",
                    "type": "button",
                    "data-copy-index": str(len(buttons)),
                },
            )
            button.string = COPY_LABEL
            wrapper.append(button)
            buttons.append(CopyButton(code_text))
        return DecoratedFragment(html=str(soup), copy_buttons=buttons)

    @staticmethod
    def _declared_language(code: Any) -> str | None:
        for css_class in code.get("class") or []:
            if css_class.startswith("language-"):
                return css_class.removeprefix("language-")
        return None

    def render_message(self, message: Message) -> RenderedMessage:
        if message.role == "user":
            body = plain_text_fallback(message.text)
            images = [
                f'<img class="attachment-image" src="{html.escape(url)}" alt="attachment">'
                for url in message.image_urls
                if _SAFE_IMAGE_SRC_RE.match(url)
            ]
            if images:
                body += '<div class="image-attachments">' + "".join(images) + "</div>"
            return RenderedMessage(
                role="user", html=self._bubble("user", body, message.timestamp)
            )

        decorated = self.decorate_code_blocks(self.render(message.text))
        body = f'<div class="markdown-content">{decorated.html}</div>'
        return RenderedMessage(
            role="assistant",
            html=self._bubble("ai", body, message.timestamp),
            copy_buttons=decorated.copy_buttons,
            needs_typeset=True,
        )

    def render_transcript(self, messages: Sequence[Message]) -> list[RenderedMessage]:
        """Render a message log; an empty log shows the welcome bubble."""
        if not messages:
            body = f'<div class="markdown-content">{html.escape(WELCOME_TEXT)}</div>'
            return [
                RenderedMessage(
                    role="assistant", html=self._bubble("ai", body, datetime.now())
                )
            ]
        return [self.render_message(message) for message in messages]

    @staticmethod
    def render_error(message: str) -> str:
        return f'<div class="error-message">{html.escape(f"Error: {message}")}</div>'

    @staticmethod
    def _bubble(css_role: str, body: str, timestamp: datetime) -> str:
        return (
            f'<div class="message {css_role}"><div class="message-content">'
            f'{body}<div class="message-time">{format_time(timestamp)}</div>'
            "</div></div>"
        )

    def schedule_typeset(self, target: Any) -> asyncio.Task[None] | None:
        """Typeset math in an inserted node in the background; no-op without an engine."""
        if self._typesetter is None:
            return None
        task = asyncio.get_running_loop().create_task(self._typeset(target))
        self._typeset_tasks.add(task)
        task.add_done_callback(self._typeset_tasks.discard)
        return task

    async def _typeset(self, target: Any) -> None:
        assert self._typesetter is not None
        try:
            if self._typeset_delay:
                await asyncio.sleep(self._typeset_delay)
            await self._typesetter.typeset(target)
        except Exception as exc:
            LOGGER.error(
                "renderer.typeset.failed",
                extra={"event": "renderer.typeset.failed", "reason": str(exc)},
            )
