"""Tests for HTML rendering of messages."""

from __future__ import annotations

import asyncio
import unittest

from bs4 import BeautifulSoup

from llm_webchat.managers.message_renderer import (
    COPIED_LABEL,
    COPY_LABEL,
    WELCOME_TEXT,
    ContentRenderer,
    CopyButton,
)
from llm_webchat.models import ImagePart, Message, TextPart


class ExplodingParser:
    def render(self, src: str) -> str:
        raise ValueError("parser exploded")


class RecordingClipboard:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.copied: list[str] = []

    async def write_text(self, text: str) -> None:
        if self.fail:
            raise PermissionError("clipboard denied")
        self.copied.append(text)


class RecordingTypesetter:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.targets: list[object] = []

    async def typeset(self, target: object) -> None:
        if self.fail:
            raise RuntimeError("math engine missing")
        self.targets.append(target)


class RenderTests(unittest.TestCase):
    """Validate the markdown pipeline and its fallbacks."""

    def setUp(self) -> None:
        self.renderer = ContentRenderer()

    def test_markdown_is_rendered(self) -> None:
        html = self.renderer.render("**bold** and *it*\n\n- one\n- two")
        self.assertIn("<strong>bold</strong>", html)
        self.assertIn("<em>it</em>", html)
        self.assertIn("<li>one</li>", html)

    def test_raw_html_is_escaped(self) -> None:
        html = self.renderer.render("<script>alert(1)</script>")
        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)

    def test_parser_failure_falls_back_to_plain_text(self) -> None:
        renderer = ContentRenderer(markdown=ExplodingParser())
        with self.assertLogs("llm_webchat.managers.message_renderer", level="ERROR"):
            html = renderer.render("line <one>\nline two")
        self.assertEqual(html, "line &lt;one&gt;<br>line two")

    def test_code_spans_are_not_treated_as_math(self) -> None:
        html = self.renderer.render("Use `arr[i = 0]` here")
        self.assertIn("<code>arr[i = 0]</code>", html)
        self.assertNotIn("math", html)

    def test_display_and_inline_math_are_shielded(self) -> None:
        html = self.renderer.render(r"Area [A = \pi r^2] with (\alpha_1)")
        soup = BeautifulSoup(html, "html.parser")
        display = soup.select_one("span.math.display")
        inline = soup.select_one("span.math.inline")
        self.assertIsNotNone(display)
        self.assertIsNotNone(inline)
        self.assertEqual(display.get_text(), r"\[A = \pi r^2\]")
        self.assertEqual(inline.get_text(), r"\(\alpha_1\)")

    def test_fenced_code_keeps_content_verbatim(self) -> None:
        source = "```python\nitems = [x_1, x_2]\nprint(items)\n```"
        soup = BeautifulSoup(self.renderer.render(source), "html.parser")
        code = soup.select_one("pre > code")
        self.assertIsNotNone(code)
        self.assertEqual(code.get_text(), "items = [x_1, x_2]\nprint(items)\n")


class DecorateTests(unittest.TestCase):
    """Validate code block wrapping, labels and copy buttons."""

    def setUp(self) -> None:
        self.renderer = ContentRenderer()

    def test_code_block_is_wrapped_once(self) -> None:
        html = self.renderer.render("```\ndef greet():\n    print('hi')\n```")
        decorated = self.renderer.decorate_code_blocks(html)
        again = self.renderer.decorate_code_blocks(decorated.html)

        soup = BeautifulSoup(again.html, "html.parser")
        self.assertEqual(len(soup.select("div.code-block-container")), 1)
        self.assertEqual(soup.select_one("div.code-language").get_text(), "python")
        self.assertEqual(soup.select_one("button.copy-button").get_text(), COPY_LABEL)
        self.assertEqual(len(decorated.copy_buttons), 1)
        self.assertEqual(again.copy_buttons, [])
        self.assertEqual(
            decorated.copy_buttons[0].code, "def greet():\n    print('hi')\n"
        )

    def test_declared_language_wins_over_guess(self) -> None:
        html = self.renderer.render("```sql\nprint('not python')\n```")
        soup = BeautifulSoup(self.renderer.decorate_code_blocks(html).html, "html.parser")
        self.assertEqual(soup.select_one("div.code-language").get_text(), "sql")

    def test_language_guess_is_pluggable(self) -> None:
        renderer = ContentRenderer(language_guess=lambda code: None)
        html = renderer.render("```\nSELECT 1;\n```")
        soup = BeautifulSoup(renderer.decorate_code_blocks(html).html, "html.parser")
        self.assertIsNone(soup.select_one("div.code-language"))
        self.assertIsNotNone(soup.select_one("button.copy-button"))

    def test_each_block_gets_its_own_button(self) -> None:
        html = self.renderer.render("```\na\n```\n\ntext\n\n```\nb\n```")
        decorated = self.renderer.decorate_code_blocks(html)
        self.assertEqual([b.code for b in decorated.copy_buttons], ["a\n", "b\n"])
        soup = BeautifulSoup(decorated.html, "html.parser")
        self.assertEqual(
            [b["data-copy-index"] for b in soup.select("button.copy-button")], ["0", "1"]
        )


class CopyButtonTests(unittest.IsolatedAsyncioTestCase):
    async def test_copy_shows_copied_then_reverts(self) -> None:
        clipboard = RecordingClipboard()
        button = CopyButton("print(1)", reset_seconds=0.01)
        self.assertTrue(await button.press(clipboard))
        self.assertEqual(clipboard.copied, ["print(1)"])
        self.assertEqual(button.label, COPIED_LABEL)
        await asyncio.sleep(0.05)
        self.assertEqual(button.label, COPY_LABEL)

    async def test_clipboard_failure_is_logged(self) -> None:
        button = CopyButton("x")
        with self.assertLogs("llm_webchat.managers.message_renderer", level="ERROR"):
            self.assertFalse(await button.press(RecordingClipboard(fail=True)))
        self.assertFalse(button.copied)


class MessageRenderingTests(unittest.IsolatedAsyncioTestCase):
    """Validate bubbles, welcome transcript and typesetting."""

    async def test_user_text_is_escaped_not_markdown(self) -> None:
        renderer = ContentRenderer()
        rendered = renderer.render_message(
            Message(role="user", content="**raw** <b>x</b>")
        )
        self.assertEqual(rendered.role, "user")
        self.assertIn("**raw** &lt;b&gt;x&lt;/b&gt;", rendered.html)
        self.assertIn('class="message user"', rendered.html)
        self.assertIn('class="message-time"', rendered.html)
        self.assertFalse(rendered.needs_typeset)

    async def test_user_images_are_previewed_when_safe(self) -> None:
        renderer = ContentRenderer()
        message = Message(
            role="user",
            content=[
                TextPart(text="look"),
                ImagePart.from_url("data:image/png;base64,AAAA"),
                ImagePart.from_url("javascript:alert(1)"),
            ],
        )
        soup = BeautifulSoup(renderer.render_message(message).html, "html.parser")
        sources = [img["src"] for img in soup.select("img.attachment-image")]
        self.assertEqual(sources, ["data:image/png;base64,AAAA"])

    async def test_assistant_message_is_markdown_with_buttons(self) -> None:
        renderer = ContentRenderer()
        rendered = renderer.render_message(
            Message(role="assistant", content="Try:\n\n```\nls -la\n```")
        )
        self.assertIn('class="message ai"', rendered.html)
        self.assertIn("markdown-content", rendered.html)
        self.assertEqual(len(rendered.copy_buttons), 1)
        self.assertTrue(rendered.needs_typeset)

    async def test_empty_transcript_shows_welcome(self) -> None:
        rendered = ContentRenderer().render_transcript([])
        self.assertEqual(len(rendered), 1)
        self.assertEqual(rendered[0].role, "assistant")
        self.assertIn("Hello! I&#x27;m your AI assistant.", rendered[0].html)
        self.assertTrue(WELCOME_TEXT.startswith("Hello!"))

    async def test_error_bubble(self) -> None:
        html = ContentRenderer.render_error("API Error: 500 <oops>")
        self.assertEqual(
            html, '<div class="error-message">Error: API Error: 500 &lt;oops&gt;</div>'
        )

    async def test_typeset_runs_after_delay(self) -> None:
        typesetter = RecordingTypesetter()
        renderer = ContentRenderer(typesetter=typesetter, typeset_delay=0)
        task = renderer.schedule_typeset("node")
        self.assertIsNotNone(task)
        await task
        self.assertEqual(typesetter.targets, ["node"])

    async def test_typeset_failure_is_logged_not_raised(self) -> None:
        renderer = ContentRenderer(typesetter=RecordingTypesetter(fail=True), typeset_delay=0)
        with self.assertLogs("llm_webchat.managers.message_renderer", level="ERROR"):
            await renderer.schedule_typeset("node")

    async def test_no_typesetter_is_noop(self) -> None:
        self.assertIsNone(ContentRenderer().schedule_typeset("node"))


if __name__ == "__main__":
    unittest.main()
