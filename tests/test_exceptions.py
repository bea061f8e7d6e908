"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from llm_webchat.exceptions import (
    AttachmentTooLargeError,
    ConfigValidationError,
    ConfigurationMissingError,
    ConversationNotFoundError,
    MessageValidationError,
    PersistenceError,
    RemoteCallError,
    RenderError,
    WebChatError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for error_type in (
            ConfigurationMissingError,
            MessageValidationError,
            ConversationNotFoundError,
            RemoteCallError,
            PersistenceError,
            RenderError,
            ConfigValidationError,
        ):
            self.assertTrue(issubclass(error_type, WebChatError))
        self.assertTrue(issubclass(AttachmentTooLargeError, MessageValidationError))
        self.assertTrue(issubclass(WebChatError, RuntimeError))

    def test_attachment_too_large_message(self) -> None:
        error = AttachmentTooLargeError("big.png", 11 * 1024 * 1024, 10 * 1024 * 1024)
        self.assertEqual(str(error), "File big.png is too large. Maximum size is 10MB.")
        self.assertEqual(error.size_bytes, 11 * 1024 * 1024)

    def test_remote_call_error_carries_status(self) -> None:
        error = RemoteCallError("API Error: 401 Unauthorized", status_code=401)
        self.assertEqual(error.status_code, 401)

    def test_not_found_carries_id(self) -> None:
        error = ConversationNotFoundError("abc")
        self.assertEqual(error.conversation_id, "abc")
        self.assertIn("abc", str(error))


if __name__ == "__main__":
    unittest.main()
