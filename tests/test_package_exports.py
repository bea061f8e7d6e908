"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import llm_webchat


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        for name in llm_webchat.__all__:
            self.assertIsNotNone(getattr(llm_webchat, name), name)
        self.assertTrue(callable(llm_webchat.load_config))
        self.assertTrue(issubclass(llm_webchat.RemoteCallError, llm_webchat.WebChatError))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(llm_webchat, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
