"""Best-effort guessing heuristics used by the renderer.

These are labelling aids, not contracts: they return a guess with no
confidence attached and may be wrong for ambiguous input. Each function can
be swapped out through ``ContentRenderer``'s constructor.
"""

from __future__ import annotations

from collections.abc import Callable
import re

DISPLAY_MATH_MARKERS = ("\\", "frac", "sum", "int", "ldots", "=", "^", "_")

INLINE_MATH_MACROS = (
    "frac",
    "sum",
    "int",
    "omega",
    "alpha",
    "beta",
    "gamma",
    "delta",
    "theta",
    "lambda",
    "pi",
    "sigma",
    "sqrt",
    "sin",
    "cos",
    "tan",
    "log",
    "exp",
    "lim",
    "infty",
    "partial",
    "nabla",
    "cdot",
    "times",
)

# Bracket spans that are not already \[-escaped, not images and not links.
BRACKET_SPAN_RE = re.compile(r"(?<![\\!])\[([^\[\]]*)\](?![(:\[])")
PAREN_SPAN_RE = re.compile(r"(?<!\\)\(([^()]*)\)")

MathGuess = Callable[[str], bool]
LanguageGuess = Callable[[str], "str | None"]


def looks_like_display_math(content: str) -> bool:
    """Guess whether a ``[ ... ]`` span holds LaTeX meant as display math."""
    if not content.strip() or content.endswith("\\"):
        return False
    if any(marker in content for marker in DISPLAY_MATH_MARKERS):
        return True
    opens = content.count("(")
    return opens > 0 and opens == content.count(")")


def looks_like_inline_math(content: str) -> bool:
    """Guess whether a ``( ... )`` span is inline LaTeX.

    Requires a backslash and a known macro name, so prose in parentheses is
    left alone.
    """
    if "\\" not in content or content.endswith("\\"):
        return False
    return any(macro in content for macro in INLINE_MATH_MACROS)


def normalize_math_delimiters(
    text: str,
    display_guess: MathGuess = looks_like_display_math,
    inline_guess: MathGuess = looks_like_inline_math,
) -> str:
    """Rewrite math-looking ``[..]`` to ``\\[..\\]`` and ``(..)`` to ``\\(..\\)``."""

    def _display(match: re.Match[str]) -> str:
        content = match.group(1)
        return f"\\[{content}\\]" if display_guess(content) else match.group(0)

    def _inline(match: re.Match[str]) -> str:
        content = match.group(1)
        return f"\\({content}\\)" if inline_guess(content) else match.group(0)

    text = BRACKET_SPAN_RE.sub(_display, text)
    return PAREN_SPAN_RE.sub(_inline, text)


def _has(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(pattern, re.MULTILINE) for pattern in patterns]
    return lambda code: any(regex.search(code) for regex in compiled)


def _has_all(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(pattern, re.MULTILINE) for pattern in patterns]
    return lambda code: all(regex.search(code) for regex in compiled)


# Checked in order; the first matching rule wins.
LANGUAGE_RULES: tuple[tuple[str, Callable[[str], bool]], ...] = (
    ("python", _has(r"^\s*def \w+\(", r"^\s*(from \S+ )?import \w", r"\bprint\(", r"if __name__")),
    ("javascript", _has(r"\bfunction\b", r"\b(const|let|var) \w+\s*=", r"=>")),
    ("java", _has(r"public class", r"public static void main", r"System\.out\.print")),
    ("c", _has_all(r"#include", r"\bprintf\(", r"\bscanf\(")),
    ("cpp", _has(r"#include", r"using namespace", r"std::", r"\bcout\b", r"\bcin\b")),
    ("html", _has(r"<html", r"<head", r"<body", r"<div")),
    ("css", _has_all(r"[.#]?[\w-]+\s*\{", r"\}", r"\bmargin\b")),
    ("sql", _has(r"\bSELECT\b", r"\bINSERT\b", r"\bUPDATE\b", r"\bDELETE\b")),
    ("bash", _has(r"^#!/bin/", r"^\s*echo ", r"^\s*cd ", r"^\s*ls\b")),
    ("json", _has_all(r"\{", r"\}", r'"', r":")),
)


def detect_language(code: str) -> str | None:
    """Sniff a source language from keywords; ``None`` when nothing matches."""
    for language, rule in LANGUAGE_RULES:
        if rule(code):
            return language
    return None
