"""Tolerant, delimiter-based scanning of object-literal source text.

Not a parser: it only knows about string literals, comments and the
three bracket pairs, which is enough to isolate a named section such as
``routes: { ... }`` and read the quoted values inside it. Unbalanced or
absent sections produce ``None`` rather than an exception.
"""

from __future__ import annotations

import re

_CLOSERS = {"{": "}", "[": "]", "(": ")"}
_QUOTES = "'\"`"

_STRING = r"""(["'`])((?:\\.|(?!\1)[^\\])*)\1"""
_STRING_RE = re.compile(_STRING, re.DOTALL)
_PAIR_RE = re.compile(
    r"""(["'`])((?:\\.|(?!\1)[^\\])*)\1\s*:\s*(["'`])((?:\\.|(?!\3)[^\\])*)\3""",
    re.DOTALL,
)
_QUOTE_ESCAPE = re.compile(r"""\\([\\'"`])""")


def unescape_quotes(value: str) -> str:
    """Resolve escaped quotes and backslashes inside a literal's body."""
    return _QUOTE_ESCAPE.sub(r"\1", value)


def _skip_string(text: str, start: int) -> int:
    """Index just past the string literal opening at ``start``."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return len(text)


def _skip_comment(text: str, start: int) -> int | None:
    """Index just past a comment opening at ``start``, or None if there is none."""
    if text.startswith("//", start):
        end = text.find("\n", start)
        return len(text) if end == -1 else end
    if text.startswith("/*", start):
        end = text.find("*/", start + 2)
        return len(text) if end == -1 else end + 2
    return None


def strip_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments, leaving string literals intact."""
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in _QUOTES:
            end = _skip_string(text, i)
            out.append(text[i:end])
            i = end
            continue
        skipped = _skip_comment(text, i)
        if skipped is not None:
            i = skipped
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def match_span(text: str, start: int) -> int | None:
    """Index of the delimiter closing the bracket at ``start``.

    Brackets inside strings and comments are ignored. Returns None when
    ``start`` is not an opening bracket or the span never closes.
    """
    if start >= len(text) or text[start] not in _CLOSERS:
        return None
    expected: list[str] = []
    i = start
    while i < len(text):
        ch = text[i]
        if ch in _QUOTES:
            i = _skip_string(text, i)
            continue
        skipped = _skip_comment(text, i)
        if skipped is not None:
            i = skipped
            continue
        if ch in _CLOSERS:
            expected.append(_CLOSERS[ch])
        elif ch in ")]}":
            if not expected or ch != expected.pop():
                return None
            if not expected:
                return i
        i += 1
    return None


def _key_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"""(["'`]?){re.escape(keyword)}\1\s*:\s*""")


def find_block(text: str | None, keyword: str) -> str | None:
    """Text inside the bracket span of the top-level ``keyword:`` entry.

    Only entries at nesting depth zero of ``text`` are considered, so a
    ``routes:`` key nested in some other object is never picked up.
    Returns None when the keyword is absent or its value is not a
    bracketed block.
    """
    if not text:
        return None
    pattern = _key_pattern(keyword)
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if depth == 0 and (i == 0 or not (text[i - 1].isalnum() or text[i - 1] in "_$")):
            found = pattern.match(text, i)
            if found:
                opener = found.end()
                close = match_span(text, opener)
                if close is None:
                    return None
                return text[opener + 1 : close]
        if ch in _QUOTES:
            i = _skip_string(text, i)
            continue
        skipped = _skip_comment(text, i)
        if skipped is not None:
            i = skipped
            continue
        if ch in _CLOSERS:
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        i += 1
    return None


def quoted_strings(text: str | None) -> list[str]:
    """Every quoted literal in ``text``, in order of appearance."""
    if not text:
        return []
    return [unescape_quotes(m.group(2)) for m in _STRING_RE.finditer(strip_comments(text))]


def quoted_pairs(text: str | None) -> dict[str, str]:
    """``"key": "value"`` pairs in ``text``; later duplicates win."""
    if not text:
        return {}
    return {
        unescape_quotes(m.group(2)): unescape_quotes(m.group(4))
        for m in _PAIR_RE.finditer(strip_comments(text))
    }
