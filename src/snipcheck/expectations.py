"""Find inline expectation annotations in code blocks.

An expectation is a *trailing* comment on a line of code::

    x = 1 + 2  # 3
    print("hi")  # hi
    total  # => 42

Parsing is purely lexical; nothing is evaluated here. Comment positions come
from :mod:`tokenize`, so a ``#`` inside a string literal is never mistaken for
an annotation. Blocks that cannot be tokenised (snippets with deliberate
syntax errors, pseudo-code) fall back to a quote-aware line scanner.

A value holding an unescaped ``#`` is ambiguous (``x  # 3 # or 4``): it is
reported as a :class:`~snipcheck.models.ParseWarning` and excluded. Write
``\\#`` for a literal hash.
"""

from __future__ import annotations

import io
import tokenize

from snipcheck.models import (
    ATTR_TIMEOUT,
    KNOWN_ATTRS,
    KNOWN_FLAGS,
    CodeBlock,
    Expectation,
    ParseWarning,
)

# Comments that belong to tools, not to the reader
PRAGMA_PREFIXES = ("noqa", "type:", "pragma", "fmt:", "pylint:", "pyright:", "mypy:")

# Optional markers between "#" and the value
VALUE_PREFIXES = ("=>", "->", "output:")


def parse_expectations(block: CodeBlock) -> tuple[list[Expectation], list[ParseWarning]]:
    """Parse the expectations and fence-metadata warnings of *block*.

    Returns:
        Expectations in source order, and warnings for ambiguous
        annotations or unknown ``snip-*`` fence options.
    """
    warnings = fence_warnings(block)
    expectations: list[Expectation] = []

    comments = _tokenized_comments(block.lines)
    if comments is None:
        comments = _scanned_comments(block.lines)

    for offset in sorted(comments):
        raw = comments[offset]
        value, ambiguous = annotation_value(raw)
        if ambiguous:
            warnings.append(
                ParseWarning(
                    source=block.label,
                    line=block.line_number(offset),
                    value=raw,
                    message="ambiguous annotation: unescaped '#' in expected value",
                )
            )
            continue
        if value is None:
            continue
        expectations.append(
            Expectation(block=block, line_text=block.lines[offset], expected=value, offset=offset)
        )

    return expectations, warnings


def fence_warnings(block: CodeBlock) -> list[ParseWarning]:
    """Warnings for unknown or invalid ``snip-*`` options on the fence."""
    found: list[ParseWarning] = []
    for flag in sorted(block.flags - KNOWN_FLAGS):
        found.append(
            ParseWarning(block.label, block.start_line, flag, f"unknown fence flag {flag!r}")
        )
    for key, value in block.attrs:
        if key not in KNOWN_ATTRS:
            found.append(
                ParseWarning(block.label, block.start_line, f"{key}={value}", f"unknown fence attribute {key!r}")
            )
        elif key == ATTR_TIMEOUT and block.timeout_override is None:
            found.append(
                ParseWarning(
                    block.label,
                    block.start_line,
                    f"{key}={value}",
                    "fence timeout must be a positive number of seconds",
                )
            )
    return found


def annotation_value(comment: str) -> tuple[str | None, bool]:
    """Turn a raw ``# ...`` comment into an expected value.

    Returns:
        ``(value, ambiguous)``. ``value`` is ``None`` when the comment is not
        an expectation (empty, or a tool pragma).
    """
    text = comment.lstrip("#").strip()
    if not text:
        return None, False
    lowered = text.lower()
    if lowered.startswith(PRAGMA_PREFIXES):
        return None, False
    for prefix in VALUE_PREFIXES:
        if lowered.startswith(prefix):
            text = text[len(prefix):].strip()
            break
    if not text:
        return None, False

    chars: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text) and text[i + 1] == "#":
            chars.append("#")
            i += 2
            continue
        if char == "#":
            return None, True
        chars.append(char)
        i += 1
    return "".join(chars), False


# ---------------------------------------------------------------------------
# Comment location
# ---------------------------------------------------------------------------


def _tokenized_comments(lines: tuple[str, ...]) -> dict[int, str] | None:
    """Trailing comments by line offset, or ``None`` if tokenising fails."""
    source = "\n".join(lines) + "\n"
    found: dict[int, str] = {}
    try:
        for token in tokenize.generate_tokens(io.StringIO(source).readline):
            if token.type != tokenize.COMMENT:
                continue
            row, col = token.start
            offset = row - 1
            if offset < len(lines) and lines[offset][:col].strip():
                found[offset] = token.string
    except (tokenize.TokenError, SyntaxError):
        return None
    return found


def _scanned_comments(lines: tuple[str, ...]) -> dict[int, str]:
    """Quote-aware fallback for blocks that do not tokenise."""
    found: dict[int, str] = {}
    open_triple: str | None = None
    for offset, line in enumerate(lines):
        col, open_triple = _comment_column(line, open_triple)
        if col is not None and line[:col].strip():
            found[offset] = line[col:]
    return found


def _comment_column(line: str, open_triple: str | None) -> tuple[int | None, str | None]:
    i = 0
    length = len(line)
    while i < length:
        if open_triple:
            end = line.find(open_triple, i)
            if end == -1:
                return None, open_triple
            i = end + 3
            open_triple = None
            continue
        char = line[i]
        if char == "#":
            return i, None
        if char in "\"'":
            if line.startswith(char * 3, i):
                open_triple = char * 3
                i += 3
                continue
            i += 1
            while i < length and line[i] != char:
                i += 2 if line[i] == "\\" else 1
            i += 1
            continue
        i += 1
    return None, open_triple


__all__ = ["annotation_value", "fence_warnings", "parse_expectations"]
