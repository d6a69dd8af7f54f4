"""Extract fenced code blocks from Markdown documents.

Fences follow CommonMark: up to three spaces of indentation, then a run of at
least three backticks or tildes. The remainder of the opening line is the info
string; a closing fence uses the same character, is at least as long as the
opener and has no info string.

Malformed regions are reported as :class:`~snipcheck.core.errors.ExtractionError`
values and skipped; extraction always continues with the next well-formed
block.

Usage::

    from snipcheck.extraction import extract_blocks

    document, errors = extract_blocks(text, "guide.md")
    for block in document.blocks:
        print(block.label, block.language)
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from pathlib import Path

from snipcheck.core.errors import DocumentReadError, ExtractionError
from snipcheck.models import UNKNOWN_LANGUAGE, CodeBlock, Document

_FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_HEADING_RE = re.compile(r"^ {0,3}#{1,6}\s+(?P<title>.+?)\s*#*\s*$")

SNIP_PREFIX = "snip-"


@dataclass(frozen=True)
class FenceInfo:
    """Parsed info string of an opening fence."""

    language: str
    flags: frozenset[str]
    attrs: tuple[tuple[str, str], ...]


def parse_info(info: str) -> FenceInfo:
    """Parse a code-fence info string into language, flags, and attributes."""
    try:
        tokens = shlex.split(info)
    except ValueError:
        # Unbalanced quotes: fall back to plain whitespace splitting.
        tokens = info.split()

    language = UNKNOWN_LANGUAGE
    start_index = 0
    if tokens and not tokens[0].startswith(SNIP_PREFIX):
        language = _normalize_language(tokens[0])
        start_index = 1

    flags: set[str] = set()
    attrs: list[tuple[str, str]] = []
    for token in tokens[start_index:]:
        if not token.startswith(SNIP_PREFIX):
            continue
        if "=" in token:
            key, value = token.split("=", 1)
            attrs.append((key, value))
        else:
            flags.add(token)
    return FenceInfo(language=language, flags=frozenset(flags), attrs=tuple(attrs))


def _normalize_language(token: str) -> str:
    # Pandoc-style "{.python}" and "python{linenos}" variants
    token = token.strip("{}").lstrip(".")
    token = token.split("{", 1)[0]
    return token.lower() or UNKNOWN_LANGUAGE


@dataclass
class _OpenFence:
    char: str
    length: int
    start_line: int
    info: str
    section: str | None
    depth: int = 0  # 0 = not nested, else current nesting level


def _match_fence(line: str) -> tuple[str, int, str] | None:
    match = _FENCE_RE.match(line)
    if not match:
        return None
    fence = match.group("fence")
    info = match.group("info").strip()
    # Backtick fences may not carry backticks in their info string
    if fence[0] == "`" and "`" in info:
        return None
    return fence[0], len(fence), info


def extract_blocks(
    text: str,
    document_id: str,
    *,
    path: Path | None = None,
) -> tuple[Document, list[ExtractionError]]:
    """Extract all fenced code blocks from *text*.

    Args:
        text: Raw Markdown text.
        document_id: Identifier used in block labels and the report.
        path: Source path, if the text came from a file.

    Returns:
        The parsed :class:`Document` and the extraction errors found.
    """
    blocks: list[CodeBlock] = []
    errors: list[ExtractionError] = []
    section: str | None = None
    current: _OpenFence | None = None
    content: list[str] = []

    for lineno, line in enumerate(text.splitlines(), 1):
        fence = _match_fence(line)

        if current is None:
            if fence is not None:
                char, length, info = fence
                current = _OpenFence(char, length, lineno, info, section)
                content = []
                continue
            heading = _HEADING_RE.match(line)
            if heading:
                section = heading.group("title")
            continue

        is_same_fence = fence is not None and fence[0] == current.char and fence[1] >= current.length
        if not is_same_fence:
            content.append(line)
            continue

        _, _, info = fence
        if info:
            # An opener inside an open block: nested fences. The outer fence
            # counts as the first level.
            current.depth = current.depth + 1 if current.depth else 2
            continue

        if current.depth:
            current.depth -= 1
            if current.depth == 0:
                errors.append(
                    ExtractionError(
                        f"nested code fence inside block opened at line {current.start_line}",
                        document=document_id,
                        line=current.start_line,
                    )
                )
                current = None
            continue

        parsed = parse_info(current.info)
        blocks.append(
            CodeBlock(
                document_id=document_id,
                start_line=current.start_line,
                language=parsed.language,
                lines=tuple(content),
                info=current.info,
                flags=parsed.flags,
                attrs=parsed.attrs,
                section=current.section,
                index=len(blocks),
            )
        )
        current = None

    if current is not None:
        errors.append(
            ExtractionError(
                f"unterminated code fence opened at line {current.start_line}",
                document=document_id,
                line=current.start_line,
            )
        )

    return Document(identifier=document_id, blocks=tuple(blocks), path=path), errors


def load_document(path: Path, *, identifier: str | None = None) -> tuple[Document, list[ExtractionError]]:
    """Read *path* and extract its blocks.

    Raises:
        DocumentReadError: If the file cannot be read or decoded.
    """
    document_id = identifier or path.as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentReadError(f"Cannot read document {document_id}: {exc}", cause=exc).with_context(
            document=document_id
        ) from exc
    return extract_blocks(text, document_id, path=path)


__all__ = ["FenceInfo", "extract_blocks", "load_document", "parse_info"]
