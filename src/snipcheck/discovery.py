"""Resolve command-line inputs to an ordered list of documents.

An input may be a file, a directory (searched recursively for the configured
patterns) or a glob. Results keep input order; directory and glob matches
are sorted so that the same tree always yields the same order.
"""

from __future__ import annotations

import glob
from collections.abc import Iterable, Sequence
from pathlib import Path

from snipcheck.core.errors import DocumentReadError

_GLOB_CHARS = frozenset("*?[")


def discover_documents(inputs: Iterable[str | Path], patterns: Sequence[str]) -> list[Path]:
    """Expand *inputs* into document paths.

    Raises:
        DocumentReadError: An input does not exist, or nothing was found.
    """
    inputs = list(inputs)
    found: list[Path] = []
    seen: set[Path] = set()

    def add(path: Path) -> None:
        key = path.resolve()
        if key not in seen:
            seen.add(key)
            found.append(path)

    for raw in inputs:
        text = str(raw)
        path = Path(text)
        if path.is_file():
            add(path)
        elif path.is_dir():
            for match in _search_directory(path, patterns):
                add(match)
        elif _GLOB_CHARS.intersection(text):
            matches = sorted(Path(m) for m in glob.glob(text, recursive=True))
            for match in matches:
                if match.is_file():
                    add(match)
                elif match.is_dir():
                    for nested in _search_directory(match, patterns):
                        add(nested)
        else:
            raise DocumentReadError(f"No such file or directory: {text}").with_context(document=text)

    if not found:
        joined = ", ".join(str(i) for i in inputs)
        raise DocumentReadError(f"No documents found in {joined} (patterns: {', '.join(patterns)})")

    return found


def _search_directory(root: Path, patterns: Sequence[str]) -> list[Path]:
    matches: set[Path] = set()
    for pattern in patterns:
        matches.update(p for p in root.rglob(pattern) if p.is_file())
    return sorted(matches)


__all__ = ["discover_documents"]
