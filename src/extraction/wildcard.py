"""
Single-segment wildcard matching and pattern normalization.

A pattern such as ``/home/*/*.txt`` is split into segments that are each
matched against exactly one level of the directory tree:

- ``*`` matches zero or more characters
- ``?`` matches exactly one character
- every other character is literal (regex metacharacters included)

Segments never cross a ``/`` boundary, so ``*`` here is not a recursive glob.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Pattern

from .exceptions import InvalidPatternError


@lru_cache(maxsize=512)
def _compile_segment(segment: str) -> Pattern[str]:
    parts = []
    for char in segment:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def matches(name: str, segment: str) -> bool:
    """Return True if a single path component ``name`` satisfies ``segment``."""
    return _compile_segment(segment).fullmatch(name) is not None


def split_pattern(raw_pattern: str) -> List[str]:
    """
    Normalize a raw pattern and split it into segments.

    Backslashes become ``/``, leading separators are stripped, and the rest is
    split on ``/``.

    Raises:
        InvalidPatternError: If nothing but separators remains.

    Example:
        >>> split_pattern("/home/*/*.txt")
        ['home', '*', '*.txt']
    """
    normalized = raw_pattern.replace("\\", "/").lstrip("/")
    segments = normalized.split("/")
    if not segments or (len(segments) == 1 and not segments[0]):
        raise InvalidPatternError(raw_pattern)
    return segments


def leaf_name(path: str) -> str:
    """Return the last component of a virtual path (``/a/b/`` -> ``b``)."""
    if not path:
        return ""
    normalized = path.replace("\\", "/")
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    slash = normalized.rfind("/")
    return normalized[slash + 1:] if slash >= 0 else normalized
