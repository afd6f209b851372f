"""
Segment-by-segment traversal of an evidence filesystem.

Each pattern segment consumes exactly one directory level, so only branches
whose names keep matching are ever listed. Recursion depth equals the number
of segments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Sequence

from core.logging import get_logger

from .wildcard import leaf_name, matches

if TYPE_CHECKING:
    from core.evidence_fs import EvidenceFS

LOGGER = get_logger("extraction.walker")


class TreeWalker:
    """Collect every file whose full path satisfies all pattern segments in order."""

    def __init__(self, fs: "EvidenceFS", sort_entries: bool = True) -> None:
        self.fs = fs
        self.sort_entries = sort_entries

    def walk(self, segments: Sequence[str]) -> List[str]:
        """
        Return the match set for ``segments``, starting at the filesystem root.

        Directories only ever satisfy non-terminal segments and files only the
        terminal one. An empty list means nothing matched.
        """
        if not segments:
            return []
        results = self._walk("", list(segments), 0)
        LOGGER.debug("Pattern %s matched %d file(s)", "/".join(segments), len(results))
        return results

    def _listing(self, paths: Sequence[str]) -> List[str]:
        if self.sort_entries:
            return sorted(paths, key=leaf_name)
        return list(paths)

    def _walk(self, directory: str, segments: List[str], index: int) -> List[str]:
        results: List[str] = []
        segment = segments[index]

        terminal = index == len(segments) - 1
        try:
            entries = self.fs.list_files(directory) if terminal else self.fs.list_directories(directory)
        except FileNotFoundError:
            LOGGER.debug("Directory %s does not exist, skipping branch", directory or "/")
            return results

        if terminal:
            for file_path in self._listing(entries):
                if matches(leaf_name(file_path), segment):
                    results.append(file_path)
        else:
            for dir_path in self._listing(entries):
                if matches(leaf_name(dir_path), segment):
                    LOGGER.debug("Descending into %s (segment %d: %s)", dir_path, index, segment)
                    results.extend(self._walk(dir_path, segments, index + 1))
        return results

