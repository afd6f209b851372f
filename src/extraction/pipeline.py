"""
Extraction pipeline: pattern -> match set -> host copies.

Pattern validation and the whole tree walk finish before the first byte is
copied. After that every matched file is handled on its own: a zero-length
file is skipped, an I/O error is recorded, and the loop moves on.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from core.enums import ExtractionStatus, OutcomeStatus
from core.hashing import copy_stream
from core.logging import get_logger

from .callbacks import ExtractionCallbacks, NullCallbacks
from .destination import plan_destination
from .walker import TreeWalker
from .wildcard import split_pattern

if TYPE_CHECKING:
    from core.config import ExtractionConfig
    from core.evidence_fs import EvidenceFS

LOGGER = get_logger("extraction.pipeline")

DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FileOutcome:
    """What happened to one matched file."""

    index: int                       # 1-based position in the match set
    source: str
    status: OutcomeStatus
    destination: Optional[str] = None
    size_bytes: Optional[int] = None
    message: Optional[str] = None
    digest: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "source": self.source,
            "status": str(self.status),
            "destination": self.destination,
            "size_bytes": self.size_bytes,
            "message": self.message,
            "digest": self.digest,
        }


@dataclass
class ExtractionResult:
    """Match set and per-file outcomes of one pipeline run."""

    pattern: str
    segments: List[str]
    destination_base: str
    matches: List[str] = field(default_factory=list)
    outcomes: List[FileOutcome] = field(default_factory=list)
    hash_algorithm: Optional[str] = None

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def copied_count(self) -> int:
        return self._count(OutcomeStatus.COPIED)

    @property
    def skipped_count(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_EMPTY)

    @property
    def failed_count(self) -> int:
        return self._count(OutcomeStatus.COPY_FAILED)

    @property
    def status(self) -> ExtractionStatus:
        if not self.matches:
            return ExtractionStatus.NO_MATCHES
        if self.failed_count:
            return ExtractionStatus.PARTIAL if self.copied_count else ExtractionStatus.ERROR
        if self.copied_count:
            return ExtractionStatus.OK
        return ExtractionStatus.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "segments": list(self.segments),
            "destination_base": self.destination_base,
            "status": str(self.status),
            "hash_algorithm": self.hash_algorithm,
            "matches": list(self.matches),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }

    def to_json(self) -> str:
        """Serialize the result for a manifest file."""
        return json.dumps(self.to_dict(), indent=2)


class ExtractionPipeline:
    """Resolve a wildcard pattern inside an evidence filesystem and copy the matches out."""

    def __init__(
        self,
        fs: "EvidenceFS",
        *,
        sort_entries: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        hash_algorithm: Optional[str] = "sha256",
        callbacks: Optional[ExtractionCallbacks] = None,
    ) -> None:
        self.fs = fs
        self.sort_entries = sort_entries
        self.chunk_size = chunk_size
        self.hash_algorithm = hash_algorithm
        self.callbacks = callbacks or NullCallbacks()

    @classmethod
    def from_config(
        cls,
        fs: "EvidenceFS",
        config: "ExtractionConfig",
        callbacks: Optional[ExtractionCallbacks] = None,
    ) -> "ExtractionPipeline":
        return cls(
            fs,
            sort_entries=config.sort_entries,
            chunk_size=config.chunk_size,
            hash_algorithm=config.hash_algorithm,
            callbacks=callbacks,
        )

    def resolve(self, raw_pattern: str) -> List[str]:
        """Return the match set for ``raw_pattern`` without copying anything."""
        segments = split_pattern(raw_pattern)
        return TreeWalker(self.fs, sort_entries=self.sort_entries).walk(segments)

    def run(self, raw_pattern: str, destination_base: str) -> ExtractionResult:
        """
        Copy every file matching ``raw_pattern`` to ``destination_base``.

        Raises:
            InvalidPatternError: Before any filesystem access, for an empty pattern.
        """
        segments = split_pattern(raw_pattern)
        result = ExtractionResult(
            pattern=raw_pattern,
            segments=segments,
            destination_base=destination_base,
            hash_algorithm=self.hash_algorithm,
        )

        self.callbacks.on_step("Resolving pattern")
        result.matches = TreeWalker(self.fs, sort_entries=self.sort_entries).walk(segments)
        if not result.matches:
            LOGGER.info("No files matching pattern '%s'", raw_pattern)
            self.callbacks.on_log(
                f"No files matching the pattern '{raw_pattern}' were found.", "warning"
            )
            return result

        total = len(result.matches)
        LOGGER.info("Pattern '%s' matched %d file(s)", raw_pattern, total)
        self.callbacks.on_log(f"Found {total} file(s) matching pattern '{raw_pattern}':")
        for match in result.matches:
            self.callbacks.on_log(f"- {match}")

        self.callbacks.on_step("Copying files")
        copy_number = 0
        for index, source in enumerate(result.matches, start=1):
            self.callbacks.on_progress(index, total, source)
            size, outcome = self._check_size(source, index)
            if outcome is None:
                # Only files that reach the copy step take a suffix number.
                copy_number += 1
                outcome = self._copy_one(source, index, size, copy_number, total, destination_base)
            result.outcomes.append(outcome)

        LOGGER.info(
            "Extraction finished: %d copied, %d skipped, %d failed",
            result.copied_count, result.skipped_count, result.failed_count,
        )
        return result

    def _check_size(self, source: str, index: int) -> Tuple[int, Optional[FileOutcome]]:
        """Return the size of ``source``, with an outcome when it must not be copied."""
        try:
            size = self.fs.file_size(source)
        except OSError as exc:
            LOGGER.error("Cannot read size of %s: %s", source, exc)
            self.callbacks.on_log(f"Error reading matched file '{source}': {exc}", "error")
            return 0, FileOutcome(index, source, OutcomeStatus.COPY_FAILED, message=str(exc))

        if size == 0:
            LOGGER.warning("Skipping zero-length file %s", source)
            self.callbacks.on_log(
                f"The matched file '{source}' has been found but its size is zero. Skipping.",
                "warning",
            )
            return 0, FileOutcome(index, source, OutcomeStatus.SKIPPED_EMPTY, size_bytes=0)
        return size, None

    def _copy_one(
        self,
        source: str,
        index: int,
        size: int,
        copy_number: int,
        total: int,
        destination_base: str,
    ) -> FileOutcome:
        destination = plan_destination(destination_base, copy_number, total)
        self.callbacks.on_log(f"Processing matched file '{source}' ({size} bytes).")

        try:
            parent = os.path.dirname(destination)
            if parent:
                Path(parent).mkdir(parents=True, exist_ok=True)
            with self.fs.open_for_read(source) as src, open(destination, "wb") as dst:
                written, digest = copy_stream(src, dst, self.chunk_size, self.hash_algorithm)
        except OSError as exc:
            LOGGER.error("Error copying %s to %s: %s", source, destination, exc)
            self.callbacks.on_log(
                f"Error copying file '{source}' to '{destination}': {exc}", "error"
            )
            return FileOutcome(
                index, source, OutcomeStatus.COPY_FAILED,
                destination=destination, size_bytes=size, message=str(exc),
            )

        LOGGER.debug("Copied %s -> %s (%d bytes)", source, destination, written)
        self.callbacks.on_log(f"File copied successfully to '{destination}'")
        return FileOutcome(
            index, source, OutcomeStatus.COPIED,
            destination=destination, size_bytes=written, digest=digest,
        )


def run_extraction(
    fs: "EvidenceFS",
    raw_pattern: str,
    destination_base: str,
    config: Optional["ExtractionConfig"] = None,
    callbacks: Optional[ExtractionCallbacks] = None,
) -> ExtractionResult:
    """Single entry point: (filesystem, pattern, destination) -> ordered outcomes."""
    if config is None:
        pipeline = ExtractionPipeline(fs, callbacks=callbacks)
    else:
        pipeline = ExtractionPipeline.from_config(fs, config, callbacks=callbacks)
    return pipeline.run(raw_pattern, destination_base)
