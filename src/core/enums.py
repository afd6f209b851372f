"""
Core Enumerations

Centralized enum definitions for consistent typing across the codebase.
Using StrEnum (Python 3.11+) for string-based enums that serialize naturally.
"""

from enum import StrEnum


class ImageFormat(StrEnum):
    """Disk image container formats understood by the image opener."""

    AUTO = "auto"
    RAW = "raw"
    EWF = "ewf"
    VMDK = "vmdk"

    @classmethod
    def from_path(cls, path: str) -> "ImageFormat":
        """Guess the container format from a file name extension."""
        lowered = path.lower()
        if lowered.endswith((".e01", ".ex01")):
            return cls.EWF
        if lowered.endswith(".vmdk"):
            return cls.VMDK
        return cls.RAW


class ExtractionStatus(StrEnum):
    """Overall status of one extraction run."""

    OK = "ok"
    PARTIAL = "partial"  # Some files copied, some failed
    ERROR = "error"
    SKIPPED = "skipped"  # Only zero-length matches
    NO_MATCHES = "no_matches"

    @property
    def is_failure(self) -> bool:
        """Statuses that the command line reports with a non-zero exit code."""
        return self in (ExtractionStatus.ERROR, ExtractionStatus.NO_MATCHES)


class OutcomeStatus(StrEnum):
    """Per-file result of the copy loop."""

    COPIED = "copied"
    SKIPPED_EMPTY = "skipped_empty"
    COPY_FAILED = "copy_failed"
