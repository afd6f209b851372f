"""
Exceptions raised by diskglob.

Per-file copy problems are not exceptions at this level: the pipeline turns
them into outcomes so one failing file never aborts a batch.
"""


class DiskGlobError(Exception):
    """Base exception for diskglob errors."""
    pass


class InvalidPatternError(DiskGlobError):
    """Raised when a path pattern is empty or consists only of separators."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"Invalid internal file pattern provided: {pattern!r}")


class ImageError(DiskGlobError):
    """Raised when a disk image cannot be turned into a readable filesystem."""
    pass


class NoVolumesError(ImageError):
    """Raised when the image exposes no allocated logical volume."""
    pass


class VolumeIndexError(ImageError):
    """Raised when the requested logical volume index does not exist."""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(
            f"Selected logical volume index {index} is out of range "
            f"({count} volume(s) available)."
        )


class FilesystemNotDetectedError(ImageError):
    """Raised when no supported filesystem is found on the selected volume."""
    pass
