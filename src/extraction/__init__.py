"""Wildcard path resolution and file extraction from evidence filesystems."""

from .exceptions import (  # noqa: F401
    DiskGlobError,
    FilesystemNotDetectedError,
    ImageError,
    InvalidPatternError,
    NoVolumesError,
    VolumeIndexError,
)
from .destination import plan_destination  # noqa: F401
from .wildcard import leaf_name, matches, split_pattern  # noqa: F401
from .walker import TreeWalker  # noqa: F401
from .pipeline import (  # noqa: F401
    ExtractionPipeline,
    ExtractionResult,
    FileOutcome,
    run_extraction,
)
