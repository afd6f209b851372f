from __future__ import annotations

import hashlib
from typing import BinaryIO, Optional, Tuple


def copy_stream(
    source: BinaryIO,
    destination: BinaryIO,
    chunk_size: int = 1024 * 1024,
    alg: Optional[str] = "sha256",
) -> Tuple[int, Optional[str]]:
    """
    Stream ``source`` into ``destination`` chunk by chunk.

    The digest is computed over the same chunks that are written, so the
    copied file never has to be read back.

    Returns:
        (bytes written, hex digest or None when ``alg`` is None)
    """
    hasher = hashlib.new(alg.lower()) if alg else None
    written = 0
    while chunk := source.read(chunk_size):
        destination.write(chunk)
        if hasher is not None:
            hasher.update(chunk)
        written += len(chunk)
    return written, hasher.hexdigest() if hasher is not None else None
