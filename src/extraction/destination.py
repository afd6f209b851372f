"""
Host destination naming for matched files.

A single match is written to the requested path verbatim. Several matches
get a 1-based counter appended after the full file name, extension included:
``out.txt`` becomes ``out.txt.1``, ``out.txt.2``, ...
"""

from __future__ import annotations

import os


def plan_destination(base_destination: str, match_index: int, match_count: int) -> str:
    """
    Return the host path for match ``match_index`` (1-based) of ``match_count``.

    Raises:
        ValueError: If the index or count is below 1 or the index exceeds the count.
    """
    if match_count < 1 or match_index < 1 or match_index > match_count:
        raise ValueError(
            f"match_index must be within 1..{match_count}, got {match_index}"
        )
    if match_count == 1:
        return base_destination

    directory, file_name = os.path.split(base_destination)
    numbered = f"{file_name}.{match_index}"
    if not directory:
        return numbered
    return os.path.join(directory, numbered)

