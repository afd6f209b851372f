"""Integration tests against a real disk image (skipped unless DISKGLOB_TEST_IMAGE is set).

The image is expected to hold a filesystem on volume ``DISKGLOB_TEST_VOLUME``
(default 0) with at least one regular file at the root.
"""

import os
from pathlib import Path

import pytest

pytest.importorskip("pytsk3")

from core.evidence_fs import describe_volumes, open_filesystem  # noqa: E402
from extraction.pipeline import ExtractionPipeline  # noqa: E402
from extraction.wildcard import leaf_name  # noqa: E402


@pytest.fixture(scope="module")
def volume_index() -> int:
    return int(os.environ.get("DISKGLOB_TEST_VOLUME", "0"))


def test_describe_volumes(disk_image_path: Path):
    described = describe_volumes(disk_image_path)
    assert described
    assert [volume.index for volume, _ in described] == list(range(len(described)))


def test_root_files_extracted(disk_image_path: Path, volume_index: int, tmp_path: Path):
    with open_filesystem(disk_image_path, volume_index) as opened:
        root_files = opened.fs.list_files("/")
        if not root_files:
            pytest.skip("No regular files at the image root")
        result = ExtractionPipeline(opened.fs).run("/*", str(tmp_path / "root"))

    assert result.matches == sorted(root_files, key=leaf_name)
    assert result.failed_count == 0
