"""Global pytest configuration."""

import os
from pathlib import Path

import pytest

pytest_plugins = ["tests.fixtures.memory_fs"]


@pytest.fixture(scope="session")
def disk_image_path() -> Path:
    """Provide a real raw/EWF/VMDK image for tests that need one."""
    env_path = os.environ.get("DISKGLOB_TEST_IMAGE")
    if not env_path:
        pytest.skip("DISKGLOB_TEST_IMAGE not set")
    path = Path(env_path)
    if not path.exists():
        pytest.skip(f"Disk image not found at {path}")
    return path
