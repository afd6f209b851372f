"""Tests for src/app/main.py - the click command line."""

import json
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from app import main as cli
from core.evidence_fs import OpenedFilesystem, VolumeInfo

from tests.fixtures.memory_fs import InMemoryFS


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mount(tmp_path: Path) -> Path:
    root = tmp_path / "mount"
    (root / "home" / "alice").mkdir(parents=True)
    (root / "home" / "bob").mkdir()
    (root / "root").mkdir()
    (root / "home" / "alice" / "notes.txt").write_bytes(b"alice notes")
    (root / "home" / "bob" / "todo.txt").write_bytes(b"bob todo")
    (root / "root" / "root.txt").write_bytes(b"")
    return root


@pytest.fixture
def no_config(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DISKGLOB_CONFIG", str(tmp_path / "absent.yml"))


def test_extract_multiple_matches(runner, mount, tmp_path, no_config):
    dest = tmp_path / "out" / "file.txt"
    result = runner.invoke(cli.main, ["extract", str(mount), "0", "/home/*/*.txt", str(dest)])

    assert result.exit_code == 0, result.output
    assert "Found 2 file(s) matching pattern '/home/*/*.txt':" in result.output
    assert "- /home/alice/notes.txt" in result.output
    assert (tmp_path / "out" / "file.txt.1").read_bytes() == b"alice notes"
    assert (tmp_path / "out" / "file.txt.2").read_bytes() == b"bob todo"
    assert "Summary: 2 copied, 0 skipped, 0 failed (ok)" in result.output


def test_extract_empty_file_skipped(runner, mount, tmp_path, no_config):
    dest = tmp_path / "root.txt"
    result = runner.invoke(cli.main, ["extract", str(mount), "0", "/root/root.txt", str(dest)])

    assert result.exit_code == 0, result.output
    assert "its size is zero. Skipping." in result.output
    assert not dest.exists()


def test_extract_no_matches_exit_code(runner, mount, tmp_path, no_config):
    result = runner.invoke(cli.main, ["extract", str(mount), "0", "/home/*/*.pdf", str(tmp_path / "x")])

    assert result.exit_code == 1
    assert "No files matching the pattern '/home/*/*.pdf' were found." in result.output


@pytest.mark.parametrize("pattern", ["", "/"])
def test_extract_invalid_pattern(runner, mount, tmp_path, no_config, pattern):
    result = runner.invoke(cli.main, ["extract", str(mount), "0", pattern, str(tmp_path / "x")])

    assert result.exit_code == 1
    assert "Invalid internal file pattern" in result.output


def test_extract_bad_volume_index_for_directory(runner, mount, tmp_path, no_config):
    result = runner.invoke(cli.main, ["extract", str(mount), "3", "/home/*/*.txt", str(tmp_path / "x")])

    assert result.exit_code == 1
    assert "Selected logical volume index 3 is out of range" in result.output


def test_extract_writes_manifest(runner, mount, tmp_path, no_config):
    manifest = tmp_path / "reports" / "manifest.json"
    result = runner.invoke(cli.main, [
        "extract", str(mount), "0", "/home/alice/notes.txt", str(tmp_path / "n.txt"),
        "--manifest", str(manifest),
    ])

    assert result.exit_code == 0, result.output
    document = json.loads(manifest.read_text(encoding="utf-8"))
    assert document["status"] == "ok"
    assert document["outcomes"][0]["destination"] == str(tmp_path / "n.txt")
    assert len(document["outcomes"][0]["digest"]) == 64


def test_extract_missing_image(runner, tmp_path, no_config):
    result = runner.invoke(cli.main, ["extract", str(tmp_path / "nope.img"), "0", "/a", "b"])
    assert result.exit_code == 2


def test_extract_usage_requires_four_arguments(runner, mount, no_config):
    result = runner.invoke(cli.main, ["extract", str(mount), "0"])
    assert result.exit_code == 2


def test_extract_from_disk_image(runner, tmp_path, no_config):
    image = tmp_path / "rootfs.img"
    image.write_bytes(b"\0" * 512)
    fs = InMemoryFS({"/etc/hostname": b"evidence-host\n"})
    volumes = [VolumeInfo(0, 2, 1048576, 4096, "Linux (0x83)")]

    @contextmanager
    def fake_open(path, index, fmt):
        assert (path, index, fmt) == (image, 0, "auto")
        yield OpenedFilesystem(fs=fs, volume=volumes[0], volumes=volumes)

    with patch.object(cli, "open_filesystem", fake_open):
        result = runner.invoke(cli.main, ["extract", str(image), "0", "/etc/hostname", str(tmp_path / "h")])

    assert result.exit_code == 0, result.output
    assert "Number of logical volumes: 1" in result.output
    assert (tmp_path / "h").read_bytes() == b"evidence-host\n"


def test_extract_image_error(runner, tmp_path, no_config):
    image = tmp_path / "blank.img"
    image.write_bytes(b"\0" * 512)

    @contextmanager
    def failing_open(path, index, fmt):
        raise cli.ImageError("No file system detected on logical volume 0")
        yield  # pragma: no cover

    with patch.object(cli, "open_filesystem", failing_open):
        result = runner.invoke(cli.main, ["extract", str(image), "0", "/a", str(tmp_path / "a")])

    assert result.exit_code == 1
    assert "No file system detected" in result.output


def test_volumes_listing(runner, tmp_path, no_config):
    image = tmp_path / "disk.img"
    image.write_bytes(b"\0" * 512)
    described = [
        (VolumeInfo(0, 2, 1048576, 4096, "Linux (0x83)"), "ext4"),
        (VolumeInfo(1, 3, 5242880, 1024, "Linux swap (0x82)"), None),
    ]
    with patch.object(cli, "describe_volumes", return_value=described) as describe:
        result = runner.invoke(cli.main, ["volumes", str(image), "--format", "raw"])

    describe.assert_called_once_with(image, "raw")
    assert result.exit_code == 0, result.output
    assert "Number of logical volumes: 2" in result.output
    assert "[0] offset=1048576 length=4096 'Linux (0x83)' fs=ext4" in result.output
    assert "fs=none" in result.output


def test_config_file_disables_hashing(runner, mount, tmp_path):
    config = tmp_path / "config.yml"
    config.write_text("extraction:\n  hash_algorithm: null\n", encoding="utf-8")
    manifest = tmp_path / "m.json"
    result = runner.invoke(cli.main, [
        "--config", str(config),
        "extract", str(mount), "0", "/home/*/*.txt", str(tmp_path / "f"),
        "--manifest", str(manifest),
    ])

    assert result.exit_code == 0, result.output
    document = json.loads(manifest.read_text(encoding="utf-8"))
    assert document["hash_algorithm"] is None
    assert [o["digest"] for o in document["outcomes"]] == [None, None]


def test_invalid_config_reported(runner, mount, tmp_path):
    config = tmp_path / "config.yml"
    config.write_text("extraction:\n  chunk_size: -1\n", encoding="utf-8")
    result = runner.invoke(cli.main, ["--config", str(config), "extract", str(mount), "0", "/a", "b"])

    assert result.exit_code == 1
    assert "chunk_size must be positive" in result.output


def test_version(runner):
    result = runner.invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("diskglob, version ")
