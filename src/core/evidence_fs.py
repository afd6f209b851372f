from __future__ import annotations

import io
import os
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterator, List, Optional, Tuple

from extraction.exceptions import (
    FilesystemNotDetectedError,
    ImageError,
    NoVolumesError,
    VolumeIndexError,
)

from .enums import ImageFormat
from .logging import get_logger

LOGGER = get_logger("core.evidence_fs")

# Friendly names for TSK_FS_TYPE_* constants, probed by attribute name on pytsk3
_FS_TYPE_NAMES = (
    "NTFS", "FAT12", "FAT16", "FAT32", "EXFAT",
    "EXT2", "EXT3", "EXT4", "FFS1", "FFS1B", "FFS2",
    "HFS", "ISO9660", "YAFFS2", "APFS", "SWAP", "RAW",
)


@dataclass(frozen=True)
class VolumeInfo:
    """One addressable logical volume of a disk image."""

    index: int        # 0-based position among allocated partitions
    addr: int         # pytsk3 partition address
    offset: int       # bytes from image start
    length: int       # bytes
    description: str


def find_ewf_segments(first_segment: Path) -> List[Path]:
    """
    Given the first segment of an EWF image (e.g., image.E01 or image.e01),
    discover all related segments in the same directory.

    Discovery stops at the first missing segment number.
    """
    if not first_segment.exists():
        raise FileNotFoundError(f"E01 segment not found: {first_segment}")

    stem = first_segment.stem
    parent = first_segment.parent

    if not re.fullmatch(r"\.[eE]\d{2}", first_segment.suffix):
        LOGGER.warning("Unexpected EWF extension: %s", first_segment.suffix)
        return [first_segment]

    segments = [first_segment]
    letter = first_segment.suffix[1]

    for i in range(2, 100):
        next_path = parent / f"{stem}.{letter}{i:02d}"
        if next_path.exists():
            segments.append(next_path)
        else:
            break

    LOGGER.info("Discovered %d EWF segment(s) for %s", len(segments), first_segment.name)
    return segments


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "ignore")
    return str(value) if value is not None else ""


def _join(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


class EvidenceFS(ABC):
    """Abstract read-only view over a mounted evidence filesystem.

    Paths are ``/``-separated and absolute; ``""`` and ``"/"`` both name the root.
    Listings return immediate children only, as full paths.
    """

    @abstractmethod
    def list_directories(self, path: str) -> List[str]:
        """
        Return the immediate subdirectories of ``path``.

        Raises:
            FileNotFoundError: If ``path`` is not a directory.
        """

    @abstractmethod
    def list_files(self, path: str) -> List[str]:
        """Return the immediate regular files of ``path`` (FileNotFoundError as above)."""

    @abstractmethod
    def directory_exists(self, path: str) -> bool:
        """Return True if ``path`` names a directory."""

    @abstractmethod
    def file_size(self, path: str) -> int:
        """
        Return the size of a file in bytes.

        Raises:
            FileNotFoundError: If path does not exist
        """

    @abstractmethod
    def open_for_read(self, path: str) -> BinaryIO:
        """Return a binary stream over the file content (not buffered whole)."""

    @property
    def fs_type(self) -> str:
        return "unknown"

    def close(self) -> None:
        """Release resources held by this view. Safe to call repeatedly."""


class _TskFileReader(io.RawIOBase):
    """Sequential raw stream over a pytsk3 File object using read_random."""

    def __init__(self, tsk_file: Any, size: int) -> None:
        super().__init__()
        self._file = tsk_file
        self._size = size
        self._offset = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        remaining = self._size - self._offset
        if remaining <= 0:
            return 0
        length = min(len(buffer), remaining)
        data = self._file.read_random(self._offset, length)
        if not data:
            return 0
        count = len(data)
        buffer[:count] = data
        self._offset += count
        return count


class TskFS(EvidenceFS):
    """Evidence filesystem backed by a pytsk3 FS_Info."""

    def __init__(self, fs_info: Any, pytsk3_module: Any) -> None:
        self._fs = fs_info
        self._pytsk3 = pytsk3_module

    @property
    def fs_type(self) -> str:
        """
        Return filesystem type (ntfs, ext4, fat32, ...).

        Unknown numeric types are rendered as ``unknown_0xNN``.
        """
        ftype = self._fs.info.ftype
        for name in _FS_TYPE_NAMES:
            constant = getattr(self._pytsk3, f"TSK_FS_TYPE_{name}", None)
            if constant is not None and ftype == constant:
                return name.lower()
        text = str(ftype)
        if text.startswith("TSK_FS_TYPE_"):
            return text[len("TSK_FS_TYPE_"):].lower()
        try:
            return f"unknown_0x{int(ftype):02x}"
        except (TypeError, ValueError):
            return "unknown"

    def _entries(self, path: str) -> Iterator[Tuple[str, Any]]:
        normalized = self._normalize(path)
        try:
            directory = self._fs.open_dir(path=normalized)
        except OSError as exc:
            raise FileNotFoundError(f"Cannot open directory {normalized}: {exc}") from exc
        for entry in directory:
            name = _decode(getattr(entry.info.name, "name", b""))
            if not name or name in {".", ".."}:
                continue
            yield name, entry.info.meta

    def list_directories(self, path: str) -> List[str]:
        dir_type = self._pytsk3.TSK_FS_META_TYPE_DIR
        return [
            _join(path, name)
            for name, meta in self._entries(path)
            if meta is not None and meta.type == dir_type
        ]

    def list_files(self, path: str) -> List[str]:
        reg_type = self._pytsk3.TSK_FS_META_TYPE_REG
        return [
            _join(path, name)
            for name, meta in self._entries(path)
            if meta is not None and meta.type == reg_type
        ]

    def directory_exists(self, path: str) -> bool:
        try:
            self._fs.open_dir(path=self._normalize(path))
        except OSError:
            return False
        return True

    def _open_meta(self, path: str) -> Tuple[Any, Any]:
        normalized = self._normalize(path)
        try:
            file_obj = self._fs.open(path=normalized)
        except OSError as exc:
            raise FileNotFoundError(f"Cannot open {path}: {exc}") from exc
        meta = file_obj.info.meta
        if meta is None:
            raise FileNotFoundError(f"No metadata for {path}")
        return file_obj, meta

    def file_size(self, path: str) -> int:
        _, meta = self._open_meta(path)
        return int(meta.size or 0)

    def open_for_read(self, path: str) -> BinaryIO:
        file_obj, meta = self._open_meta(path)
        return io.BufferedReader(_TskFileReader(file_obj, int(meta.size or 0)))

    @staticmethod
    def _normalize(path: str) -> str:
        path = path.replace("\\", "/")
        if not path.startswith("/"):
            return f"/{path}"
        return path


class MountedFS(EvidenceFS):
    """Evidence filesystem wrapper for a locally mounted read-only path."""

    def __init__(self, mount_point: Path) -> None:
        if not mount_point.is_dir():
            raise FileNotFoundError(f"Mount point {mount_point} does not exist.")
        self.mount_point = mount_point
        LOGGER.info("MountedFS bound to %s", mount_point)

    @property
    def fs_type(self) -> str:
        return "mounted_dir"

    def _resolve_under_mount(self, path: str) -> Path:
        """
        Resolve a virtual path and enforce mount root confinement.

        Rejects traversal such as '../..' escaping the mounted evidence root.
        """
        base = self.mount_point.resolve()
        relative = path.replace("\\", "/").lstrip("/")
        resolved = (self.mount_point / relative).resolve()
        try:
            resolved.relative_to(base)
        except ValueError as exc:
            raise ValueError(
                f"Path traversal attempt: {path!r} resolves outside mount {self.mount_point}"
            ) from exc
        return resolved

    def _scan(self, path: str) -> List[os.DirEntry]:
        resolved = self._resolve_under_mount(path)
        try:
            with os.scandir(resolved) as entries:
                return list(entries)
        except NotADirectoryError as exc:
            raise FileNotFoundError(f"Not a directory: {path}") from exc

    def list_directories(self, path: str) -> List[str]:
        return [
            _join(path, entry.name)
            for entry in self._scan(path)
            if entry.is_dir(follow_symlinks=False)
        ]

    def list_files(self, path: str) -> List[str]:
        return [
            _join(path, entry.name)
            for entry in self._scan(path)
            if entry.is_file(follow_symlinks=False)
        ]

    def directory_exists(self, path: str) -> bool:
        return self._resolve_under_mount(path).is_dir()

    def file_size(self, path: str) -> int:
        resolved = self._resolve_under_mount(path)
        if not resolved.is_file():
            raise FileNotFoundError(f"Path {path} not found under mount {self.mount_point}.")
        return resolved.stat().st_size

    def open_for_read(self, path: str) -> BinaryIO:
        resolved = self._resolve_under_mount(path)
        if not resolved.is_file():
            raise FileNotFoundError(f"Path {path} not found under mount {self.mount_point}.")
        LOGGER.debug("Opening %s for read (MountedFS)", resolved)
        return resolved.open("rb")


class _LibyalImgInfo:
    """Adapt a libyal handle (pyewf, pyvmdk) to pytsk3.Img_Info."""

    def __new__(cls, handle, pytsk3_module):  # type: ignore[override]
        class ImgInfo(pytsk3_module.Img_Info):  # type: ignore
            def __init__(self, libyal_handle):
                self._libyal_handle = libyal_handle
                super().__init__(url="", type=pytsk3_module.TSK_IMG_TYPE_EXTERNAL)

            def close(self):
                self._libyal_handle.close()

            def read(self, offset: int, size: int) -> bytes:
                self._libyal_handle.seek(offset)
                return self._libyal_handle.read(size)

            def get_size(self) -> int:
                return self._libyal_handle.get_media_size()

        return ImgInfo(handle)


def _import_pytsk3():
    try:
        import pytsk3  # type: ignore
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
        raise RuntimeError("Reading disk images requires pytsk3 to be installed.") from exc
    return pytsk3


def open_image(image_path: Path, image_format: str = ImageFormat.AUTO) -> Any:
    """
    Open a disk image and return a pytsk3 Img_Info for it.

    ``image_format`` is one of ``auto``, ``raw``, ``ewf`` or ``vmdk``.
    """
    pytsk3 = _import_pytsk3()
    if not image_path.exists():
        raise FileNotFoundError(f"Disk image not found: {image_path}")

    fmt = ImageFormat(image_format)
    if fmt is ImageFormat.AUTO:
        fmt = ImageFormat.from_path(image_path.name)
    LOGGER.debug("Opening %s as %s image", image_path, fmt)

    if fmt is ImageFormat.EWF:
        try:
            import pyewf  # type: ignore
        except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError("EWF images require libewf-python (pyewf) to be installed.") from exc
        handle = pyewf.handle()
        handle.open([str(path) for path in find_ewf_segments(image_path)])
        return _LibyalImgInfo(handle, pytsk3)

    if fmt is ImageFormat.VMDK:
        try:
            import pyvmdk  # type: ignore
        except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError("VMDK images require libvmdk-python (pyvmdk) to be installed.") from exc
        handle = pyvmdk.handle()
        handle.open(str(image_path))
        handle.open_extent_data_files()
        return _LibyalImgInfo(handle, pytsk3)

    try:
        return pytsk3.Img_Info(url=str(image_path))
    except OSError as exc:
        raise ImageError(f"Unable to open disk image {image_path}: {exc}") from exc


def list_volumes(img_info: Any, pytsk3_module: Any) -> List[VolumeInfo]:
    """
    List the allocated logical volumes of an opened image.

    An image without a partition table is a single volume covering the whole
    image. Metadata and unallocated table slots are not volumes.

    Raises:
        NoVolumesError: If a partition table exists but nothing is allocated.
    """
    try:
        volume_system = pytsk3_module.Volume_Info(img_info)
    except OSError:
        LOGGER.debug("No partition table found - treating image as one volume")
        return [VolumeInfo(index=0, addr=0, offset=0, length=img_info.get_size(),
                           description="Whole image")]

    block_size = volume_system.info.block_size
    volumes: List[VolumeInfo] = []
    for part in volume_system:
        if part.flags != pytsk3_module.TSK_VS_PART_FLAG_ALLOC:
            continue
        volumes.append(VolumeInfo(
            index=len(volumes),
            addr=part.addr,
            offset=part.start * block_size,
            length=part.len * block_size,
            description=_decode(part.desc),
        ))
        LOGGER.debug("Found partition %d: offset=%d, length=%d, desc=%s",
                     part.addr, volumes[-1].offset, volumes[-1].length, volumes[-1].description)

    if not volumes:
        raise NoVolumesError("No logical volumes found.")
    LOGGER.info("Found %d logical volume(s)", len(volumes))
    return volumes


def open_volume_filesystem(img_info: Any, volume: VolumeInfo, pytsk3_module: Any) -> TskFS:
    """Detect and open the filesystem stored on ``volume``."""
    try:
        fs_info = pytsk3_module.FS_Info(img_info, offset=volume.offset)
    except OSError as exc:
        raise FilesystemNotDetectedError(
            f"No file system detected on logical volume {volume.index} "
            f"at offset {volume.offset}: {exc}"
        ) from exc
    fs = TskFS(fs_info, pytsk3_module)
    LOGGER.info("Detected file system %s on volume %d", fs.fs_type, volume.index)
    return fs


@dataclass
class OpenedFilesystem:
    """A filesystem opened from one volume of a disk image."""

    fs: TskFS
    volume: VolumeInfo
    volumes: List[VolumeInfo]


@contextmanager
def open_filesystem(
    image_path: Path,
    volume_index: int,
    image_format: str = ImageFormat.AUTO,
) -> Iterator[OpenedFilesystem]:
    """
    Open ``image_path``, select logical volume ``volume_index`` and mount its filesystem.

    The image handle is closed when the context exits.

    Raises:
        NoVolumesError: If the image has no allocated volume
        VolumeIndexError: If ``volume_index`` is out of range
        FilesystemNotDetectedError: If the volume holds no readable filesystem
    """
    pytsk3 = _import_pytsk3()
    img_info = open_image(image_path, image_format)
    try:
        volumes = list_volumes(img_info, pytsk3)
        if volume_index < 0 or volume_index >= len(volumes):
            raise VolumeIndexError(volume_index, len(volumes))
        volume = volumes[volume_index]
        fs = open_volume_filesystem(img_info, volume, pytsk3)
        try:
            yield OpenedFilesystem(fs=fs, volume=volume, volumes=volumes)
        finally:
            fs.close()
    finally:
        img_info.close()


def describe_volumes(image_path: Path, image_format: str = ImageFormat.AUTO) -> List[Tuple[VolumeInfo, Optional[str]]]:
    """
    Return every logical volume with its detected filesystem type (None if unreadable).
    """
    pytsk3 = _import_pytsk3()
    img_info = open_image(image_path, image_format)
    try:
        described: List[Tuple[VolumeInfo, Optional[str]]] = []
        for volume in list_volumes(img_info, pytsk3):
            try:
                fs_type: Optional[str] = open_volume_filesystem(img_info, volume, pytsk3).fs_type
            except FilesystemNotDetectedError as exc:
                LOGGER.debug("Volume %d filesystem not readable: %s", volume.index, exc)
                fs_type = None
            described.append((volume, fs_type))
        return described
    finally:
        img_info.close()
