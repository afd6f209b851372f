"""diskglob CLI: copy files matching a wildcard path out of a disk image."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click

from core.app_version import get_app_version
from core.config import IMAGE_FORMATS, AppConfig, load_app_config
from core.evidence_fs import EvidenceFS, MountedFS, describe_volumes, open_filesystem
from core.logging import configure_logging, get_logger
from extraction.exceptions import ImageError, InvalidPatternError, VolumeIndexError
from extraction.pipeline import ExtractionPipeline
from extraction.wildcard import split_pattern

LOGGER = get_logger("app.main")

EXIT_OK = 0
EXIT_FAILURE = 1


class EchoCallbacks:
    """Print pipeline messages to the terminal."""

    def on_step(self, step_name: str) -> None:
        LOGGER.debug("Step: %s", step_name)

    def on_progress(self, current: int, total: int, message: str = "") -> None:
        LOGGER.debug("[%d/%d] %s", current, total, message)

    def on_log(self, message: str, level: str = "info") -> None:
        click.echo(message, err=level == "error")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context) -> AppConfig:
    try:
        config = load_app_config(ctx.obj.get("config_path"))
    except ValueError as exc:
        raise click.ClickException(str(exc))

    verbose = ctx.obj.get("verbose", False)
    level = logging.DEBUG if verbose else config.logging.level_number
    configure_logging(
        config.logging.log_dir,
        level=level,
        max_bytes=config.logging.max_mb * 1024 * 1024,
        backup_count=config.logging.backup_count,
        console_level=logging.DEBUG if verbose else logging.WARNING,
    )
    LOGGER.debug("Configuration: %s", config.to_json())
    return config


@contextmanager
def _open_evidence(image: Path, volume_index: int, image_format: str) -> Iterator[EvidenceFS]:
    """Open a disk image volume, or a host directory holding an already-mounted filesystem."""
    if image.is_dir():
        if volume_index != 0:
            raise VolumeIndexError(volume_index, 1)
        click.echo("Number of logical volumes: 1")
        fs = MountedFS(image)
        click.echo(f"Detected file system: {fs.fs_type}")
        yield fs
        return

    with open_filesystem(image, volume_index, image_format) as opened:
        click.echo(f"Number of logical volumes: {len(opened.volumes)}")
        click.echo(f"Detected file system: {opened.fs.fs_type}")
        yield opened.fs


def _format_option(f):
    return click.option(
        "--format", "image_format", type=click.Choice(IMAGE_FORMATS), default=None,
        help="Disk image container format (default: from config, else by extension).",
    )(f)


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(get_app_version(), prog_name="diskglob")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging on stderr.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="YAML configuration file.")
@click.pass_context
def main(ctx, verbose, config_path):
    """diskglob: extract files from disk images by wildcard path."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------

@main.command()
@click.argument("image", type=click.Path(exists=True, path_type=Path))
@click.argument("volume_index", type=int)
@click.argument("pattern")
@click.argument("destination")
@_format_option
@click.option("--manifest", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write a JSON manifest of matches and per-file outcomes.")
@click.pass_context
def extract(ctx, image, volume_index, pattern, destination, image_format, manifest):
    """Copy files matching PATTERN inside IMAGE to DESTINATION.

    PATTERN uses '/' separators; '*' and '?' match within one path component.
    When several files match, '.N' is appended to DESTINATION for each of them
    (file.txt.1, file.txt.2, ...).

    \b
    Examples:
      diskglob extract rootfs.img 0 "/root/root.txt" ./root.txt
      diskglob extract rootfs.vmdk 0 "/home/*/*.txt" ./user.txt
      diskglob extract rootfs.E01 1 "/home/*/.ssh/id_rsa" ./id_rsa
    """
    config = _load_config(ctx)
    image_format = image_format or config.extraction.image_format

    try:
        split_pattern(pattern)
    except InvalidPatternError as exc:
        raise click.ClickException(str(exc))

    try:
        with _open_evidence(image, volume_index, image_format) as fs:
            click.echo()
            pipeline = ExtractionPipeline.from_config(fs, config.extraction, callbacks=EchoCallbacks())
            result = pipeline.run(pattern, destination)
    except (ImageError, RuntimeError, OSError) as exc:
        LOGGER.error("Cannot open %s: %s", image, exc)
        raise click.ClickException(str(exc))

    if manifest is not None:
        manifest.parent.mkdir(parents=True, exist_ok=True)
        manifest.write_text(result.to_json(), encoding="utf-8")
        LOGGER.info("Manifest written to %s", manifest)

    click.echo()
    click.echo(
        f"Summary: {result.copied_count} copied, {result.skipped_count} skipped, "
        f"{result.failed_count} failed ({result.status})"
    )
    ctx.exit(EXIT_FAILURE if result.status.is_failure else EXIT_OK)


# ---------------------------------------------------------------------------
# volumes
# ---------------------------------------------------------------------------

@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_format_option
@click.pass_context
def volumes(ctx, image, image_format):
    """List the logical volumes of IMAGE and their file systems."""
    config = _load_config(ctx)
    image_format = image_format or config.extraction.image_format
    try:
        described = describe_volumes(image, image_format)
    except (ImageError, RuntimeError, OSError) as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Number of logical volumes: {len(described)}")
    for volume, fs_type in described:
        click.echo(
            f"[{volume.index}] offset={volume.offset} length={volume.length} "
            f"{volume.description!r} fs={fs_type or 'none'}"
        )


if __name__ == "__main__":
    main()
