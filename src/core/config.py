from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "DISKGLOB_CONFIG"
DEFAULT_CONFIG_PATH = Path("config") / "config.yml"

IMAGE_FORMATS = ("auto", "raw", "ewf", "vmdk")


@dataclass(slots=True)
class LoggingConfig:
    """Logging configuration from config.yml."""

    level: str = "INFO"
    log_dir: Optional[Path] = None
    max_mb: int = 50
    backup_count: int = 10

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(slots=True)
class ExtractionConfig:
    """Extraction configuration from config.yml."""

    sort_entries: bool = True  # Pin listing order so suffix numbering is reproducible
    chunk_size: int = 1024 * 1024
    hash_algorithm: Optional[str] = "sha256"
    image_format: str = "auto"


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration resolved from disk."""

    source: Optional[Path] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)

    def to_json(self) -> str:
        """Serialize the configuration into a JSON string for manifest outputs."""
        data = {
            "source": str(self.source) if self.source else None,
            "logging": {**asdict(self.logging), "log_dir": str(self.logging.log_dir) if self.logging.log_dir else None},
            "extraction": asdict(self.extraction),
        }
        return json.dumps(data, indent=2, sort_keys=True)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle) or {}
        if not isinstance(content, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level.")
        return content


def resolve_config_path(explicit: Optional[Path] = None) -> Path:
    """Pick the config file: explicit path, then $DISKGLOB_CONFIG, then ./config/config.yml."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_app_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from disk, providing sensible defaults."""

    path = resolve_config_path(config_path)
    config_overrides = _load_yaml(path)

    logging_cfg = config_overrides.get("logging") or {}
    log_dir = logging_cfg.get("log_dir")
    logging_config = LoggingConfig(
        level=str(logging_cfg.get("level", "INFO")),
        log_dir=Path(log_dir) if log_dir else None,
        max_mb=int(logging_cfg.get("max_mb", 50)),
        backup_count=int(logging_cfg.get("backup_count", 10)),
    )
    if not isinstance(logging_config.level_number, int):
        raise ValueError(f"Config file {path}: unknown logging level {logging_config.level!r}")

    extraction_cfg = config_overrides.get("extraction") or {}
    extraction_config = ExtractionConfig(
        sort_entries=bool(extraction_cfg.get("sort_entries", True)),
        chunk_size=int(extraction_cfg.get("chunk_size", 1024 * 1024)),
        hash_algorithm=extraction_cfg.get("hash_algorithm", "sha256"),
        image_format=str(extraction_cfg.get("image_format", "auto")).lower(),
    )

    if extraction_config.chunk_size <= 0:
        raise ValueError(f"Config file {path}: extraction.chunk_size must be positive")
    if extraction_config.image_format not in IMAGE_FORMATS:
        raise ValueError(
            f"Config file {path}: extraction.image_format must be one of {', '.join(IMAGE_FORMATS)}"
        )
    algorithm = extraction_config.hash_algorithm
    if algorithm is not None and not isinstance(algorithm, str):
        raise ValueError(f"Config file {path}: hash_algorithm must be a string or null, got {algorithm!r}")
    if algorithm is not None and algorithm.lower() not in hashlib.algorithms_available:
        raise ValueError(f"Config file {path}: unsupported hash algorithm {algorithm!r}")

    return AppConfig(
        source=path if path.exists() else None,
        logging=logging_config,
        extraction=extraction_config,
    )
