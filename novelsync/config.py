"""Config management for novelsync.

Reads `config.ini` from DATA_DIR. DATA_DIR defaults to the project root and
can be overridden with the NOVELSYNC_DATA_DIR environment variable.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
from typing import Optional

from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]

# DATA_DIR holds all persistent state (config.ini, library.db, downloads/).
DATA_DIR = pathlib.Path(os.environ.get("NOVELSYNC_DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"


@dataclasses.dataclass
class StorageConfig:
    database: pathlib.Path
    downloads_dir: pathlib.Path


@dataclasses.dataclass
class SyncConfig:
    download_new_chapters: bool = False
    refresh_novel_metadata: bool = False


@dataclasses.dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[pathlib.Path] = None


@dataclasses.dataclass
class NovelSyncConfig:
    storage: StorageConfig
    sync: SyncConfig
    logging: LoggingConfig

    @property
    def database_path(self) -> pathlib.Path:
        return self.storage.database

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.storage.database}"

    @property
    def downloads_dir(self) -> pathlib.Path:
        return self.storage.downloads_dir


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve(value: str, base: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(value).expanduser()
    return path if path.is_absolute() else base / path


def default_config(data_dir: Optional[pathlib.Path] = None) -> NovelSyncConfig:
    """Build a config with defaults rooted at *data_dir* (DATA_DIR if omitted)."""
    base = data_dir or DATA_DIR
    return NovelSyncConfig(
        storage=StorageConfig(
            database=base / "library.db",
            downloads_dir=base / "downloads",
        ),
        sync=SyncConfig(),
        logging=LoggingConfig(file=base / "novelsync.log"),
    )


def load_config(config_path: Optional[pathlib.Path] = None) -> NovelSyncConfig:
    """Load configuration from config.ini.

    Relative storage paths are resolved against the directory holding the file.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)
    base = path.parent

    storage = StorageConfig(
        database=_resolve(parser.get("storage", "database", fallback="library.db"), base),
        downloads_dir=_resolve(
            parser.get("storage", "downloads_dir", fallback="downloads"), base
        ),
    )

    sync = SyncConfig(
        download_new_chapters=_parse_bool(
            parser.get("sync", "download_new_chapters", fallback="false"), False
        ),
        refresh_novel_metadata=_parse_bool(
            parser.get("sync", "refresh_novel_metadata", fallback="false"), False
        ),
    )

    log = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO").strip().upper(),
        file=_resolve(parser.get("logging", "file", fallback="novelsync.log").strip(), base),
    )

    return NovelSyncConfig(storage=storage, sync=sync, logging=log)


_cached_config: Optional[NovelSyncConfig] = None


def get_config() -> NovelSyncConfig:
    """Return the cached config singleton.

    Loads config.ini on first call; falls back to defaults when it is missing.
    """
    global _cached_config
    if _cached_config is None:
        try:
            _cached_config = load_config()
        except FileNotFoundError:
            logger.info(f"No config.ini in {DATA_DIR}, using defaults")
            _cached_config = default_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def configure_logging(config: Optional[NovelSyncConfig] = None) -> None:
    """Install novelsync's log handlers using the ``[logging]`` section.

    Host applications call this once at startup, before the first sync.
    """
    cfg = config or get_config()
    setup_logging(cfg.logging.level, cfg.logging.file)
