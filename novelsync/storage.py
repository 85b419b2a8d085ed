"""File cache and key-value cache services.

The sync engine only needs a handful of operations from each store, so both
are described as Protocols with one default implementation each:

- LocalFileCache: plain files under the downloads directory
- SqlKeyValueCache: JSON values in the ``cache_entries`` table, shared by
  every process using the same database
- MemoryKeyValueCache: process-local dict, handy for hosts and tests
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .database import session_scope
from .exceptions import FileSystemFailure, PersistenceFailure
from .logging_config import get_logger
from .models import CacheEntry

logger = get_logger(__name__)

NOVEL_LATEST_CHAPTER_PREFIX = "NOVEL_LATEST_CHAPTER"
NOVEL_PAGE_UPDATES_PREFIX = "NOVEL_PAGE_UPDATES"


def latest_chapter_key(novel_id: int) -> str:
    return f"{NOVEL_LATEST_CHAPTER_PREFIX}_{novel_id}"


def page_updates_key(novel_id: int) -> str:
    return f"{NOVEL_PAGE_UPDATES_PREFIX}_{novel_id}"


# --- File cache ---

class FileCache(Protocol):
    def exists(self, path: Path) -> bool: ...

    def mkdir(self, path: Path) -> None: ...

    def write_file(self, path: Path, data: Union[bytes, str], encoding: str = "binary") -> None: ...


class LocalFileCache:
    """FileCache over the local filesystem.

    ``encoding`` is one of ``"binary"`` (bytes as-is), ``"base64"`` (text is
    decoded first) or ``"utf8"`` (text is encoded).
    """

    def exists(self, path: Path) -> bool:
        return path.exists()

    def mkdir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileSystemFailure(str(path), "mkdir", exc) from exc

    def write_file(self, path: Path, data: Union[bytes, str], encoding: str = "binary") -> None:
        try:
            payload = _encode(data, encoding)
        except (ValueError, binascii.Error) as exc:
            raise FileSystemFailure(str(path), "write_file", exc) from exc
        try:
            path.write_bytes(payload)
        except OSError as exc:
            raise FileSystemFailure(str(path), "write_file", exc) from exc


def _encode(data: Union[bytes, str], encoding: str) -> bytes:
    if encoding == "base64":
        return base64.b64decode(data, validate=True)
    if encoding == "utf8":
        return data.encode("utf-8") if isinstance(data, str) else data
    if encoding == "binary":
        if isinstance(data, str):
            raise ValueError("binary encoding expects bytes")
        return data
    raise ValueError(f"Unsupported encoding {encoding!r}")


# --- Key-value cache ---

class KeyValueCache(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryKeyValueCache:
    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Stored as JSON so callers never share mutable state with the cache
        self._data[key] = json.dumps(value)


class SqlKeyValueCache:
    """Persistent KeyValueCache stored in the ``cache_entries`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Optional[Any]:
        try:
            with session_scope(self.engine) as session:
                entry = session.get(CacheEntry, key)
                raw = entry.value if entry else None
        except SQLAlchemyError as exc:
            raise PersistenceFailure("cache get", exc) from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable cache entry {key}")
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            with session_scope(self.engine) as session:
                entry = session.get(CacheEntry, key)
                if entry is None:
                    entry = CacheEntry(key=key, value=json.dumps(value))
                else:
                    entry.value = json.dumps(value)
                session.add(entry)
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("cache set", exc) from exc
