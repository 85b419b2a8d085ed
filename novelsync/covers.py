"""Cover art caching.

Covers are fetched through the source gateway, re-encoded as PNG and stored
under ``<downloads_dir>/<plugin_id>/<novel_id>/cover.png``. The stored cover
value carries a ``?<stamp>`` suffix that changes on every refresh, so
consumers keyed on the string see a new asset even though the file path is
stable.
"""

from __future__ import annotations

import base64
import binascii
import threading
import time
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .exceptions import FetchFailure
from .gateway import SourceGateway
from .logging_config import get_logger
from .path_utils import novel_folder
from .storage import FileCache

logger = get_logger(__name__)

COVER_FILENAME = "cover.png"


class CoverStamp:
    """Strictly increasing millisecond stamps, even within one millisecond."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._last = max(int(time.time() * 1000), self._last + 1)
            return self._last


_stamp = CoverStamp()


def bust_cache(path: str, stamp: Optional[int] = None) -> str:
    """Append a cache-busting suffix to a stored cover path."""
    return f"{path}?{stamp if stamp is not None else _stamp.next()}"


def _to_png(plugin_id: str, data: Union[bytes, str]) -> bytes:
    try:
        raw = base64.b64decode(data, validate=True) if isinstance(data, str) else data
        with Image.open(BytesIO(raw)) as im:
            if im.mode not in ("RGB", "RGBA"):
                im = im.convert("RGBA")
            out = BytesIO()
            im.save(out, format="PNG", optimize=True)
            return out.getvalue()
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as exc:
        raise FetchFailure(plugin_id, "fetch_image", exc) from exc


async def cache_cover(
    gateway: SourceGateway,
    file_cache: FileCache,
    downloads_dir: Path,
    plugin_id: str,
    novel_id: int,
    cover_url: str,
) -> Optional[str]:
    """Fetch a novel's cover and store it locally.

    Returns the stored cover value (``file://...cover.png?<stamp>``), or None
    when the source offers no image, in which case the stored cover should be
    left unchanged.
    """
    if not gateway.supports(plugin_id, "fetch_image"):
        logger.debug(f"{plugin_id} cannot fetch images, cover not cached")
        return None

    url = gateway.resolve_url(plugin_id, cover_url)
    data = await gateway.fetch_image(plugin_id, url)
    if not data:
        return None

    png = _to_png(plugin_id, data)
    folder = novel_folder(downloads_dir, plugin_id, novel_id)
    if not file_cache.exists(folder):
        file_cache.mkdir(folder)
    cover_path = folder / COVER_FILENAME
    file_cache.write_file(cover_path, png, "binary")

    logger.debug(f"Cached cover for novel {novel_id} at {cover_path}")
    return bust_cache(f"file://{cover_path}")
