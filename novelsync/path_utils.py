"""Path and URL helpers.

Downloaded files live under ``<downloads_dir>/<plugin_id>/<novel_id>/``,
one sub-folder per chapter id, so a novel's cover and chapters stay together
and can be removed as one tree.
"""

from __future__ import annotations

import re
from pathlib import Path

_ABSOLUTE_URL = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//)", re.IGNORECASE)


def is_url_absolute(url: str) -> bool:
    """Return True for URLs with a scheme or protocol-relative URLs.

    Example:
        >>> is_url_absolute("https://example.com/novel/1")
        True
        >>> is_url_absolute("/novel/1")
        False
    """
    return bool(_ABSOLUTE_URL.match(url))


def novel_folder(downloads_dir: Path, plugin_id: str, novel_id: int) -> Path:
    """Return the folder holding a novel's cached cover and chapters."""
    return downloads_dir / plugin_id / str(novel_id)


def chapter_folder(downloads_dir: Path, plugin_id: str, novel_id: int, chapter_id: int) -> Path:
    """Return the folder holding one downloaded chapter."""
    return novel_folder(downloads_dir, plugin_id, novel_id) / str(chapter_id)
