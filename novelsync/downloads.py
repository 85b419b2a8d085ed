"""Chapter downloads.

The sync engine hands newly inserted chapters to a ChapterDownloader. The
default implementation fetches the chapter text through the gateway, writes
it to ``<downloads_dir>/<plugin_id>/<novel_id>/<chapter_id>/index.html`` and
flags the row as downloaded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .database import session_scope
from .exceptions import PersistenceFailure
from .gateway import SourceGateway
from .logging_config import get_logger
from .path_utils import chapter_folder
from .repository import Repository
from .storage import FileCache

logger = get_logger(__name__)


class ChapterDownloader(Protocol):
    async def __call__(
        self, plugin_id: str, novel_id: int, chapter_id: int, chapter_path: str
    ) -> None: ...


class FileChapterDownloader:
    def __init__(
        self,
        gateway: SourceGateway,
        file_cache: FileCache,
        engine: Engine,
        downloads_dir: Path,
    ):
        self.gateway = gateway
        self.file_cache = file_cache
        self.engine = engine
        self.downloads_dir = downloads_dir

    async def __call__(
        self, plugin_id: str, novel_id: int, chapter_id: int, chapter_path: str
    ) -> None:
        text = await self.gateway.fetch_chapter_text(plugin_id, chapter_path)

        folder = chapter_folder(self.downloads_dir, plugin_id, novel_id, chapter_id)
        if not self.file_cache.exists(folder):
            self.file_cache.mkdir(folder)
        self.file_cache.write_file(folder / "index.html", text, "utf8")

        try:
            with session_scope(self.engine) as session:
                repo = Repository(session)
                repo.mark_chapter_downloaded(chapter_id)
                repo.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("mark chapter downloaded", exc) from exc

        logger.debug(f"Downloaded chapter {chapter_id} ({chapter_path})")
