"""Library synchronization for novelsync.

Responsible for syncing a content source's view of a novel into the SQLite
database.

One novel's cycle runs in this order:
1. fetch a fresh snapshot through the gateway
2. metadata refresh (cover + all metadata fields) or, on a light poll, just
   total_pages; committed on its own
3. reconcile chapters and apply the change-set in a second transaction
4. auto-download newly inserted chapters (failures isolated per chapter)
5. invalidate cached "has updates" flags when the latest chapter moved

The two transactions are separate: a failure in step 3 leaves the metadata
written in step 2 in place. Nothing is retried.

Database sessions and the Pillow cover encode are synchronous, so they run
on the event loop thread. Cycles for several novels started concurrently are
interleaved only at source fetches; everything else is serialized on the loop.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable, Optional, Sequence

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import NovelSyncConfig, get_config
from .covers import cache_cover
from .database import get_engine, session_scope
from .downloads import ChapterDownloader, FileChapterDownloader
from .exceptions import NovelSyncError, PersistenceFailure
from .gateway import SourceGateway
from .logging_config import get_logger
from .models import Novel
from .path_utils import novel_folder
from .plugins import DEFAULT_PAGE, LOCAL_PLUGIN_ID, SourceChapter, SourceNovel
from .reconciler import duplicate_paths, reconcile
from .repository import AppliedChanges, Repository
from .storage import (
    FileCache,
    KeyValueCache,
    LocalFileCache,
    SqlKeyValueCache,
    latest_chapter_key,
    page_updates_key,
)

logger = get_logger(__name__)


@dataclasses.dataclass
class UpdateNovelOptions:
    download_new_chapters: bool = False
    refresh_novel_metadata: bool = False


@dataclasses.dataclass
class SyncResult:
    """Outcome of one novel (or novel page) sync."""

    novel_id: int
    inserted: list[int] = dataclasses.field(default_factory=list)
    updated: list[int] = dataclasses.field(default_factory=list)
    metadata_refreshed: bool = False
    updates_invalidated: bool = False
    download_failures: dict[int, str] = dataclasses.field(default_factory=dict)
    skipped: bool = False


class LibrarySync:
    """Drives sync cycles for novels of registered content sources."""

    def __init__(
        self,
        gateway: SourceGateway,
        engine: Optional[Engine] = None,
        file_cache: Optional[FileCache] = None,
        kv_cache: Optional[KeyValueCache] = None,
        downloader: Optional[ChapterDownloader] = None,
        config: Optional[NovelSyncConfig] = None,
    ):
        self.gateway = gateway
        self.config = config or get_config()
        self.engine = engine or get_engine()
        self.file_cache = file_cache or LocalFileCache()
        self.kv_cache = kv_cache or SqlKeyValueCache(self.engine)
        self.downloader = downloader or FileChapterDownloader(
            gateway, self.file_cache, self.engine, self.config.downloads_dir
        )

    def default_options(self) -> UpdateNovelOptions:
        return UpdateNovelOptions(
            download_new_chapters=self.config.sync.download_new_chapters,
            refresh_novel_metadata=self.config.sync.refresh_novel_metadata,
        )

    # --- Cycle steps ---

    async def _update_metadata(self, plugin_id: str, novel_id: int, novel: SourceNovel) -> None:
        folder = novel_folder(self.config.downloads_dir, plugin_id, novel_id)
        if not self.file_cache.exists(folder):
            self.file_cache.mkdir(folder)

        metadata = {
            "name": novel.name,
            "summary": novel.summary or None,
            "author": novel.author or "unknown",
            "artist": novel.artist or None,
            "genres": novel.genres or None,
            "status": novel.status or None,
            "total_pages": novel.total_pages or 0,
        }
        if novel.cover:
            cover = await cache_cover(
                self.gateway,
                self.file_cache,
                self.config.downloads_dir,
                plugin_id,
                novel_id,
                novel.cover,
            )
            # No image from the source: keep whatever cover is stored
            if cover is not None:
                metadata["cover"] = cover
        else:
            metadata["cover"] = None

        self._write_novel(novel_id, "metadata update", metadata)

    def _write_novel(self, novel_id: int, operation: str, metadata: dict) -> None:
        try:
            with session_scope(self.engine) as session:
                repo = Repository(session)
                found = repo.update_novel_metadata(novel_id, **metadata)
                repo.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(operation, exc) from exc
        if not found:
            logger.warning(f"Novel {novel_id} not found, {operation} skipped")

    def _update_chapters(
        self,
        novel_id: int,
        chapters: Sequence[SourceChapter],
        default_page: str = DEFAULT_PAGE,
    ) -> AppliedChanges:
        dupes = duplicate_paths(chapters)
        if dupes:
            logger.warning(
                f"Novel {novel_id}: source listed {len(dupes)} chapter path(s) twice, "
                f"keeping first occurrence ({dupes[0]})"
            )

        with session_scope(self.engine) as session:
            repo = Repository(session)
            try:
                change_set = reconcile(
                    novel_id, repo.get_chapter_states(novel_id), chapters, default_page
                )
                applied = repo.apply_change_set(change_set)
                repo.commit()
            except SQLAlchemyError as exc:
                repo.rollback()
                raise PersistenceFailure("chapter sync", exc) from exc
        return applied

    async def _download_new(
        self, plugin_id: str, novel_id: int, applied: AppliedChanges, result: SyncResult
    ) -> None:
        for chapter_id, path in applied.inserted:
            try:
                await self.downloader(plugin_id, novel_id, chapter_id, path)
            except Exception as exc:
                logger.error(f"✗ Download failed for chapter {chapter_id} ({path}): {exc}")
                result.download_failures[chapter_id] = str(exc)

    def _invalidate_updates(self, novel_id: int, latest: Optional[SourceChapter]) -> bool:
        """Mark every cached has-updates flag of the novel when its latest chapter moved."""
        if latest is None:
            return False
        known = self.kv_cache.get(latest_chapter_key(novel_id))
        known_path = known.get("path") if isinstance(known, dict) else None
        if latest.path == known_path:
            return False

        key = page_updates_key(novel_id)
        flags = self.kv_cache.get(key)
        if not isinstance(flags, list):
            return False
        self.kv_cache.set(key, [True for _ in flags])
        return True

    async def _finish(
        self,
        plugin_id: str,
        novel_id: int,
        applied: AppliedChanges,
        latest: Optional[SourceChapter],
        options: UpdateNovelOptions,
        result: SyncResult,
    ) -> SyncResult:
        result.inserted = [chapter_id for chapter_id, _ in applied.inserted]
        result.updated = list(applied.updated)
        if options.download_new_chapters:
            await self._download_new(plugin_id, novel_id, applied, result)
        result.updates_invalidated = self._invalidate_updates(novel_id, latest)
        return result

    # --- Public operations ---

    async def update_novel(
        self,
        plugin_id: str,
        novel_path: str,
        novel_id: int,
        options: Optional[UpdateNovelOptions] = None,
    ) -> SyncResult:
        """Sync one novel with its source.

        :param plugin_id: Content source id; the local pseudo-source is a no-op.
        :param novel_path: Novel path within the source.
        :param novel_id: Id of the stored novel row.
        :param options: Download / metadata flags; config defaults if omitted.
        :return: SyncResult describing what changed.
        """
        if plugin_id == LOCAL_PLUGIN_ID:
            return SyncResult(novel_id=novel_id, skipped=True)
        options = options or self.default_options()
        result = SyncResult(novel_id=novel_id)

        novel = await self.gateway.fetch_novel(plugin_id, novel_path)

        if options.refresh_novel_metadata:
            await self._update_metadata(plugin_id, novel_id, novel)
            result.metadata_refreshed = True
        elif novel.total_pages:
            # at least keep the page count current
            self._write_novel(novel_id, "total pages update", {"total_pages": novel.total_pages})

        applied = self._update_chapters(novel_id, novel.chapters)
        await self._finish(plugin_id, novel_id, applied, novel.latest_chapter, options, result)

        logger.info(
            f"[SYNC] {plugin_id}:{novel_path} - {len(result.inserted)} new, "
            f"{len(result.updated)} updated"
        )
        return result

    async def update_novel_page(
        self,
        plugin_id: str,
        novel_path: str,
        novel_id: int,
        page: str,
        options: Optional[UpdateNovelOptions] = None,
    ) -> SyncResult:
        """Sync the chapters listed on one page of a paginated novel.

        Chapters without a page token get *page*. Metadata is never touched.
        """
        if plugin_id == LOCAL_PLUGIN_ID:
            return SyncResult(novel_id=novel_id, skipped=True)
        options = options or self.default_options()
        result = SyncResult(novel_id=novel_id)

        source_page = await self.gateway.fetch_page(plugin_id, novel_path, page)
        applied = self._update_chapters(novel_id, source_page.chapters, default_page=page)
        await self._finish(
            plugin_id, novel_id, applied, source_page.latest_chapter, options, result
        )

        logger.info(
            f"[SYNC] {plugin_id}:{novel_path} page {page} - {len(result.inserted)} new, "
            f"{len(result.updated)} updated"
        )
        return result

    async def update_library(
        self,
        novels: Optional[Iterable[Novel]] = None,
        options: Optional[UpdateNovelOptions] = None,
    ) -> dict:
        """Sync every library novel one after another.

        A failing novel is logged and counted; the sweep carries on.

        :return: Dictionary with sweep statistics (updated, new_chapters, failed, skipped).
        """
        if novels is None:
            with session_scope(self.engine) as session:
                targets = [
                    (n.id, n.plugin_id, n.path, n.is_local)
                    for n in Repository(session).get_library_novels()
                ]
        else:
            targets = [(n.id, n.plugin_id, n.path, n.is_local) for n in novels]

        stats = {"updated": 0, "new_chapters": 0, "failed": 0, "skipped": 0}
        for novel_id, plugin_id, path, is_local in targets:
            if is_local or plugin_id == LOCAL_PLUGIN_ID:
                stats["skipped"] += 1
                continue
            try:
                result = await self.update_novel(plugin_id, path, novel_id, options)
            except NovelSyncError as exc:
                logger.error(f"✗ {plugin_id}:{path} - {exc}")
                stats["failed"] += 1
                continue
            stats["updated"] += 1
            stats["new_chapters"] += len(result.inserted)

        logger.info(
            f"Library update complete: {stats['updated']} novels updated, "
            f"{stats['new_chapters']} new chapters, {stats['failed']} failed, "
            f"{stats['skipped']} skipped."
        )
        return stats


async def update_novel(
    gateway: SourceGateway,
    plugin_id: str,
    novel_path: str,
    novel_id: int,
    options: Optional[UpdateNovelOptions] = None,
) -> SyncResult:
    """Sync one novel using the configured database and default caches."""
    return await LibrarySync(gateway).update_novel(plugin_id, novel_path, novel_id, options)
