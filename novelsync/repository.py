"""Data Access Layer for novelsync.

Encapsulates database operations using SQLModel/SQLAlchemy. Callers own the
transaction boundary: nothing here commits unless ``commit()`` is called.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

from sqlalchemy import update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from .logging_config import get_logger
from .models import Chapter, Novel
from .reconciler import ChangeSet, ChapterInsert, ChapterUpdate, PersistedChapterState

logger = get_logger(__name__)

NOVEL_METADATA_FIELDS = (
    "name", "cover", "summary", "author", "artist", "genres", "status", "total_pages",
)


class AppliedChanges(NamedTuple):
    inserted: List[tuple[int, str]]  # (chapter_id, path)
    updated: List[int]


class Repository:
    """Data access layer for novels and chapters."""

    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        """Commit the current transaction. Callers control when to commit."""
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- Novels ---

    def get_novel(self, novel_id: int) -> Optional[Novel]:
        return self.session.get(Novel, novel_id)

    def get_novel_by_path(self, plugin_id: str, path: str) -> Optional[Novel]:
        statement = select(Novel).where(Novel.plugin_id == plugin_id, Novel.path == path)
        return self.session.exec(statement).first()

    def insert_novel(self, plugin_id: str, path: str, name: str, **fields) -> Novel:
        """Insert a novel row and return it with its id assigned."""
        novel = Novel(plugin_id=plugin_id, path=path, name=name, **fields)
        self.session.add(novel)
        self.session.flush()
        self.session.refresh(novel)
        return novel

    def get_library_novels(self) -> List[Novel]:
        statement = select(Novel).where(Novel.in_library == True).order_by(Novel.id)  # noqa: E712
        return list(self.session.exec(statement).all())

    def update_novel_metadata(self, novel_id: int, **metadata) -> bool:
        """Overwrite the metadata columns given in *metadata*.

        Returns False when the novel does not exist.
        """
        unknown = set(metadata) - set(NOVEL_METADATA_FIELDS)
        if unknown:
            raise ValueError(f"Not novel metadata fields: {sorted(unknown)}")
        novel = self.session.get(Novel, novel_id)
        if novel is None:
            return False
        for key, value in metadata.items():
            setattr(novel, key, value)
        self.session.add(novel)
        self.session.flush()
        return True

    def update_novel_total_pages(self, novel_id: int, total_pages: int) -> bool:
        return self.update_novel_metadata(novel_id, total_pages=total_pages)

    # --- Chapters ---

    def get_chapters(self, novel_id: int) -> List[Chapter]:
        statement = (
            select(Chapter)
            .where(Chapter.novel_id == novel_id)
            .order_by(Chapter.position, Chapter.id)
        )
        return list(self.session.exec(statement).all())

    def get_chapter_states(self, novel_id: int) -> dict[str, PersistedChapterState]:
        """Return the synchronized columns of a novel's chapters keyed by path."""
        statement = select(
            Chapter.id,
            Chapter.path,
            Chapter.name,
            Chapter.release_time,
            Chapter.page,
            Chapter.position,
        ).where(Chapter.novel_id == novel_id)
        return {
            row[1]: PersistedChapterState(*row)
            for row in self.session.exec(statement).all()
        }

    def apply_change_set(self, change_set: ChangeSet) -> AppliedChanges:
        """Execute every insert and update of *change_set* in the open transaction.

        Inserts are conditional on (novel_id, path) being free, so a row
        created concurrently since the change-set was computed is left alone.
        """
        now = datetime.now(timezone.utc)
        connection = self.session.connection()
        inserted: List[tuple[int, str]] = []
        updated: List[int] = []

        for action in change_set:
            if isinstance(action, ChapterInsert):
                statement = (
                    sqlite_insert(Chapter)
                    .values(
                        novel_id=action.novel_id,
                        path=action.path,
                        name=action.name,
                        release_time=action.release_time,
                        chapter_number=action.chapter_number,
                        page=action.page,
                        position=action.position,
                        updated_time=now,
                        created_at=now,
                        bookmark=False,
                        unread=True,
                        is_downloaded=False,
                    )
                    .on_conflict_do_nothing(index_elements=["novel_id", "path"])
                    .returning(Chapter.id)
                )
                chapter_id = connection.execute(statement).scalar_one_or_none()
                if chapter_id is None:
                    logger.debug(f"Chapter {action.path} already stored, insert skipped")
                    continue
                inserted.append((chapter_id, action.path))

            elif isinstance(action, ChapterUpdate):
                values = dict(action.changes)
                values["position"] = action.position
                values["updated_time"] = now
                connection.execute(
                    update(Chapter).where(Chapter.id == action.chapter_id).values(**values)
                )
                updated.append(action.chapter_id)

        return AppliedChanges(inserted=inserted, updated=updated)

    def mark_chapter_downloaded(self, chapter_id: int, downloaded: bool = True) -> None:
        chapter = self.session.get(Chapter, chapter_id)
        if chapter:
            chapter.is_downloaded = downloaded
            self.session.add(chapter)
            self.session.flush()
