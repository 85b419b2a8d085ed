"""SQLModel database models for novelsync."""

from datetime import datetime, timezone
from typing import Optional, List
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel, Relationship

class NovelBase(SQLModel):
    plugin_id: str = Field(index=True)
    path: str
    name: str
    cover: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None
    artist: Optional[str] = None
    status: Optional[str] = None
    genres: Optional[str] = None
    total_pages: int = 0
    in_library: bool = False
    is_local: bool = False

class Novel(NovelBase, table=True):
    __tablename__ = "novels"
    __table_args__ = (UniqueConstraint("plugin_id", "path", name="uq_novel_plugin_path"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    chapters: List["Chapter"] = Relationship(
        back_populates="novel",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class ChapterBase(SQLModel):
    novel_id: int = Field(foreign_key="novels.id", index=True)
    path: str
    name: str
    release_time: Optional[str] = None
    chapter_number: Optional[float] = None
    page: str = "1"
    position: int = 0
    updated_time: Optional[datetime] = None
    # Local-only state: never written by synchronization
    bookmark: bool = False
    unread: bool = True
    read_time: Optional[datetime] = None
    is_downloaded: bool = False
    progress: Optional[int] = None

class Chapter(ChapterBase, table=True):
    __tablename__ = "chapters"
    __table_args__ = (UniqueConstraint("novel_id", "path", name="uq_chapter_novel_path"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    novel: Optional[Novel] = Relationship(back_populates="chapters")


class CacheEntry(SQLModel, table=True):
    """Persistent key-value row backing SqlKeyValueCache (value is JSON text)."""

    __tablename__ = "cache_entries"

    key: str = Field(primary_key=True)
    value: str
