"""Chapter reconciliation.

Compares a freshly fetched chapter list against the chapters already
stored for a novel and decides, per remote chapter, whether it must be
inserted, updated or left alone. Everything here is pure: no database,
no network, the same inputs always give the same ChangeSet.

Rules:
- chapters are matched by path only; ids and positions never match
- position is the chapter's index in the remote list and is always compared
- a stored chapter missing from the remote list is kept (no deletions)
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping, NamedTuple, Optional, Sequence, Union

from .plugins import DEFAULT_PAGE, SourceChapter


class PersistedChapterState(NamedTuple):
    """The synchronized columns of a stored chapter row."""

    id: int
    path: str
    name: str
    release_time: Optional[str]
    page: str
    position: int


class ChapterInsert(NamedTuple):
    novel_id: int
    path: str
    name: str
    release_time: Optional[str]
    chapter_number: Optional[float]
    page: str
    position: int


class ChapterUpdate(NamedTuple):
    """Update of an existing row; ``changes`` holds only the differing columns."""

    chapter_id: int
    path: str
    changes: dict[str, Any]
    position: int


ChapterAction = Union[ChapterInsert, ChapterUpdate]


class ChangeSet(Sequence[ChapterAction]):
    """Ordered inserts and updates, in remote chapter order."""

    def __init__(self, actions: Iterable[ChapterAction] = ()):
        self._actions = tuple(actions)

    @property
    def inserts(self) -> list[ChapterInsert]:
        return [a for a in self._actions if isinstance(a, ChapterInsert)]

    @property
    def updates(self) -> list[ChapterUpdate]:
        return [a for a in self._actions if isinstance(a, ChapterUpdate)]

    @property
    def is_empty(self) -> bool:
        return not self._actions

    def __getitem__(self, index):
        return self._actions[index]

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[ChapterAction]:
        return iter(self._actions)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ChangeSet):
            return self._actions == other._actions
        return NotImplemented

    def __repr__(self) -> str:
        return f"ChangeSet({list(self._actions)!r})"


def index_by_path(
    persisted: Union[Mapping[str, PersistedChapterState], Iterable[PersistedChapterState]],
) -> Mapping[str, PersistedChapterState]:
    if isinstance(persisted, Mapping):
        return persisted
    return {state.path: state for state in persisted}


def duplicate_paths(chapters: Sequence[SourceChapter]) -> list[str]:
    """Return paths that appear more than once in a remote chapter list."""
    seen: set[str] = set()
    dupes: list[str] = []
    for chapter in chapters:
        if chapter.path in seen and chapter.path not in dupes:
            dupes.append(chapter.path)
        seen.add(chapter.path)
    return dupes


def reconcile(
    novel_id: int,
    persisted: Union[Mapping[str, PersistedChapterState], Iterable[PersistedChapterState]],
    chapters: Sequence[SourceChapter],
    default_page: str = DEFAULT_PAGE,
) -> ChangeSet:
    """Diff the remote *chapters* of a novel against its *persisted* rows.

    :param novel_id: Id of the stored novel the chapters belong to.
    :param persisted: Stored chapter state, keyed by path or as an iterable.
    :param chapters: Remote chapters in remote order.
    :param default_page: Page token used when a remote chapter has none.
    :return: ChangeSet with one action per new or drifted chapter.
    """
    existing = index_by_path(persisted)
    actions: list[ChapterAction] = []
    seen: set[str] = set()

    for position, chapter in enumerate(chapters):
        # First occurrence wins; a repeated path would break the natural key
        if chapter.path in seen:
            continue
        seen.add(chapter.path)

        page = chapter.page or default_page
        row = existing.get(chapter.path)

        if row is None:
            actions.append(
                ChapterInsert(
                    novel_id=novel_id,
                    path=chapter.path,
                    name=chapter.name,
                    release_time=chapter.release_time,
                    chapter_number=chapter.chapter_number,
                    page=page,
                    position=position,
                )
            )
            continue

        remote = (chapter.name, chapter.release_time, page, position)
        stored = (row.name, row.release_time, row.page, row.position)
        if remote == stored:
            continue

        fields = ("name", "release_time", "page", "position")
        changes = {
            field: new for field, new, old in zip(fields, remote, stored) if new != old
        }
        actions.append(
            ChapterUpdate(
                chapter_id=row.id,
                path=chapter.path,
                changes=changes,
                position=position,
            )
        )

    return ChangeSet(actions)
