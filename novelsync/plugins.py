"""Content source contract and plugin registry.

Each content source (a remote catalog, scraper or API) implements
:class:`ContentSource` to translate its own representation into the
snapshot models below. Sources expose two required operations and three
optional capabilities; :meth:`ContentSource.supports` tells the gateway
which optional ones a source actually provides.

Example::

    registry = PluginRegistry()
    registry.register(MySource())
    gateway = SourceGateway(registry)
    novel = await gateway.fetch_novel("my-source", "/novel/42")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Union

from pydantic import BaseModel, field_validator

from .logging_config import get_logger

logger = get_logger(__name__)

# Reserved id of the built-in local pseudo-source; never synchronized.
LOCAL_PLUGIN_ID = "local"

DEFAULT_PAGE = "1"

CAPABILITIES = ("fetch_image", "parse_page", "resolve_url")


class SourceChapter(BaseModel):
    """One remote chapter as reported by a source (order-significant)."""

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}

    path: str
    name: str
    release_time: Optional[str] = None
    chapter_number: Optional[float] = None
    page: Optional[str] = None


class SourceNovel(BaseModel):
    """A freshly fetched novel: metadata plus its ordered chapter list."""

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}

    path: str = ""
    name: str
    cover: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None
    artist: Optional[str] = None
    genres: Optional[str] = None
    status: Optional[str] = None
    total_pages: int = 0
    chapters: list[SourceChapter] = []
    latest_chapter: Optional[SourceChapter] = None

    @field_validator("genres", mode="before")
    @classmethod
    def _join_genres(cls, value):
        if isinstance(value, (list, tuple)):
            return ",".join(str(g).strip() for g in value if str(g).strip()) or None
        return value

    @field_validator("total_pages", mode="before")
    @classmethod
    def _none_pages(cls, value):
        return 0 if value is None else value


class SourcePage(BaseModel):
    """Partial snapshot returned for one page of a paginated novel."""

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}

    chapters: list[SourceChapter] = []
    latest_chapter: Optional[SourceChapter] = None


class ContentSource(ABC):
    """Abstract base for content source plugins.

    Subclasses must set ``id``, ``name`` and ``site`` and implement
    :meth:`parse_novel` and :meth:`parse_chapter`. The optional
    capabilities (:meth:`fetch_image`, :meth:`parse_page`,
    :meth:`resolve_url`) count as supported only when overridden.
    """

    id: str
    name: str
    site: str = ""

    # ── Required ────────────────────────────────────────────────────────

    @abstractmethod
    async def parse_novel(self, novel_path: str) -> Union[SourceNovel, dict]:
        """Fetch the novel at *novel_path* with its full chapter list."""

    @abstractmethod
    async def parse_chapter(self, chapter_path: str) -> str:
        """Fetch the text (HTML) of one chapter."""

    # ── Optional ────────────────────────────────────────────────────────

    async def fetch_image(self, url: str) -> Union[bytes, str, None]:
        """Fetch an image as raw bytes or base64 text; None means no image."""
        raise NotImplementedError

    async def parse_page(self, novel_path: str, page: str) -> Union[SourcePage, dict]:
        """Fetch the chapters listed on one page of a paginated novel."""
        raise NotImplementedError

    def resolve_url(self, path: str, is_novel: bool = False) -> str:
        """Turn a source-relative path into an absolute URL."""
        raise NotImplementedError

    def supports(self, capability: str) -> bool:
        """Return True if this source overrides the optional *capability*."""
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability {capability!r}")
        return getattr(type(self), capability) is not getattr(ContentSource, capability)


class PluginRegistry:
    """Explicit id -> ContentSource registry owned by the host application."""

    def __init__(self, sources: Optional[list[ContentSource]] = None):
        self._sources: dict[str, ContentSource] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: ContentSource) -> None:
        if source.id == LOCAL_PLUGIN_ID:
            raise ValueError(f"Plugin id {LOCAL_PLUGIN_ID!r} is reserved")
        if source.id in self._sources:
            logger.warning(f"Replacing registered plugin {source.id}")
        self._sources[source.id] = source

    def unregister(self, source_id: str) -> None:
        self._sources.pop(source_id, None)

    def get(self, source_id: str) -> Optional[ContentSource]:
        return self._sources.get(source_id)

    def ids(self) -> list[str]:
        return sorted(self._sources)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __iter__(self) -> Iterator[ContentSource]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)
